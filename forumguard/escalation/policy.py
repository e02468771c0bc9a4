"""Report-volume escalation.

After every filed report the policy recounts the unresolved reports for the
content item and, once a threshold is reached, acts on the content and
resolves the whole batch that triggered the action:

    count < flag_threshold                     -> nothing
    flag_threshold <= count < delete_threshold -> flag post, AUTO_FLAG
    count >= delete_threshold                  -> hide post, AUTO_DELETE

The band is derived from the ledger on every evaluation and never stored.
An action resolves exactly the reports it counted, so the same batch can
never trigger twice and reports filed while it runs start the next batch.
Only posts have an automated action; topic reports accumulate for human
review. The per-item lock is held in process memory, see
:mod:`forumguard.escalation.locks`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from forumguard.errors import ValidationError
from forumguard.escalation.locks import KeyedLock
from forumguard.notifications import Notifier, safe_notify
from forumguard.reports.ledger import ReportLedger
from forumguard.reports.models import ContentType, ResolutionAction, coerce_enum

if TYPE_CHECKING:
    from forumguard.content import ContentStore
    from forumguard.history import ModerationHistory

logger = logging.getLogger(__name__)

FLAG_THRESHOLD = 3
DELETE_THRESHOLD = 10

SYSTEM_ACTOR = "SYSTEM"

_DELETE_REASON = "Community reports exceeded deletion threshold"
_FLAG_REASON = "Multiple community reports"


class EscalationAction(Enum):
    NONE = "NONE"
    FLAGGED = "FLAGGED"
    REMOVED = "REMOVED"


@dataclass
class EscalationOutcome:
    """What one evaluation did."""

    action: EscalationAction
    unresolved_count: int
    resolved_report_ids: list[str] = field(default_factory=list)

    @property
    def acted(self) -> bool:
        return self.action != EscalationAction.NONE


@dataclass
class _PendingNotice:
    recipient: str
    category: str
    message: str
    link: str


class EscalationPolicy:
    """Threshold-driven automated moderation for reported posts."""

    def __init__(
        self,
        ledger: ReportLedger,
        content_store: ContentStore,
        notifier: Optional[Notifier] = None,
        history: Optional[ModerationHistory] = None,
        flag_threshold: int = FLAG_THRESHOLD,
        delete_threshold: int = DELETE_THRESHOLD,
    ) -> None:
        if not 1 <= flag_threshold < delete_threshold:
            raise ValidationError(
                f"Thresholds must satisfy 1 <= flag < delete (got {flag_threshold}, {delete_threshold})"
            )
        self._ledger = ledger
        self._content = content_store
        self._notifier = notifier
        self._history = history
        self.flag_threshold = flag_threshold
        self.delete_threshold = delete_threshold
        self._locks = KeyedLock()

    def evaluate(self, content_type: ContentType | str, content_id: str) -> EscalationOutcome:
        """Recount unresolved reports for one item and act if a threshold is met.

        The count-compare-act-resolve sequence holds the item's lock; the
        author notification is sent after the lock is released.
        """
        ctype = coerce_enum(ContentType, content_type, "content type")
        cid = str(content_id)
        notice: Optional[_PendingNotice] = None

        with self._locks.hold((ctype, cid)):
            pending = [r.id for r in self._ledger.unresolved_for(ctype, cid)]
            count = len(pending)
            logger.debug(
                "Processing automated actions for %s %s - report count: %d", ctype.value, cid, count
            )

            if ctype != ContentType.POST or count < self.flag_threshold:
                outcome = EscalationOutcome(EscalationAction.NONE, count)
            elif count >= self.delete_threshold:
                outcome, notice = self._remove(cid, pending)
            else:
                outcome, notice = self._flag(cid, pending)

        if notice is not None:
            safe_notify(
                self._notifier, notice.recipient, notice.category, notice.message, notice.link, SYSTEM_ACTOR
            )
        return outcome

    # -- actions -------------------------------------------------------------

    def _remove(self, content_id: str, pending: list[str]) -> tuple[EscalationOutcome, _PendingNotice]:
        logger.info("[COMMUNITY-MODERATION] Auto-deleting POST %s due to community reports", content_id)
        previous = self._content.get_status(content_id)
        author = self._content.get_author(content_id)
        link = self._content.get_container_path(content_id)

        self._content.set_inactive(content_id, SYSTEM_ACTOR)
        resolved = self._ledger.resolve_ids(
            pending,
            SYSTEM_ACTOR,
            ResolutionAction.AUTO_DELETE,
            "Content automatically deleted due to multiple community reports",
        )
        self._record(content_id, "DELETE", _DELETE_REASON, previous, "DELETED", len(resolved))

        notice = _PendingNotice(
            recipient=author,
            category="content_deleted",
            message=f"Your post was automatically removed due to community reports: {_DELETE_REASON}",
            link=link,
        )
        return EscalationOutcome(EscalationAction.REMOVED, len(pending), [r.id for r in resolved]), notice

    def _flag(self, content_id: str, pending: list[str]) -> tuple[EscalationOutcome, _PendingNotice]:
        logger.info("[COMMUNITY-MODERATION] Auto-flagging POST %s due to community reports", content_id)
        previous = self._content.get_status(content_id)
        author = self._content.get_author(content_id)
        link = self._content.get_container_path(content_id)

        self._content.set_flagged(content_id, _FLAG_REASON, SYSTEM_ACTOR)
        resolved = self._ledger.resolve_ids(
            pending,
            SYSTEM_ACTOR,
            ResolutionAction.AUTO_FLAG,
            "Content automatically flagged due to multiple community reports",
        )
        self._record(content_id, "FLAG", _FLAG_REASON, previous, "FLAGGED", len(resolved))

        notice = _PendingNotice(
            recipient=author,
            category="content_flagged",
            message=f"Your post was automatically flagged due to community reports: {_FLAG_REASON}",
            link=link,
        )
        return EscalationOutcome(EscalationAction.FLAGGED, len(pending), [r.id for r in resolved]), notice

    def _record(
        self, content_id: str, action: str, reason: str, previous: str, new: str, affected: int
    ) -> None:
        if self._history is None:
            return
        self._history.record(
            moderator_id=SYSTEM_ACTOR,
            content_type=ContentType.POST.value,
            content_id=content_id,
            action_type=action,
            reason=reason,
            previous_status=previous,
            new_status=new,
            automated=True,
            affected_count=affected,
        )
