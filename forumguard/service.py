"""Moderation service — the operations exposed to an HTTP or RPC layer.

Composes the content analyzer, the report ledger and the escalation
policy. Filing a report always persists it first; escalation runs
afterwards and its failures never undo the stored report.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from forumguard.analysis.analyzer import ContentAnalyzer, recommendation_for
from forumguard.analysis.models import ContentAnalysisResult, ModerationRecommendation
from forumguard.analysis.rules import RuleSet, load_rules
from forumguard.config import Settings
from forumguard.content import ContentStore, JsonContentStore
from forumguard.errors import EscalationError, ModerationError
from forumguard.escalation.policy import EscalationOutcome, EscalationPolicy
from forumguard.history import HistoryEntry, ModerationHistory
from forumguard.notifications import (
    DispatchingNotifier,
    NotificationInbox,
    Notifier,
    WebhookNotifier,
)
from forumguard.reports.ledger import ReportLedger
from forumguard.reports.models import (
    BulkResult,
    ContentType,
    Report,
    ReportReason,
    ReportStatistics,
    ResolutionAction,
)

logger = logging.getLogger(__name__)


class ModerationService:
    """Facade over analysis, report filing and escalation."""

    def __init__(
        self,
        ledger: ReportLedger,
        policy: EscalationPolicy,
        analyzer: Optional[ContentAnalyzer] = None,
        history: Optional[ModerationHistory] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.ledger = ledger
        self.policy = policy
        self.analyzer = analyzer or ContentAnalyzer()
        self._history = history
        self._notifier = notifier

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        content_store: Optional[ContentStore] = None,
        notifier: Optional[Notifier] = None,
    ) -> ModerationService:
        """Wire file-backed collaborators under ``settings.base_dir``."""
        base = Path(settings.base_dir)
        content = content_store or JsonContentStore(base)
        if notifier is None:
            sinks: list[Notifier] = [NotificationInbox(base)]
            if settings.webhook_url:
                sinks.append(WebhookNotifier(settings.webhook_url, settings.webhook_secret))
            notifier = DispatchingNotifier(sinks, max_workers=settings.notify_workers)

        rules = (
            load_rules(settings.rules_path, extend=settings.rules_extend)
            if settings.rules_path
            else RuleSet()
        )
        history = ModerationHistory(base)
        ledger = ReportLedger(base, content)
        policy = EscalationPolicy(
            ledger,
            content,
            notifier=notifier,
            history=history,
            flag_threshold=settings.flag_threshold,
            delete_threshold=settings.delete_threshold,
        )
        return cls(
            ledger, policy, analyzer=ContentAnalyzer(rules), history=history, notifier=notifier
        )

    def close(self) -> None:
        """Wait for queued notifications to be delivered."""
        close = getattr(self._notifier, "close", None)
        if close is not None:
            close()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def file_report(
        self,
        content_type: ContentType | str,
        content_id: str,
        reporter_id: str,
        reason: ReportReason | str,
        description: Optional[str] = None,
    ) -> Report:
        """File a report and run escalation; see :meth:`file_and_escalate`."""
        report, _ = self.file_and_escalate(content_type, content_id, reporter_id, reason, description)
        return report

    def file_and_escalate(
        self,
        content_type: ContentType | str,
        content_id: str,
        reporter_id: str,
        reason: ReportReason | str,
        description: Optional[str] = None,
    ) -> tuple[Report, EscalationOutcome]:
        """File a report, then let the escalation policy re-evaluate the content.

        Returns the stored report with the outcome of that evaluation.
        Raises ``EscalationError`` when the automated action fails; the
        report stays filed and is available as ``error.report``.
        """
        logger.info("Community report received: %s %s by %s", content_type, content_id, reporter_id)
        report = self.ledger.file_report(content_type, content_id, reporter_id, reason, description)

        try:
            outcome = self.policy.evaluate(report.content_type, report.content_id)
        except ModerationError as exc:
            logger.error(
                "Escalation failed for %s %s after report %s: %s",
                report.content_type.value, report.content_id, report.id, exc.message,
            )
            raise EscalationError(f"Automated moderation failed: {exc.message}", report=report) from exc
        except Exception as exc:
            logger.exception("Escalation failed for %s %s", report.content_type.value, report.content_id)
            raise EscalationError(f"Automated moderation failed: {exc}", report=report) from exc
        return report, outcome

    def list_for_content(self, content_type: ContentType | str, content_id: str) -> list[Report]:
        return self.ledger.list_for_content(content_type, content_id)

    def list_unresolved(self) -> list[Report]:
        return self.ledger.list_unresolved()

    def list_reports(
        self,
        status: Optional[str] = None,
        content_type: ContentType | str | None = None,
        reason: ReportReason | str | None = None,
    ) -> list[Report]:
        return self.ledger.list_reports(status=status, content_type=content_type, reason=reason)

    def resolve_report(
        self, report_id: str, moderator_id: str, action: ResolutionAction | str, notes: str = ""
    ) -> Report:
        report = self.ledger.resolve_report(report_id, moderator_id, action, notes)
        self._record_resolution(report, moderator_id, notes)
        return report

    def bulk_resolve(
        self, report_ids: list[str], action: str, notes: str, moderator_id: str
    ) -> BulkResult:
        result = self.ledger.bulk_resolve(report_ids, action, notes, moderator_id)
        for report in result.resolved:
            self._record_resolution(report, moderator_id, notes)
        logger.info(
            "Bulk moderation completed: %d successful, %d failed", result.succeeded, result.failed
        )
        return result

    def _record_resolution(self, report: Report, moderator_id: str, notes: str) -> None:
        if self._history is None:
            return
        self._history.record(
            moderator_id=moderator_id,
            content_type=report.content_type.value,
            content_id=report.content_id,
            action_type=f"RESOLVE_{report.resolution_action.value}",
            reason=notes,
            affected_count=1,
        )

    def statistics(self) -> ReportStatistics:
        return self.ledger.statistics()

    def high_priority(self, threshold: Optional[int] = None) -> list[tuple[ContentType, str, int]]:
        return self.ledger.high_priority(threshold or self.policy.flag_threshold)

    def history(self, **filters) -> list[HistoryEntry]:
        if self._history is None:
            return []
        return self._history.get_entries(**filters)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_content(self, text: Optional[str]) -> ContentAnalysisResult:
        return self.analyzer.analyze(text)

    def get_moderation_recommendation(self, text: Optional[str]) -> ModerationRecommendation:
        return recommendation_for(self.analyzer.analyze(text))
