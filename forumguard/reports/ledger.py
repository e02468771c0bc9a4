"""File-based JSON storage for community reports.

Provides filing, querying and resolution operations backed by
``<base_dir>/reports/reports.json``. Every read-modify-write cycle runs
under a single re-entrant lock so concurrent callers in one process never
interleave writes.

The lock is a ``threading.RLock`` and only serializes threads of one
process. Two processes sharing a ``base_dir`` (for example two CLI
invocations running at once) can still interleave their read-modify-write
cycles; run a single service process per data directory.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from forumguard.errors import (
    ContentNotFoundError,
    DuplicateReportError,
    ModerationError,
    ReportNotFoundError,
    ValidationError,
)
from forumguard.reports.models import (
    BulkResult,
    ContentType,
    Report,
    ReportReason,
    ReportStatistics,
    ResolutionAction,
    coerce_enum,
    utcnow,
)

if TYPE_CHECKING:
    from forumguard.content import ContentStore

logger = logging.getLogger(__name__)

# Moderator bulk actions and the resolution they record
BULK_ACTIONS: dict[str, ResolutionAction] = {
    "RESOLVE": ResolutionAction.FLAG,
    "IGNORE": ResolutionAction.IGNORE,
    "DELETE": ResolutionAction.DELETE,
}

_RECENT_WINDOW = timedelta(days=7)


def _newest_first(reports: list[Report], key: str = "reported_at") -> list[Report]:
    # Ties keep the later-filed report first
    indexed = list(enumerate(reports))
    indexed.sort(key=lambda pair: (getattr(pair[1], key) or "", pair[0]), reverse=True)
    return [r for _, r in indexed]


class ReportLedger:
    """File-based storage for community reports.

    Storage path: ``<base_dir>/reports/`` with:
    - ``reports.json`` -- list of report dicts in filing order
    """

    def __init__(self, base_dir: str | Path | None = None, content_store: ContentStore | None = None) -> None:
        base = Path(base_dir) if base_dir else Path.home() / ".forumguard"
        self._base = base / "reports"
        self._base.mkdir(parents=True, exist_ok=True)
        self._reports_path = self._base / "reports.json"
        self._content = content_store
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_json(self) -> list[dict]:
        if not self._reports_path.exists():
            return []
        try:
            data = json.loads(self._reports_path.read_text(encoding="utf-8"))
            return data if isinstance(data, list) else []
        except (json.JSONDecodeError, OSError) as exc:
            raise ModerationError(f"Report storage unreadable: {exc}") from exc

    def _write_json(self, data: list[dict]) -> None:
        tmp = self._reports_path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self._reports_path)

    def _load(self) -> list[Report]:
        return [Report.from_dict(d) for d in self._read_json()]

    def _save(self, reports: Iterable[Report]) -> None:
        self._write_json([r.to_dict() for r in reports])

    @staticmethod
    def _key(content_type: ContentType | str, content_id: str) -> tuple[ContentType, str]:
        ctype = coerce_enum(ContentType, content_type, "content type")
        if content_id is None or not str(content_id).strip():
            raise ValidationError("content_id is required")
        return ctype, str(content_id)

    # ------------------------------------------------------------------
    # Filing
    # ------------------------------------------------------------------

    def file_report(
        self,
        content_type: ContentType | str,
        content_id: str,
        reporter_id: str,
        reason: ReportReason | str,
        description: Optional[str] = None,
    ) -> Report:
        """Persist a new report and return it.

        Raises ``DuplicateReportError`` if *reporter_id* ever reported this
        content before, ``ContentNotFoundError`` if the content is unknown.
        """
        ctype, cid = self._key(content_type, content_id)
        reason_value = coerce_enum(ReportReason, reason, "report reason")
        if not reporter_id or not str(reporter_id).strip():
            raise ValidationError("reporter_id is required")

        with self._lock:
            reports = self._load()
            if any(
                r.reporter_id == reporter_id and r.content_key == (ctype, cid)
                for r in reports
            ):
                raise DuplicateReportError(reporter_id, ctype.value, cid)

            if self._content is not None and not self._content.exists(ctype, cid):
                raise ContentNotFoundError(ctype.value.lower(), cid)

            report = Report(
                content_type=ctype,
                content_id=cid,
                reporter_id=reporter_id,
                reason=reason_value,
                description=description or "",
            )
            reports.append(report)
            self._save(reports)

        logger.info(
            "Created community report %s: %s %s by %s (%s)",
            report.id, ctype.value, cid, reporter_id, reason_value.value,
        )
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_report(self, report_id: str) -> Report:
        for r in self._load():
            if r.id == report_id:
                return r
        raise ReportNotFoundError(report_id)

    def list_for_content(self, content_type: ContentType | str, content_id: str) -> list[Report]:
        """Return every report for one content item, newest first."""
        key = self._key(content_type, content_id)
        return _newest_first([r for r in self._load() if r.content_key == key])

    def list_unresolved(self) -> list[Report]:
        """Return all unresolved reports across content, newest first."""
        return _newest_first([r for r in self._load() if not r.resolved])

    def count_unresolved(self, content_type: ContentType | str, content_id: str) -> int:
        return len(self.unresolved_for(content_type, content_id))

    def unresolved_for(self, content_type: ContentType | str, content_id: str) -> list[Report]:
        """Return the unresolved reports for one content item in filing order."""
        key = self._key(content_type, content_id)
        return [r for r in self._load() if r.content_key == key and not r.resolved]

    def list_reports(
        self,
        status: Optional[str] = None,
        content_type: ContentType | str | None = None,
        reason: ReportReason | str | None = None,
    ) -> list[Report]:
        """Return reports filtered by status (``resolved``/``unresolved``), type and reason."""
        reports = self._load()
        if status == "resolved":
            reports = _newest_first([r for r in reports if r.resolved], key="resolved_at")
        elif status == "unresolved":
            reports = _newest_first([r for r in reports if not r.resolved])
        elif status is None or status == "all":
            reports = _newest_first(reports)
        else:
            raise ValidationError(f"Invalid status filter: {status!r}")

        if content_type is not None:
            ctype = coerce_enum(ContentType, content_type, "content type")
            reports = [r for r in reports if r.content_type == ctype]
        if reason is not None:
            reason_value = coerce_enum(ReportReason, reason, "report reason")
            reports = [r for r in reports if r.reason == reason_value]
        return reports

    def statistics(self, now: Optional[datetime] = None) -> ReportStatistics:
        reports = self._load()
        now = now or datetime.now(timezone.utc)
        since = now - _RECENT_WINDOW
        unresolved = [r for r in reports if not r.resolved]
        return ReportStatistics(
            total=len(reports),
            unresolved=len(unresolved),
            resolved=len(reports) - len(unresolved),
            recent=sum(1 for r in reports if datetime.fromisoformat(r.reported_at) >= since),
            unresolved_by_reason=dict(Counter(r.reason.value for r in unresolved)),
        )

    def high_priority(self, threshold: int) -> list[tuple[ContentType, str, int]]:
        """Return content whose unresolved report count is at least *threshold*."""
        counts = Counter(r.content_key for r in self._load() if not r.resolved)
        ranked = [(ctype, cid, n) for (ctype, cid), n in counts.items() if n >= threshold]
        ranked.sort(key=lambda item: item[2], reverse=True)
        return ranked

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_all(
        self,
        content_type: ContentType | str,
        content_id: str,
        resolved_by: str,
        action: ResolutionAction | str,
        notes: str = "",
    ) -> list[Report]:
        """Resolve every unresolved report for one content item.

        Reports that are already resolved keep their original stamps.
        Returns the reports resolved by this call.
        """
        key = self._key(content_type, content_id)
        return self._resolve_where(
            lambda r: r.content_key == key, resolved_by, action, notes
        )

    def resolve_ids(
        self,
        report_ids: Iterable[str],
        resolved_by: str,
        action: ResolutionAction | str,
        notes: str = "",
    ) -> list[Report]:
        """Resolve the given reports if they are still unresolved.

        Reports filed after *report_ids* was collected are left alone.
        Returns the reports resolved by this call.
        """
        wanted = set(report_ids)
        return self._resolve_where(lambda r: r.id in wanted, resolved_by, action, notes)

    def _resolve_where(
        self,
        predicate: Callable[[Report], bool],
        resolved_by: str,
        action: ResolutionAction | str,
        notes: str,
    ) -> list[Report]:
        action_value = coerce_enum(ResolutionAction, action, "resolution action")
        now = utcnow()
        changed: list[Report] = []
        with self._lock:
            reports = self._load()
            for r in reports:
                if not r.resolved and predicate(r):
                    r.resolved = True
                    r.resolved_by = resolved_by
                    r.resolution_action = action_value
                    r.resolution_notes = notes
                    r.resolved_at = now
                    changed.append(r)
            if changed:
                self._save(reports)
        return changed

    def resolve_report(
        self,
        report_id: str,
        resolved_by: str,
        action: ResolutionAction | str,
        notes: str = "",
    ) -> Report:
        """Manually resolve one report. A report can only be resolved once."""
        action_value = coerce_enum(ResolutionAction, action, "resolution action")
        with self._lock:
            reports = self._load()
            for r in reports:
                if r.id == report_id:
                    if r.resolved:
                        raise ValidationError("Report already resolved")
                    r.resolved = True
                    r.resolved_by = resolved_by
                    r.resolution_action = action_value
                    r.resolution_notes = notes
                    r.resolved_at = utcnow()
                    self._save(reports)
                    logger.info("Report %s resolved by %s (%s)", report_id, resolved_by, action_value.value)
                    return r
        raise ReportNotFoundError(report_id)

    def bulk_resolve(
        self,
        report_ids: list[str],
        action: str,
        notes: str,
        moderator_id: str,
    ) -> BulkResult:
        """Resolve several reports at once, collecting per-report failures."""
        mapped = BULK_ACTIONS.get(str(action).upper())
        if mapped is None:
            raise ValidationError(f"Invalid bulk action: {action!r}")

        result = BulkResult()
        for report_id in report_ids:
            result.processed += 1
            try:
                result.resolved.append(self.resolve_report(report_id, moderator_id, mapped, notes))
                result.succeeded += 1
            except ModerationError as exc:
                logger.error("Failed to process report %s: %s", report_id, exc)
                result.failed += 1
                result.failures[report_id] = exc.message
        return result
