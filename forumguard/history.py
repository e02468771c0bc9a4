"""Moderation history for forum content.

Every moderation action, automated or manual, is appended as one JSON line
to a daily file under ``<base_dir>/history/``. The history is append-only;
queries read all files and filter in memory.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class HistoryEntry:
    """A single moderation action."""

    id: str
    timestamp: str
    moderator_id: str
    content_type: str
    content_id: str
    action_type: str
    reason: str = ""
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    automated: bool = False
    confidence_score: Optional[float] = None
    affected_count: Optional[int] = None


class ModerationHistory:
    """File-based JSON-lines moderation history.

    Entries are persisted in daily files ``YYYY-MM-DD.jsonl``.
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        base = Path(base_dir) if base_dir else Path.home() / ".forumguard"
        self._base_dir = base / "history"
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _log_file_for_date(self, dt: datetime) -> Path:
        return self._base_dir / f"{dt.strftime('%Y-%m-%d')}.jsonl"

    def _read_all_entries(self) -> list[HistoryEntry]:
        entries: list[HistoryEntry] = []
        for path in sorted(self._base_dir.glob("*.jsonl")):
            for line in path.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(HistoryEntry(**json.loads(line)))
                except (json.JSONDecodeError, TypeError):
                    logger.warning("Skipping malformed history line in %s", path.name)
        return entries

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record(
        self,
        moderator_id: str,
        content_type: str,
        content_id: str,
        action_type: str,
        reason: str = "",
        previous_status: Optional[str] = None,
        new_status: Optional[str] = None,
        automated: bool = False,
        confidence_score: Optional[float] = None,
        affected_count: Optional[int] = None,
    ) -> HistoryEntry:
        """Append a moderation action and return the created entry."""
        now = datetime.now(timezone.utc)
        entry = HistoryEntry(
            id=uuid.uuid4().hex[:16],
            timestamp=now.isoformat(),
            moderator_id=moderator_id,
            content_type=content_type,
            content_id=str(content_id),
            action_type=action_type,
            reason=reason,
            previous_status=previous_status,
            new_status=new_status,
            automated=automated,
            confidence_score=confidence_score,
            affected_count=affected_count,
        )
        with self._lock:
            with self._log_file_for_date(now).open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(asdict(entry)) + "\n")
        return entry

    def get_entries(
        self,
        *,
        moderator_id: Optional[str] = None,
        content_type: Optional[str] = None,
        action_type: Optional[str] = None,
        automated: Optional[bool] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        limit: Optional[int] = 200,
    ) -> list[HistoryEntry]:
        """Return filtered history entries, newest first."""
        entries = self._read_all_entries()

        if moderator_id:
            entries = [e for e in entries if e.moderator_id == moderator_id]
        if content_type:
            entries = [e for e in entries if e.content_type == content_type]
        if action_type:
            entries = [e for e in entries if e.action_type == action_type]
        if automated is not None:
            entries = [e for e in entries if e.automated == automated]
        if start:
            entries = [e for e in entries if e.timestamp >= start]
        if end:
            entries = [e for e in entries if e.timestamp <= end]

        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries if limit is None else entries[:limit]

    def for_content(self, content_type: str, content_id: str) -> list[HistoryEntry]:
        result = [
            e
            for e in self._read_all_entries()
            if e.content_type == content_type and e.content_id == str(content_id)
        ]
        result.sort(key=lambda e: e.timestamp, reverse=True)
        return result

    def statistics(self, since: Optional[str] = None) -> dict[str, Any]:
        """Count actions by type and automated vs manual since *since* (ISO timestamp)."""
        entries = self.get_entries(start=since, limit=None)
        return {
            "action_type_counts": dict(Counter(e.action_type for e in entries)),
            "automated_vs_manual": dict(
                Counter("automated" if e.automated else "manual" for e in entries)
            ),
        }
