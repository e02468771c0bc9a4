"""Data models for community reports."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Type, TypeVar

from forumguard.errors import ValidationError

E = TypeVar("E", bound=Enum)


class ContentType(Enum):
    """Kinds of forum content that can be reported."""

    POST = "POST"
    TOPIC = "TOPIC"


class ReportReason(Enum):
    SPAM = "SPAM"
    INAPPROPRIATE = "INAPPROPRIATE"
    OFF_TOPIC = "OFF_TOPIC"
    HARASSMENT = "HARASSMENT"
    MISLEADING = "MISLEADING"
    OTHER = "OTHER"


class ResolutionAction(Enum):
    """How a report was closed. ``AUTO_*`` values come from escalation."""

    AUTO_FLAG = "AUTO_FLAG"
    AUTO_DELETE = "AUTO_DELETE"
    FLAG = "FLAG"
    DELETE = "DELETE"
    IGNORE = "IGNORE"


def coerce_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    """Accept an enum member or its (case-insensitive) string value."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(f"Invalid {field_name}: {value!r} (expected one of {allowed})")


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Report:
    """A single community report against a post or topic.

    Only the resolution fields ever change after creation, and they change
    once.
    """

    content_type: ContentType
    content_id: str
    reporter_id: str
    reason: ReportReason
    description: str = ""
    id: str = ""
    resolved: bool = False
    resolved_by: Optional[str] = None
    resolution_action: Optional[ResolutionAction] = None
    resolution_notes: Optional[str] = None
    resolved_at: Optional[str] = None
    reported_at: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            self.id = uuid.uuid4().hex[:16]
        if not self.reported_at:
            self.reported_at = utcnow()

    @property
    def content_key(self) -> tuple[ContentType, str]:
        return (self.content_type, self.content_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content_type": self.content_type.value,
            "content_id": self.content_id,
            "reporter_id": self.reporter_id,
            "reason": self.reason.value,
            "description": self.description,
            "resolved": self.resolved,
            "resolved_by": self.resolved_by,
            "resolution_action": self.resolution_action.value if self.resolution_action else None,
            "resolution_notes": self.resolution_notes,
            "resolved_at": self.resolved_at,
            "reported_at": self.reported_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Report:
        action = d.get("resolution_action")
        return cls(
            id=d["id"],
            content_type=ContentType(d["content_type"]),
            content_id=str(d["content_id"]),
            reporter_id=d["reporter_id"],
            reason=ReportReason(d["reason"]),
            description=d.get("description") or "",
            resolved=bool(d.get("resolved", False)),
            resolved_by=d.get("resolved_by"),
            resolution_action=ResolutionAction(action) if action else None,
            resolution_notes=d.get("resolution_notes"),
            resolved_at=d.get("resolved_at"),
            reported_at=d["reported_at"],
        )


@dataclass
class ReportStatistics:
    """Aggregate counts over the ledger."""

    total: int = 0
    unresolved: int = 0
    resolved: int = 0
    recent: int = 0  # filed in the last 7 days
    unresolved_by_reason: dict[str, int] = field(default_factory=dict)


@dataclass
class BulkResult:
    """Outcome of a bulk moderator resolution."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    failures: dict[str, str] = field(default_factory=dict)
    resolved: list[Report] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0
