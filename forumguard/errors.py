"""Error taxonomy shared by the ledger, the escalation policy and the service.

Every error carries an :class:`ErrorKind` so that a transport layer can map
it to a status code without inspecting the concrete class.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Broad category of a moderation failure."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INTERNAL = "internal"


class ModerationError(Exception):
    """Base class for all forumguard errors."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, kind: Optional[ErrorKind] = None) -> None:
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class ValidationError(ModerationError):
    """Malformed input: unknown enum value, missing field, bad rule."""

    kind = ErrorKind.VALIDATION


class DuplicateReportError(ValidationError):
    """The reporter already filed a report against this content."""

    def __init__(self, reporter_id: str, content_type: str, content_id: str) -> None:
        super().__init__("You have already reported this content")
        self.reporter_id = reporter_id
        self.content_type = content_type
        self.content_id = content_id


class NotFoundError(ModerationError):
    kind = ErrorKind.NOT_FOUND


class ContentNotFoundError(NotFoundError):
    def __init__(self, content_type: str, content_id: str) -> None:
        super().__init__(f"{content_type.capitalize()} not found: {content_id}")
        self.content_type = content_type
        self.content_id = content_id


class ReportNotFoundError(NotFoundError):
    def __init__(self, report_id: str) -> None:
        super().__init__(f"Report not found: {report_id}")
        self.report_id = report_id


class EscalationError(ModerationError):
    """The automated action failed after the triggering report was stored."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str, report: Any = None) -> None:
        super().__init__(message)
        self.report = report
