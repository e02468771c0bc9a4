"""Data models for the content analyzer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ModerationAction(Enum):
    """Advisory action derived from an analysis score."""

    APPROVE = "APPROVE"
    FLAG = "FLAG"
    REJECT = "REJECT"


@dataclass
class ContentAnalysisResult:
    """Outcome of a heuristic content check. Never persisted."""

    is_appropriate: bool
    confidence_score: float
    flags: list[str] = field(default_factory=list)


@dataclass
class ModerationRecommendation:
    """Recommendation built from a single :class:`ContentAnalysisResult`."""

    action: ModerationAction
    reason: str
    confidence_score: float
    flags: list[str] = field(default_factory=list)
