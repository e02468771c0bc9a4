"""Heuristic content analysis and advisory moderation recommendations."""

from forumguard.analysis.analyzer import ContentAnalyzer, recommendation_for
from forumguard.analysis.models import (
    ContentAnalysisResult,
    ModerationAction,
    ModerationRecommendation,
)
from forumguard.analysis.rules import RuleSet, load_rules

__all__ = [
    "ContentAnalyzer",
    "ContentAnalysisResult",
    "ModerationAction",
    "ModerationRecommendation",
    "RuleSet",
    "load_rules",
    "recommendation_for",
]
