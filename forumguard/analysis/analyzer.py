"""Heuristic content analyzer.

Scores text for appropriateness by starting at full confidence and applying
small, independent deductions for each signal found: disallowed terms,
hostile language, solicitation (links, e-mail, phone numbers), word
repetition and shouting. The analyzer has no state beyond its rule tables
and is safe to share between threads.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Optional

from forumguard.analysis.models import (
    ContentAnalysisResult,
    ModerationAction,
    ModerationRecommendation,
)
from forumguard.analysis.rules import RuleSet

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

APPROPRIATE_THRESHOLD = 0.7
APPROVE_THRESHOLD = 0.9

_TERM_PENALTY = 0.1
_HOSTILE_PENALTY = 0.3
_SOLICITATION_PENALTY = 0.2
_REPETITION_PENALTY = 0.15
_CAPITALIZATION_PENALTY = 0.1

# More than this many distinct solicitation patterns must match
_SOLICITATION_MIN_PATTERNS = 2
# Tokens of this length or shorter are ignored by the repetition check
_REPETITION_MIN_TOKEN_LEN = 3
_REPETITION_MAX_OCCURRENCES = 3
_CAPITALIZATION_MIN_LENGTH = 10
_CAPITALIZATION_MAX_RATIO = 0.5


class ContentAnalyzer:
    """Stateless text scorer driven by a :class:`RuleSet`."""

    def __init__(self, rules: Optional[RuleSet] = None) -> None:
        self._rules = rules or RuleSet()

    @property
    def rules(self) -> RuleSet:
        return self._rules

    # -- checks --------------------------------------------------------------

    def _matching_terms(self, lowered: str) -> list[str]:
        return [term for term in self._rules.disallowed_terms if term in lowered]

    def _hostile_hits(self, text: str) -> int:
        return sum(1 for pattern in self._rules.compiled_hostile if pattern.search(text))

    def _solicitation_hits(self, text: str) -> int:
        return sum(1 for pattern in self._rules.compiled_solicitation if pattern.search(text))

    @staticmethod
    def _has_excessive_repetition(text: str) -> bool:
        words = [w for w in text.lower().split() if len(w) > _REPETITION_MIN_TOKEN_LEN]
        return any(n > _REPETITION_MAX_OCCURRENCES for n in Counter(words).values())

    @staticmethod
    def _has_excessive_capitalization(text: str) -> bool:
        if len(text) < _CAPITALIZATION_MIN_LENGTH:
            return False
        letters = [c for c in text if c.isalpha()]
        if not letters:
            return False
        upper = sum(1 for c in letters if c.isupper())
        return upper / len(letters) > _CAPITALIZATION_MAX_RATIO

    # -- public API ----------------------------------------------------------

    def analyze(self, text: Optional[str]) -> ContentAnalysisResult:
        """Score *text* and return the verdict with the flags that lowered it."""
        if text is None or not text.strip():
            return ContentAnalysisResult(is_appropriate=True, confidence_score=1.0, flags=[])

        flags: list[str] = []
        score = 1.0

        # 1. Disallowed terms, one deduction per term in the table
        for term in self._matching_terms(text.lower()):
            flags.append(f"Contains inappropriate word: {term}")
            score -= _TERM_PENALTY

        # 2. Hostile language, one deduction per matching pattern
        for _ in range(self._hostile_hits(text)):
            flags.append("Potential hate speech detected")
            score -= _HOSTILE_PENALTY

        # 3. Solicitation, a single deduction once enough kinds show up
        if self._solicitation_hits(text) > _SOLICITATION_MIN_PATTERNS:
            flags.append("Multiple spam indicators detected")
            score -= _SOLICITATION_PENALTY

        # 4. Repetition
        if self._has_excessive_repetition(text):
            flags.append("Excessive repetition detected")
            score -= _REPETITION_PENALTY

        # 5. Capitalization
        if self._has_excessive_capitalization(text):
            flags.append("Excessive capitalization detected")
            score -= _CAPITALIZATION_PENALTY

        score = round(max(0.0, min(1.0, score)), 4)
        result = ContentAnalysisResult(
            is_appropriate=score >= APPROPRIATE_THRESHOLD,
            confidence_score=score,
            flags=flags,
        )
        logger.debug(
            "Content analysis result - confidence: %s, appropriate: %s, flags: %s",
            result.confidence_score,
            result.is_appropriate,
            result.flags,
        )
        return result

    def recommend(self, text: Optional[str]) -> ModerationRecommendation:
        """Turn one analysis of *text* into an APPROVE/FLAG/REJECT recommendation."""
        return recommendation_for(self.analyze(text))


def recommendation_for(analysis: ContentAnalysisResult) -> ModerationRecommendation:
    """Map an existing analysis onto a recommendation without rescoring."""
    score = analysis.confidence_score
    joined = ", ".join(analysis.flags)
    if score >= APPROVE_THRESHOLD:
        action = ModerationAction.APPROVE
        reason = "Content appears appropriate"
    elif score >= APPROPRIATE_THRESHOLD:
        action = ModerationAction.FLAG
        reason = f"Content may need review: {joined}"
    else:
        action = ModerationAction.REJECT
        reason = f"Content likely inappropriate: {joined}"

    return ModerationRecommendation(
        action=action,
        reason=reason,
        confidence_score=score,
        flags=list(analysis.flags),
    )
