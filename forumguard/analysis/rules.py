"""Lookup tables for the content analyzer.

The default tables ship with the package; a YAML file can extend or replace
them without touching the matching logic::

    disallowed_terms:
      - "crypto giveaway"
    hostile_patterns:
      - '\\bgo\\s+die\\b'
    solicitation_patterns:
      - '\\btelegram\\.me/\\S+'
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from forumguard.errors import ValidationError

# ---------------------------------------------------------------------------
# Default tables
# ---------------------------------------------------------------------------

DEFAULT_DISALLOWED_TERMS: tuple[str, ...] = (
    "spam",
    "advertisement",
    "commercial",
    "buy now",
    "click here",
    "free money",
    "lottery",
    "winner",
    "urgent",
    "limited time",
    "act now",
    "guaranteed",
    "suspicious",
)

DEFAULT_HOSTILE_PATTERNS: tuple[str, ...] = (
    r"\b(kill|hate|destroy)\s+(all|every)\s+\w+",
    r"\b(racist|sexist|homophobic)\s+\w+",
)

# URLs, e-mail addresses, phone numbers
DEFAULT_SOLICITATION_PATTERNS: tuple[str, ...] = (
    r"\b(www\.|http://|https://)\S+",
    r"\b(\w+@\w+\.\w+)",
    r"\b(\d{3}-\d{3}-\d{4}|\d{10})\b",
)

_RULE_KEYS = ("disallowed_terms", "hostile_patterns", "solicitation_patterns")


def _compile(patterns: list[str] | tuple[str, ...], key: str) -> list[re.Pattern[str]]:
    compiled = []
    for p in patterns:
        try:
            compiled.append(re.compile(p, re.IGNORECASE))
        except re.error as exc:
            raise ValidationError(f"Invalid pattern in {key}: {p!r} ({exc})") from exc
    return compiled


def _merge(base: tuple[str, ...], extra: list[str]) -> tuple[str, ...]:
    merged = list(base)
    for item in extra:
        if item not in merged:
            merged.append(item)
    return tuple(merged)


@dataclass
class RuleSet:
    """Term and pattern tables used by :class:`ContentAnalyzer`."""

    disallowed_terms: tuple[str, ...] = DEFAULT_DISALLOWED_TERMS
    hostile_patterns: tuple[str, ...] = DEFAULT_HOSTILE_PATTERNS
    solicitation_patterns: tuple[str, ...] = DEFAULT_SOLICITATION_PATTERNS
    _hostile: list[re.Pattern[str]] = field(init=False, repr=False, compare=False)
    _solicitation: list[re.Pattern[str]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.disallowed_terms = tuple(t.lower() for t in self.disallowed_terms if t.strip())
        self._hostile = _compile(self.hostile_patterns, "hostile_patterns")
        self._solicitation = _compile(self.solicitation_patterns, "solicitation_patterns")

    @property
    def compiled_hostile(self) -> list[re.Pattern[str]]:
        return self._hostile

    @property
    def compiled_solicitation(self) -> list[re.Pattern[str]]:
        return self._solicitation


def load_rules(path: str | Path, extend: bool = True) -> RuleSet:
    """Load a rule set from a YAML file.

    With *extend* the file's entries are appended to the defaults; otherwise
    each key present in the file replaces the matching default table.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValidationError(f"Rule file {path} must contain a mapping")

    tables: dict[str, tuple[str, ...]] = {
        "disallowed_terms": DEFAULT_DISALLOWED_TERMS,
        "hostile_patterns": DEFAULT_HOSTILE_PATTERNS,
        "solicitation_patterns": DEFAULT_SOLICITATION_PATTERNS,
    }
    for key in _RULE_KEYS:
        if key not in data:
            continue
        entries = data[key] or []
        if not isinstance(entries, list) or not all(isinstance(e, str) for e in entries):
            raise ValidationError(f"Rule key {key!r} must be a list of strings")
        tables[key] = _merge(tables[key], entries) if extend else tuple(entries)

    return RuleSet(**tables)
