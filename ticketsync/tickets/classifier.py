"""Keyword based category classification."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from ticketsync.core.config import CategoryRule, SearchGroup

logger = logging.getLogger(__name__)


def compile_group(group: SearchGroup) -> re.Pattern[str] | None:
    """Compile a search group into one whole-word alternation pattern.

    ``exact`` groups are case-sensitive, ``or`` groups ignore case. Phrases are
    escaped so regex metacharacters match literally. Boundaries are expressed as
    lookarounds instead of ``\\b`` so that phrases ending in punctuation
    (``C++``) still require a non-word neighbour.
    """

    phrases = [phrase.strip() for phrase in group.phrases if phrase and phrase.strip()]
    if not phrases:
        return None
    # Longest first so overlapping phrases prefer the most specific one.
    phrases.sort(key=len, reverse=True)
    alternation = "|".join(re.escape(phrase) for phrase in phrases)
    flags = 0 if group.mode == "exact" else re.IGNORECASE
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", flags)


@dataclass(slots=True)
class _CompiledRule:
    name: str
    patterns: tuple[re.Pattern[str], ...]


class CategoryClassifier:
    """Match free text against an ordered set of named keyword rules."""

    def __init__(self, rules: Sequence[CategoryRule]) -> None:
        compiled: list[_CompiledRule] = []
        seen: set[str] = set()
        for rule in rules:
            if rule.name in seen:
                logger.warning("Duplicate category rule '%s' ignored", rule.name)
                continue
            seen.add(rule.name)
            patterns = tuple(
                pattern for pattern in (compile_group(group) for group in rule.groups) if pattern is not None
            )
            compiled.append(_CompiledRule(name=rule.name, patterns=patterns))
        self._rules = tuple(compiled)

    @property
    def category_names(self) -> tuple[str, ...]:
        return tuple(rule.name for rule in self._rules)

    def classify(self, text: str | None) -> list[str]:
        """Return matching category names in configuration order."""

        if not text:
            return []
        matches: list[str] = []
        for rule in self._rules:
            if any(pattern.search(text) for pattern in rule.patterns):
                matches.append(rule.name)
        return matches
