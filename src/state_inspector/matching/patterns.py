"""Wildcard ignore patterns for record keys."""

from __future__ import annotations

import re
from collections.abc import Iterable

from state_inspector.core.constants import DEFAULT_IGNORE_PATTERNS


def compile_wildcard(pattern: str) -> re.Pattern:
    """Compile a ``*`` wildcard pattern to an anchored regex.

    ``*`` matches any run of characters (including dots); every other
    character is literal.
    """
    escaped = re.escape(pattern).replace(r"\*", ".*")
    return re.compile(f"^{escaped}$")


class IgnorePatternMatcher:
    """Decide whether a record key is excluded from inspection.

    The default deny-list is always present; caller patterns are appended.

    Args:
        patterns: Additional wildcard patterns
    """

    def __init__(self, patterns: Iterable[str] | None = None):
        combined: list[str] = list(DEFAULT_IGNORE_PATTERNS)
        for pattern in patterns or ():
            if pattern and pattern not in combined:
                combined.append(pattern)
        self.patterns: tuple[str, ...] = tuple(combined)
        self._compiled = [compile_wildcard(p) for p in self.patterns]

    def should_ignore(self, key: str) -> bool:
        return any(regex.match(key) for regex in self._compiled)

    def __repr__(self) -> str:
        return f"IgnorePatternMatcher(patterns={list(self.patterns)!r})"
