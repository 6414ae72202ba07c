"""String similarity helpers used by the naming-duplicate pass."""

from __future__ import annotations

import os
from collections.abc import Sequence

from Levenshtein import distance

from state_inspector.core.constants import COMMON_PATTERN_MAX_LENGTH


def edit_distance(s1: str, s2: str) -> int:
    """Levenshtein distance between two strings, computed over code points."""
    return distance(s1, s2)


def similarity(s1: str, s2: str) -> float:
    """Normalized similarity in [0, 1]: ``1 - distance / max(len)``.

    Two empty strings are identical (1.0).
    """
    longest = max(len(s1), len(s2))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(s1, s2) / longest


def extract_common_pattern(keys: Sequence[str]) -> str:
    """Describe a set of keys by their shared prefix and suffix.

    Returns ``prefix*suffix``, ``prefix*`` or ``*suffix`` when the keys share
    a prefix and/or suffix; otherwise the joined keys clipped to 100 characters
    followed by ``...``.
    """
    if not keys:
        return ""
    if len(keys) == 1:
        return keys[0]

    prefix = os.path.commonprefix(list(keys))
    suffix = os.path.commonprefix([k[::-1] for k in keys])[::-1]

    # Prefix and suffix must not overlap inside the shortest key
    shortest = min(len(k) for k in keys)
    if len(prefix) + len(suffix) > shortest:
        suffix = suffix[len(prefix) + len(suffix) - shortest :]

    if prefix and suffix:
        return f"{prefix}*{suffix}"
    if prefix:
        return f"{prefix}*"
    if suffix:
        return f"*{suffix}"
    return ", ".join(keys)[:COMMON_PATTERN_MAX_LENGTH] + "..."
