"""Key matching helpers: string similarity and wildcard ignore patterns."""

from state_inspector.matching.patterns import IgnorePatternMatcher, compile_wildcard
from state_inspector.matching.similarity import edit_distance, extract_common_pattern, similarity

__all__ = [
    "IgnorePatternMatcher",
    "compile_wildcard",
    "edit_distance",
    "extract_common_pattern",
    "similarity",
]
