"""Configuration range validation for State Inspector.

Out-of-range values are replaced by the documented safe default and a warning
is logged; validation never fails hard.
"""

from __future__ import annotations

import copy
import logging
import math

from state_inspector.core.config import (
    DuplicateConfig,
    InspectorConfig,
    OrphanConfig,
    PerformanceConfig,
    ScanConfig,
    StaleConfig,
)

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_VALID_LOG_FORMATS = ("text", "json")

# (section, attribute, low, high, default_factory) ; bounds are inclusive
_RANGES: tuple[tuple[str, str, float, float, type], ...] = (
    ("duplicates", "similarity_threshold", 0.5, 1.0, DuplicateConfig),
    ("duplicates", "max_comparisons", 1, 10_000_000, DuplicateConfig),
    ("duplicates", "recent_window_seconds", 1, 86_400, DuplicateConfig),
    ("duplicates", "stale_after_seconds", 60, 31_536_000, DuplicateConfig),
    ("orphans", "unused_after_days", 1, 3650, OrphanConfig),
    ("stale", "threshold_hours", 1, 8760, StaleConfig),
    ("performance", "update_frequency_threshold_ms", 1, 60_000, PerformanceConfig),
    ("performance", "large_tree_threshold", 1, 10_000_000, PerformanceConfig),
    ("performance", "history_waste_days", 1, 3650, PerformanceConfig),
    ("performance", "min_ack_writes", 1, 1_000_000, PerformanceConfig),
    ("performance", "ack_false_ratio", 0.0, 1.0, PerformanceConfig),
    ("performance", "max_tracked_records", 1, 1_000_000, PerformanceConfig),
    ("performance", "max_samples_per_record", 2, 100_000, PerformanceConfig),
    ("scan", "record_yield_every", 1, 1_000_000, ScanConfig),
    ("scan", "comparison_yield_every", 1, 1_000_000, ScanConfig),
    ("scan", "max_report_entries", 1, 100_000, ScanConfig),
)


def _in_range(value: object, low: float, high: float) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return low <= value <= high


def validate_config(config: InspectorConfig, logger: logging.Logger | None = None) -> InspectorConfig:
    """Return a copy of ``config`` with every out-of-range value reset to its default.

    Args:
        config: Configuration to validate
        logger: Logger receiving one warning per replaced value

    Returns:
        A validated copy; the input is not modified
    """
    logger = logger or logging.getLogger(__name__)
    validated = copy.deepcopy(config)

    for section_name, attr, low, high, section_cls in _RANGES:
        section = getattr(validated, section_name)
        value = getattr(section, attr)
        if _in_range(value, low, high):
            continue
        default = getattr(section_cls(), attr)
        logger.warning(
            f"Config value {section_name}.{attr}={value!r} outside allowed range [{low}, {high}]; using default {default}"
        )
        setattr(section, attr, default)

    level = str(validated.log.level).upper()
    if level not in _VALID_LOG_LEVELS:
        logger.warning(f"Invalid log level '{validated.log.level}', using INFO")
        level = "INFO"
    validated.log.level = level

    if str(validated.log.format).lower() not in _VALID_LOG_FORMATS:
        logger.warning(f"Invalid log format '{validated.log.format}', using text")
        validated.log.format = "text"

    validated.ignore_patterns = [p for p in validated.ignore_patterns if isinstance(p, str) and p.strip()]
    return validated
