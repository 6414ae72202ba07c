"""Configuration dataclasses for State Inspector.

These dataclasses centralize all tunable thresholds for type safety and easy
testing. They can be created from command-line arguments, a JSON config file,
environment variables (with optional ``.env`` loading) or used directly in code.
Range enforcement lives in :mod:`state_inspector.core.config_validation`.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from state_inspector.core.constants import (
    DEFAULT_ACK_FALSE_RATIO,
    DEFAULT_COMPARISON_YIELD_EVERY,
    DEFAULT_HISTORY_WASTE_DAYS,
    DEFAULT_LARGE_TREE_THRESHOLD,
    DEFAULT_MAX_COMPARISONS,
    DEFAULT_MAX_SAMPLES_PER_RECORD,
    DEFAULT_MAX_TRACKED_RECORDS,
    DEFAULT_MIN_ACK_WRITES,
    DEFAULT_RECORD_YIELD_EVERY,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_STALE_THRESHOLD_HOURS,
    DEFAULT_UNUSED_AFTER_DAYS,
    DEFAULT_UPDATE_FREQUENCY_THRESHOLD_MS,
    DUPLICATE_MEMBER_STALE_SECONDS,
    ENV_PREFIX,
    MAX_REPORT_ENTRIES,
    RECENT_CHANGE_WINDOW_SECONDS,
)
from state_inspector.core.exceptions import ConfigurationError


@dataclass
class DuplicateConfig:
    """Configuration for duplicate detection.

    Attributes:
        similarity_threshold: Minimum naming score to link two records (default: 0.9)
        max_comparisons: Hard cap on pairwise comparisons in the naming pass (default: 50000)
        recent_window_seconds: Window for "recently changed" members (default: 300)
        stale_after_seconds: Age after which a group member is flagged stale (default: 86400)
    """

    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    max_comparisons: int = DEFAULT_MAX_COMPARISONS
    recent_window_seconds: int = RECENT_CHANGE_WINDOW_SECONDS
    stale_after_seconds: int = DUPLICATE_MEMBER_STALE_SECONDS


@dataclass
class OrphanConfig:
    """Configuration for orphan detection.

    Attributes:
        unused_after_days: Inactivity window for the never_used usage class (default: 30)
    """

    unused_after_days: int = DEFAULT_UNUSED_AFTER_DAYS


@dataclass
class StaleConfig:
    """Configuration for scan-driven stale detection.

    Attributes:
        threshold_hours: Age after which a writable record counts as stale (default: 24)
    """

    threshold_hours: float = DEFAULT_STALE_THRESHOLD_HOURS


@dataclass
class PerformanceConfig:
    """Configuration for the performance analyzer.

    Attributes:
        update_frequency_threshold_ms: Minimum healthy interval between changes (default: 100ms)
        large_tree_threshold: Record count above which a producer tree is large (default: 1000)
        history_waste_days: Unchanged days before recording is considered wasted (default: 7)
        min_ack_writes: Writes needed before ack ratios are judged (default: 5)
        ack_false_ratio: Unacknowledged ratio that counts as an ack issue (default: 0.8)
        max_tracked_records: Bound on the change-history table (default: 1000)
        max_samples_per_record: Timestamps kept per tracked record (default: 100)
    """

    update_frequency_threshold_ms: int = DEFAULT_UPDATE_FREQUENCY_THRESHOLD_MS
    large_tree_threshold: int = DEFAULT_LARGE_TREE_THRESHOLD
    history_waste_days: int = DEFAULT_HISTORY_WASTE_DAYS
    min_ack_writes: int = DEFAULT_MIN_ACK_WRITES
    ack_false_ratio: float = DEFAULT_ACK_FALSE_RATIO
    max_tracked_records: int = DEFAULT_MAX_TRACKED_RECORDS
    max_samples_per_record: int = DEFAULT_MAX_SAMPLES_PER_RECORD


@dataclass
class ScanConfig:
    """Configuration for scan orchestration.

    Attributes:
        record_yield_every: Records processed between cooperative yields (default: 100)
        comparison_yield_every: Naming comparisons between cooperative yields (default: 100)
        max_report_entries: Display cap per detector family (default: 500)
        show_progress: Show tqdm progress bars (default: False)
        enable_duplicates: Run the duplicate detector
        enable_orphans: Run the orphan detector
        enable_stale: Run the stale detector
        enable_performance: Run the performance analyzer
    """

    record_yield_every: int = DEFAULT_RECORD_YIELD_EVERY
    comparison_yield_every: int = DEFAULT_COMPARISON_YIELD_EVERY
    max_report_entries: int = MAX_REPORT_ENTRIES
    show_progress: bool = False
    enable_duplicates: bool = True
    enable_orphans: bool = True
    enable_stale: bool = True
    enable_performance: bool = True


@dataclass
class LogConfig:
    """Configuration for logging behavior.

    Attributes:
        level: Logging level string (default: "INFO")
        format: "text" or "json" (default: "text")
    """

    level: str = "INFO"
    format: str = "text"


_SECTIONS: dict[str, type] = {
    "duplicates": DuplicateConfig,
    "orphans": OrphanConfig,
    "stale": StaleConfig,
    "performance": PerformanceConfig,
    "scan": ScanConfig,
    "log": LogConfig,
}

# Environment variable suffix -> (section, attribute)
_ENV_FIELDS: dict[str, tuple[str, str]] = {
    "SIMILARITY_THRESHOLD": ("duplicates", "similarity_threshold"),
    "MAX_COMPARISONS": ("duplicates", "max_comparisons"),
    "UNUSED_AFTER_DAYS": ("orphans", "unused_after_days"),
    "STALE_THRESHOLD_HOURS": ("stale", "threshold_hours"),
    "LARGE_TREE_THRESHOLD": ("performance", "large_tree_threshold"),
    "RECORD_YIELD_EVERY": ("scan", "record_yield_every"),
    "COMPARISON_YIELD_EVERY": ("scan", "comparison_yield_every"),
}


@dataclass
class InspectorConfig:
    """Master configuration for a State Inspector instance.

    Attributes:
        duplicates: Duplicate detector configuration
        orphans: Orphan detector configuration
        stale: Stale detector configuration
        performance: Performance analyzer configuration
        scan: Orchestration configuration
        log: Logging configuration
        ignore_patterns: Caller wildcard patterns appended to the default deny-list
    """

    duplicates: DuplicateConfig = field(default_factory=DuplicateConfig)
    orphans: OrphanConfig = field(default_factory=OrphanConfig)
    stale: StaleConfig = field(default_factory=StaleConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    log: LogConfig = field(default_factory=LogConfig)
    ignore_patterns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InspectorConfig:
        """Create configuration from a nested dictionary.

        Unknown sections and attributes are rejected so that typos in config
        files do not silently fall back to defaults.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a JSON object", details=type(data).__name__)

        kwargs: dict[str, Any] = {}
        for section_name, section_data in data.items():
            if section_name == "ignore_patterns":
                if not isinstance(section_data, list):
                    raise ConfigurationError("ignore_patterns must be a list", field="ignore_patterns")
                kwargs["ignore_patterns"] = [str(p) for p in section_data]
                continue

            section_cls = _SECTIONS.get(section_name)
            if section_cls is None:
                raise ConfigurationError(f"Unknown configuration section '{section_name}'", field=section_name)
            if not isinstance(section_data, dict):
                raise ConfigurationError(f"Section '{section_name}' must be an object", field=section_name)

            allowed = {f.name for f in fields(section_cls)}
            unknown = set(section_data) - allowed
            if unknown:
                raise ConfigurationError(
                    f"Unknown option(s) in section '{section_name}'",
                    field=section_name,
                    details=", ".join(sorted(unknown)),
                )
            kwargs[section_name] = section_cls(**section_data)

        return cls(**kwargs)

    @classmethod
    def from_file(cls, path: str | Path) -> InspectorConfig:
        """Load configuration from a JSON file."""
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError("Config file not found", config_file=str(config_path))
        try:
            with open(config_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError("Invalid JSON in config file", config_file=str(config_path), details=str(e)) from e
        return cls.from_dict(data)

    @classmethod
    def from_env(
        cls,
        base: InspectorConfig | None = None,
        logger: logging.Logger | None = None,
        environ: dict[str, str] | None = None,
    ) -> InspectorConfig:
        """Overlay ``STATE_INSPECTOR_*`` environment variables onto a configuration.

        A ``.env`` file in the working directory is loaded first when no
        explicit ``environ`` mapping is passed.

        Args:
            base: Configuration to overlay (defaults to a fresh one)
            logger: Logger for debug output
            environ: Mapping to read instead of ``os.environ``

        Returns:
            A configuration with environment overrides applied
        """
        logger = logger or logging.getLogger(__name__)
        config = base or cls()

        if environ is None:
            _bootstrap_dotenv(logger)
            environ = dict(os.environ)

        for suffix, (section_name, attr) in _ENV_FIELDS.items():
            raw = environ.get(f"{ENV_PREFIX}{suffix}")
            if raw is None or raw.strip() == "":
                continue
            section = getattr(config, section_name)
            current = getattr(section, attr)
            try:
                value = type(current)(float(raw)) if isinstance(current, int) else float(raw)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {ENV_PREFIX}{suffix}", field=attr, details=f"'{raw}' is not numeric"
                ) from e
            setattr(section, attr, value)
            logger.debug(f"Config override from environment: {section_name}.{attr}={value}")

        patterns = environ.get(f"{ENV_PREFIX}IGNORE_PATTERNS")
        if patterns:
            config.ignore_patterns.extend(p.strip() for p in patterns.split(",") if p.strip())

        level = environ.get("LOG_LEVEL")
        if level:
            config.log.level = level.upper()

        return config

    @classmethod
    def from_args(cls, args: argparse.Namespace, base: InspectorConfig | None = None) -> InspectorConfig:
        """Apply parsed command-line arguments on top of a configuration."""
        config = base or cls()

        if getattr(args, "similarity_threshold", None) is not None:
            config.duplicates.similarity_threshold = args.similarity_threshold
        if getattr(args, "max_comparisons", None) is not None:
            config.duplicates.max_comparisons = args.max_comparisons
        if getattr(args, "stale_hours", None) is not None:
            config.stale.threshold_hours = args.stale_hours
        if getattr(args, "ignore", None):
            config.ignore_patterns.extend(args.ignore)

        config.scan.show_progress = not getattr(args, "quiet", False)
        config.scan.enable_duplicates = not getattr(args, "skip_duplicates", False)
        config.scan.enable_orphans = not getattr(args, "skip_orphans", False)
        config.scan.enable_stale = not getattr(args, "skip_stale", False)
        config.scan.enable_performance = not getattr(args, "skip_performance", False)

        if getattr(args, "log_level", None):
            config.log.level = args.log_level
        if getattr(args, "log_format", None):
            config.log.format = args.log_format
        return config


def _bootstrap_dotenv(logger: logging.Logger) -> None:
    """Load .env variables into the process environment."""
    try:
        dotenv_loaded = load_dotenv()
    except OSError as e:
        logger.debug(f"Failed to load .env via python-dotenv: {e}")
        return
    if dotenv_loaded:
        logger.debug(".env file found and loaded")
    else:
        logger.debug(".env file not found")
