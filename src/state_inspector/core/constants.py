"""Constants and default values for State Inspector.

This module centralizes the thresholds, caps and naming conventions used
across the detectors and the reporter.
"""

# ==================== REPORT CONTRACT ====================

REPORT_VERSION: str = "1.0"
REPORT_FAMILIES: tuple[str, ...] = ("duplicates", "orphans", "stale", "performance")

# Display cap applied to every detector family's items list
MAX_REPORT_ENTRIES: int = 500

# Prefix for scalar summary counters published through the store
SCALAR_PREFIX: str = "inspector"

# ==================== IGNORE PATTERNS ====================

# Always-on deny-list; caller patterns are appended to these
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (
    "system.*",
    "admin.*",
    "*.info.*",
    "*.alive",
    "*.connected",
)

# ==================== DUPLICATE DETECTION ====================

DEFAULT_SIMILARITY_THRESHOLD: float = 0.9
DEFAULT_MAX_COMPARISONS: int = 50_000
RECENT_CHANGE_WINDOW_SECONDS: int = 5 * 60
DUPLICATE_MEMBER_STALE_SECONDS: int = 24 * 60 * 60

# Naming-score weights; absent factors are dropped from the denominator
KEY_SIMILARITY_WEIGHT: float = 0.4
NAME_SIMILARITY_WEIGHT: float = 0.3
TYPE_MATCH_WEIGHT: float = 0.15
ROLE_MATCH_WEIGHT: float = 0.15

COMMON_PATTERN_MAX_LENGTH: int = 100

# ==================== ORPHAN DETECTION ====================

DEFAULT_UNUSED_AFTER_DAYS: int = 30

# Producer listings from the host may use host-qualified ids
PRODUCER_ID_HOST_PREFIX: str = "system.adapter."

# ==================== STALE DETECTION ====================

DEFAULT_STALE_THRESHOLD_HOURS: float = 24.0
STALE_SAFE_TO_DELETE_MULTIPLIER: int = 3
DEFAULT_WATCH_GRACE_PERIOD_SECONDS: int = 60

# ==================== PERFORMANCE ANALYSIS ====================

DEFAULT_UPDATE_FREQUENCY_THRESHOLD_MS: int = 100
DEFAULT_LARGE_TREE_THRESHOLD: int = 1000
DEFAULT_HISTORY_WASTE_DAYS: int = 7
DEFAULT_MIN_ACK_WRITES: int = 5
DEFAULT_ACK_FALSE_RATIO: float = 0.8
DEFAULT_MAX_TRACKED_RECORDS: int = 1000
DEFAULT_MAX_SAMPLES_PER_RECORD: int = 100
MAX_HIGH_FREQUENCY_FINDINGS: int = 50
MAX_ACK_ISSUE_FINDINGS: int = 50
MAX_HISTORY_WASTE_FINDINGS: int = 100

# Custom-config keys that mark a record as recorded by a history consumer
HISTORY_CONSUMER_MARKERS: tuple[str, ...] = ("history", "influxdb", "sql")

# ==================== COOPERATIVE SCHEDULING ====================

DEFAULT_RECORD_YIELD_EVERY: int = 100
DEFAULT_COMPARISON_YIELD_EVERY: int = 100

# ==================== LOGGING ====================

LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB
LOG_FILE_BACKUP_COUNT: int = 5

# ==================== ENVIRONMENT ====================

ENV_PREFIX: str = "STATE_INSPECTOR_"
