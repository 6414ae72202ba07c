"""Core module - Foundation components with no internal dependencies.

This module provides the basic building blocks used throughout the package:
- Version information
- Custom exceptions
- Configuration dataclasses and range validation
- Constants and defaults
- Cooperative scheduling checkpoints
"""

from state_inspector.core.version import __version__

from state_inspector.core.exceptions import (
    StateInspectorError,
    ConfigurationError,
    StoreAccessError,
    ConcurrentScanError,
    ScanAbortedError,
)

from state_inspector.core.config import (
    DuplicateConfig,
    OrphanConfig,
    StaleConfig,
    PerformanceConfig,
    ScanConfig,
    LogConfig,
    InspectorConfig,
)

from state_inspector.core.config_validation import validate_config
from state_inspector.core.cooperative import Checkpoint

__all__ = [
    '__version__',
    # Exceptions
    'StateInspectorError',
    'ConfigurationError',
    'StoreAccessError',
    'ConcurrentScanError',
    'ScanAbortedError',
    # Config
    'DuplicateConfig',
    'OrphanConfig',
    'StaleConfig',
    'PerformanceConfig',
    'ScanConfig',
    'LogConfig',
    'InspectorConfig',
    'validate_config',
    # Scheduling
    'Checkpoint',
]
