"""
State Inspector - data-quality inspection for key/attribute state stores

Finds duplicate, orphaned, stale and performance-heavy records in a large
hierarchical record store and publishes versioned reports.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from state_inspector.core.version import __version__

__all__ = ["__version__", "InspectorConfig", "ScanOrchestrator", "ScanReport", "InMemoryStateStore", "main"]

_LAZY_EXPORTS = {
    "InspectorConfig": "state_inspector.core.config",
    "ScanOrchestrator": "state_inspector.scan.orchestrator",
    "ScanReport": "state_inspector.scan.report",
    "InMemoryStateStore": "state_inspector.store.memory",
    "main": "state_inspector.cli.main",
}

if TYPE_CHECKING:
    from state_inspector.cli.main import main
    from state_inspector.core.config import InspectorConfig
    from state_inspector.scan.orchestrator import ScanOrchestrator
    from state_inspector.scan.report import ScanReport
    from state_inspector.store.memory import InMemoryStateStore


def __getattr__(name: str) -> Any:
    if name in _LAZY_EXPORTS:
        import importlib

        return getattr(importlib.import_module(_LAZY_EXPORTS[name]), name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
