"""
State Inspector detectors.

Each detector consumes the same record snapshot and returns typed findings:

- DuplicateDetector: value and naming duplicates
- OrphanDetector: records without a live producer or any consumer
- StaleDetector: writable records that stopped updating
- PerformanceAnalyzer: large trees, history waste, update storms, ack issues
- WatchedRecordMonitor: event-driven staleness for explicitly watched keys

Example usage:
    from state_inspector.detectors import DetectionContext, StaleDetector

    result = StaleDetector().detect(snapshot.records, producers, DetectionContext())
"""

from state_inspector.detectors.context import DetectionContext
from state_inspector.detectors.duplicates import DuplicateDetector, DuplicateResult, naming_score
from state_inspector.detectors.models import (
    CleanupSuggestion,
    Confidence,
    DuplicateMember,
    IssueType,
    NamingDuplicateGroup,
    OrphanCategory,
    OrphanRecord,
    PerformanceIssue,
    StaleRecord,
    UsageClass,
    ValueDuplicateGroup,
    WatchedStaleness,
)
from state_inspector.detectors.orphans import OrphanDetector, OrphanResult, classify_usage, cleanup_suggestions
from state_inspector.detectors.performance import ChangeHistoryTable, PerformanceAnalyzer, PerformanceResult
from state_inspector.detectors.stale import StaleDetector, StaleResult, stale_cleanup_suggestions
from state_inspector.detectors.watched import WatchedRecordConfig, WatchedRecordMonitor

__all__ = [
    "ChangeHistoryTable",
    "CleanupSuggestion",
    "Confidence",
    "DetectionContext",
    "DuplicateDetector",
    "DuplicateMember",
    "DuplicateResult",
    "IssueType",
    "NamingDuplicateGroup",
    "OrphanCategory",
    "OrphanDetector",
    "OrphanRecord",
    "OrphanResult",
    "PerformanceAnalyzer",
    "PerformanceIssue",
    "PerformanceResult",
    "StaleDetector",
    "StaleRecord",
    "StaleResult",
    "UsageClass",
    "ValueDuplicateGroup",
    "WatchedRecordConfig",
    "WatchedRecordMonitor",
    "WatchedStaleness",
    "classify_usage",
    "cleanup_suggestions",
    "naming_score",
    "stale_cleanup_suggestions",
]
