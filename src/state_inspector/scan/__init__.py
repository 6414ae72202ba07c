"""
Scan orchestration and reporting.

Example usage:
    from state_inspector.scan import ScanOrchestrator
    from state_inspector.store import InMemoryStateStore

    store = InMemoryStateStore.from_snapshot_file("snapshot.json")
    report = ScanOrchestrator(store).run_scan()
    print(report.to_json())
"""

from state_inspector.scan.orchestrator import ScanOrchestrator, ScanPhase
from state_inspector.scan.report import (
    ScanReport,
    build_duplicate_report,
    build_orphan_report,
    build_performance_report,
    build_stale_report,
    count_by,
    findings_to_dataframe,
    scalar_summary,
)
from state_inspector.scan.writers import OUTPUT_FORMATS, write_report, write_report_csv, write_report_json

__all__ = [
    "OUTPUT_FORMATS",
    "ScanOrchestrator",
    "ScanPhase",
    "ScanReport",
    "build_duplicate_report",
    "build_orphan_report",
    "build_performance_report",
    "build_stale_report",
    "count_by",
    "findings_to_dataframe",
    "scalar_summary",
    "write_report",
    "write_report_csv",
    "write_report_json",
]
