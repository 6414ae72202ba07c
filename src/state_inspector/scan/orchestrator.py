"""
Scan orchestration.

One scan walks ``Idle -> Enumerating -> Indexing -> Detecting -> Merging ->
Reporting -> Idle``. The record set is enumerated once and every enabled
detector sees the same snapshot. Reports and scalars are only published after
all detectors succeed, so a failed or aborted scan never overwrites the
previous report.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from state_inspector.core.config import InspectorConfig
from state_inspector.core.config_validation import validate_config
from state_inspector.core.cooperative import Checkpoint
from state_inspector.core.exceptions import ConcurrentScanError, ScanAbortedError, StoreAccessError
from state_inspector.core.logging import with_log_context
from state_inspector.core.perf import PhaseTimer
from state_inspector.detectors.context import DetectionContext
from state_inspector.detectors.duplicates import DuplicateDetector
from state_inspector.detectors.models import format_timestamp
from state_inspector.detectors.orphans import OrphanDetector
from state_inspector.detectors.performance import ChangeHistoryTable, PerformanceAnalyzer
from state_inspector.detectors.stale import StaleDetector
from state_inspector.matching.patterns import IgnorePatternMatcher
from state_inspector.records.snapshot import build_producer_index, build_snapshot
from state_inspector.references.graph import ReferenceGraph, ReferenceGraphBuilder
from state_inspector.scan.report import ScanReport, scalar_summary
from state_inspector.store.protocols import StateStore

CHANGE_TRACKING_PATTERN = "*"


class ScanPhase(Enum):
    """Orchestrator states."""

    IDLE = "idle"
    ENUMERATING = "enumerating"
    INDEXING = "indexing"
    DETECTING = "detecting"
    MERGING = "merging"
    REPORTING = "reporting"


class ScanOrchestrator:
    """Run full inspection scans against a state store.

    A scan requested while another is in flight is rejected with
    :class:`ConcurrentScanError`.

    Args:
        store: StateStore to inspect
        config: InspectorConfig (validated on construction)
        logger: Logger instance
        clock: Callable returning epoch seconds; its value at scan start is "now"
        yield_fn: Called at every cooperative checkpoint (default: ``time.sleep(0)``)
    """

    def __init__(
        self,
        store: StateStore,
        config: InspectorConfig | None = None,
        logger: logging.Logger | None = None,
        clock: Callable[[], float] = time.time,
        yield_fn: Callable[[], None] | None = None,
    ):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.config = validate_config(config or InspectorConfig(), self.logger)
        self.clock = clock
        self.yield_fn = yield_fn
        self.ignore = IgnorePatternMatcher(self.config.ignore_patterns)
        self.change_history = ChangeHistoryTable(
            max_records=self.config.performance.max_tracked_records,
            max_samples=self.config.performance.max_samples_per_record,
            clock=clock,
        )
        self.last_report: ScanReport | None = None

        self._scan_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._phase = ScanPhase.IDLE
        self._scan_started_at: float | None = None
        self._tracking_changes = False

    @property
    def phase(self) -> ScanPhase:
        return self._phase

    @property
    def is_running(self) -> bool:
        return self._scan_lock.locked()

    def request_stop(self) -> None:
        """Abort the running scan at its next cooperative checkpoint."""
        if self.is_running:
            self.logger.info("Stop requested for running scan")
        self._stop_event.set()

    def run_scan(self) -> ScanReport:
        """Execute one full scan.

        Returns:
            The new ScanReport (also stored as ``last_report``)

        Raises:
            ConcurrentScanError: If a scan is already running
            StoreAccessError: If a bulk enumeration fails
            ScanAbortedError: If ``request_stop`` was called during the scan
        """
        if not self._scan_lock.acquire(blocking=False):
            raise ConcurrentScanError(
                phase=self._phase.value,
                started_at=format_timestamp(self._scan_started_at),
            )
        try:
            self._stop_event.clear()
            return self._run_scan_impl()
        finally:
            self._phase = ScanPhase.IDLE
            self._scan_started_at = None
            self._scan_lock.release()

    def _enter(self, phase: ScanPhase, timer: PhaseTimer, log: Any) -> None:
        if self._phase is not ScanPhase.IDLE:
            timer.end(self._phase.value)
        self._phase = phase
        timer.start(phase.value)
        log.debug(f"Scan phase: {phase.value}")

    def _enumerate(self, operation: str, fn: Callable[[], Mapping[str, Any]], log: Any) -> Mapping[str, Any]:
        try:
            result = fn()
        except StoreAccessError as e:
            log.error(f"Scan aborted: {e}")
            raise
        except Exception as e:
            log.error(f"Scan aborted: {operation} failed: {e}")
            raise StoreAccessError("Store enumeration failed", operation=operation, original_error=e) from e
        return result or {}

    def _run_scan_impl(self) -> ScanReport:
        """Internal implementation of a scan (called with the scan lock held)."""
        started = time.perf_counter()
        now = self.clock()
        self._scan_started_at = now
        scan_id = uuid.uuid4().hex[:12]
        log = with_log_context(self.logger, scan_id=scan_id)
        timer = PhaseTimer(log)
        scan_cfg = self.config.scan

        ctx = DetectionContext(
            now=now,
            record_checkpoint=Checkpoint(scan_cfg.record_yield_every, self.yield_fn, self._stop_event),
            comparison_checkpoint=Checkpoint(scan_cfg.comparison_yield_every, self.yield_fn, self._stop_event),
            show_progress=scan_cfg.show_progress,
        )
        report = ScanReport(scan_id=scan_id, started_at=now, max_entries=scan_cfg.max_report_entries)

        try:
            # 1. Enumerate
            self._enter(ScanPhase.ENUMERATING, timer, log)
            log.info("Enumerating records and metadata...")
            states = self._enumerate("enumerate_all_records", self.store.enumerate_all_records, log)
            descriptors = self._enumerate(
                "enumerate_all_metadata_descriptors", self.store.enumerate_all_metadata_descriptors, log
            )
            raw_producers = self._enumerate("enumerate_producers", self.store.enumerate_producers, log)
            log.info(f"Retrieved {len(states)} records and {len(descriptors)} descriptors")

            # 2. Index
            self._enter(ScanPhase.INDEXING, timer, log)
            snapshot = build_snapshot(
                states, descriptors, ctx.record_checkpoint, show_progress=scan_cfg.show_progress, log=log
            )
            producers = build_producer_index(raw_producers, log)
            graph = ReferenceGraph()
            if scan_cfg.enable_orphans:
                graph = ReferenceGraphBuilder(self.store.enumerate_consumer_sources, log).build(
                    known_keys=set(states)
                )
            report.records_scanned = len(snapshot.records)
            report.records_skipped = snapshot.skipped

            # 3. Detect
            self._enter(ScanPhase.DETECTING, timer, log)
            records = snapshot.records
            if scan_cfg.enable_duplicates:
                log.info("Detecting duplicates...")
                report.duplicates = DuplicateDetector(self.config.duplicates, self.ignore, log).detect(records, ctx)
            if scan_cfg.enable_orphans:
                log.info("Detecting orphans...")
                report.orphans = OrphanDetector(self.config.orphans, self.ignore, log).detect(
                    records, producers, graph, ctx
                )
            if scan_cfg.enable_stale:
                log.info("Detecting stale records...")
                report.stale = StaleDetector(self.config.stale, self.ignore, log).detect(records, producers, ctx)
            if scan_cfg.enable_performance:
                log.info("Analyzing performance...")
                report.performance = PerformanceAnalyzer(self.config.performance, self.ignore, log).analyze(
                    records, self.change_history if self._tracking_changes else None, ctx
                )

            # 4. Merge
            self._enter(ScanPhase.MERGING, timer, log)
            family_reports = report.family_reports()

            # 5. Report
            self._enter(ScanPhase.REPORTING, timer, log)
            timer.end(ScanPhase.REPORTING.value)
            report.phase_timings = timer.as_dict()
            report.duration = time.perf_counter() - started
            self._publish(family_reports, now, log)
        except ScanAbortedError as e:
            log.warning(f"Scan aborted in phase {self._phase.value}: {e}; previous report kept")
            raise

        self.last_report = report
        log.info(
            f"Scan complete: {report.finding_count} findings across {len(family_reports)} detector families "
            f"in {report.duration:.2f}s ({timer.get_summary()})"
        )
        return report

    def _publish(self, family_reports: dict[str, dict[str, Any]], scanned_at: float, log: Any) -> None:
        """Fire-and-forget persistence; failures are logged, never raised."""
        for family, family_report in family_reports.items():
            try:
                self.store.persist_report(family, json.dumps(family_report, ensure_ascii=False, default=str))
            except Exception as e:
                log.warning(f"Failed to persist {family} report: {e}")
            for name, value in scalar_summary(family, family_report, scanned_at).items():
                try:
                    self.store.persist_scalar(name, value)
                except Exception as e:
                    log.warning(f"Failed to persist scalar {name}: {e}")

    # ==================== Change tracking ====================

    def start_change_tracking(self) -> None:
        """Subscribe to all changes and feed the performance change-history table."""
        if self._tracking_changes:
            return
        self.store.subscribe(CHANGE_TRACKING_PATTERN, self.change_history.on_change)
        self._tracking_changes = True
        self.logger.info("Change tracking started for performance analysis")

    def stop_change_tracking(self, clear: bool = False) -> None:
        if not self._tracking_changes:
            return
        try:
            self.store.unsubscribe(CHANGE_TRACKING_PATTERN)
        except Exception as e:
            self.logger.warning(f"Failed to unsubscribe change tracking: {e}")
        self._tracking_changes = False
        if clear:
            self.change_history.clear()
        self.logger.info("Change tracking stopped")
