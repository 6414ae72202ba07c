"""
Tests for scan orchestration
"""

import logging
from unittest.mock import Mock, patch

import pytest
from conftest import NOW

from state_inspector.core.config import InspectorConfig
from state_inspector.core.exceptions import ConcurrentScanError, ScanAbortedError, StoreAccessError
from state_inspector.scan.orchestrator import ScanOrchestrator, ScanPhase
from state_inspector.store.memory import InMemoryStateStore


def _noop():
    pass


@pytest.fixture
def orchestrator(sample_store):
    return ScanOrchestrator(sample_store, clock=lambda: NOW, yield_fn=_noop)


class TestFullScan:
    """Test an end-to-end scan against the in-memory store"""

    def test_scan_produces_every_family(self, orchestrator, sample_store):
        report = orchestrator.run_scan()

        assert orchestrator.last_report is report
        assert orchestrator.phase is ScanPhase.IDLE
        assert set(sample_store.reports) == {"duplicates", "orphans", "stale", "performance"}
        assert report.records_scanned == 7
        assert report.records_skipped == 1

    def test_value_duplicates(self, orchestrator, sample_store):
        orchestrator.run_scan()
        duplicates = sample_store.get_report("duplicates")

        assert duplicates["totalDuplicateGroups"] == 1
        group = duplicates["items"][0]
        assert group["category"] == "value"
        assert group["confidence"] == "high"
        assert {r["id"] for r in group["records"]} == {
            "zigbee.0.living_room.temperature",
            "mqtt.0.kitchen.temperature",
        }

    def test_orphans(self, orchestrator, sample_store):
        orchestrator.run_scan()
        orphans = sample_store.get_report("orphans")

        by_key = {item["id"]: item for item in orphans["items"]}
        assert orphans["totalOrphaned"] == 3
        assert by_key["oldadapter.0.switch"]["category"] == "adapter_removed"
        assert by_key["oldadapter.0.switch"]["suggestion"] == "safe_to_delete"
        assert by_key["hue.0.light.level"]["category"] == "adapter_disabled"
        assert by_key["zigbee.0.unused"]["category"] == "unreferenced_unused"

    def test_stale(self, orchestrator, sample_store):
        orchestrator.run_scan()
        stale = sample_store.get_report("stale")

        assert stale["totalStale"] == 1
        assert stale["items"][0]["id"] == "zigbee.0.lamp.on"
        assert stale["items"][0]["ageHours"] == 25

    def test_scalars_published(self, orchestrator, sample_store):
        orchestrator.run_scan()

        assert sample_store.scalars["inspector.orphans.count"] == 3
        assert sample_store.scalars["inspector.orphans.hasOrphans"] is True
        assert sample_store.scalars["inspector.stale.hasStale"] is True
        assert sample_store.scalars["inspector.duplicates.lastScan"] == NOW
        assert sample_store.scalars["inspector.performance.count"] == 0

    def test_report_timestamp_is_scan_start(self, orchestrator, sample_store):
        orchestrator.run_scan()
        assert sample_store.get_report("stale")["timestamp"] == "2026-01-15T12:00:00+00:00"

    def test_phase_timings_recorded(self, orchestrator):
        report = orchestrator.run_scan()
        assert set(report.phase_timings) == {p.value for p in ScanPhase if p is not ScanPhase.IDLE}

    def test_disabled_detectors(self, sample_store):
        config = InspectorConfig()
        config.scan.enable_orphans = False
        config.scan.enable_performance = False
        orchestrator = ScanOrchestrator(sample_store, config, clock=lambda: NOW, yield_fn=_noop)

        with patch.object(sample_store, "enumerate_consumer_sources") as sources:
            report = orchestrator.run_scan()

        sources.assert_not_called()
        assert set(sample_store.reports) == {"duplicates", "stale"}
        assert report.orphans is None

    def test_extra_ignore_patterns(self, sample_store):
        config = InspectorConfig(ignore_patterns=["zigbee.*"])
        orchestrator = ScanOrchestrator(sample_store, config, clock=lambda: NOW, yield_fn=_noop)
        orchestrator.run_scan()

        assert sample_store.get_report("stale")["totalStale"] == 0
        assert sample_store.get_report("duplicates")["totalDuplicateGroups"] == 0

    def test_out_of_range_config_replaced(self, sample_store):
        logger = Mock(spec=logging.Logger)
        config = InspectorConfig()
        config.duplicates.similarity_threshold = 0.2

        orchestrator = ScanOrchestrator(sample_store, config, logger, clock=lambda: NOW, yield_fn=_noop)

        assert orchestrator.config.duplicates.similarity_threshold == 0.9
        logger.warning.assert_called_once()


class TestCooperativeScheduling:
    """Test yielding, concurrency rejection and aborts"""

    def test_yields_during_scan(self, sample_store):
        calls = []
        config = InspectorConfig()
        config.scan.record_yield_every = 2
        orchestrator = ScanOrchestrator(sample_store, config, clock=lambda: NOW, yield_fn=lambda: calls.append(1))

        orchestrator.run_scan()

        assert len(calls) > 0

    def test_concurrent_scan_rejected(self, sample_store):
        """A scan requested while one is in flight is rejected, not interleaved"""
        config = InspectorConfig()
        config.scan.record_yield_every = 1
        errors = []
        observed_phases = []

        def reentrant_yield():
            if errors:
                return
            observed_phases.append(orchestrator.phase)
            try:
                orchestrator.run_scan()
            except ConcurrentScanError as e:
                errors.append(e)

        orchestrator = ScanOrchestrator(sample_store, config, clock=lambda: NOW, yield_fn=reentrant_yield)
        report = orchestrator.run_scan()

        assert len(errors) == 1
        assert "already running" in str(errors[0])
        assert errors[0].phase == observed_phases[0].value
        assert orchestrator.last_report is report
        assert not orchestrator.is_running

    def test_stop_request_keeps_previous_report(self, orchestrator, sample_store):
        first = orchestrator.run_scan()
        published = dict(sample_store.reports)
        scalars = dict(sample_store.scalars)

        orchestrator.config.scan.record_yield_every = 1
        orchestrator.yield_fn = orchestrator.request_stop

        with pytest.raises(ScanAbortedError):
            orchestrator.run_scan()

        assert orchestrator.last_report is first
        assert sample_store.reports == published
        assert sample_store.scalars == scalars
        assert orchestrator.phase is ScanPhase.IDLE

    def test_scan_runs_again_after_abort(self, orchestrator):
        orchestrator.config.scan.record_yield_every = 1
        orchestrator.yield_fn = orchestrator.request_stop
        with pytest.raises(ScanAbortedError):
            orchestrator.run_scan()

        orchestrator.yield_fn = _noop
        assert orchestrator.run_scan() is orchestrator.last_report


class TestStoreFailures:
    """Test failure handling around the store"""

    def test_enumeration_failure_aborts_and_keeps_previous_report(self, orchestrator, sample_store):
        first = orchestrator.run_scan()
        published = dict(sample_store.reports)

        with patch.object(sample_store, "enumerate_all_metadata_descriptors", side_effect=RuntimeError("db down")):
            with pytest.raises(StoreAccessError) as exc_info:
                orchestrator.run_scan()

        assert exc_info.value.operation == "enumerate_all_metadata_descriptors"
        assert orchestrator.last_report is first
        assert sample_store.reports == published
        assert orchestrator.phase is ScanPhase.IDLE

    def test_consumer_namespace_failure_aborts(self, orchestrator, sample_store):
        with patch.object(sample_store, "enumerate_consumer_sources", side_effect=ConnectionError("offline")):
            with pytest.raises(StoreAccessError):
                orchestrator.run_scan()

        assert orchestrator.last_report is None
        assert sample_store.reports == {}

    def test_persist_failure_does_not_fail_scan(self, sample_store):
        logger = Mock()
        orchestrator = ScanOrchestrator(sample_store, logger=logger, clock=lambda: NOW, yield_fn=_noop)

        with patch.object(sample_store, "persist_report", side_effect=OSError("disk full")):
            report = orchestrator.run_scan()

        assert orchestrator.last_report is report
        assert any("Failed to persist" in c[0][0] for c in logger.warning.call_args_list)

    def test_malformed_descriptor_skipped(self):
        """One unusable descriptor is counted and skipped, the scan still completes"""
        state = {"val": 21.5, "ts": NOW - 60, "lc": NOW - 60, "ack": True}
        store = InMemoryStateStore(
            states={"zigbee.0.a.temp": dict(state), "zigbee.0.b.temp": dict(state)},
            objects={
                "zigbee.0.a.temp": {"type": "state", "common": {"type": "number", "unit": "C", "write": False}},
                "zigbee.0.b.temp": {"type": "state", "common": {"type": "number", "unit": ["C"], "write": False}},
            },
            producers={"system.adapter.zigbee.0": {"common": {"enabled": True}}},
        )

        report = ScanOrchestrator(store, clock=lambda: NOW, yield_fn=_noop).run_scan()

        assert report.records_scanned == 1
        assert report.records_skipped == 1
        assert store.get_report("duplicates")["totalDuplicateGroups"] == 0


class TestChangeTracking:
    """Test feeding the performance analyzer from change notifications"""

    def test_high_frequency_from_notifications(self, orchestrator, sample_store):
        orchestrator.start_change_tracking()
        for offset in (0.0, 0.01, 0.02):
            sample_store.set_state("zigbee.0.power", {"val": offset, "ts": NOW + offset, "ack": True})

        orchestrator.run_scan()

        performance = sample_store.get_report("performance")
        assert performance["counts"]["highFrequencyCount"] == 1
        assert performance["items"][0]["id"] == "zigbee.0.power"

    def test_stop_tracking_unsubscribes(self, orchestrator, sample_store):
        orchestrator.start_change_tracking()
        orchestrator.start_change_tracking()
        assert sample_store.subscriptions == ["*"]

        orchestrator.stop_change_tracking(clear=True)

        assert sample_store.subscriptions == []
        assert len(orchestrator.change_history) == 0

    def test_untracked_scan_skips_event_checks(self, orchestrator, sample_store):
        orchestrator.change_history.record_change("zigbee.0.power", NOW)
        orchestrator.change_history.record_change("zigbee.0.power", NOW + 0.001)

        orchestrator.run_scan()

        assert sample_store.get_report("performance")["counts"]["highFrequencyCount"] == 0
