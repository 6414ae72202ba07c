"""
Tests for report envelopes, scalar summaries and file writers
"""

import json
import logging
from pathlib import Path
from unittest.mock import Mock, patch

import pandas as pd
import pytest
from conftest import NOW, make_record

from state_inspector.core.constants import REPORT_FAMILIES
from state_inspector.detectors.duplicates import DuplicateDetector, DuplicateResult
from state_inspector.detectors.models import (
    CleanupSuggestion,
    Confidence,
    OrphanCategory,
    OrphanRecord,
    UsageClass,
)
from state_inspector.detectors.orphans import OrphanResult
from state_inspector.detectors.performance import PerformanceResult
from state_inspector.detectors.stale import StaleDetector
from state_inspector.scan.report import (
    ScanReport,
    build_duplicate_report,
    build_orphan_report,
    build_stale_report,
    count_by,
    findings_to_dataframe,
    scalar_summary,
)
from state_inspector.scan.writers import write_report, write_report_csv, write_report_json

TIMESTAMP = "2026-01-15T12:00:00+00:00"


def _orphan(i, producer="old.0", category=OrphanCategory.ADAPTER_REMOVED):
    return OrphanRecord(
        key=f"{producer}.r{i}",
        producer_id=producer,
        category=category,
        reason=f"Adapter {producer} no longer installed",
        usage=UsageClass.NEVER_USED,
        suggestion=CleanupSuggestion.SAFE_TO_DELETE,
        confidence=Confidence.HIGH,
    )


@pytest.fixture
def scan_report(ctx, producers):
    records = [
        make_record("hm.0.room.temperature", 21.5, unit="°C", last_change=NOW - 30),
        make_record("zigbee.0.room.temp", 21.5, unit="°C", last_change=NOW - 40),
        make_record("zigbee.0.lamp", False, last_update=NOW - 30 * 3600),
    ]
    return ScanReport(
        scan_id="abc123",
        started_at=NOW,
        duration=1.5,
        records_scanned=3,
        duplicates=DuplicateDetector().detect(records, ctx),
        orphans=OrphanResult(orphans=[_orphan(1)], checked=3),
        stale=StaleDetector().detect(records, producers, ctx),
        performance=PerformanceResult(),
    )


class TestCountBy:
    """Test value counting"""

    def test_counts_most_frequent_first(self):
        assert count_by(["a", "b", "a", "c", "a", "b"]) == {"a": 3, "b": 2, "c": 1}

    def test_empty(self):
        assert count_by([]) == {}

    def test_none_dropped(self):
        assert count_by(["a", None]) == {"a": 1}


class TestEnvelopes:
    """Test the shared report envelope"""

    def test_truncated_at_display_cap(self):
        """Items are capped; totals and summaries cover everything"""
        result = OrphanResult(orphans=[_orphan(i) for i in range(600)])
        report = build_orphan_report(result, TIMESTAMP)

        assert report["totalOrphaned"] == 600
        assert report["truncated"] is True
        assert len(report["items"]) == 500
        assert report["summary"]["byCategory"] == {"adapter_removed": 600}
        assert len(report["cleanupSuggestions"]["safe_to_delete"]) == 600

    def test_not_truncated_at_exact_cap(self):
        result = OrphanResult(orphans=[_orphan(i) for i in range(3)])
        report = build_orphan_report(result, TIMESTAMP, max_entries=3)
        assert report["truncated"] is False
        assert len(report["items"]) == 3

    def test_envelope_fields(self):
        report = build_orphan_report(OrphanResult(), TIMESTAMP)
        assert report["version"] == "1.0"
        assert report["family"] == "orphans"
        assert report["timestamp"] == TIMESTAMP
        assert set(report["summary"]) == {"byCategory", "byAdapter", "byUsage"}

    def test_orphan_summary_by_adapter_and_usage(self):
        orphans = [_orphan(1), _orphan(2), _orphan(3, producer="hue.0", category=OrphanCategory.ADAPTER_DISABLED)]
        report = build_orphan_report(OrphanResult(orphans=orphans), TIMESTAMP)

        assert report["summary"]["byAdapter"] == {"old.0": 2, "hue.0": 1}
        assert report["summary"]["byUsage"] == {"never_used": 3}

    def test_duplicate_report_note_when_capped(self):
        result = DuplicateResult(comparisons=5, comparison_limit_reached=True, seeds_processed=1, seeds_total=10)
        report = build_duplicate_report(result, TIMESTAMP)

        assert report["totalDuplicateGroups"] == 0
        assert report["comparisonLimitReached"] is True
        assert report["coverage"] == 0.1
        assert "1/10" in report["note"]

    def test_duplicate_report_without_cap_has_no_note(self, scan_report):
        report = build_duplicate_report(scan_report.duplicates, TIMESTAMP)
        assert "note" not in report
        assert report["totalDuplicateGroups"] == 1
        assert report["totalDuplicateRecords"] == 2
        assert report["summary"]["byUsage"] == {"fresh": 2}
        assert report["items"][0]["records"][0]["lastChanged"].endswith("+00:00")

    def test_stale_report(self, scan_report):
        report = build_stale_report(scan_report.stale, TIMESTAMP)
        assert report["totalStale"] == 1
        assert report["thresholdHours"] == 24.0
        assert report["summary"]["byAdapter"] == {"zigbee.0": 1}
        assert report["cleanupSuggestions"]["review_required"] == ["zigbee.0.lamp"]


class TestScanReport:
    """Test the full scan report"""

    def test_family_reports(self, scan_report):
        families = scan_report.family_reports()
        assert list(families) == ["duplicates", "orphans", "stale", "performance"]
        assert families["performance"]["totalIssues"] == 0
        assert families["performance"]["counts"]["highFrequencyCount"] == 0

    def test_family_order_follows_report_contract(self, scan_report):
        assert tuple(scan_report.family_reports()) == REPORT_FAMILIES

    def test_disabled_families_omitted(self):
        report = ScanReport(scan_id="x", started_at=NOW, stale=None, orphans=OrphanResult())
        assert list(report.family_reports()) == ["orphans"]

    def test_finding_count(self, scan_report):
        assert scan_report.finding_count == 3

    def test_to_json(self, scan_report):
        data = json.loads(scan_report.to_json())
        assert data["scanId"] == "abc123"
        assert data["timestamp"] == TIMESTAMP
        assert data["totalFindings"] == 3
        assert data["families"]["orphans"]["totalOrphaned"] == 1


class TestScalarSummary:
    """Test scalar counters published next to each report"""

    def test_orphan_scalars(self, scan_report):
        report = scan_report.family_reports()["orphans"]
        scalars = scalar_summary("orphans", report, NOW)

        assert scalars["inspector.orphans.count"] == 1
        assert scalars["inspector.orphans.lastScan"] == NOW
        assert scalars["inspector.orphans.hasOrphans"] is True
        assert json.loads(scalars["inspector.orphans.byCategory"]) == {"adapter_removed": 1}

    def test_stale_scalars(self, scan_report):
        scalars = scalar_summary("stale", scan_report.family_reports()["stale"], NOW)
        assert scalars["inspector.stale.hasStale"] is True
        assert json.loads(scalars["inspector.stale.byAdapter"]) == {"zigbee.0": 1}

    def test_performance_scalars(self, scan_report):
        scalars = scalar_summary("performance", scan_report.family_reports()["performance"], NOW)
        assert scalars["inspector.performance.count"] == 0
        assert scalars["inspector.performance.ackIssuesCount"] == 0


class TestFindingsToDataframe:
    """Test flattening reports to rows"""

    def test_duplicates_one_row_per_member(self, scan_report):
        df = findings_to_dataframe("duplicates", scan_report.family_reports()["duplicates"])
        assert len(df) == 2
        assert set(df["group"]) == {1}
        assert set(df["id"]) == {"hm.0.room.temperature", "zigbee.0.room.temp"}

    def test_list_fields_joined(self):
        orphan = OrphanRecord(
            key="hue.0.x",
            producer_id="hue.0",
            category=OrphanCategory.ADAPTER_DISABLED,
            reason="Adapter hue.0 is disabled",
            usage=UsageClass.ACTIVE,
            suggestion=CleanupSuggestion.KEEP_FOR_NOW,
            confidence=Confidence.MEDIUM,
            references=("script:a", "alias:b"),
        )
        report = build_orphan_report(OrphanResult(orphans=[orphan]), TIMESTAMP)
        df = findings_to_dataframe("orphans", report)
        assert df.loc[0, "references"] == "script:a, alias:b"


class TestWriters:
    """Test JSON and CSV output"""

    def test_write_json(self, scan_report, tmp_path):
        logger = Mock(spec=logging.Logger)
        path = write_report_json(scan_report, tmp_path, logger)

        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["scanId"] == "abc123"
        assert path.endswith(".json")
        assert not list(tmp_path.glob(".*.tmp"))

    def test_write_json_explicit_path(self, scan_report, tmp_path):
        path = write_report_json(scan_report, tmp_path, Mock(spec=logging.Logger), output_path=tmp_path / "out")
        assert path == str(tmp_path / "out.json")

    def test_write_csv(self, scan_report, tmp_path):
        csv_dir = write_report_csv(scan_report, tmp_path, Mock(spec=logging.Logger))

        names = sorted(p.name for p in Path(csv_dir).iterdir())
        assert names == ["duplicates.csv", "orphans.csv", "performance.csv", "stale.csv", "summary.csv"]
        summary = pd.read_csv(f"{csv_dir}/summary.csv")
        assert list(summary["family"]) == ["duplicates", "orphans", "stale", "performance"]
        assert list(summary["total"]) == [1, 1, 1, 0]

    def test_write_report_all(self, scan_report, tmp_path):
        paths = write_report(scan_report, "all", tmp_path, Mock(spec=logging.Logger))
        assert len(paths) == 2

    def test_write_report_unknown_format(self, scan_report, tmp_path):
        with pytest.raises(ValueError):
            write_report(scan_report, "xlsx", tmp_path, Mock(spec=logging.Logger))

    def test_permission_error_logged_and_raised(self, scan_report, tmp_path):
        logger = Mock(spec=logging.Logger)
        with patch("state_inspector.scan.writers._atomic_write_text", side_effect=PermissionError("denied")):
            with pytest.raises(PermissionError):
                write_report_json(scan_report, tmp_path, logger)
        assert "Permission denied" in logger.error.call_args[0][0]
