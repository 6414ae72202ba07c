"""
Scan report construction.

Every detector family is serialized to the same envelope::

    {version, family, timestamp, total<X>, truncated, items: [...],
     summary: {byCategory, byAdapter, byUsage}, ...family extras}

``items`` is capped at the display limit; totals and summaries always cover
the full finding set.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from state_inspector.core.constants import MAX_REPORT_ENTRIES, REPORT_FAMILIES, REPORT_VERSION, SCALAR_PREFIX
from state_inspector.detectors.duplicates import DuplicateResult
from state_inspector.detectors.models import format_timestamp
from state_inspector.detectors.orphans import OrphanResult, cleanup_suggestions
from state_inspector.detectors.performance import PerformanceResult
from state_inspector.detectors.stale import StaleResult, stale_cleanup_suggestions


def count_by(values: Iterable[Any]) -> dict[str, int]:
    """Value counts as a plain ``{str: int}`` dict, most frequent first."""
    series = pd.Series(list(values), dtype="object").dropna()
    if series.empty:
        return {}
    return {str(k): int(v) for k, v in series.value_counts().items()}


def _summary(
    by_category: Iterable[Any] = (), by_adapter: Iterable[Any] = (), by_usage: Iterable[Any] = ()
) -> dict[str, dict[str, int]]:
    return {
        "byCategory": count_by(by_category),
        "byAdapter": count_by(by_adapter),
        "byUsage": count_by(by_usage),
    }


def _envelope(
    family: str,
    total_key: str,
    items: list[dict[str, Any]],
    timestamp: str,
    max_entries: int,
    summary: dict[str, dict[str, int]],
    **extra: Any,
) -> dict[str, Any]:
    report = {
        "version": REPORT_VERSION,
        "family": family,
        "timestamp": timestamp,
        total_key: len(items),
        "truncated": len(items) > max_entries,
        "items": items[:max_entries],
        "summary": summary,
    }
    report.update(extra)
    return report


def build_duplicate_report(
    result: DuplicateResult, timestamp: str, max_entries: int = MAX_REPORT_ENTRIES
) -> dict[str, Any]:
    items = [group.to_dict() for group in result.groups]
    members = [member for group in result.groups for member in group.members]
    report = _envelope(
        "duplicates",
        "totalDuplicateGroups",
        items,
        timestamp,
        max_entries,
        _summary(
            by_category=(group.category for group in result.groups),
            by_adapter=(m.producer_id or "unknown" for m in members),
            by_usage=("stale" if m.is_stale else "fresh" for m in members),
        ),
        totalDuplicateRecords=result.total_duplicate_records,
        comparisons=result.comparisons,
        comparisonLimitReached=result.comparison_limit_reached,
        coverage=result.coverage,
    )
    if result.comparison_limit_reached:
        report["note"] = (
            f"Naming comparison stopped at the comparison cap after {result.seeds_processed}/"
            f"{result.seeds_total} seed records; naming duplicates may be incomplete"
        )
    return report


def build_orphan_report(result: OrphanResult, timestamp: str, max_entries: int = MAX_REPORT_ENTRIES) -> dict[str, Any]:
    items = [orphan.to_dict() for orphan in result.orphans]
    return _envelope(
        "orphans",
        "totalOrphaned",
        items,
        timestamp,
        max_entries,
        _summary(
            by_category=(o.category.value for o in result.orphans),
            by_adapter=(o.producer_id for o in result.orphans),
            by_usage=(o.usage.value for o in result.orphans),
        ),
        cleanupSuggestions=cleanup_suggestions(result.orphans),
    )


def build_stale_report(result: StaleResult, timestamp: str, max_entries: int = MAX_REPORT_ENTRIES) -> dict[str, Any]:
    items = [stale.to_dict() for stale in result.stale]
    return _envelope(
        "stale",
        "totalStale",
        items,
        timestamp,
        max_entries,
        _summary(
            by_category=(s.suggestion.value for s in result.stale),
            by_adapter=(s.producer_id for s in result.stale),
        ),
        thresholdHours=result.threshold_hours,
        cleanupSuggestions=stale_cleanup_suggestions(result.stale),
    )


def build_performance_report(
    result: PerformanceResult, timestamp: str, max_entries: int = MAX_REPORT_ENTRIES
) -> dict[str, Any]:
    issues = result.issues
    return _envelope(
        "performance",
        "totalIssues",
        [issue.to_dict() for issue in issues],
        timestamp,
        max_entries,
        _summary(
            by_category=(i.issue_type.value for i in issues),
            by_adapter=(i.producer_id or "unknown" for i in issues),
        ),
        counts=result.counts(),
    )


_FAMILY_BUILDERS = {
    "duplicates": build_duplicate_report,
    "orphans": build_orphan_report,
    "stale": build_stale_report,
    "performance": build_performance_report,
}


@dataclass
class ScanReport:
    """Complete output of one scan; supersedes any previous report.

    Attributes:
        scan_id: Identifier used in log context
        started_at: Scan start in epoch seconds (the reference "now")
        duration: Wall-clock seconds from enumeration to report
        records_scanned: Records in the joined snapshot
        records_skipped: Records skipped while building the snapshot
        phase_timings: Seconds per orchestrator phase
        duplicates: Duplicate result, or None if the detector was disabled
        orphans: Orphan result, or None if disabled
        stale: Stale result, or None if disabled
        performance: Performance result, or None if disabled
        max_entries: Display cap per family
    """

    scan_id: str
    started_at: float
    duration: float = 0.0
    records_scanned: int = 0
    records_skipped: int = 0
    phase_timings: dict[str, float] = field(default_factory=dict)
    duplicates: DuplicateResult | None = None
    orphans: OrphanResult | None = None
    stale: StaleResult | None = None
    performance: PerformanceResult | None = None
    max_entries: int = MAX_REPORT_ENTRIES

    @property
    def timestamp(self) -> str:
        return format_timestamp(self.started_at) or ""

    def family_reports(self) -> dict[str, dict[str, Any]]:
        """Serialized report per enabled detector family, in report order."""
        reports: dict[str, dict[str, Any]] = {}
        for family in REPORT_FAMILIES:
            result = getattr(self, family)
            if result is not None:
                reports[family] = _FAMILY_BUILDERS[family](result, self.timestamp, self.max_entries)
        return reports

    @property
    def finding_count(self) -> int:
        total = 0
        if self.duplicates is not None:
            total += len(self.duplicates.groups)
        if self.orphans is not None:
            total += len(self.orphans.orphans)
        if self.stale is not None:
            total += len(self.stale.stale)
        if self.performance is not None:
            total += len(self.performance.issues)
        return total

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": REPORT_VERSION,
            "scanId": self.scan_id,
            "timestamp": self.timestamp,
            "duration": round(self.duration, 3),
            "recordsScanned": self.records_scanned,
            "recordsSkipped": self.records_skipped,
            "phaseTimings": dict(self.phase_timings),
            "totalFindings": self.finding_count,
            "families": self.family_reports(),
        }

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False, default=str)


def scalar_summary(family: str, report: dict[str, Any], scanned_at: float) -> dict[str, Any]:
    """Scalar counters published next to a family report."""
    base = f"{SCALAR_PREFIX}.{family}"
    total = next((v for k, v in report.items() if k.startswith("total") and isinstance(v, int)), 0)
    scalars: dict[str, Any] = {f"{base}.count": total, f"{base}.lastScan": scanned_at}

    if family == "orphans":
        scalars[f"{base}.hasOrphans"] = total > 0
        scalars[f"{base}.byCategory"] = json.dumps(report["summary"]["byCategory"])
    elif family == "stale":
        scalars[f"{base}.hasStale"] = total > 0
        scalars[f"{base}.byAdapter"] = json.dumps(report["summary"]["byAdapter"])
    elif family == "performance":
        for name, value in report.get("counts", {}).items():
            scalars[f"{base}.{name}"] = value
    return scalars


def findings_to_dataframe(family: str, report: dict[str, Any]) -> pd.DataFrame:
    """Flatten a family report's items into one row per record (or issue)."""
    rows: list[dict[str, Any]] = []
    if family == "duplicates":
        for index, group in enumerate(report["items"], start=1):
            for member in group["records"]:
                rows.append(
                    {
                        "group": index,
                        "category": group["category"],
                        "confidence": group["confidence"],
                        "pattern": group.get("pattern"),
                        "value": json.dumps(group.get("value", member.get("value"))),
                        **{k: v for k, v in member.items() if k != "value"},
                    }
                )
    else:
        for item in report["items"]:
            rows.append({k: ", ".join(v) if isinstance(v, list) else v for k, v in item.items()})
    return pd.DataFrame(rows)
