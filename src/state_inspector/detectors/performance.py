"""
Performance analysis.

Snapshot-based checks (large producer trees, history recording on records
that never change) run during a scan. Frequency and acknowledgement checks
read a :class:`ChangeHistoryTable` that is filled from change notifications
between scans.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, OrderedDict, deque
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from state_inspector.core.config import PerformanceConfig
from state_inspector.core.constants import (
    MAX_ACK_ISSUE_FINDINGS,
    MAX_HIGH_FREQUENCY_FINDINGS,
    MAX_HISTORY_WASTE_FINDINGS,
)
from state_inspector.detectors.context import DetectionContext
from state_inspector.detectors.models import Confidence, IssueType, PerformanceIssue
from state_inspector.matching.patterns import IgnorePatternMatcher
from state_inspector.records.models import Record, parse_producer_id

_SECONDS_PER_DAY = 86_400


@dataclass
class _ChangeEntry:
    timestamps: deque
    writes: int = 0
    unacknowledged: int = 0


@dataclass(frozen=True)
class ChangeStats:
    """Read-only view of one tracked record."""

    key: str
    timestamps: tuple[float, ...]
    writes: int
    unacknowledged: int


class ChangeHistoryTable:
    """Bounded per-record change history.

    Holds at most ``max_records`` keys; the least recently inserted key is
    evicted first. Each key keeps its last ``max_samples`` change times.

    Args:
        max_records: Maximum tracked keys (default: 1000)
        max_samples: Timestamps kept per key (default: 100)
        clock: Callable returning epoch seconds, used when a change has no ``ts``
    """

    def __init__(self, max_records: int = 1000, max_samples: int = 100, clock: Callable[[], float] = time.time):
        self.max_records = max(1, max_records)
        self.max_samples = max(2, max_samples)
        self.clock = clock
        self.evictions = 0
        self._entries: OrderedDict[str, _ChangeEntry] = OrderedDict()
        self._lock = threading.Lock()

    def record_change(self, key: str, ts: float | None = None, ack: bool | None = None) -> None:
        at = ts if ts is not None else self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                if len(self._entries) >= self.max_records:
                    self._entries.popitem(last=False)
                    self.evictions += 1
                entry = _ChangeEntry(timestamps=deque(maxlen=self.max_samples))
                self._entries[key] = entry
            entry.timestamps.append(at)
            entry.writes += 1
            if ack is False:
                entry.unacknowledged += 1

    def on_change(self, key: str, state: Mapping[str, Any] | None) -> None:
        """Change-notification handler."""
        if state is None:
            return
        ts = state.get("ts")
        ack = state.get("ack")
        self.record_change(
            key,
            float(ts) if isinstance(ts, (int, float)) and not isinstance(ts, bool) else None,
            ack if isinstance(ack, bool) else None,
        )

    def snapshot(self) -> list[ChangeStats]:
        with self._lock:
            return [
                ChangeStats(key, tuple(entry.timestamps), entry.writes, entry.unacknowledged)
                for key, entry in self._entries.items()
            ]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass
class PerformanceResult:
    """Performance issues grouped by type."""

    high_frequency: list[PerformanceIssue] = field(default_factory=list)
    ack_issues: list[PerformanceIssue] = field(default_factory=list)
    large_trees: list[PerformanceIssue] = field(default_factory=list)
    history_waste: list[PerformanceIssue] = field(default_factory=list)

    @property
    def issues(self) -> list[PerformanceIssue]:
        return [*self.large_trees, *self.high_frequency, *self.ack_issues, *self.history_waste]

    def counts(self) -> dict[str, int]:
        return {
            "highFrequencyCount": len(self.high_frequency),
            "ackIssuesCount": len(self.ack_issues),
            "largeTreeCount": len(self.large_trees),
            "historyWasteCount": len(self.history_waste),
        }


class PerformanceAnalyzer:
    """Find records and producer trees that put load on the store.

    Args:
        config: PerformanceConfig with thresholds
        ignore: Ignore-pattern matcher
        logger: Logger instance
    """

    def __init__(
        self,
        config: PerformanceConfig | None = None,
        ignore: IgnorePatternMatcher | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.config = config or PerformanceConfig()
        self.ignore = ignore or IgnorePatternMatcher()
        self.logger = logger or logging.getLogger(__name__)

    def analyze(
        self,
        records: Sequence[Record],
        history: ChangeHistoryTable | None = None,
        ctx: DetectionContext | None = None,
    ) -> PerformanceResult:
        ctx = ctx or DetectionContext()
        eligible = []
        for record in records:
            ctx.record_checkpoint.tick()
            if not self.ignore.should_ignore(record.key):
                eligible.append(record)

        result = PerformanceResult(
            large_trees=self.find_large_trees(eligible),
            history_waste=self.find_history_waste(eligible, ctx.now),
        )
        if history is not None:
            stats = [s for s in history.snapshot() if not self.ignore.should_ignore(s.key)]
            result.high_frequency = self.find_high_frequency(stats)
            result.ack_issues = self.find_ack_issues(stats)

        self.logger.info(
            f"Performance analysis complete: {len(result.high_frequency)} high-frequency, "
            f"{len(result.large_trees)} large trees, {len(result.history_waste)} history waste, "
            f"{len(result.ack_issues)} ack issues"
        )
        return result

    def find_large_trees(self, records: Sequence[Record]) -> list[PerformanceIssue]:
        counts = Counter(r.producer_id or "unknown" for r in records)
        threshold = self.config.large_tree_threshold
        issues = [
            PerformanceIssue(
                issue_type=IssueType.LARGE_TREE,
                subject=producer_id,
                producer_id=producer_id if producer_id != "unknown" else None,
                metric=count,
                threshold=threshold,
                reason=f"{count} records under {producer_id} may indicate a bloated setup",
                samples=count,
            )
            for producer_id, count in counts.items()
            if count > threshold
        ]
        return sorted(issues, key=lambda i: i.metric, reverse=True)

    def find_history_waste(self, records: Sequence[Record], now: float) -> list[PerformanceIssue]:
        threshold_days = self.config.history_waste_days
        issues = []
        for record in records:
            if not record.has_history:
                continue
            last = record.last_change if record.last_change is not None else record.last_update
            age_days = (now - last) / _SECONDS_PER_DAY if last is not None else float("inf")
            if age_days <= threshold_days:
                continue
            issues.append(
                PerformanceIssue(
                    issue_type=IssueType.HISTORY_WASTE,
                    subject=record.key,
                    producer_id=record.producer_id,
                    metric=round(age_days) if last is not None else -1,
                    threshold=threshold_days,
                    reason=(
                        f"Recorded by {', '.join(record.history_targets)} but unchanged for "
                        + (f"{round(age_days)} days" if last is not None else "ever")
                    ),
                )
            )
        issues.sort(key=lambda i: float("inf") if i.metric < 0 else i.metric, reverse=True)
        return issues[:MAX_HISTORY_WASTE_FINDINGS]

    def find_high_frequency(self, stats: Sequence[ChangeStats]) -> list[PerformanceIssue]:
        threshold_ms = self.config.update_frequency_threshold_ms
        issues = []
        for stat in stats:
            if len(stat.timestamps) < 2:
                continue
            # Notifications may arrive out of order
            times = sorted(stat.timestamps)
            intervals = [(b - a) * 1000 for a, b in zip(times, times[1:], strict=False)]
            min_interval = min(intervals)
            if min_interval >= threshold_ms:
                continue
            avg_interval = sum(intervals) / len(intervals)
            issues.append(
                PerformanceIssue(
                    issue_type=IssueType.HIGH_FREQUENCY,
                    subject=stat.key,
                    producer_id=parse_producer_id(stat.key),
                    metric=round(min_interval),
                    threshold=threshold_ms,
                    reason=(
                        f"Very frequent updates (min {round(min_interval)}ms, avg {round(avg_interval)}ms); "
                        "consider rate limiting or debouncing"
                    ),
                    samples=len(stat.timestamps),
                )
            )
        issues.sort(key=lambda i: i.metric)
        return issues[:MAX_HIGH_FREQUENCY_FINDINGS]

    def find_ack_issues(self, stats: Sequence[ChangeStats]) -> list[PerformanceIssue]:
        min_writes = self.config.min_ack_writes
        ratio_threshold = self.config.ack_false_ratio
        issues = []
        for stat in stats:
            if stat.writes < min_writes:
                continue
            ratio = stat.unacknowledged / stat.writes
            if ratio <= ratio_threshold:
                continue
            issues.append(
                PerformanceIssue(
                    issue_type=IssueType.ACK_ISSUE,
                    subject=stat.key,
                    producer_id=parse_producer_id(stat.key),
                    metric=round(ratio, 3),
                    threshold=ratio_threshold,
                    reason=(
                        f"{stat.unacknowledged}/{stat.writes} writes unacknowledged; "
                        "may indicate command confirmation issues"
                    ),
                    confidence=Confidence.HIGH if ratio == 1.0 else Confidence.MEDIUM,
                    samples=stat.writes,
                )
            )
        issues.sort(key=lambda i: (i.metric, i.samples), reverse=True)
        return issues[:MAX_ACK_ISSUE_FINDINGS]
