"""
Orphan record detection.

Classification precedence for a record owned by producer ``P``:

1. ``P`` absent from the producer set -> ``adapter_removed``
2. ``P`` present but disabled -> ``adapter_disabled``
3. unreferenced and never used within the usage window -> ``unreferenced_unused``
4. unreferenced but recently active -> ``unreferenced_but_active`` (not reported)

Records whose key carries no ``name.instance`` prefix are skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from tqdm import tqdm

from state_inspector.core.config import OrphanConfig
from state_inspector.detectors.context import DetectionContext
from state_inspector.detectors.models import (
    CleanupSuggestion,
    Confidence,
    OrphanCategory,
    OrphanRecord,
    UsageClass,
)
from state_inspector.matching.patterns import IgnorePatternMatcher
from state_inspector.records.models import Producer, Record
from state_inspector.references.graph import ReferenceGraph

_SECONDS_PER_DAY = 86_400


@dataclass
class OrphanResult:
    """Outcome of an orphan scan."""

    orphans: list[OrphanRecord] = field(default_factory=list)
    unreferenced_but_active: int = 0
    checked: int = 0


def classify_usage(record: Record, now: float, unused_after_days: int) -> UsageClass:
    """Derive a usage class from the record's timestamps and access flags.

    No timestamps at all is ``unknown``; no change or update inside the window
    is ``never_used``. Recently touched records are ``read_only`` or
    ``write_only`` when their descriptor allows only one direction, else
    ``active``.
    """
    timestamps = [ts for ts in (record.last_update, record.last_change) if ts is not None]
    if not timestamps:
        return UsageClass.UNKNOWN

    window = unused_after_days * _SECONDS_PER_DAY
    if now - max(timestamps) > window:
        return UsageClass.NEVER_USED

    if record.readable and not record.writable:
        return UsageClass.READ_ONLY
    if record.writable and not record.readable:
        return UsageClass.WRITE_ONLY
    return UsageClass.ACTIVE


def suggest_cleanup(category: OrphanCategory, usage: UsageClass) -> CleanupSuggestion:
    if category is OrphanCategory.ADAPTER_REMOVED and usage is UsageClass.NEVER_USED:
        return CleanupSuggestion.SAFE_TO_DELETE
    if category is OrphanCategory.ADAPTER_DISABLED:
        return CleanupSuggestion.KEEP_FOR_NOW
    return CleanupSuggestion.REVIEW_REQUIRED


def cleanup_suggestions(findings: Iterable[OrphanRecord]) -> dict[str, list[str]]:
    """Group orphan keys by cleanup suggestion."""
    suggestions: dict[str, list[str]] = {s.value: [] for s in CleanupSuggestion}
    for orphan in findings:
        suggestions[orphan.suggestion.value].append(orphan.key)
    return suggestions


class OrphanDetector:
    """Classify records whose producer or consumers are missing.

    Args:
        config: OrphanConfig with the usage window
        ignore: Ignore-pattern matcher
        logger: Logger instance
    """

    def __init__(
        self,
        config: OrphanConfig | None = None,
        ignore: IgnorePatternMatcher | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.config = config or OrphanConfig()
        self.ignore = ignore or IgnorePatternMatcher()
        self.logger = logger or logging.getLogger(__name__)

    def classify(
        self,
        record: Record,
        producers: Mapping[str, Producer],
        graph: ReferenceGraph,
        now: float,
    ) -> tuple[OrphanCategory, str] | None:
        """Return ``(category, reason)`` for an orphan, or None if the record is owned and referenced."""
        producer_id = record.producer_id
        if producer_id is None:
            return None

        producer = producers.get(producer_id)
        if producer is None:
            return OrphanCategory.ADAPTER_REMOVED, f"Adapter {producer_id} no longer installed"
        if not producer.enabled:
            return OrphanCategory.ADAPTER_DISABLED, f"Adapter {producer_id} is disabled"
        if graph.is_referenced(record.key):
            return None

        usage = classify_usage(record, now, self.config.unused_after_days)
        if usage is UsageClass.NEVER_USED:
            return (
                OrphanCategory.UNREFERENCED_UNUSED,
                f"Not referenced by any script, dashboard or alias and unused for {self.config.unused_after_days} days",
            )
        return OrphanCategory.UNREFERENCED_BUT_ACTIVE, "Not referenced but recently active"

    def detect(
        self,
        records: Sequence[Record],
        producers: Mapping[str, Producer],
        graph: ReferenceGraph,
        ctx: DetectionContext | None = None,
    ) -> OrphanResult:
        ctx = ctx or DetectionContext()
        result = OrphanResult()

        for record in tqdm(records, desc="Orphan check", unit="rec", disable=not ctx.show_progress):
            ctx.record_checkpoint.tick()
            if self.ignore.should_ignore(record.key):
                continue
            result.checked += 1

            classified = self.classify(record, producers, graph, ctx.now)
            if classified is None:
                continue
            category, reason = classified
            if category is OrphanCategory.UNREFERENCED_BUT_ACTIVE:
                result.unreferenced_but_active += 1
                continue

            usage = classify_usage(record, ctx.now, self.config.unused_after_days)
            result.orphans.append(
                OrphanRecord(
                    key=record.key,
                    producer_id=record.producer_id or "",
                    category=category,
                    reason=reason,
                    usage=usage,
                    suggestion=suggest_cleanup(category, usage),
                    confidence=Confidence.HIGH if category is OrphanCategory.ADAPTER_REMOVED else Confidence.MEDIUM,
                    references=tuple(graph.referrers(record.key)),
                    last_change=record.last_change,
                    last_access=record.last_update,
                    type_tag=record.type_tag,
                    role=record.role,
                )
            )

        self.logger.info(
            f"Orphan inspection complete: {len(result.orphans)} orphaned record(s) found "
            f"({result.unreferenced_but_active} unreferenced but active, not reported)"
        )
        return result
