"""Scan-driven stale record detection."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from tqdm import tqdm

from state_inspector.core.config import StaleConfig
from state_inspector.core.constants import STALE_SAFE_TO_DELETE_MULTIPLIER
from state_inspector.detectors.context import DetectionContext
from state_inspector.detectors.models import CleanupSuggestion, Confidence, StaleRecord
from state_inspector.matching.patterns import IgnorePatternMatcher
from state_inspector.records.models import Producer, Record

_SECONDS_PER_HOUR = 3600


@dataclass
class StaleResult:
    """Outcome of a stale scan, oldest record first."""

    stale: list[StaleRecord] = field(default_factory=list)
    threshold_hours: float = 0.0
    skipped_read_only: int = 0
    skipped_inactive_producer: int = 0


def stale_cleanup_suggestions(findings: Iterable[StaleRecord]) -> dict[str, list[str]]:
    """Group stale keys by cleanup suggestion."""
    suggestions: dict[str, list[str]] = {
        CleanupSuggestion.SAFE_TO_DELETE.value: [],
        CleanupSuggestion.REVIEW_REQUIRED.value: [],
    }
    for finding in findings:
        suggestions[finding.suggestion.value].append(finding.key)
    return suggestions


class StaleDetector:
    """Flag writable records of enabled producers that stopped updating.

    A record is reported only when all of these hold: it is writable, it is
    not purely read-only, its producer exists and is enabled, its last update
    is older than the threshold, and it is not ignored.

    Args:
        config: StaleConfig with the age threshold
        ignore: Ignore-pattern matcher
        logger: Logger instance
    """

    def __init__(
        self,
        config: StaleConfig | None = None,
        ignore: IgnorePatternMatcher | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.config = config or StaleConfig()
        self.ignore = ignore or IgnorePatternMatcher()
        self.logger = logger or logging.getLogger(__name__)

    def detect(
        self,
        records: Sequence[Record],
        producers: Mapping[str, Producer],
        ctx: DetectionContext | None = None,
    ) -> StaleResult:
        ctx = ctx or DetectionContext()
        threshold_hours = self.config.threshold_hours
        threshold_seconds = threshold_hours * _SECONDS_PER_HOUR
        result = StaleResult(threshold_hours=threshold_hours)

        for record in tqdm(records, desc="Stale check", unit="rec", disable=not ctx.show_progress):
            ctx.record_checkpoint.tick()
            if self.ignore.should_ignore(record.key):
                continue
            if record.last_update is None:
                continue

            is_read_only = record.readable and not record.writable
            if not record.writable or is_read_only:
                result.skipped_read_only += 1
                continue

            producer = producers.get(record.producer_id) if record.producer_id else None
            if producer is None or not producer.enabled:
                result.skipped_inactive_producer += 1
                continue

            age = ctx.now - record.last_update
            if age <= threshold_seconds:
                continue

            age_hours = age / _SECONDS_PER_HOUR
            safe = age_hours > STALE_SAFE_TO_DELETE_MULTIPLIER * threshold_hours
            result.stale.append(
                StaleRecord(
                    key=record.key,
                    producer_id=producer.producer_id,
                    last_update=record.last_update,
                    age_hours=age_hours,
                    value=record.value,
                    suggestion=CleanupSuggestion.SAFE_TO_DELETE if safe else CleanupSuggestion.REVIEW_REQUIRED,
                    confidence=Confidence.HIGH if safe else Confidence.MEDIUM,
                    reason=f"No update for {round(age_hours)}h (threshold {threshold_hours:g}h)",
                )
            )

        result.stale.sort(key=lambda s: s.age_hours, reverse=True)

        self.logger.debug(
            f"Skipped {result.skipped_read_only} read-only records, "
            f"{result.skipped_inactive_producer} records without an enabled producer"
        )
        self.logger.info(f"Stale inspection complete: {len(result.stale)} stale record(s) found")
        return result
