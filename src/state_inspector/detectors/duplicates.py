"""
Duplicate record detection.

Two passes over the record snapshot:

1. Value pass (O(n)): records sharing an identical (value, type, unit) triple.
2. Naming pass (O(n²), capped): records whose keys, display names and
   descriptors score above the similarity threshold.

Value groups win on merge; a naming group sharing any record with an already
accepted group is discarded whole, so no record appears in two groups.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

from tqdm import tqdm

from state_inspector.core.config import DuplicateConfig
from state_inspector.core.constants import (
    KEY_SIMILARITY_WEIGHT,
    NAME_SIMILARITY_WEIGHT,
    ROLE_MATCH_WEIGHT,
    TYPE_MATCH_WEIGHT,
)
from state_inspector.detectors.context import DetectionContext
from state_inspector.detectors.models import (
    Confidence,
    DuplicateFinding,
    DuplicateMember,
    NamingDuplicateGroup,
    ValueDuplicateGroup,
)
from state_inspector.matching.patterns import IgnorePatternMatcher
from state_inspector.matching.similarity import extract_common_pattern, similarity
from state_inspector.records.models import Record


@dataclass
class DuplicateResult:
    """Outcome of a duplicate scan.

    Attributes:
        groups: Merged findings, value groups first
        value_groups: Value groups found before merging
        naming_groups: Naming groups found before merging
        discarded_naming_groups: Naming groups dropped for overlapping an accepted group
        comparisons: Pairwise comparisons performed
        comparison_limit_reached: The naming pass stopped at the comparison cap
        seeds_processed: Seed records examined by the naming pass
        seeds_total: Eligible records for the naming pass
    """

    groups: list[DuplicateFinding] = field(default_factory=list)
    value_groups: int = 0
    naming_groups: int = 0
    discarded_naming_groups: int = 0
    comparisons: int = 0
    comparison_limit_reached: bool = False
    seeds_processed: int = 0
    seeds_total: int = 0

    @property
    def coverage(self) -> float:
        if self.seeds_total == 0:
            return 1.0
        return round(self.seeds_processed / self.seeds_total, 4)

    @property
    def total_duplicate_records(self) -> int:
        return sum(len(g.members) for g in self.groups)


def naming_score(a: Record, b: Record) -> float:
    """Weighted similarity of two records.

    Key similarity always counts; name similarity only when both records have
    a display name. Type and role equality always count. The score is
    normalised by the sum of the weights that applied.
    """
    score = similarity(a.key, b.key) * KEY_SIMILARITY_WEIGHT
    factors = KEY_SIMILARITY_WEIGHT

    if a.display_name and b.display_name:
        score += similarity(a.display_name, b.display_name) * NAME_SIMILARITY_WEIGHT
        factors += NAME_SIMILARITY_WEIGHT

    if a.type_tag == b.type_tag:
        score += TYPE_MATCH_WEIGHT
    factors += TYPE_MATCH_WEIGHT

    if a.role == b.role:
        score += ROLE_MATCH_WEIGHT
    factors += ROLE_MATCH_WEIGHT

    return score / factors


class DuplicateDetector:
    """Find value and naming duplicates in a record snapshot.

    Args:
        config: DuplicateConfig with thresholds and the comparison cap
        ignore: Ignore-pattern matcher applied before both passes
        logger: Logger instance
    """

    def __init__(
        self,
        config: DuplicateConfig | None = None,
        ignore: IgnorePatternMatcher | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.config = config or DuplicateConfig()
        self.ignore = ignore or IgnorePatternMatcher()
        self.logger = logger or logging.getLogger(__name__)

    def detect(self, records: Sequence[Record], ctx: DetectionContext | None = None) -> DuplicateResult:
        ctx = ctx or DetectionContext()
        eligible = [r for r in records if not self.ignore.should_ignore(r.key)]
        self.logger.debug(f"Duplicate scan over {len(eligible)} of {len(records)} records")

        result = DuplicateResult(seeds_total=len(eligible))
        value_groups = self.detect_value_duplicates(eligible, ctx)
        naming_groups = self.detect_naming_duplicates(eligible, ctx, result)

        result.value_groups = len(value_groups)
        result.naming_groups = len(naming_groups)
        result.groups = self.merge(value_groups, naming_groups, result)

        self.logger.info(
            f"Duplicate scan complete: {len(result.groups)} groups "
            f"({result.value_groups} value, {result.naming_groups - result.discarded_naming_groups} naming)"
        )
        return result

    def _member(self, record: Record, now: float, include_value: bool = False) -> DuplicateMember:
        is_stale = record.last_change is not None and (now - record.last_change) > self.config.stale_after_seconds
        return DuplicateMember(
            key=record.key,
            display_name=record.display_name,
            producer_id=record.producer_id,
            last_change=record.last_change,
            is_stale=is_stale,
            value=record.value if include_value else None,
        )

    def detect_value_duplicates(self, records: Sequence[Record], ctx: DetectionContext) -> list[ValueDuplicateGroup]:
        """Group records by (canonical value, type tag, unit); null values never group."""
        buckets: dict[tuple[str, str | None, str | None], list[Record]] = defaultdict(list)
        for record in records:
            ctx.record_checkpoint.tick()
            if record.value.is_null:
                continue
            buckets[(record.value.canonical(), record.type_tag, record.unit)].append(record)

        groups = []
        for members in buckets.values():
            if len(members) < 2:
                continue
            recent = sum(
                1
                for r in members
                if r.last_change is not None and (ctx.now - r.last_change) < self.config.recent_window_seconds
            )
            first = members[0]
            groups.append(
                ValueDuplicateGroup(
                    value=first.value,
                    type_tag=first.type_tag,
                    unit=first.unit,
                    members=tuple(self._member(r, ctx.now) for r in members),
                    confidence=Confidence.HIGH if recent > 1 else Confidence.MEDIUM,
                )
            )

        self.logger.debug(f"Found {len(groups)} value duplicate groups")
        return groups

    def detect_naming_duplicates(
        self,
        records: Sequence[Record],
        ctx: DetectionContext,
        result: DuplicateResult | None = None,
    ) -> list[NamingDuplicateGroup]:
        """Greedy single-pass clustering by naming score.

        A record absorbed into a cluster never seeds a new one but stays
        comparable as a target. The pass stops at ``max_comparisons``.
        """
        result = result if result is not None else DuplicateResult(seeds_total=len(records))
        threshold = self.config.similarity_threshold
        max_comparisons = self.config.max_comparisons
        absorbed: set[str] = set()
        groups: list[NamingDuplicateGroup] = []
        comparisons = 0
        total = len(records)

        self.logger.debug(f"Starting naming comparison for {total} records (max {max_comparisons} comparisons)")

        progress = tqdm(total=total, desc="Naming comparison", unit="rec", disable=not ctx.show_progress)
        try:
            for i, base in enumerate(records):
                progress.update(1)
                result.seeds_processed = i + 1
                if base.key in absorbed:
                    continue

                cluster = [base]
                limit_hit = False
                for j in range(i + 1, total):
                    if comparisons >= max_comparisons:
                        limit_hit = True
                        break
                    other = records[j]
                    comparisons += 1
                    ctx.comparison_checkpoint.tick()
                    if naming_score(base, other) >= threshold:
                        cluster.append(other)
                        absorbed.add(other.key)

                if len(cluster) > 1:
                    absorbed.add(base.key)
                    groups.append(
                        NamingDuplicateGroup(
                            pattern=extract_common_pattern([r.key for r in cluster]),
                            members=tuple(self._member(r, ctx.now, include_value=True) for r in cluster),
                        )
                    )

                if limit_hit or (comparisons >= max_comparisons and i + 2 < total):
                    result.comparison_limit_reached = True
                    self.logger.warning(
                        f"Reached maximum comparison limit ({max_comparisons}). "
                        f"Processed {i + 1}/{total} seed records; naming results are partial."
                    )
                    break
        finally:
            progress.close()

        result.comparisons = comparisons
        self.logger.debug(f"Naming comparison completed: {comparisons} comparisons, {len(groups)} groups found")
        return groups

    def merge(
        self,
        value_groups: Sequence[ValueDuplicateGroup],
        naming_groups: Sequence[NamingDuplicateGroup],
        result: DuplicateResult | None = None,
    ) -> list[DuplicateFinding]:
        """Value groups first; drop any naming group touching an accepted key."""
        merged: list[DuplicateFinding] = list(value_groups)
        seen: set[str] = {key for group in value_groups for key in group.keys}
        discarded = 0

        for group in naming_groups:
            if any(key in seen for key in group.keys):
                discarded += 1
                continue
            merged.append(group)
            seen.update(group.keys)

        if result is not None:
            result.discarded_naming_groups = discarded
        return merged
