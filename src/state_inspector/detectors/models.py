"""
Finding data models.

Every detector returns immutable findings. ``to_dict()`` produces the
camelCase item shape published in reports.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, ClassVar

from state_inspector.records.models import RecordValue


class Confidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"


class OrphanCategory(Enum):
    """Orphan categories in precedence order."""

    ADAPTER_REMOVED = "adapter_removed"
    ADAPTER_DISABLED = "adapter_disabled"
    UNREFERENCED_UNUSED = "unreferenced_unused"
    # Computed but never reported
    UNREFERENCED_BUT_ACTIVE = "unreferenced_but_active"


class UsageClass(Enum):
    NEVER_USED = "never_used"
    READ_ONLY = "read_only"
    WRITE_ONLY = "write_only"
    ACTIVE = "active"
    UNKNOWN = "unknown"


class CleanupSuggestion(Enum):
    SAFE_TO_DELETE = "safe_to_delete"
    REVIEW_REQUIRED = "review_required"
    KEEP_FOR_NOW = "keep_for_now"


class IssueType(Enum):
    HIGH_FREQUENCY = "high_frequency"
    ACK_ISSUE = "ack_issue"
    LARGE_TREE = "large_tree"
    HISTORY_WASTE = "history_waste"


def format_timestamp(ts: float | None) -> str | None:
    """Epoch seconds to ISO-8601 UTC, or None."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, UTC).isoformat()


@dataclass(frozen=True)
class DuplicateMember:
    """One record inside a duplicate group."""

    key: str
    display_name: str
    producer_id: str | None
    last_change: float | None
    is_stale: bool
    value: RecordValue | None = None

    def to_dict(self, include_value: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.key,
            "name": self.display_name,
            "adapter": self.producer_id,
            "lastChanged": format_timestamp(self.last_change),
            "isStale": self.is_stale,
        }
        if include_value and self.value is not None:
            data["value"] = self.value.to_json()
        return data


@dataclass(frozen=True)
class ValueDuplicateGroup:
    """Records sharing an identical (value, type, unit) triple."""

    category: ClassVar[str] = "value"

    value: RecordValue
    type_tag: str | None
    unit: str | None
    members: tuple[DuplicateMember, ...]
    confidence: Confidence
    reason: str = "Identical value across multiple records"

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(m.key for m in self.members)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "reason": self.reason,
            "confidence": self.confidence.value,
            "value": self.value.to_json(),
            "dataType": self.type_tag,
            "unit": self.unit,
            "records": [m.to_dict() for m in self.members],
        }


@dataclass(frozen=True)
class NamingDuplicateGroup:
    """Records whose keys, names and descriptors are near-identical."""

    category: ClassVar[str] = "naming"

    pattern: str
    members: tuple[DuplicateMember, ...]
    confidence: Confidence = Confidence.MEDIUM
    reason: str = "Similar naming pattern detected"

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(m.key for m in self.members)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "reason": self.reason,
            "confidence": self.confidence.value,
            "pattern": self.pattern,
            "records": [m.to_dict(include_value=True) for m in self.members],
        }


@dataclass(frozen=True)
class OrphanRecord:
    """A record whose owning producer is gone, disabled, or who nobody uses."""

    key: str
    producer_id: str
    category: OrphanCategory
    reason: str
    usage: UsageClass
    suggestion: CleanupSuggestion
    confidence: Confidence
    references: tuple[str, ...] = ()
    last_change: float | None = None
    last_access: float | None = None
    type_tag: str | None = None
    role: str | None = None

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.key,)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.key,
            "adapter": self.producer_id,
            "category": self.category.value,
            "reason": self.reason,
            "confidence": self.confidence.value,
            "usage": self.usage.value,
            "suggestion": self.suggestion.value,
            "references": list(self.references),
            "lastChange": format_timestamp(self.last_change),
            "lastAccess": format_timestamp(self.last_access),
            "type": self.type_tag or "unknown",
            "role": self.role or "unknown",
        }


@dataclass(frozen=True)
class StaleRecord:
    """A writable record of an enabled producer that has stopped updating."""

    key: str
    producer_id: str
    last_update: float
    age_hours: float
    value: RecordValue
    suggestion: CleanupSuggestion
    confidence: Confidence
    reason: str

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.key,)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.key,
            "adapter": self.producer_id,
            "lastUpdate": format_timestamp(self.last_update),
            "ageHours": round(self.age_hours),
            "value": self.value.to_json(),
            "reason": self.reason,
            "confidence": self.confidence.value,
            "suggestion": self.suggestion.value,
        }


@dataclass(frozen=True)
class PerformanceIssue:
    """A record or producer tree causing load on the store."""

    issue_type: IssueType
    subject: str
    producer_id: str | None
    metric: float
    threshold: float
    reason: str
    confidence: Confidence = Confidence.MEDIUM
    samples: int = 0

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.subject,)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.subject,
            "adapter": self.producer_id,
            "category": self.issue_type.value,
            "reason": self.reason,
            "confidence": self.confidence.value,
            "metric": self.metric,
            "threshold": self.threshold,
            "samples": self.samples,
        }


@dataclass(frozen=True)
class WatchedStaleness:
    """Status of one explicitly watched record at check time."""

    key: str
    interval_seconds: float
    grace_period_seconds: float
    last_update: float | None
    is_stale: bool
    seconds_since_update: float | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.key,
            "intervalSeconds": self.interval_seconds,
            "gracePeriodSeconds": self.grace_period_seconds,
            "lastUpdate": format_timestamp(self.last_update),
            "secondsSinceUpdate": (
                round(self.seconds_since_update) if self.seconds_since_update is not None else None
            ),
            "isStale": self.is_stale,
            "reason": self.reason,
        }


DuplicateFinding = ValueDuplicateGroup | NamingDuplicateGroup
