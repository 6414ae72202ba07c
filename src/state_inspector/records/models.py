"""
Record data models.

Immutable snapshots of store records and producers, taken once per scan.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

_PRODUCER_PREFIX_RE = re.compile(r"^([^.]+\.\d+)\.")


class ValueKind(Enum):
    """Kinds of scalar value a record can carry."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    NULL = "null"


@dataclass(frozen=True)
class RecordValue:
    """Tagged scalar value.

    ``canonical()`` is the only basis for equality grouping: the kind is part
    of the canonical text, so ``"1"`` and ``1`` never group together while
    ``1`` and ``1.0`` do. Objects and arrays are carried as STRING with their
    sorted-key JSON text.
    """

    kind: ValueKind
    raw: Any = None

    @classmethod
    def from_raw(cls, raw: Any) -> RecordValue:
        if raw is None:
            return cls(ValueKind.NULL, None)
        if isinstance(raw, bool):
            return cls(ValueKind.BOOLEAN, raw)
        if isinstance(raw, (int, float)):
            if isinstance(raw, float) and math.isnan(raw):
                return cls(ValueKind.NULL, None)
            return cls(ValueKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        return cls(ValueKind.STRING, json.dumps(raw, sort_keys=True, default=str))

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def canonical(self) -> str:
        raw = self.raw
        if self.kind is ValueKind.NUMBER and isinstance(raw, float) and raw.is_integer():
            raw = int(raw)
        return f"{self.kind.value}:{json.dumps(raw, ensure_ascii=False)}"

    def to_json(self) -> Any:
        """Plain JSON-compatible value for reports."""
        return self.raw


@dataclass(frozen=True)
class Record:
    """Snapshot of one store record joined with its metadata descriptor.

    Attributes:
        key: Hierarchical dot-delimited identifier
        value: Current value
        last_change: Epoch seconds of the last value change (None if unknown)
        last_update: Epoch seconds of the last write, changed or not (None if unknown)
        type_tag: Declared value type from the descriptor
        unit: Declared unit
        display_name: Human-readable name ("" when absent)
        role: Semantic role tag
        writable: Descriptor declares the record writable
        readable: Descriptor declares the record readable
        ack: Whether the last write was acknowledged by its producer
        history_targets: Names of history consumers configured for the record
    """

    key: str
    value: RecordValue
    last_change: float | None = None
    last_update: float | None = None
    type_tag: str | None = None
    unit: str | None = None
    display_name: str = ""
    role: str | None = None
    writable: bool = False
    readable: bool = False
    ack: bool | None = None
    history_targets: tuple[str, ...] = ()

    @property
    def producer_id(self) -> str | None:
        return parse_producer_id(self.key)

    @property
    def has_history(self) -> bool:
        return bool(self.history_targets)


@dataclass(frozen=True)
class Producer:
    """A producer instance (owner of a key namespace prefix)."""

    producer_id: str
    enabled: bool


def parse_producer_id(key: str) -> str | None:
    """Return ``name.instance`` from a key like ``zigbee.0.lamp.on``, or None."""
    match = _PRODUCER_PREFIX_RE.match(key)
    return match.group(1) if match else None
