"""
Build immutable record snapshots from raw store enumerations.

The store hands back two independent mappings (current values and metadata
descriptors). Joining them is per-item work: a record without a descriptor or
with a malformed payload is logged and skipped, never fatal.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from tqdm import tqdm

from state_inspector.core.constants import HISTORY_CONSUMER_MARKERS, PRODUCER_ID_HOST_PREFIX
from state_inspector.core.cooperative import Checkpoint
from state_inspector.records.models import Producer, Record, RecordValue

logger = logging.getLogger(__name__)


@dataclass
class RecordSnapshot:
    """Joined records plus bookkeeping about what was skipped."""

    records: list[Record] = field(default_factory=list)
    missing_descriptor: int = 0
    malformed: int = 0

    @property
    def by_key(self) -> dict[str, Record]:
        return {r.key: r for r in self.records}

    @property
    def skipped(self) -> int:
        return self.missing_descriptor + self.malformed


def _as_timestamp(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        ts = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(ts) or ts <= 0:
        return None
    return ts


def _display_name(name: Any) -> str:
    """Descriptor names may be plain strings or per-language mappings."""
    if name is None:
        return ""
    if isinstance(name, Mapping):
        if "en" in name and name["en"]:
            return str(name["en"])
        for value in name.values():
            if value:
                return str(value)
        return ""
    return str(name)


def _history_targets(custom: Any) -> tuple[str, ...]:
    if not isinstance(custom, Mapping):
        return ()
    targets = []
    for consumer, settings in custom.items():
        if not any(marker in str(consumer).lower() for marker in HISTORY_CONSUMER_MARKERS):
            continue
        if isinstance(settings, Mapping) and settings.get("enabled") is False:
            continue
        targets.append(str(consumer))
    return tuple(sorted(targets))


def _common(descriptor: Mapping[str, Any]) -> Mapping[str, Any]:
    common = descriptor.get("common")
    return common if isinstance(common, Mapping) else descriptor


def _scalar_attr(common: Mapping[str, Any], name: str) -> str | None:
    value = common.get(name)
    if value is None or value == "":
        return None
    if isinstance(value, (Mapping, list, tuple, set)):
        raise TypeError(f"common.{name} must be a scalar, got {type(value).__name__}")
    return str(value)


def build_record(key: str, state: Mapping[str, Any], descriptor: Mapping[str, Any]) -> Record:
    """Join one raw state and its descriptor into a :class:`Record`.

    Raises:
        TypeError: If either payload is not a mapping, or type, unit or role is not a scalar
    """
    if not isinstance(state, Mapping) or not isinstance(descriptor, Mapping):
        raise TypeError(f"state and descriptor for '{key}' must be mappings")

    common = _common(descriptor)
    ack = state.get("ack")
    return Record(
        key=key,
        value=RecordValue.from_raw(state.get("val")),
        last_change=_as_timestamp(state.get("lc")),
        last_update=_as_timestamp(state.get("ts")),
        type_tag=_scalar_attr(common, "type"),
        unit=_scalar_attr(common, "unit"),
        display_name=_display_name(common.get("name")),
        role=_scalar_attr(common, "role"),
        writable=common.get("write") is True,
        readable=common.get("read") is True,
        ack=ack if isinstance(ack, bool) else None,
        history_targets=_history_targets(common.get("custom")),
    )


def build_snapshot(
    states: Mapping[str, Any],
    descriptors: Mapping[str, Any],
    checkpoint: Checkpoint | None = None,
    show_progress: bool = False,
    log: logging.Logger | logging.LoggerAdapter | None = None,
) -> RecordSnapshot:
    """Join raw states with their descriptors.

    Args:
        states: key -> raw state (``val``, ``ts``, ``lc``, ``ack``)
        descriptors: key -> metadata descriptor
        checkpoint: Cooperative checkpoint ticked once per record
        show_progress: Show a tqdm progress bar
        log: Logger for per-item skip messages

    Returns:
        RecordSnapshot with records in store enumeration order
    """
    log = log or logger
    snapshot = RecordSnapshot()

    for key, state in tqdm(
        states.items(), total=len(states), desc="Indexing records", unit="rec", disable=not show_progress
    ):
        if checkpoint is not None:
            checkpoint.tick()
        if state is None:
            snapshot.malformed += 1
            continue

        descriptor = descriptors.get(key)
        if descriptor is None:
            snapshot.missing_descriptor += 1
            log.debug(f"Skipping {key}: no metadata descriptor")
            continue

        if isinstance(descriptor, Mapping) and descriptor.get("type") not in (None, "state"):
            continue

        try:
            snapshot.records.append(build_record(key, state, descriptor))
        except (TypeError, ValueError, AttributeError) as e:
            snapshot.malformed += 1
            log.warning(f"Skipping malformed record {key}: {e}")

    if snapshot.skipped:
        log.info(
            f"Indexed {len(snapshot.records)} records "
            f"({snapshot.missing_descriptor} without descriptor, {snapshot.malformed} malformed)"
        )
    return snapshot


def build_producer_index(
    raw_producers: Mapping[str, Any], log: logging.Logger | logging.LoggerAdapter | None = None
) -> dict[str, Producer]:
    """Normalize a producer listing to ``producer_id -> Producer``.

    Accepts bare ids (``zigbee.0``) and host-qualified ids
    (``system.adapter.zigbee.0``); enabled state is read from ``enabled`` or
    ``common.enabled``.
    """
    log = log or logger
    producers: dict[str, Producer] = {}
    for raw_id, payload in raw_producers.items():
        producer_id = raw_id[len(PRODUCER_ID_HOST_PREFIX) :] if raw_id.startswith(PRODUCER_ID_HOST_PREFIX) else raw_id
        if not producer_id:
            continue
        if isinstance(payload, Producer):
            producers[producer_id] = Producer(producer_id, payload.enabled)
            continue
        if isinstance(payload, bool):
            enabled = payload
        elif isinstance(payload, Mapping):
            enabled = payload.get("enabled", _common(payload).get("enabled"))
        else:
            log.warning(f"Ignoring producer {raw_id}: unexpected payload {type(payload).__name__}")
            continue
        producers[producer_id] = Producer(producer_id, enabled is True)
    return producers
