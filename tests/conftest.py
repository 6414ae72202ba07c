"""Pytest configuration and fixtures for State Inspector tests"""

import logging
from unittest.mock import Mock

import pytest

from state_inspector.core.cooperative import Checkpoint
from state_inspector.detectors.context import DetectionContext
from state_inspector.records.models import Producer, Record, RecordValue
from state_inspector.store.memory import InMemoryStateStore

# Fixed reference time: 2026-01-15T12:00:00Z
NOW = 1_768_478_400.0
HOUR = 3600.0
DAY = 24 * HOUR


def _noop():
    pass


def make_record(
    key,
    value=1,
    *,
    last_change=None,
    last_update=None,
    type_tag="number",
    unit=None,
    display_name="",
    role="value",
    writable=True,
    readable=True,
    ack=None,
    history_targets=(),
):
    """Build a Record with sensible defaults; both timestamps default to NOW - 1h."""
    if last_update is None:
        last_update = NOW - HOUR
    if last_change is None:
        last_change = last_update
    return Record(
        key=key,
        value=RecordValue.from_raw(value),
        last_change=last_change,
        last_update=last_update,
        type_tag=type_tag,
        unit=unit,
        display_name=display_name,
        role=role,
        writable=writable,
        readable=readable,
        ack=ack,
        history_targets=tuple(history_targets),
    )


@pytest.fixture
def ctx():
    """Detection context pinned to NOW with no-op cooperative yields"""
    return DetectionContext(
        now=NOW,
        record_checkpoint=Checkpoint(100, yield_fn=_noop),
        comparison_checkpoint=Checkpoint(100, yield_fn=_noop),
    )


@pytest.fixture
def producers():
    """Producer set: zigbee.0 and mqtt.0 enabled, hue.0 disabled"""
    return {
        "zigbee.0": Producer("zigbee.0", True),
        "mqtt.0": Producer("mqtt.0", True),
        "hue.0": Producer("hue.0", False),
    }


@pytest.fixture
def mock_logger():
    """Mock logger that records calls"""
    return Mock(spec=logging.Logger)


def _state(val, ts, lc=None, ack=True):
    return {"val": val, "ts": ts, "lc": lc if lc is not None else ts, "ack": ack}


def _obj(type_="number", role="value", name="", unit=None, read=True, write=True, custom=None):
    common = {"type": type_, "role": role, "name": name, "read": read, "write": write}
    if unit is not None:
        common["unit"] = unit
    if custom is not None:
        common["custom"] = custom
    return {"type": "state", "common": common}


@pytest.fixture
def sample_store():
    """In-memory store covering every detector family.

    - living_room / kitchen temperatures share 21.5 °C (value duplicates)
    - oldadapter.0 is not installed (orphan, adapter_removed)
    - hue.0 is disabled (orphan, adapter_disabled)
    - zigbee.0.unused is unreferenced and 40 days old (orphan, unreferenced_unused)
    - zigbee.0.lamp.on is writable and 25h old (stale)
    """
    states = {
        "zigbee.0.living_room.temperature": _state(21.5, NOW - 60),
        "mqtt.0.kitchen.temperature": _state(21.5, NOW - 120),
        "oldadapter.0.switch": _state(True, NOW - 45 * DAY),
        "hue.0.light.level": _state(80, NOW - 2 * HOUR),
        "zigbee.0.unused": _state("idle", NOW - 40 * DAY),
        "zigbee.0.lamp.on": _state(False, NOW - 25 * HOUR),
        "system.adapter.zigbee.0.alive": _state(True, NOW - 10),
        "zigbee.0.no_descriptor": _state(5, NOW - 10),
    }
    objects = {
        "zigbee.0.living_room.temperature": _obj(unit="°C", name="Living room temperature", write=False),
        "mqtt.0.kitchen.temperature": _obj(unit="°C", name="Kitchen temperature", write=False),
        "oldadapter.0.switch": _obj(type_="boolean", role="switch"),
        "hue.0.light.level": _obj(role="level.dimmer"),
        "zigbee.0.unused": _obj(type_="string", role="text", write=False),
        "zigbee.0.lamp.on": _obj(type_="boolean", role="switch.light"),
        "system.adapter.zigbee.0.alive": _obj(type_="boolean", role="indicator"),
    }
    producers = {
        "system.adapter.zigbee.0": {"common": {"enabled": True}},
        "system.adapter.mqtt.0": {"common": {"enabled": True}},
        "system.adapter.hue.0": {"common": {"enabled": False}},
    }
    sources = {
        "script": {
            "script.js.heating": {
                "common": {
                    "source": (
                        "on({id: 'zigbee.0.living_room.temperature'}, obj => {\n"
                        "  setState('zigbee.0.lamp.on', obj.state.val > 22);\n"
                        "  getState(\"mqtt.0.kitchen.temperature\");\n"
                        "});"
                    )
                }
            }
        },
        "dashboard": {},
        "alias": {},
    }
    return InMemoryStateStore(states=states, objects=objects, producers=producers, sources=sources)
