"""
Tests for value and naming duplicate detection
"""

import logging
import threading
from unittest.mock import Mock

import pytest
from conftest import HOUR, NOW, make_record

from state_inspector.core.config import DuplicateConfig
from state_inspector.core.cooperative import Checkpoint
from state_inspector.core.exceptions import ScanAbortedError
from state_inspector.detectors.context import DetectionContext
from state_inspector.detectors.duplicates import DuplicateDetector, naming_score
from state_inspector.detectors.models import Confidence, NamingDuplicateGroup, ValueDuplicateGroup

DISSIMILAR_SUFFIXES = [
    "kitchen.light",
    "garage.door",
    "garden.pump",
    "bedroom.heater",
    "office.printer",
    "hallway.motion",
    "attic.fan",
    "cellar.humidity",
    "balcony.awning",
    "bathroom.mirror",
]


def _dissimilar_records(count):
    return [make_record(f"zigbee.0.{suffix}", value=i) for i, suffix in enumerate(DISSIMILAR_SUFFIXES[:count])]


class TestValueDuplicates:
    """Test grouping by (value, type, unit)"""

    def test_scenario_two_recent_temperatures(self, ctx):
        """Two 21.5 °C records updated within a minute form one high-confidence group"""
        records = [
            make_record("hm.0.room.temperature", 21.5, unit="°C", last_change=NOW - 30),
            make_record("zigbee.0.room.temp", 21.5, unit="°C", last_change=NOW - 50),
        ]
        result = DuplicateDetector().detect(records, ctx)

        assert len(result.groups) == 1
        group = result.groups[0]
        assert isinstance(group, ValueDuplicateGroup)
        assert group.confidence is Confidence.HIGH
        assert set(group.keys) == {"hm.0.room.temperature", "zigbee.0.room.temp"}

    def test_single_recent_member_is_medium(self, ctx):
        records = [
            make_record("a.0.x", 5, last_change=NOW - 30),
            make_record("b.0.y", 5, last_change=NOW - 2 * HOUR),
        ]
        result = DuplicateDetector().detect(records, ctx)
        assert result.groups[0].confidence is Confidence.MEDIUM

    def test_unit_and_type_must_match(self, ctx):
        records = [
            make_record("a.0.x", 50, unit="%"),
            make_record("b.0.y", 50, unit="°C"),
            make_record("c.0.z", 50, unit="%", type_tag="string"),
        ]
        detector = DuplicateDetector()
        assert detector.detect_value_duplicates(records, ctx) == []

    def test_kind_is_part_of_identity(self, ctx):
        """String "1" and number 1 never group even with the same type tag"""
        records = [make_record("a.0.x", "1", type_tag="mixed"), make_record("b.0.y", 1, type_tag="mixed")]
        assert DuplicateDetector().detect_value_duplicates(records, ctx) == []

    def test_null_values_never_group(self, ctx):
        records = [make_record("a.0.x", None), make_record("b.0.y", None)]
        assert DuplicateDetector().detect_value_duplicates(records, ctx) == []

    def test_every_group_shares_value_type_and_unit(self, ctx):
        records = [
            make_record("a.0.x", 1, unit="W"),
            make_record("b.0.y", 1.0, unit="W"),
            make_record("c.0.z", True, type_tag="boolean"),
            make_record("d.0.w", True, type_tag="boolean"),
            make_record("e.0.v", 7),
        ]
        lookup = {r.key: r for r in records}
        groups = DuplicateDetector().detect_value_duplicates(records, ctx)

        assert len(groups) == 2
        for group in groups:
            members = [lookup[k] for k in group.keys]
            assert len(members) >= 2
            assert len({(m.value.canonical(), m.type_tag, m.unit) for m in members}) == 1

    def test_ignored_keys_excluded(self, ctx):
        records = [make_record("system.adapter.a.0.x", 1), make_record("system.adapter.b.0.x", 1)]
        result = DuplicateDetector().detect(records, ctx)
        assert result.groups == []
        assert result.seeds_total == 0

    def test_stale_members_flagged(self, ctx):
        records = [
            make_record("a.0.x", 3, last_change=NOW - 30 * HOUR),
            make_record("b.0.y", 3, last_change=NOW - HOUR),
        ]
        group = DuplicateDetector().detect(records, ctx).groups[0]
        stale = {m.key: m.is_stale for m in group.members}
        assert stale == {"a.0.x": True, "b.0.y": False}


class TestNamingScore:
    """Test the weighted naming score"""

    def test_near_identical_keys_linked(self):
        a = make_record("device123.temperature", 1)
        b = make_record("device123.temperatur", 2)
        assert naming_score(a, b) >= 0.9

    def test_unrelated_short_key_not_linked(self):
        a = make_record("device123.temperature", 1)
        b = make_record("abcdefgh", 2)
        assert naming_score(a, b) < 0.9

    def test_display_names_count_when_both_present(self):
        """Different display names pull the score down"""
        a = make_record("device1.temperature", 1, display_name="Living room heating")
        b = make_record("device2.temperature", 2, display_name="Garage door")
        without_names = naming_score(make_record("device1.temperature"), make_record("device2.temperature"))
        assert naming_score(a, b) < 0.9 <= without_names

    def test_type_and_role_mismatch_lowers_score(self):
        a = make_record("device1.temperature", type_tag="number", role="value.temperature")
        b = make_record("device2.temperature", type_tag="string", role="text")
        assert naming_score(a, b) < 0.9


class TestNamingDuplicates:
    """Test greedy clustering and the comparison cap"""

    def test_cluster_absorbs_members(self, ctx):
        """Absorbed records never seed a second cluster"""
        records = [make_record(f"device{i}.temperature", i) for i in range(1, 4)]
        result = DuplicateDetector().detect(records, ctx)

        assert len(result.groups) == 1
        group = result.groups[0]
        assert isinstance(group, NamingDuplicateGroup)
        assert group.pattern == "device*.temperature"
        assert group.confidence is Confidence.MEDIUM
        assert len(group.members) == 3
        assert all(m.value is not None for m in group.members)

    def test_absorbed_record_stays_comparable_as_target(self, ctx):
        """A later seed can still link to a record another cluster absorbed"""
        seed_a = make_record("zigbee.0.sensor.aaaa", 1)
        seed_b = make_record("zigbee.0.sensor.bbbb", 2)
        shared = make_record("zigbee.0.sensor.aabb", 3)
        assert naming_score(seed_a, seed_b) < 0.9

        result = DuplicateDetector().detect([seed_a, seed_b, shared], ctx)

        assert result.naming_groups == 2
        assert result.discarded_naming_groups == 1
        assert [set(g.keys) for g in result.groups] == [{"zigbee.0.sensor.aaaa", "zigbee.0.sensor.aabb"}]

    def test_dissimilar_records_not_grouped(self, ctx):
        result = DuplicateDetector().detect(_dissimilar_records(6), ctx)
        assert result.groups == []
        assert result.comparisons == 15
        assert not result.comparison_limit_reached

    def test_comparison_cap_marks_partial_result(self, ctx):
        """The pass stops at the cap and reports partial coverage"""
        logger = Mock(spec=logging.Logger)
        detector = DuplicateDetector(DuplicateConfig(max_comparisons=5), logger=logger)

        result = detector.detect(_dissimilar_records(10), ctx)

        assert result.comparisons == 5
        assert result.comparison_limit_reached
        assert result.seeds_processed == 1
        assert result.coverage == 0.1
        warning = logger.warning.call_args[0][0]
        assert "maximum comparison limit (5)" in warning
        assert "1/10" in warning

    def test_cap_equal_to_all_pairs_is_not_partial(self, ctx):
        detector = DuplicateDetector(DuplicateConfig(max_comparisons=6))
        result = detector.detect(_dissimilar_records(4), ctx)
        assert result.comparisons == 6
        assert not result.comparison_limit_reached
        assert result.coverage == 1.0

    def test_comparisons_tick_checkpoint(self, ctx):
        DuplicateDetector().detect(_dissimilar_records(5), ctx)
        assert ctx.comparison_checkpoint.count == 10
        assert ctx.record_checkpoint.count == 5

    def test_stop_request_aborts_naming_pass(self):
        stop = threading.Event()
        stop.set()
        ctx = DetectionContext(
            now=NOW,
            record_checkpoint=Checkpoint(1000, yield_fn=lambda: None),
            comparison_checkpoint=Checkpoint(2, yield_fn=lambda: None, stop_event=stop),
        )
        with pytest.raises(ScanAbortedError):
            DuplicateDetector().detect(_dissimilar_records(5), ctx)


class TestMerge:
    """Test that no record appears in two groups"""

    def test_naming_group_overlapping_value_group_discarded(self, ctx):
        records = [
            make_record("zigbee.0.temp_sensor_1", 5),
            make_record("zigbee.0.temp_sensor_2", 5),
            make_record("zigbee.0.temp_sensor_3", 9),
        ]
        result = DuplicateDetector().detect(records, ctx)

        assert result.value_groups == 1
        assert result.naming_groups == 1
        assert result.discarded_naming_groups == 1
        assert len(result.groups) == 1
        assert isinstance(result.groups[0], ValueDuplicateGroup)

    def test_merged_groups_are_disjoint(self, ctx):
        records = [
            make_record("zigbee.0.temp_sensor_1", 5),
            make_record("zigbee.0.temp_sensor_2", 5),
            make_record("mqtt.0.humidity.level_a", 40),
            make_record("mqtt.0.humidity.level_b", 41),
            *_dissimilar_records(4),
        ]
        result = DuplicateDetector().detect(records, ctx)

        keys = [key for group in result.groups for key in group.keys]
        assert len(keys) == len(set(keys))
        assert {g.category for g in result.groups} == {"value", "naming"}
        assert result.total_duplicate_records == len(keys)
