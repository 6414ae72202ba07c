"""
Record snapshots.

Example usage:
    from state_inspector.records import build_snapshot

    snapshot = build_snapshot(store.enumerate_all_records(), store.enumerate_all_metadata_descriptors())
    for record in snapshot.records:
        print(record.key, record.value.canonical())
"""

from state_inspector.records.models import Producer, Record, RecordValue, ValueKind, parse_producer_id
from state_inspector.records.snapshot import RecordSnapshot, build_producer_index, build_record, build_snapshot

__all__ = [
    "Producer",
    "Record",
    "RecordSnapshot",
    "RecordValue",
    "ValueKind",
    "build_producer_index",
    "build_record",
    "build_snapshot",
    "parse_producer_id",
]
