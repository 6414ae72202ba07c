"""Protocol definitions for the host state store.

The engine never talks to a concrete backend directly; anything that
satisfies :class:`StateStore` can be inspected.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

# (key, raw_state) ; raw_state is None when the record was deleted
ChangeCallback = Callable[[str, Mapping[str, Any] | None], None]

CONSUMER_NAMESPACES: tuple[str, ...] = ("script", "dashboard", "alias")


@runtime_checkable
class StateStore(Protocol):
    """Read and notification surface the inspector needs from a host store.

    Timestamps in raw states (``ts``, ``lc``) are epoch seconds.
    """

    def enumerate_all_records(self) -> Mapping[str, Mapping[str, Any]]:
        """Return key -> raw state (``val``, ``ts``, ``lc``, ``ack``)."""
        ...

    def enumerate_all_metadata_descriptors(self) -> Mapping[str, Mapping[str, Any]]:
        """Return key -> metadata descriptor."""
        ...

    def enumerate_producers(self) -> Mapping[str, Any]:
        """Return producer id -> producer payload carrying an enabled flag."""
        ...

    def enumerate_consumer_sources(self, namespace: str) -> Mapping[str, Any]:
        """Return consumer id -> definition for ``script``, ``dashboard`` or ``alias``."""
        ...

    def persist_report(self, name: str, report_json: str) -> None:
        """Publish a serialized report; fire-and-forget."""
        ...

    def persist_scalar(self, name: str, value: Any) -> None:
        """Publish a scalar summary counter; fire-and-forget."""
        ...

    def subscribe(self, key_pattern: str, callback: ChangeCallback) -> None:
        """Register for change notifications on keys matching a wildcard pattern."""
        ...

    def unsubscribe(self, key_pattern: str) -> None:
        """Drop the subscription for a pattern."""
        ...
