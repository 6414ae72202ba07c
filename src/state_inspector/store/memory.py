"""In-memory :class:`~state_inspector.store.protocols.StateStore` implementation.

Used by the CLI to inspect an exported snapshot file and by the test suite.
Writes go through the same notification path a live store would use.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from state_inspector.core.exceptions import ConfigurationError, StoreAccessError
from state_inspector.matching.patterns import compile_wildcard
from state_inspector.store.protocols import CONSUMER_NAMESPACES, ChangeCallback


class InMemoryStateStore:
    """Dictionary-backed state store.

    Args:
        states: key -> raw state
        objects: key -> metadata descriptor
        producers: producer id -> payload with an enabled flag
        sources: namespace -> consumer id -> definition
        logger: Logger instance
    """

    def __init__(
        self,
        states: Mapping[str, Any] | None = None,
        objects: Mapping[str, Any] | None = None,
        producers: Mapping[str, Any] | None = None,
        sources: Mapping[str, Mapping[str, Any]] | None = None,
        logger: logging.Logger | None = None,
    ):
        self.states: dict[str, Any] = dict(states or {})
        self.objects: dict[str, Any] = dict(objects or {})
        self.producers: dict[str, Any] = dict(producers or {})
        self.sources: dict[str, dict[str, Any]] = {ns: dict((sources or {}).get(ns, {})) for ns in CONSUMER_NAMESPACES}
        self.reports: dict[str, str] = {}
        self.scalars: dict[str, Any] = {}
        self.logger = logger or logging.getLogger(__name__)
        self._subscriptions: dict[str, tuple[Any, ChangeCallback]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_snapshot_file(cls, path: str | Path, logger: logging.Logger | None = None) -> InMemoryStateStore:
        """Load a store exported as JSON with ``states``, ``objects``, ``producers`` and ``sources``."""
        snapshot_path = Path(path)
        if not snapshot_path.exists():
            raise ConfigurationError("Snapshot file not found", config_file=str(snapshot_path))
        try:
            with open(snapshot_path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                "Invalid JSON in snapshot file", config_file=str(snapshot_path), details=str(e)
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError("Snapshot file must contain a JSON object", config_file=str(snapshot_path))

        return cls(
            states=data.get("states"),
            objects=data.get("objects"),
            producers=data.get("producers"),
            sources=data.get("sources"),
            logger=logger,
        )

    # ==================== Enumeration ====================

    def enumerate_all_records(self) -> Mapping[str, Mapping[str, Any]]:
        return dict(self.states)

    def enumerate_all_metadata_descriptors(self) -> Mapping[str, Mapping[str, Any]]:
        return dict(self.objects)

    def enumerate_producers(self) -> Mapping[str, Any]:
        return dict(self.producers)

    def enumerate_consumer_sources(self, namespace: str) -> Mapping[str, Any]:
        if namespace not in self.sources:
            raise StoreAccessError(f"Unknown consumer namespace '{namespace}'", operation="enumerate_consumer_sources")
        return dict(self.sources[namespace])

    # ==================== Persistence ====================

    def persist_report(self, name: str, report_json: str) -> None:
        self.reports[name] = report_json

    def persist_scalar(self, name: str, value: Any) -> None:
        self.scalars[name] = value

    def get_report(self, name: str) -> dict[str, Any] | None:
        raw = self.reports.get(name)
        return json.loads(raw) if raw is not None else None

    # ==================== Notifications ====================

    def subscribe(self, key_pattern: str, callback: ChangeCallback) -> None:
        with self._lock:
            self._subscriptions[key_pattern] = (compile_wildcard(key_pattern), callback)

    def unsubscribe(self, key_pattern: str) -> None:
        with self._lock:
            self._subscriptions.pop(key_pattern, None)

    @property
    def subscriptions(self) -> list[str]:
        with self._lock:
            return list(self._subscriptions)

    def set_state(self, key: str, state: Mapping[str, Any] | None) -> None:
        """Write a raw state and notify matching subscribers."""
        if state is None:
            self.states.pop(key, None)
        else:
            self.states[key] = dict(state)

        with self._lock:
            targets = [cb for regex, cb in self._subscriptions.values() if regex.match(key)]
        for callback in targets:
            try:
                callback(key, state)
            except Exception as e:
                self.logger.warning(f"Change callback for {key} failed: {e}")
