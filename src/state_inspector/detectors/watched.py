"""
Real-time staleness tracking for explicitly watched records.

Runs independently of batch scans. The store's change notifications write
each watched key's last update time (event path); :meth:`check_staleness`
only reads the table (periodic path). Both paths share one lock.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from state_inspector.core.constants import DEFAULT_WATCH_GRACE_PERIOD_SECONDS, SCALAR_PREFIX
from state_inspector.core.exceptions import ConfigurationError
from state_inspector.detectors.models import WatchedStaleness
from state_inspector.store.protocols import StateStore


@dataclass
class WatchedRecordConfig:
    """Expected update cadence for one watched key.

    Attributes:
        key: Record key to watch
        interval_seconds: Expected seconds between updates
        grace_period_seconds: Extra tolerance before the record counts as stale (default: 60)
    """

    key: str
    interval_seconds: float
    grace_period_seconds: float = DEFAULT_WATCH_GRACE_PERIOD_SECONDS

    def __post_init__(self):
        if not self.key:
            raise ConfigurationError("Watched record key cannot be empty", field="key")
        if self.interval_seconds <= 0:
            raise ConfigurationError(
                f"Watched record '{self.key}' needs a positive interval", field="interval_seconds"
            )
        if self.grace_period_seconds < 0:
            raise ConfigurationError(
                f"Watched record '{self.key}' has a negative grace period", field="grace_period_seconds"
            )

    @classmethod
    def parse(cls, spec: str) -> WatchedRecordConfig:
        """Parse ``KEY:INTERVAL[:GRACE]`` (seconds)."""
        parts = spec.rsplit(":", 2)
        try:
            if len(parts) == 3:
                return cls(parts[0], float(parts[1]), float(parts[2]))
            if len(parts) == 2:
                return cls(parts[0], float(parts[1]))
        except ValueError as e:
            raise ConfigurationError(f"Invalid watch specification '{spec}'", details=str(e)) from e
        raise ConfigurationError(f"Invalid watch specification '{spec}'", details="expected KEY:INTERVAL[:GRACE]")


@dataclass
class _WatchEntry:
    interval_seconds: float
    grace_period_seconds: float
    last_update: float | None = None


class WatchedRecordMonitor:
    """Track last-update times of watched keys and report overdue ones.

    Args:
        store: State store used for subscriptions and publishing
        watched: Initial watch list
        logger: Logger instance
        clock: Callable returning epoch seconds
    """

    def __init__(
        self,
        store: StateStore,
        watched: Iterable[WatchedRecordConfig] = (),
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock
        self._lock = threading.Lock()
        self._table: dict[str, _WatchEntry] = {}
        self._subscriptions: set[str] = set()
        self._last_check: list[WatchedStaleness] = []
        self._started = False

        for config in watched:
            self._table[config.key] = _WatchEntry(config.interval_seconds, config.grace_period_seconds)

    @property
    def watched_keys(self) -> list[str]:
        with self._lock:
            return list(self._table)

    def start(self, initial_states: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        """Subscribe to every watched key and seed last-update times.

        Args:
            initial_states: Raw states to seed from; the store is enumerated once when omitted
        """
        for key in self.watched_keys:
            self._subscribe(key)

        if initial_states is None:
            try:
                initial_states = self.store.enumerate_all_records()
            except Exception as e:
                self.logger.error(f"Failed to load last update times for watched records: {e}")
                initial_states = {}

        with self._lock:
            for key, entry in self._table.items():
                ts = _state_timestamp(initial_states.get(key))
                if ts is not None:
                    entry.last_update = ts
                else:
                    self.logger.warning(f"No previous state found for {key}")

        self._started = True
        self.logger.info(f"Watched-record monitoring started ({len(self._table)} records watched)")

    def stop(self) -> None:
        """Unsubscribe from every watched key."""
        for key in list(self._subscriptions):
            self._unsubscribe(key)
        self._started = False
        self.logger.info("Watched-record monitoring stopped")

    def _subscribe(self, key: str) -> None:
        try:
            self.store.subscribe(key, self.on_change)
            self._subscriptions.add(key)
            self.logger.debug(f"Subscribed to {key}")
        except Exception as e:
            self.logger.error(f"Failed to subscribe to {key}: {e}")

    def _unsubscribe(self, key: str) -> None:
        try:
            self.store.unsubscribe(key)
        except Exception as e:
            self.logger.warning(f"Failed to unsubscribe from {key}: {e}")
        self._subscriptions.discard(key)

    def on_change(self, key: str, state: Mapping[str, Any] | None) -> None:
        """Change-notification handler; only touches ``last_update``."""
        ts = _state_timestamp(state)
        if ts is None:
            return
        with self._lock:
            entry = self._table.get(key)
            if entry is None:
                return
            entry.last_update = ts

    def check_staleness(self) -> list[WatchedStaleness]:
        """Evaluate every watched key, publish the result and return the stale ones."""
        now = self.clock()
        with self._lock:
            statuses = [_evaluate(key, entry, now) for key, entry in self._table.items()]

        stale = [s for s in statuses if s.is_stale]
        self._last_check = statuses
        self._publish(stale)

        if stale:
            self.logger.warning(f"Found {len(stale)} stale watched record(s): {', '.join(s.key for s in stale)}")
        else:
            self.logger.debug("All watched records are up-to-date")
        return stale

    def get_status(self) -> dict[str, Any]:
        """Result of the most recent :meth:`check_staleness` call."""
        stale = [s.to_dict() for s in self._last_check if s.is_stale]
        return {"watchedCount": len(self.watched_keys), "staleCount": len(stale), "staleRecords": stale}

    def add_watched(self, config: WatchedRecordConfig, initial_state: Mapping[str, Any] | None = None) -> bool:
        """Start watching another key. Returns False if it is already watched."""
        with self._lock:
            if config.key in self._table:
                self.logger.warning(f"Record {config.key} is already watched")
                return False
            self._table[config.key] = _WatchEntry(
                config.interval_seconds, config.grace_period_seconds, _state_timestamp(initial_state)
            )

        if self._started:
            self._subscribe(config.key)
        self.logger.info(
            f"Added {config.key} to watch list "
            f"(interval: {config.interval_seconds:g}s, grace: {config.grace_period_seconds:g}s)"
        )
        return True

    def remove_watched(self, key: str) -> bool:
        """Stop watching a key. Returns False if it was not watched."""
        with self._lock:
            if self._table.pop(key, None) is None:
                self.logger.warning(f"Record {key} is not watched")
                return False
        if key in self._subscriptions:
            self._unsubscribe(key)
        self.logger.info(f"Removed {key} from watch list")
        return True

    def _publish(self, stale: list[WatchedStaleness]) -> None:
        base = f"{SCALAR_PREFIX}.watched"
        try:
            self.store.persist_scalar(f"{base}.list", json.dumps([s.to_dict() for s in stale]))
            self.store.persist_scalar(f"{base}.count", len(stale))
            self.store.persist_scalar(f"{base}.hasStale", bool(stale))
        except Exception as e:
            self.logger.warning(f"Failed to publish watched-record status: {e}")


def _state_timestamp(state: Mapping[str, Any] | None) -> float | None:
    if not isinstance(state, Mapping):
        return None
    ts = state.get("ts")
    if isinstance(ts, bool) or not isinstance(ts, (int, float)) or ts <= 0:
        return None
    return float(ts)


def _evaluate(key: str, entry: _WatchEntry, now: float) -> WatchedStaleness:
    if entry.last_update is None:
        return WatchedStaleness(
            key=key,
            interval_seconds=entry.interval_seconds,
            grace_period_seconds=entry.grace_period_seconds,
            last_update=None,
            is_stale=True,
            reason="Never updated",
        )

    elapsed = now - entry.last_update
    is_stale = elapsed > entry.interval_seconds + entry.grace_period_seconds
    return WatchedStaleness(
        key=key,
        interval_seconds=entry.interval_seconds,
        grace_period_seconds=entry.grace_period_seconds,
        last_update=entry.last_update,
        is_stale=is_stale,
        seconds_since_update=elapsed,
        reason=f"No update for {round(elapsed)}s (expected every {entry.interval_seconds:g}s)" if is_stale else None,
    )
