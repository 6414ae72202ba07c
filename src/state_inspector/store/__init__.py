"""Host state store protocol and the in-memory implementation."""

from state_inspector.store.memory import InMemoryStateStore
from state_inspector.store.protocols import CONSUMER_NAMESPACES, ChangeCallback, StateStore

__all__ = ["CONSUMER_NAMESPACES", "ChangeCallback", "InMemoryStateStore", "StateStore"]
