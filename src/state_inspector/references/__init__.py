"""Reference graph: which consumers mention which record keys."""

from state_inspector.references.graph import ReferenceGraph, ReferenceGraphBuilder, extract_keys, is_candidate_key

__all__ = ["ReferenceGraph", "ReferenceGraphBuilder", "extract_keys", "is_candidate_key"]
