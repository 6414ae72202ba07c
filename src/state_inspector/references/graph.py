"""
Reference graph construction.

Scans consumer definitions (scripts, dashboards, aliases) for record keys and
builds ``key -> [entity tags]``. A key absent from the graph is unreferenced.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Collection, Mapping
from dataclasses import dataclass, field
from typing import Any

from state_inspector.core.exceptions import StoreAccessError
from state_inspector.store.protocols import CONSUMER_NAMESPACES

# Accessor calls such as getState('zigbee.0.lamp.on') or on({id: ...}) style string args
_CALL_PATTERN = re.compile(
    r"""\b(?:getState|setState|getRecord|setRecord|existsState|getObject|on|subscribe)\s*\(\s*(['"`])([^'"`]+)\1"""
)
# Any quoted string containing at least one dot
_QUOTED_DOTTED_PATTERN = re.compile(r"""(['"`])([^'"`\s]+\.[^'"`\s]+)\1""")
_IDENTIFIER_PATTERN = re.compile(r"^[\w\-]+(?:\.[\w\-#]+)+$")
_SCHEME_PREFIXES = ("http:", "https:", "ftp:", "mqtt:", "ws:", "wss:", "file:", "tcp:", "www.")


@dataclass
class ReferenceGraph:
    """``key -> referencing entity tags`` plus build statistics."""

    references: dict[str, list[str]] = field(default_factory=dict)
    scanned: int = 0
    failed: int = 0

    def add(self, key: str, tag: str) -> None:
        tags = self.references.setdefault(key, [])
        if tag not in tags:
            tags.append(tag)

    def is_referenced(self, key: str) -> bool:
        return key in self.references

    def referrers(self, key: str) -> list[str]:
        return list(self.references.get(key, ()))

    def __len__(self) -> int:
        return len(self.references)


def is_candidate_key(token: str) -> bool:
    """Filter extracted strings down to plausible dotted record keys."""
    if "." not in token:
        return False
    lowered = token.lower()
    if lowered.startswith(_SCHEME_PREFIXES) or "://" in token:
        return False
    return bool(_IDENTIFIER_PATTERN.match(token))


def extract_keys(text: str) -> set[str]:
    """Extract candidate record keys from a consumer definition's text."""
    found: set[str] = set()
    for match in _CALL_PATTERN.finditer(text):
        token = match.group(2).strip()
        if is_candidate_key(token):
            found.add(token)
    for match in _QUOTED_DOTTED_PATTERN.finditer(text):
        token = match.group(2)
        if is_candidate_key(token):
            found.add(token)
    return found


def _definition_text(namespace: str, definition: Any) -> str:
    if isinstance(definition, str):
        return definition
    if namespace == "script" and isinstance(definition, Mapping):
        common = definition.get("common")
        source = common.get("source") if isinstance(common, Mapping) else None
        source = source or definition.get("source")
        if isinstance(source, str):
            return source
    return json.dumps(definition, default=str)


def _alias_targets(definition: Any) -> list[str]:
    """Explicit target keys from ``common.alias.id`` (a string or ``{read, write}``)."""
    if not isinstance(definition, Mapping):
        return []
    common = definition.get("common")
    alias = common.get("alias") if isinstance(common, Mapping) else definition.get("alias")
    if not isinstance(alias, Mapping):
        return []
    target = alias.get("id")
    if isinstance(target, str):
        return [target]
    if isinstance(target, Mapping):
        return [t for t in (target.get("read"), target.get("write")) if isinstance(t, str)]
    return []


class ReferenceGraphBuilder:
    """Build a :class:`ReferenceGraph` from consumer sources.

    Args:
        enumerate_sources: Callable returning ``id -> definition`` for a namespace
        logger: Logger instance
        namespaces: Consumer namespaces to scan (default: script, dashboard, alias)
    """

    def __init__(
        self,
        enumerate_sources: Callable[[str], Mapping[str, Any]],
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        namespaces: tuple[str, ...] = CONSUMER_NAMESPACES,
    ):
        self.enumerate_sources = enumerate_sources
        self.logger = logger or logging.getLogger(__name__)
        self.namespaces = namespaces

    def build(self, known_keys: Collection[str] | None = None) -> ReferenceGraph:
        """Scan every namespace.

        Args:
            known_keys: When given, only keys in this collection are recorded

        Raises:
            StoreAccessError: If a namespace cannot be enumerated at all
        """
        graph = ReferenceGraph()

        for namespace in self.namespaces:
            try:
                sources = self.enumerate_sources(namespace)
            except StoreAccessError:
                raise
            except Exception as e:
                self.logger.error(f"Failed to enumerate {namespace} definitions: {e}")
                raise StoreAccessError(
                    f"Cannot enumerate {namespace} definitions",
                    operation="enumerate_consumer_sources",
                    original_error=e,
                ) from e

            for source_id, definition in (sources or {}).items():
                graph.scanned += 1
                tag = f"{namespace}:{source_id}"
                try:
                    keys = extract_keys(_definition_text(namespace, definition))
                    if namespace == "alias":
                        keys.update(_alias_targets(definition))
                except (TypeError, ValueError, AttributeError) as e:
                    graph.failed += 1
                    self.logger.warning(f"Could not scan {tag}: {e}")
                    continue

                for key in sorted(keys):
                    if known_keys is not None and key not in known_keys:
                        continue
                    graph.add(key, tag)

        self.logger.info(
            f"Reference graph: {len(graph)} referenced keys from {graph.scanned} definitions"
            + (f" ({graph.failed} unreadable)" if graph.failed else "")
        )
        return graph
