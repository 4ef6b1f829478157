"""Type-level dependency resolution.

Walks the flattened schema from a root entity type and records, for every
reachable type, which associations lead where. No rows are read here; the
result tells the plan builder which types take part in a destroy cycle.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from row_eraser.core.enums import DependencyAction
from row_eraser.core.exceptions import EntityNotFoundError
from row_eraser.schema.index import SchemaIndex
from row_eraser.schema.model import AssociationDescriptor

logger = logging.getLogger(__name__)

Edge = tuple[AssociationDescriptor, tuple[str, ...]]


@dataclass(frozen=True)
class DependencyGraph:
    """Result of resolving one root entity type.

    `dependencies` maps each visited type to its outgoing edges (association
    plus the concrete target types). `circular_dependencies` maps a type to
    the path that led back to it.
    """

    root: str
    dependencies: Mapping[str, tuple[Edge, ...]] = field(default_factory=dict)
    circular_dependencies: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    # (owner, association) pairs gated behind a restrict action
    restricted: tuple[tuple[str, str], ...] = ()

    @property
    def circular_entities(self) -> frozenset[str]:
        """Every type that sits on at least one destroy cycle."""
        return frozenset(name for path in self.circular_dependencies.values() for name in path)

    def is_circular(self, name: str) -> bool:
        return name in self.circular_entities


class DependencyGraphResolver:
    """Depth-first resolver over a SchemaIndex.

    Args:
        index: Flattened schema to walk.
        force_destroy_restricted: Treat restricted associations as plain
            destroys. They are walked either way; without the flag they are
            also listed in `DependencyGraph.restricted`.
    """

    def __init__(self, index: SchemaIndex, *, force_destroy_restricted: bool = False) -> None:
        self._index = index
        self._force_destroy_restricted = force_destroy_restricted
        self.errors: list[str] = []

    def resolve(self, root: str) -> DependencyGraph:
        self.errors = []
        # types the index skipped surface below as EntityNotFoundError if reachable
        self._index.build()

        self._graph: dict[str, tuple[Edge, ...]] = {}
        self._circular: dict[str, tuple[str, ...]] = {}
        self._restricted: list[tuple[str, str]] = []
        self._walk(root, DependencyAction.DESTROY, ())

        graph = DependencyGraph(
            root=root,
            dependencies=MappingProxyType(self._graph),
            circular_dependencies=MappingProxyType(self._circular),
            restricted=tuple(self._restricted),
        )
        logger.debug(
            "Resolved %s: %d types, circular: %s",
            root,
            len(self._graph),
            sorted(graph.circular_entities) or "none",
        )
        return graph

    def _walk(self, name: str, action: DependencyAction, path: tuple[str, ...]) -> None:
        if action.is_destroy_like and name in path:
            start = path.index(name)
            self._circular[name] = path[start:] + (name,)
            return

        # nullified types are leaves
        if action.is_nullify:
            return

        if name in self._graph:
            return

        try:
            flat = self._index.entity(name)
        except EntityNotFoundError as e:
            self.errors.append(str(e))
            return

        # mark as visited before descending so siblings don't re-walk it
        self._graph[name] = ()
        edges: list[Edge] = []
        for association in flat.destroy_associations + flat.nullify_associations:
            targets = tuple(self._index.polymorphic_targets(name, association))
            edges.append((association, targets))

            if association.dependent.is_restricted and not self._force_destroy_restricted:
                self._restricted.append((name, association.name))

            for target in targets:
                self._walk(target, association.dependent, path + (name,))

        self._graph[name] = tuple(edges)
