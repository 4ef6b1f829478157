"""Schema registry - the in-process metadata provider.

Holds every entity type the eraser may reach. Register everything once at
startup, then treat the registry as read-only.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Protocol, runtime_checkable

from row_eraser.core.exceptions import DuplicateEntityError, EntityNotFoundError
from row_eraser.schema.builder import EntityBuilder
from row_eraser.schema.model import EntityType


@runtime_checkable
class MetadataProvider(Protocol):
    """Anything that can describe entity types by name."""

    def entity_types(self) -> list[EntityType]:
        """All known entity types."""
        ...

    def get(self, name: str) -> EntityType:
        """Look up one entity type, raising EntityNotFoundError if unknown."""
        ...

    def has(self, name: str) -> bool:
        ...


class SchemaRegistry:
    """Registry of entity types keyed by name.

    Args:
        entity_types: Entity types (or unbuilt EntityBuilders) to register.

    Raises:
        DuplicateEntityError: If two entity types share a name.
    """

    def __init__(self, entity_types: Iterable[EntityType | EntityBuilder] = ()) -> None:
        self._entities: dict[str, EntityType] = {}
        for entity_type in entity_types:
            self.register(entity_type)

    def register(self, entity_type: EntityType | EntityBuilder) -> EntityType:
        """Add an entity type; builders are built first."""
        if isinstance(entity_type, EntityBuilder):
            entity_type = entity_type.build()
        if entity_type.name in self._entities:
            raise DuplicateEntityError(entity_type.name)
        self._entities[entity_type.name] = entity_type
        return entity_type

    def get(self, name: str) -> EntityType:
        """Look up an entity type by name.

        Raises:
            EntityNotFoundError: If no entity type has that name.
        """
        try:
            return self._entities[name]
        except KeyError:
            raise EntityNotFoundError(name) from None

    def has(self, name: str) -> bool:
        return name in self._entities

    def entity_types(self) -> list[EntityType]:
        return list(self._entities.values())

    def by_table(self, table: str) -> list[EntityType]:
        """Entity types stored in `table` (several types may share one table)."""
        return [e for e in self._entities.values() if e.table == table]

    @property
    def names(self) -> list[str]:
        """All registered names, sorted alphabetically."""
        return sorted(self._entities)

    def __contains__(self, name: object) -> bool:
        return name in self._entities

    def __iter__(self) -> Iterator[EntityType]:
        return iter(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)
