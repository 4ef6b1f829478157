"""Flattened, cached view of the schema.

SchemaIndex reads every entity type from a metadata provider once and keeps,
per type, the associations the eraser cares about: destroy-like ones,
nullify ones, to-many ones and references. The index is owned by the caller
and may be shared between erasers over the same schema.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from row_eraser.core.exceptions import EntityNotFoundError
from row_eraser.schema.model import POLYMORPHIC, AssociationDescriptor, EntityType
from row_eraser.schema.registry import MetadataProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlatEntity:
    """Per-type association summary.

    Association tuples are root-resolved through `through` chains and hold
    at most one descriptor per root association name.
    """

    name: str
    table: str
    entity_type: EntityType
    destroy_associations: tuple[AssociationDescriptor, ...] = ()
    nullify_associations: tuple[AssociationDescriptor, ...] = ()
    # association name -> target type name
    to_many: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    # association name -> target type name, or POLYMORPHIC
    references: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    # to-many / to-one associations declared with `as_`
    polymorphic_inverses: tuple[AssociationDescriptor, ...] = ()


FlatSchema = Mapping[str, FlatEntity]


def _flatten(entity_type: EntityType) -> FlatEntity:
    destroy: dict[str, AssociationDescriptor] = {}
    nullify: dict[str, AssociationDescriptor] = {}
    to_many: dict[str, str] = {}
    references: dict[str, str] = {}
    inverses: list[AssociationDescriptor] = []

    for association in entity_type.associations:
        if association.is_reference:
            references[association.name] = association.target
        else:
            to_many[association.name] = association.target
            if association.foreign_type is not None and not association.is_through:
                inverses.append(association)

        action = association.dependent
        if not (action.is_destroy_like or action.is_nullify):
            continue
        root = entity_type.root_association(association.name)
        bucket = destroy if action.is_destroy_like else nullify
        bucket.setdefault(root.name, root)

    return FlatEntity(
        name=entity_type.name,
        table=entity_type.table,
        entity_type=entity_type,
        destroy_associations=tuple(destroy.values()),
        nullify_associations=tuple(nullify.values()),
        to_many=MappingProxyType(to_many),
        references=MappingProxyType(references),
        polymorphic_inverses=tuple(inverses),
    )


class SchemaIndex:
    """Caller-owned cache of the flattened schema.

    Args:
        provider: Metadata provider to read entity types from.
        verbose: Log progress at INFO instead of DEBUG.
    """

    def __init__(self, provider: MetadataProvider, *, verbose: bool = False) -> None:
        self._provider = provider
        self._verbose = verbose
        self._flat: FlatSchema | None = None
        self.errors: list[str] = []

    def build(self) -> FlatSchema:
        """Flatten every entity type, or return the cached result.

        An entity type whose introspection fails is skipped and the failure
        is recorded in `errors`; the rest of the schema is still indexed.
        """
        if self._flat is not None:
            return self._flat

        self.errors = []
        flat: dict[str, FlatEntity] = {}
        for entity_type in self._provider.entity_types():
            try:
                flat[entity_type.name] = _flatten(entity_type)
            except Exception as e:
                message = f"{entity_type.name} => {type(e).__name__}: {e}"
                self.errors.append(message)
                logger.warning("Skipping entity type while indexing schema: %s", message)

        logger.log(
            logging.INFO if self._verbose else logging.DEBUG,
            "Indexed %d entity types (%d skipped)",
            len(flat),
            len(self.errors),
        )
        self._flat = MappingProxyType(flat)
        return self._flat

    def reset(self) -> None:
        """Drop the cached schema; the next build() re-reads the provider."""
        self._flat = None
        self.errors = []

    def set(self, flat: FlatSchema) -> None:
        """Install a previously built schema."""
        self._flat = MappingProxyType(dict(flat))

    def get(self) -> FlatSchema | None:
        """Return the cached schema without building it."""
        return self._flat

    @property
    def is_built(self) -> bool:
        return self._flat is not None

    def entity(self, name: str) -> FlatEntity:
        """Look up one flattened entity type, building the index if needed.

        Raises:
            EntityNotFoundError: If the type is unknown or was skipped.
        """
        try:
            return self.build()[name]
        except KeyError:
            raise EntityNotFoundError(name) from None

    def polymorphic_targets(
        self, owner_name: str, association: AssociationDescriptor
    ) -> list[str]:
        """Entity types that can sit behind a polymorphic reference.

        A type qualifies when it declares a to-many/to-one association back at
        `owner_name` through the same foreign key and discriminator columns.
        """
        if association.target != POLYMORPHIC:
            return [association.target]
        return [
            flat.name
            for flat in self.build().values()
            if any(
                inverse.target == owner_name
                and inverse.foreign_key == association.foreign_key
                and inverse.foreign_type == association.foreign_type
                for inverse in flat.polymorphic_inverses
            )
        ]
