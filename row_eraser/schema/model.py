"""Entity type and association descriptors.

Frozen dataclasses describing the schema the eraser walks. They are built
once (usually through the fluent builder in `row_eraser.schema.builder`)
and are read-only afterwards.
"""

from __future__ import annotations

import dataclasses
import inspect
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from row_eraser.core.enums import AssociationKind, DependencyAction
from row_eraser.core.exceptions import (
    AssociationNotFoundError,
    InvalidIdentifierError,
    SchemaError,
)

# Target of a reference whose concrete type is read from a discriminator column
POLYMORPHIC = "<polymorphic>"

CANONICAL_PRIMARY_KEY = "id"

_IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")


def validate_identifier(identifier: str) -> str:
    """Return `identifier` unchanged, or raise if it is not a plain SQL name."""
    if not isinstance(identifier, str) or not _IDENTIFIER_PATTERN.match(identifier):
        raise InvalidIdentifierError(str(identifier))
    return identifier


@dataclass(frozen=True)
class AssociationDescriptor:
    """A declared relationship from an owner entity type to a target.

    `foreign_key` lives on the target for TO_MANY / TO_ONE and on the owner
    for REFERENCE. `foreign_type` is the discriminator column: on the target
    for a polymorphic to-many (`as_`), on the owner for a polymorphic
    reference. `primary_key` names a non-default key on the side opposite the
    foreign key.
    """

    name: str
    owner: str
    kind: AssociationKind
    target: str
    dependent: DependencyAction = DependencyAction.NONE
    foreign_key: str | None = None
    foreign_type: str | None = None
    primary_key: str | None = None
    through: str | None = None
    scope: Callable[..., Any] | None = field(default=None, compare=False)

    @property
    def is_polymorphic(self) -> bool:
        return self.target == POLYMORPHIC

    @property
    def is_reference(self) -> bool:
        return self.kind is AssociationKind.REFERENCE

    @property
    def is_through(self) -> bool:
        return self.through is not None

    @cached_property
    def scope_arity(self) -> int:
        """Number of per-owner parameters the scope takes besides the selection."""
        if self.scope is None:
            return 0
        try:
            parameters = inspect.signature(self.scope).parameters.values()
        except (TypeError, ValueError):
            return 0
        positional = [
            p
            for p in parameters
            if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD)
            and p.default is inspect.Parameter.empty
        ]
        return max(len(positional) - 1, 0)


@dataclass(frozen=True)
class EntityType:
    """A named kind of record stored in one table."""

    name: str
    table: str
    primary_key: str | tuple[str, ...] = CANONICAL_PRIMARY_KEY
    singular: str = ""
    associations: tuple[AssociationDescriptor, ...] = ()
    # empty means "unknown": column checks are skipped
    columns: frozenset[str] = frozenset()

    @property
    def has_canonical_primary_key(self) -> bool:
        return self.primary_key == CANONICAL_PRIMARY_KEY

    @property
    def identity(self) -> str:
        if not isinstance(self.primary_key, str):
            raise SchemaError(f"{self.name} has a composite primary key {self.primary_key}")
        return self.primary_key

    def has_column(self, column: str) -> bool:
        return not self.columns or column in self.columns

    def association(self, name: str) -> AssociationDescriptor:
        for association in self.associations:
            if association.name == name:
                return association
        raise AssociationNotFoundError(self.name, name)

    def root_association(self, name: str) -> AssociationDescriptor:
        """Follow `through` links to the association that actually holds the rows.

        A dependency declared on a through association applies to the root of
        the chain, so the returned descriptor carries the declared action.
        """
        declared = self.association(name)
        current = declared
        seen = {current.name}
        while current.through is not None:
            current = self.association(current.through)
            if current.name in seen:
                raise SchemaError(
                    f"{self.name}'s association '{name}' has a circular through chain"
                )
            seen.add(current.name)
        if current is declared:
            return declared
        return dataclasses.replace(current, dependent=declared.dependent)
