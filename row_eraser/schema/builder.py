"""Entity declaration DSL.

Provides a fluent builder for declaring entity types and their associations:

    user = (
        entity("User", table="users")
        .has_many("orders", "Order", dependent="destroy")
        .has_many("coupons", "Coupon", foreign_key="claimed_by_id", dependent="nullify")
        .build()
    )
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import Any

from row_eraser.core.enums import AssociationKind, DependencyAction
from row_eraser.core.exceptions import SchemaError
from row_eraser.schema.model import (
    CANONICAL_PRIMARY_KEY,
    POLYMORPHIC,
    AssociationDescriptor,
    EntityType,
    validate_identifier,
)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _pluralize(word: str) -> str:
    if word.endswith("y") and word[-2:-1] not in ("a", "e", "i", "o", "u"):
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def _singularize(word: str) -> str:
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith(("ses", "xes", "zes", "ches", "shes")):
        return word[:-2]
    if word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def _action(dependent: DependencyAction | str | None) -> DependencyAction:
    if dependent is None:
        return DependencyAction.NONE
    if isinstance(dependent, DependencyAction):
        return dependent
    try:
        return DependencyAction(dependent)
    except ValueError:
        raise SchemaError(f"Unknown dependency action '{dependent}'") from None


def entity(
    name: str,
    table: str | None = None,
    *,
    primary_key: str | tuple[str, ...] = CANONICAL_PRIMARY_KEY,
    singular: str | None = None,
    columns: Iterable[str] | None = None,
) -> EntityBuilder:
    """Entry point for the entity declaration DSL.

    Args:
        name: Entity type name, also the value stored in polymorphic
              discriminator columns.
        table: Table name. Defaults to the pluralized snake_case name.
        primary_key: Identity column (a tuple declares a composite key,
                     which the eraser reports as unsupported).
        singular: Prefix for default foreign keys of to-many associations
                  (`<singular>_id`). Defaults to the singularized table name.
        columns: Optional column list, enables foreign-key existence checks.

    Returns:
        A builder for chaining association declarations.
    """
    table = table or _pluralize(_snake_case(name))
    return EntityBuilder(
        name=name,
        table=table,
        primary_key=primary_key,
        singular=singular or _singularize(table),
        columns=frozenset(columns or ()),
    )


class EntityBuilder:
    """Fluent builder for entity type declarations."""

    def __init__(
        self,
        name: str,
        table: str,
        primary_key: str | tuple[str, ...],
        singular: str,
        columns: frozenset[str],
    ) -> None:
        self._name = name
        self._table = table
        self._primary_key = primary_key
        self._singular = singular
        self._columns = columns
        self._associations: list[AssociationDescriptor] = []

    @property
    def name(self) -> str:
        return self._name

    def has_many(
        self,
        name: str,
        target: str,
        *,
        dependent: DependencyAction | str | None = None,
        foreign_key: str | None = None,
        as_: str | None = None,
        primary_key: str | None = None,
        through: str | None = None,
        scope: Callable[..., Any] | None = None,
    ) -> EntityBuilder:
        """Declare a to-many association (target rows hold the foreign key)."""
        return self._to_many(
            AssociationKind.TO_MANY,
            name,
            target,
            dependent=dependent,
            foreign_key=foreign_key,
            as_=as_,
            primary_key=primary_key,
            through=through,
            scope=scope,
        )

    def has_one(
        self,
        name: str,
        target: str,
        *,
        dependent: DependencyAction | str | None = None,
        foreign_key: str | None = None,
        as_: str | None = None,
        primary_key: str | None = None,
        through: str | None = None,
        scope: Callable[..., Any] | None = None,
    ) -> EntityBuilder:
        """Declare a to-one association (the target row holds the foreign key)."""
        return self._to_many(
            AssociationKind.TO_ONE,
            name,
            target,
            dependent=dependent,
            foreign_key=foreign_key,
            as_=as_,
            primary_key=primary_key,
            through=through,
            scope=scope,
        )

    def belongs_to(
        self,
        name: str,
        target: str | None = None,
        *,
        dependent: DependencyAction | str | None = None,
        foreign_key: str | None = None,
        polymorphic: bool = False,
        foreign_type: str | None = None,
        primary_key: str | None = None,
        scope: Callable[..., Any] | None = None,
    ) -> EntityBuilder:
        """Declare a reference (this entity's rows hold the foreign key)."""
        if polymorphic:
            if target is not None:
                raise SchemaError(f"{self._name}'s polymorphic '{name}' cannot name a target")
            target = POLYMORPHIC
        elif target is None:
            raise SchemaError(f"{self._name}'s association '{name}' needs a target")

        foreign_key = foreign_key or f"{name}_id"
        if polymorphic:
            foreign_type = foreign_type or re.sub(r"_id$", "", foreign_key) + "_type"
        self._add(
            AssociationDescriptor(
                name=name,
                owner=self._name,
                kind=AssociationKind.REFERENCE,
                target=target,
                dependent=_action(dependent),
                foreign_key=validate_identifier(foreign_key),
                foreign_type=validate_identifier(foreign_type) if polymorphic else None,
                primary_key=validate_identifier(primary_key) if primary_key else None,
                scope=scope,
            )
        )
        return self

    def _to_many(
        self,
        kind: AssociationKind,
        name: str,
        target: str,
        *,
        dependent: DependencyAction | str | None,
        foreign_key: str | None,
        as_: str | None,
        primary_key: str | None,
        through: str | None,
        scope: Callable[..., Any] | None,
    ) -> EntityBuilder:
        foreign_type = None
        if through is not None:
            # rows are reached through another association; keys live there
            foreign_key = None
        elif as_ is not None:
            foreign_key = foreign_key or f"{as_}_id"
            foreign_type = f"{as_}_type"
        else:
            foreign_key = foreign_key or f"{self._singular}_id"

        self._add(
            AssociationDescriptor(
                name=name,
                owner=self._name,
                kind=kind,
                target=target,
                dependent=_action(dependent),
                foreign_key=validate_identifier(foreign_key) if foreign_key else None,
                foreign_type=validate_identifier(foreign_type) if foreign_type else None,
                primary_key=validate_identifier(primary_key) if primary_key else None,
                through=through,
                scope=scope,
            )
        )
        return self

    def _add(self, association: AssociationDescriptor) -> None:
        if any(a.name == association.name for a in self._associations):
            raise SchemaError(f"{self._name} declares association '{association.name}' twice")
        self._associations.append(association)

    def build(self) -> EntityType:
        """Validate the declaration and freeze it into an EntityType."""
        validate_identifier(self._table)
        keys = (self._primary_key,) if isinstance(self._primary_key, str) else self._primary_key
        for key in keys:
            validate_identifier(key)
        for column in self._columns:
            validate_identifier(column)

        names = {a.name for a in self._associations}
        for association in self._associations:
            if association.through is not None and association.through not in names:
                raise SchemaError(
                    f"{self._name}'s association '{association.name}' goes through "
                    f"undeclared association '{association.through}'"
                )

        return EntityType(
            name=self._name,
            table=self._table,
            primary_key=self._primary_key,
            singular=self._singular,
            associations=tuple(self._associations),
            columns=self._columns,
        )
