"""Selection - an immutable, filtered view of one entity type's rows.

Selections are plain values: every refinement returns a new Selection. The
Store compiles them into SQL for the configured backend.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from row_eraser.schema.model import EntityType, validate_identifier


class Operator:
    EQ = "="
    NE = "<>"
    IN = "IN"
    NOT_IN = "NOT IN"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"
    RAW = "RAW"
    NONE = "NONE"


@dataclass(frozen=True)
class Condition:
    """One ANDed predicate of a selection."""

    operator: str
    column: str | None = None
    value: Any = None
    sql: str | None = None
    params: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


def _condition(column: str, value: Any, *, negate: bool = False) -> Condition:
    validate_identifier(column)
    if value is None:
        return Condition(Operator.IS_NOT_NULL if negate else Operator.IS_NULL, column)
    if isinstance(value, (list, tuple, set, frozenset)):
        return Condition(Operator.NOT_IN if negate else Operator.IN, column, tuple(value))
    return Condition(Operator.NE if negate else Operator.EQ, column, value)


@dataclass(frozen=True)
class Selection:
    """Rows of `entity` matching every condition.

    Usage:
        Selection(user).where(id=[1, 2, 3])
        Selection(order).where(user_id=1).where_not(status="archived")
        Selection(order).where_sql("total > :minimum", minimum=100)
    """

    entity: EntityType
    conditions: tuple[Condition, ...] = ()
    ordering: tuple[tuple[str, str], ...] = ()
    limit_value: int | None = None

    def where(self, **columns: Any) -> Selection:
        """Filter by column values: a list/tuple/set means IN, None means IS NULL."""
        added = tuple(_condition(column, value) for column, value in columns.items())
        return dataclasses.replace(self, conditions=self.conditions + added)

    def where_not(self, **columns: Any) -> Selection:
        added = tuple(_condition(c, v, negate=True) for c, v in columns.items())
        return dataclasses.replace(self, conditions=self.conditions + added)

    def where_sql(self, sql: str, **params: Any) -> Selection:
        """Filter with a raw SQL fragment using :name placeholders."""
        condition = Condition(Operator.RAW, sql=sql, params=MappingProxyType(dict(params)))
        return dataclasses.replace(self, conditions=self.conditions + (condition,))

    def none(self) -> Selection:
        """A selection that matches no rows."""
        return dataclasses.replace(self, conditions=self.conditions + (Condition(Operator.NONE),))

    def order_by(self, *columns: str) -> Selection:
        """Order by columns; prefix a column with '-' for descending."""
        ordering: list[tuple[str, str]] = []
        for column in columns:
            if column.startswith("-"):
                ordering.append((validate_identifier(column[1:]), "DESC"))
            else:
                ordering.append((validate_identifier(column), "ASC"))
        return dataclasses.replace(self, ordering=self.ordering + tuple(ordering))

    def limit(self, count: int) -> Selection:
        if count < 0:
            raise ValueError(f"limit must be non-negative, got {count}")
        return dataclasses.replace(self, limit_value=count)

    def unordered(self) -> Selection:
        """Drop ordering and limit, keeping the filters."""
        return dataclasses.replace(self, ordering=(), limit_value=None)

    def without_ordering(self) -> Selection:
        return dataclasses.replace(self, ordering=())

    @property
    def is_none(self) -> bool:
        return any(c.operator == Operator.NONE for c in self.conditions)

    @property
    def table(self) -> str:
        return self.entity.table

    def __repr__(self) -> str:
        return (
            f"Selection({self.entity.name}, conditions={len(self.conditions)}, "
            f"ordering={self.ordering}, limit={self.limit_value})"
        )
