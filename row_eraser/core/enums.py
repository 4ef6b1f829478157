"""Backend, dependency and association enumerations."""

from __future__ import annotations

from enum import Enum


class DatabaseBackend(Enum):
    """Supported database backends."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    ORACLE = "oracle"


class AssociationKind(Enum):
    """Structural kind of an association, seen from its owner."""

    TO_MANY = "to_many"
    TO_ONE = "to_one"
    # owner holds the foreign key (belongs-to)
    REFERENCE = "reference"


class DependencyAction(Enum):
    """What happens to an association's records when the owner is erased."""

    NONE = "none"
    DESTROY = "destroy"
    DELETE_ALL = "delete_all"
    DESTROY_ASYNC = "destroy_async"
    RESTRICT_WITH_ERROR = "restrict_with_error"
    RESTRICT_WITH_EXCEPTION = "restrict_with_exception"
    NULLIFY = "nullify"

    @property
    def is_destroy_like(self) -> bool:
        """True for plain destroy variants and both restrict variants."""
        return self in _DESTROY_LIKE

    @property
    def is_restricted(self) -> bool:
        return self in (
            DependencyAction.RESTRICT_WITH_ERROR,
            DependencyAction.RESTRICT_WITH_EXCEPTION,
        )

    @property
    def is_nullify(self) -> bool:
        return self is DependencyAction.NULLIFY


_DESTROY_LIKE = frozenset(
    {
        DependencyAction.DESTROY,
        DependencyAction.DELETE_ALL,
        DependencyAction.DESTROY_ASYNC,
        DependencyAction.RESTRICT_WITH_ERROR,
        DependencyAction.RESTRICT_WITH_EXCEPTION,
    }
)
