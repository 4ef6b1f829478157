"""RowEraser exception hierarchy.

Raw driver exceptions never escape a stage: they are wrapped into a
StageError subclass carrying the entity type being processed.
"""

from __future__ import annotations


class RowEraserError(Exception):
    """Base exception for all RowEraser errors."""


# --- Schema ---


class SchemaError(RowEraserError):
    """Base for schema / metadata errors."""


class EntityNotFoundError(SchemaError):
    """Raised when an entity type name is not registered."""

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"Entity type not found: '{entity_name}'")


class DuplicateEntityError(SchemaError):
    """Raised when two entity types are registered under the same name."""

    def __init__(self, entity_name: str) -> None:
        self.entity_name = entity_name
        super().__init__(f"Duplicate entity type '{entity_name}'")


class AssociationNotFoundError(SchemaError):
    """Raised when an association name is not declared on an entity type."""

    def __init__(self, entity_name: str, association_name: str) -> None:
        self.entity_name = entity_name
        self.association_name = association_name
        super().__init__(f"{entity_name} has no association '{association_name}'")


class InvalidIdentifierError(SchemaError):
    """Raised when a table or column name is not a plain SQL identifier."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"Invalid SQL identifier: '{identifier}'")


# --- Stages ---


class StageError(RowEraserError):
    """Base for errors raised while building or executing a plan.

    Keeps the class of the exception that caused it, so that the reported
    message can name the underlying failure.
    """

    def __init__(self, original_error_class: type[BaseException], message: str) -> None:
        self.original_error_class = original_error_class
        super().__init__(message)


class BuilderError(StageError):
    """Raised when building the deletion/nullification plans fails outright."""

    def __init__(
        self,
        original_error_class: type[BaseException],
        message: str,
        *,
        building_entity_name: str,
    ) -> None:
        self.building_entity_name = building_entity_name
        super().__init__(original_error_class, message)


class NullifierError(StageError):
    """Raised when nullifying a group of columns fails."""

    def __init__(
        self,
        original_error_class: type[BaseException],
        message: str,
        *,
        nullifying_entity_name: str,
        nullifying_columns: tuple[str, ...],
    ) -> None:
        self.nullifying_entity_name = nullifying_entity_name
        self.nullifying_columns = nullifying_columns
        super().__init__(original_error_class, message)


class DeleterError(StageError):
    """Raised when deleting the records of one deletion key fails."""

    def __init__(
        self,
        original_error_class: type[BaseException],
        message: str,
        *,
        deleting_entity_name: str,
    ) -> None:
        self.deleting_entity_name = deleting_entity_name
        super().__init__(original_error_class, message)


class HaltExecution(RowEraserError):
    """Raised from a wrapping hook to stop processing any further batches."""


# --- Execution ---


class ExecutionError(RowEraserError):
    """Raised when a statement fails in the store."""

    def __init__(self, sql: str, detail: str) -> None:
        self.sql = sql
        super().__init__(f"Statement failed: {detail}")


# --- Transaction ---


class TransactionError(RowEraserError):
    """Base for transaction errors."""


class TransactionStateError(TransactionError):
    """Raised on invalid transaction state transitions."""

    def __init__(self, current_state: str, attempted_action: str) -> None:
        self.current_state = current_state
        self.attempted_action = attempted_action
        super().__init__(f"Cannot {attempted_action} transaction in state '{current_state}'")


# --- Adapter ---


class AdapterError(RowEraserError):
    """Base for adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised on connection failures."""


class PoolError(AdapterError):
    """Raised on connection pool failures."""
