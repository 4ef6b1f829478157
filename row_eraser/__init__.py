"""RowEraser - bulk, cascade-aware deletion of rows and their dependents."""

from __future__ import annotations

from row_eraser.core.connection import ConnectionConfig, ConnectionManager
from row_eraser.core.enums import AssociationKind, DatabaseBackend, DependencyAction
from row_eraser.core.exceptions import (
    AdapterError,
    AssociationNotFoundError,
    BuilderError,
    ConnectionError,  # noqa: A004
    DeleterError,
    DuplicateEntityError,
    EntityNotFoundError,
    ExecutionError,
    HaltExecution,
    InvalidIdentifierError,
    NullifierError,
    PoolError,
    RowEraserError,
    SchemaError,
    StageError,
    TransactionError,
    TransactionStateError,
)
from row_eraser.core.options import EraserOptions
from row_eraser.core.selection import Selection
from row_eraser.core.store import Store
from row_eraser.core.transaction import TransactionManager, halt_on_error, transactional_wrapper
from row_eraser.eraser.builder import PlanBuilder
from row_eraser.eraser.deleter import Deleter
from row_eraser.eraser.manager import Manager
from row_eraser.eraser.nullifier import Nullifier
from row_eraser.eraser.plan import DeletionPlan, NullificationPlan
from row_eraser.schema.builder import entity
from row_eraser.schema.index import SchemaIndex
from row_eraser.schema.model import POLYMORPHIC, AssociationDescriptor, EntityType
from row_eraser.schema.registry import MetadataProvider, SchemaRegistry
from row_eraser.schema.resolver import DependencyGraph, DependencyGraphResolver

__all__ = [
    # Connection
    "ConnectionConfig",
    "ConnectionManager",
    # Store
    "Store",
    "Selection",
    # Transaction
    "TransactionManager",
    "transactional_wrapper",
    "halt_on_error",
    # Schema
    "entity",
    "EntityType",
    "AssociationDescriptor",
    "POLYMORPHIC",
    "MetadataProvider",
    "SchemaRegistry",
    "SchemaIndex",
    "DependencyGraph",
    "DependencyGraphResolver",
    # Eraser
    "EraserOptions",
    "Manager",
    "PlanBuilder",
    "Nullifier",
    "Deleter",
    "DeletionPlan",
    "NullificationPlan",
    # Enums
    "DatabaseBackend",
    "DependencyAction",
    "AssociationKind",
    # Exceptions
    "RowEraserError",
    "SchemaError",
    "EntityNotFoundError",
    "DuplicateEntityError",
    "AssociationNotFoundError",
    "InvalidIdentifierError",
    "StageError",
    "BuilderError",
    "NullifierError",
    "DeleterError",
    "HaltExecution",
    "ExecutionError",
    "TransactionError",
    "TransactionStateError",
    "AdapterError",
    "ConnectionError",
    "PoolError",
]
