"""Schema layer - entity types, associations and their dependency graph."""

from __future__ import annotations

from row_eraser.schema.builder import EntityBuilder, entity
from row_eraser.schema.index import FlatEntity, FlatSchema, SchemaIndex
from row_eraser.schema.model import POLYMORPHIC, AssociationDescriptor, EntityType
from row_eraser.schema.registry import MetadataProvider, SchemaRegistry
from row_eraser.schema.resolver import DependencyGraph, DependencyGraphResolver

__all__ = [
    "entity",
    "EntityBuilder",
    "EntityType",
    "AssociationDescriptor",
    "POLYMORPHIC",
    "MetadataProvider",
    "SchemaRegistry",
    "SchemaIndex",
    "FlatEntity",
    "FlatSchema",
    "DependencyGraph",
    "DependencyGraphResolver",
]
