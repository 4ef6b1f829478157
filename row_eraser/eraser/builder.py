"""PlanBuilder - turns a root selection into deletion and nullification plans.

The builder walks the dependency rules at the row level: it reads identity
values page by page, recurses into every destroy-like association and
records the foreign keys that nullify associations must clear. Nothing is
written to the store.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from row_eraser.core.exceptions import BuilderError
from row_eraser.core.options import EraserOptions
from row_eraser.core.selection import Selection
from row_eraser.core.store import Store
from row_eraser.eraser.base import Stage
from row_eraser.eraser.plan import DeletionPlan, NullificationPlan, deletion_key
from row_eraser.schema.index import SchemaIndex
from row_eraser.schema.model import AssociationDescriptor, EntityType
from row_eraser.schema.registry import MetadataProvider
from row_eraser.schema.resolver import DependencyGraph, DependencyGraphResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

DESTROY = "destroy"
NULLIFY = "nullify"
RESTRICTED = "restricted"


def _distinct(values: Iterable[Any]) -> list[Any]:
    return list(dict.fromkeys(v for v in values if v is not None))


class PlanBuilder(Stage):
    """Builds the plans for one root selection.

    Args:
        selection: Root rows: a Selection, an EntityType (all of its rows) or
                   a registered entity type name.
        store: Store to read identity and foreign-key values from.
        provider: Metadata provider describing the entity types.
        options: Eraser options.
        schema_index: Shared SchemaIndex; a private one is created if omitted.
    """

    stage_scopes_option = "reading_scopes_per_entity"

    def __init__(
        self,
        selection: Selection | EntityType | str,
        store: Store,
        provider: MetadataProvider,
        options: EraserOptions | None = None,
        *,
        schema_index: SchemaIndex | None = None,
    ) -> None:
        super().__init__(options)
        if isinstance(selection, str):
            selection = provider.get(selection)
        if isinstance(selection, EntityType):
            selection = Selection(selection)
        self.selection = selection
        self.store = store
        self.provider = provider
        self.schema_index = schema_index or SchemaIndex(provider, verbose=self.options.verbose)

        self.deletion_plan = DeletionPlan()
        self.nullification_plan = NullificationPlan()
        self.ignored_deletion_plan = DeletionPlan()
        self.ignored_nullification_plan = NullificationPlan()
        self.graph: DependencyGraph | None = None
        # entity under construction, named in top-level failures
        self.current_entity_name = selection.entity.name
        self.table_names_to_entity_names: dict[str, list[str]] = {}

    def execute(self) -> bool:
        """Resolve the type graph, build the plans and set ignored tables aside."""
        resolver = DependencyGraphResolver(
            self.schema_index,
            force_destroy_restricted=self.options.force_destroy_restricted,
        )
        self.graph = resolver.resolve(self.selection.entity.name)
        if resolver.errors:
            self.merge_errors(resolver.errors, "DependencyGraphResolver: ")
            return False

        result = self.build()
        self._extract_ignored_tables()
        return result

    def build(self) -> bool:
        if self.graph is None:
            raise RuntimeError("build() needs a resolved graph; call execute()")

        def block() -> None:
            try:
                self._walk(self.selection)
            except Exception as e:
                raise BuilderError(
                    type(e), str(e), building_entity_name=self.current_entity_name
                ) from e

        self.log("Starting build for %s", self.selection.entity.name)
        self.options.db_build_all_wrapper(self, block)
        self.uniqify_errors()
        self.nullification_plan.merge_matching_columns()
        self.log(
            "Build complete: %d deletion keys, %d errors",
            len(self.deletion_plan),
            len(self.errors),
        )
        return not self.errors

    # --- walk ---

    def _walk(self, selection: Selection, parent: EntityType | None = None) -> None:
        entity = selection.entity
        self.current_entity_name = entity.name
        self._remember_table(entity)

        if parent is None:
            self.log("Building %s", entity.name)
        else:
            self.log("Building %s, association of %s", entity.name, parent.name)

        if not entity.has_canonical_primary_key:
            self.report_error(
                f"{entity.name} - does not use primary key 'id'. "
                "Cannot use this tool to bulk delete."
            )
            return

        if self._is_ignored_with_dependencies(entity):
            return

        ids = self._read_column(selection)
        key = self._open_key(entity.name)
        already_processed = self.deletion_plan.family_ids(entity.name)
        new_ids = [value for value in ids if value not in already_processed]
        if not new_ids:
            if not self.deletion_plan.ids(key):
                self.deletion_plan.discard(key)
            return

        self.deletion_plan.add(key, new_ids)

        flat = self.schema_index.entity(entity.name)
        destroy = [a for a in flat.destroy_associations if not a.dependent.is_restricted]
        restricted = [a for a in flat.destroy_associations if a.dependent.is_restricted]
        self.log(
            "%s associations - destroy: %s, nullify: %s, restricted: %s",
            entity.name,
            [a.name for a in destroy],
            [a.name for a in flat.nullify_associations],
            [a.name for a in restricted],
        )

        for association in destroy:
            self._association(entity, selection, new_ids, association, DESTROY)
        for association in flat.nullify_associations:
            self._association(entity, selection, new_ids, association, NULLIFY)
        for association in restricted:
            self._association(entity, selection, new_ids, association, RESTRICTED)

    def _open_key(self, name: str) -> str:
        """Deletion key for a fresh visit of `name`.

        Types on a destroy cycle get a new `Name.<n>` bucket on every revisit,
        so deeper buckets are deleted before shallower ones.
        """
        if self.graph is None or not self.graph.is_circular(name):
            self.deletion_plan.ensure(name)
            return name

        if not self.deletion_plan.family_keys(name):
            key = deletion_key(name)
        else:
            indexes = self.deletion_plan.cyclic_indexes(name)
            key = deletion_key(name, max(indexes) + 1 if indexes else 0)
        if key in self.deletion_plan:
            raise RuntimeError(f"Deletion key {key!r} is already open")
        self.deletion_plan.ensure(key)
        return key

    def _association(
        self,
        owner: EntityType,
        selection: Selection,
        ids: list[Any],
        association: AssociationDescriptor,
        mode: str,
    ) -> None:
        if not association.is_polymorphic:
            target = self.provider.get(association.target)
            self.current_entity_name = target.name
            if self._is_ignored_with_dependencies(target):
                return

        if association.is_reference:
            if mode == NULLIFY:
                self.report_error(
                    f"{owner.name}'s association '{association.name}' - "
                    "dependent 'nullify' invalid for a reference"
                )
            elif association.is_polymorphic:
                self._polymorphic_reference(owner, selection, association, mode)
            else:
                self._reference(owner, selection, ids, association, mode)
        else:
            self._to_many(owner, selection, ids, association, mode)

    def _to_many(
        self,
        owner: EntityType,
        selection: Selection,
        ids: list[Any],
        association: AssociationDescriptor,
        mode: str,
    ) -> None:
        target = self.provider.get(association.target)
        if not target.has_canonical_primary_key:
            self.report_error(
                f"{owner.name}'s association '{association.name}' - "
                "assoc class does not use 'id' as a primary_key"
            )
            return

        foreign_key = association.foreign_key or f"{owner.singular}_id"
        foreign_type = association.foreign_type
        for column in (foreign_key, foreign_type):
            if column is not None and not target.has_column(column):
                self._report_missing_column(owner, association, column, target)
                return

        if association.scope_arity:
            if not self.options.instantiate_if_assoc_scope_with_arity:
                self._report_scope_arity(owner, association)
                return
            dependent = self._instantiated_dependents(owner, ids, association, target)
        else:
            dependent = self._association_scope(Selection(target), association)
            if foreign_type is not None:
                dependent = dependent.where(**{foreign_type: owner.name})
            if association.primary_key and association.primary_key != owner.identity:
                source_values = _distinct(self._read_column(selection, association.primary_key))
                dependent = dependent.where(**{foreign_key: source_values})
            else:
                dependent = dependent.where(**{foreign_key: ids})

        # ordering and limits declared on the association do not apply here
        dependent = dependent.unordered()

        if mode == NULLIFY:
            dependent_ids = self._read_column(dependent)
            if not dependent_ids:
                return
            self._remember_table(target)
            self.nullification_plan.add(target.name, foreign_key, dependent_ids)
            if foreign_type is not None:
                self.nullification_plan.add(target.name, foreign_type, dependent_ids)
        elif mode == RESTRICTED:
            if self._restriction_cleared(owner, association, dependent):
                self._walk(dependent, owner)
        else:
            self._walk(dependent, owner)

    def _reference(
        self,
        owner: EntityType,
        selection: Selection,
        ids: list[Any],
        association: AssociationDescriptor,
        mode: str,
    ) -> None:
        target = self.provider.get(association.target)
        if not target.has_canonical_primary_key:
            self.report_error(
                f"{owner.name}'s association '{association.name}' - "
                "assoc class does not use 'id' as a primary_key"
            )
            return

        foreign_key = association.foreign_key or f"{association.name}_id"
        if not owner.has_column(foreign_key):
            self._report_missing_column(owner, association, foreign_key, owner)
            return

        if association.scope_arity:
            if not self.options.instantiate_if_assoc_scope_with_arity:
                self._report_scope_arity(owner, association)
                return
            dependent = self._instantiated_dependents(owner, ids, association, target)
        else:
            target_key = association.primary_key or target.identity
            foreign_values = _distinct(self._read_column(selection, foreign_key))
            dependent = self._association_scope(Selection(target), association)
            dependent = dependent.where(**{target_key: foreign_values})

        dependent = dependent.unordered()
        if mode == RESTRICTED and not self._restriction_cleared(owner, association, dependent):
            return
        self._walk(dependent, owner)

    def _polymorphic_reference(
        self,
        owner: EntityType,
        selection: Selection,
        association: AssociationDescriptor,
        mode: str,
    ) -> None:
        foreign_key = association.foreign_key or f"{association.name}_id"
        foreign_type = association.foreign_type or f"{association.name}_type"
        for column in (foreign_key, foreign_type):
            if not owner.has_column(column):
                self._report_missing_column(owner, association, column, owner)
                return
        if association.scope_arity:
            self._report_scope_arity(owner, association)
            return

        scoped = self.custom_scope(selection.without_ordering())
        pairs = self._read(
            lambda: self.store.fetch_pairs(
                scoped, foreign_key, foreign_type, batch_size=self.options.page_size_for("read")
            )
        )
        ids_by_type: dict[str, list[Any]] = {}
        for foreign_id, type_name in pairs:
            if foreign_id is None or type_name is None:
                continue
            ids_by_type.setdefault(type_name, []).append(foreign_id)

        if mode == RESTRICTED and ids_by_type and not self.options.force_destroy_restricted:
            self._report_restricted(owner, association)
            return

        for type_name, foreign_ids in ids_by_type.items():
            if not self.provider.has(type_name):
                self.report_error(
                    f"{owner.name}'s association '{association.name}' - '{type_name}' "
                    f"in column '{foreign_type}' is not a registered entity type"
                )
                continue
            target = self.provider.get(type_name)
            self.current_entity_name = target.name
            if self._is_ignored_with_dependencies(target):
                continue
            if not target.has_canonical_primary_key:
                self.report_error(
                    f"{owner.name}'s association '{association.name}' - "
                    f"assoc class '{target.name}' does not use 'id' as a primary_key"
                )
                continue
            target_key = association.primary_key or target.identity
            dependent = self._association_scope(Selection(target), association)
            dependent = dependent.where(**{target_key: _distinct(foreign_ids)}).unordered()
            self._walk(dependent, owner)

    def _instantiated_dependents(
        self,
        owner: EntityType,
        ids: list[Any],
        association: AssociationDescriptor,
        target: EntityType,
    ) -> Selection:
        """Evaluate a per-owner association scope one owner row at a time.

        The scope is called as `scope(selection, owner_row)`. Slow: one query
        per owner row.
        """
        if association.is_reference:
            link = association.foreign_key or f"{association.name}_id"
        else:
            link = association.primary_key or owner.identity
        columns = sorted(owner.columns) if owner.columns else _distinct([owner.identity, link])
        owners = Selection(owner).where(**{owner.identity: ids})
        rows = self._read(
            lambda: self.store.fetch_rows(
                owners, columns, batch_size=self.options.page_size_for("read")
            )
        )

        if association.is_reference:
            target_column = association.primary_key or target.identity
        else:
            target_column = association.foreign_key or f"{owner.singular}_id"

        scope: Callable[..., Selection] = association.scope  # type: ignore[assignment]
        dependent_ids: dict[Any, None] = {}
        for row in rows:
            if row[link] is None:
                continue
            base = Selection(target).where(**{target_column: row[link]})
            if not association.is_reference and association.foreign_type is not None:
                base = base.where(**{association.foreign_type: owner.name})
            for value in self._read_column(scope(base, row).unordered()):
                dependent_ids[value] = None
        return Selection(target).where(**{target.identity: list(dependent_ids)})

    # --- restricted associations ---

    def _restriction_cleared(
        self, owner: EntityType, association: AssociationDescriptor, dependent: Selection
    ) -> bool:
        """True when a restricted association may be walked like a destroy."""
        if self.options.force_destroy_restricted:
            return True
        scoped = self.custom_scope(dependent)
        if self._read(lambda: self.store.exists(scoped)):
            self._report_restricted(owner, association)
            return False
        return True

    def _report_restricted(self, owner: EntityType, association: AssociationDescriptor) -> None:
        self.report_error(
            f"{owner.name}'s assoc '{association.name}' has a "
            f"'dependent: {association.dependent.value}' set. "
            "If you still wish to destroy, use the 'force_destroy_restricted' option"
        )

    # --- helpers ---

    def _association_scope(
        self, selection: Selection, association: AssociationDescriptor
    ) -> Selection:
        if association.scope is None:
            return selection
        return association.scope(selection)

    def _read_column(self, selection: Selection, column: str | None = None) -> list[Any]:
        scoped = self.custom_scope(selection.without_ordering())
        return self._read(
            lambda: self.store.fetch_column(
                scoped, column, batch_size=self.options.page_size_for("read")
            )
        )

    def _read(self, block: Callable[[], T]) -> T:
        return self.options.db_read_wrapper(block)

    def _remember_table(self, entity: EntityType) -> None:
        names = self.table_names_to_entity_names.setdefault(entity.table, [])
        if entity.name not in names:
            names.append(entity.name)

    def _is_ignored_with_dependencies(self, entity: EntityType) -> bool:
        return (
            entity.table in self.options.ignore_tables_and_dependencies
            or entity.name in self.options.ignore_entities_and_dependencies
        )

    def _report_missing_column(
        self,
        owner: EntityType,
        association: AssociationDescriptor,
        column: str,
        holder: EntityType,
    ) -> None:
        self.report_error(
            f"""
            For {owner.name}'s association '{association.name}':
            Could not determine the foreign key.
            Column '{column}' does not exist on the {holder.table} table.
            """
        )

    def _report_scope_arity(self, owner: EntityType, association: AssociationDescriptor) -> None:
        self.report_error(
            f"{owner.name} and '{association.name}' - scope has instance parameters. "
            "Use the 'instantiate_if_assoc_scope_with_arity' option?"
        )

    def _extract_ignored_tables(self) -> None:
        """Move plan entries of `ignore_tables` into the ignored plans."""
        for table in self.options.ignore_tables:
            for name in self.table_names_to_entity_names.get(table, []):
                for key in self.deletion_plan.family_keys(name):
                    self.ignored_deletion_plan.add(key, self.deletion_plan.pop(key))
                if name in self.nullification_plan:
                    for columns, ids in self.nullification_plan.pop(name).items():
                        self.ignored_nullification_plan.add(name, columns, ids)
