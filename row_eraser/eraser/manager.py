"""Manager - the single entry point that builds and then executes the plans."""

from __future__ import annotations

from row_eraser.core.options import EraserOptions
from row_eraser.core.selection import Selection
from row_eraser.core.store import Store
from row_eraser.eraser.base import Stage
from row_eraser.eraser.builder import PlanBuilder
from row_eraser.eraser.deleter import Deleter
from row_eraser.eraser.nullifier import Nullifier
from row_eraser.eraser.plan import DeletionPlan, NullificationPlan
from row_eraser.schema.index import SchemaIndex
from row_eraser.schema.model import EntityType
from row_eraser.schema.registry import MetadataProvider


class Manager(Stage):
    """Erase a root selection and everything that depends on it.

    Usage:
        manager = Manager(Selection(user).where(id=1), store, registry)
        if not manager.execute():
            print(manager.errors)

    `build()` may be called on its own first to inspect the plans.
    """

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
        self.store = store
        self.provider = provider
        self.builder = PlanBuilder(
            selection, store, provider, self.options, schema_index=schema_index
        )
        self.nullifier: Nullifier | None = None
        self.deleter: Deleter | None = None
        self._built: bool | None = None

    @property
    def deletion_plan(self) -> DeletionPlan:
        return self.builder.deletion_plan

    @property
    def nullification_plan(self) -> NullificationPlan:
        return self.builder.nullification_plan

    @property
    def ignored_deletion_plan(self) -> DeletionPlan:
        return self.builder.ignored_deletion_plan

    @property
    def ignored_nullification_plan(self) -> NullificationPlan:
        return self.builder.ignored_nullification_plan

    def build(self) -> bool:
        """Build the plans once; later calls return the first result."""
        if self._built is None:
            self._built = self.builder.execute()
            if not self._built:
                self.merge_errors(self.builder.errors, "Builder: ")
        return self._built

    def execute(self) -> bool:
        """Build if needed, then nullify and delete. True when nothing failed."""
        if not self.build():
            return False

        self.nullifier = Nullifier(self.nullification_plan, self.store, self.provider, self.options)
        if not self.nullifier.execute():
            self.merge_errors(self.nullifier.errors, "Nullifier: ")

        self.deleter = Deleter(self.deletion_plan, self.store, self.provider, self.options)
        if not self.deleter.execute():
            self.merge_errors(self.deleter.errors, "Deleter: ")

        return not self.errors
