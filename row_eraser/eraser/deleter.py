"""Deleter - removes the rows listed in a deletion plan."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from row_eraser.core.exceptions import DeleterError, HaltExecution
from row_eraser.core.options import EraserOptions
from row_eraser.core.selection import Selection
from row_eraser.core.store import Store
from row_eraser.eraser.base import Stage, chunked
from row_eraser.eraser.plan import DeletionPlan, split_key
from row_eraser.schema.model import EntityType
from row_eraser.schema.registry import MetadataProvider


class Deleter(Stage):
    """Deletes planned rows in reverse discovery order.

    Dependents are discovered after their owners, so walking the keys
    backwards deletes them first; for a cyclic type the deepest bucket
    (`Name.<highest>`) goes before shallower ones.
    """

    stage_scopes_option = "deletion_scopes_per_entity"

    def __init__(
        self,
        plan: DeletionPlan,
        store: Store,
        provider: MetadataProvider,
        options: EraserOptions | None = None,
    ) -> None:
        super().__init__(options)
        self.store = store
        self.provider = provider
        self.plan = DeletionPlan(plan.to_dict())
        self.current_entity_name = "N/A"

    def execute(self) -> bool:
        self.log("Deleting all from store...")
        self.options.db_delete_all_wrapper(self, self._delete_all)
        self.log("Deleting all from store complete.")
        return not self.errors

    def _delete_all(self) -> None:
        for key in reversed(self.plan.keys()):
            name, _ = split_key(key)
            self.current_entity_name = name
            try:
                entity = self.provider.get(name)
                self._delete_key(entity, self.plan.ids(key)[::-1])
            except HaltExecution as e:
                raise DeleterError(type(e), str(e), deleting_entity_name=name) from e
            except Exception as e:
                self.report_error(
                    f"Issue attempting to delete '{name}' => {type(e).__name__}: {e}"
                )

    def _delete_key(self, entity: EntityType, ids: list[Any]) -> None:
        base = self.custom_scope(Selection(entity))
        batch_size = self.options.page_size_for("delete")

        if self.options.enable_invalid_foreign_key_detection:
            for batch in chunked(ids, batch_size):
                self._delete_batch(base, batch)
        else:
            with self.store.referential_integrity_disabled():
                for batch in chunked(ids, batch_size):
                    self._delete_batch(base, batch)

    def _delete_batch(self, base: Selection, ids: Sequence[Any]) -> Any:
        def block() -> tuple[int, Selection, list[Any]]:
            selection = base.where(**{base.entity.identity: list(ids)})
            return self.store.delete(selection), selection, list(ids)

        self.log("Deleting %d %s rows", len(ids), base.entity.name)
        return self.options.db_delete_wrapper(block)
