"""Nullifier - clears foreign keys listed in a nullification plan."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from row_eraser.core.exceptions import HaltExecution, NullifierError
from row_eraser.core.options import EraserOptions
from row_eraser.core.selection import Selection
from row_eraser.core.store import Store
from row_eraser.eraser.base import Stage, chunked
from row_eraser.eraser.plan import NullificationPlan
from row_eraser.schema.model import EntityType
from row_eraser.schema.registry import MetadataProvider


class Nullifier(Stage):
    """Sets planned columns to NULL, last-discovered entity type first.

    Column groups with identical id sets are merged first so that they are
    cleared in one UPDATE. A failing group is reported and the remaining
    groups still run; a per-batch hook may raise HaltExecution to stop.
    """

    stage_scopes_option = "nullification_scopes_per_entity"

    def __init__(
        self,
        plan: NullificationPlan,
        store: Store,
        provider: MetadataProvider,
        options: EraserOptions | None = None,
    ) -> None:
        super().__init__(options)
        self.store = store
        self.provider = provider
        self.plan = NullificationPlan(plan.to_dict())
        self.log("Combining nullification column groups: %s", self.plan)
        self.plan.merge_matching_columns()
        self.log("After combination: %s", self.plan)
        self.current_entity_name = "N/A"
        self.current_columns: tuple[str, ...] = ()

    def execute(self) -> bool:
        self.log("Nullifying all from store...")
        self.options.db_nullify_all_wrapper(self, self._nullify_all)
        self.log("Nullifying all from store complete.")
        return not self.errors

    def _nullify_all(self) -> None:
        for name in reversed(self.plan.keys()):
            for columns, ids in self.plan.groups(name).items():
                self.current_entity_name = name
                self.current_columns = columns
                try:
                    entity = self.provider.get(name)
                    # later ids are more likely to be dependents
                    self._nullify_group(entity, columns, ids[::-1])
                except HaltExecution as e:
                    raise NullifierError(
                        type(e),
                        str(e),
                        nullifying_entity_name=name,
                        nullifying_columns=columns,
                    ) from e
                except Exception as e:
                    self.report_error(
                        f"Issue attempting to nullify '{name}' on column(s) "
                        f"'{', '.join(columns)}' => {type(e).__name__}: {e}"
                    )

    def _nullify_group(self, entity: EntityType, columns: tuple[str, ...], ids: list[Any]) -> None:
        base = self.custom_scope(Selection(entity))
        batch_size = self.options.page_size_for("nullify")

        if self.options.enable_invalid_foreign_key_detection:
            for batch in chunked(ids, batch_size):
                self._nullify_batch(base, columns, batch)
        else:
            with self.store.referential_integrity_disabled():
                for batch in chunked(ids, batch_size):
                    self._nullify_batch(base, columns, batch)

    def _nullify_batch(self, base: Selection, columns: tuple[str, ...], ids: Sequence[Any]) -> Any:
        def block() -> tuple[int, Selection, list[Any], tuple[str, ...]]:
            selection = base.where(**{base.entity.identity: list(ids)})
            # returned so that custom hooks can audit each batch
            return self.store.nullify(selection, columns), selection, list(ids), columns

        self.log("Nullifying %s %s for %d rows", base.entity.name, columns, len(ids))
        return self.options.db_nullify_wrapper(block)
