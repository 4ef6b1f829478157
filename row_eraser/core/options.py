"""Eraser configuration.

EraserOptions is a frozen Pydantic model; unknown keys are rejected. Every
stage (build, nullify, delete) reads the options relevant to it.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from row_eraser.core.exceptions import BuilderError, DeleterError, NullifierError, StageError

Stage = Literal["read", "nullify", "delete"]

DEFAULT_BATCH_SIZES: dict[str, int] = {
    "read": 10_000,
    "nullify": 300,
    "delete": 300,
}


def default_db_wrapper(block: Callable[[], Any]) -> Any:
    """Per-batch hook: run the batch as is."""
    return block()


def default_scope(selection: Any) -> Any:
    """Global scope: no override."""
    return None


def report_stage_error(stage: Any, error: StageError) -> None:
    """Record a stage error on `stage` in the stage's own message format."""
    cause = error.original_error_class.__name__
    if isinstance(error, BuilderError):
        stage.report_error(
            f"Issue attempting to build deletion query for '{error.building_entity_name}' "
            f"=> {cause}: {error}"
        )
    elif isinstance(error, NullifierError):
        stage.report_error(
            f"Issue attempting to nullify '{error.nullifying_entity_name}' on column(s) "
            f"'{', '.join(error.nullifying_columns)}' => {cause}: {error}"
        )
    elif isinstance(error, DeleterError):
        stage.report_error(
            f"Issue attempting to delete '{error.deleting_entity_name}' => {cause}: {error}"
        )
    else:
        stage.report_error(f"{cause}: {error}")


def default_build_all_wrapper(builder: Any, block: Callable[[], Any]) -> Any:
    try:
        return block()
    except BuilderError as e:
        report_stage_error(builder, e)
        return None


def default_nullify_all_wrapper(nullifier: Any, block: Callable[[], Any]) -> Any:
    try:
        return block()
    except NullifierError as e:
        report_stage_error(nullifier, e)
        return None


def default_delete_all_wrapper(deleter: Any, block: Callable[[], Any]) -> Any:
    try:
        return block()
    except DeleterError as e:
        report_stage_error(deleter, e)
        return None


class EraserOptions(BaseModel):
    """Options shared by the plan builder, nullifier and deleter.

    Scope overrides are functions from a Selection to a Selection. They are
    looked up per entity type name in this order: the stage map
    (`reading_` / `nullification_` / `deletion_scopes_per_entity`), then
    `scopes_per_entity`, then the global `scope`, which may return None to
    leave the selection alone.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    verbose: bool = False
    force_destroy_restricted: bool = False
    # evaluate per-owner association scopes row by row instead of reporting them
    instantiate_if_assoc_scope_with_arity: bool = False
    # keep foreign-key enforcement on while nullifying and deleting
    enable_invalid_foreign_key_detection: bool = False

    batch_size: int | None = Field(default=None, gt=0)
    read_batch_size: int | None = Field(default=None, gt=0)
    nullify_batch_size: int | None = Field(default=None, gt=0)
    delete_batch_size: int | None = Field(default=None, gt=0)

    disable_batching: bool = False
    disable_read_batching: bool | None = None
    disable_nullify_batching: bool | None = None
    disable_delete_batching: bool | None = None

    # still walked, but moved into the ignored plans afterwards
    ignore_tables: list[str] = []
    # skipped together with everything below them
    ignore_tables_and_dependencies: list[str] = []
    ignore_entities_and_dependencies: list[str] = []

    scope: Callable[..., Any] = default_scope
    scopes_per_entity: dict[str, Callable[..., Any]] = {}
    reading_scopes_per_entity: dict[str, Callable[..., Any]] = {}
    nullification_scopes_per_entity: dict[str, Callable[..., Any]] = {}
    deletion_scopes_per_entity: dict[str, Callable[..., Any]] = {}

    db_read_wrapper: Callable[..., Any] = default_db_wrapper
    db_nullify_wrapper: Callable[..., Any] = default_db_wrapper
    db_delete_wrapper: Callable[..., Any] = default_db_wrapper
    db_build_all_wrapper: Callable[..., Any] = default_build_all_wrapper
    db_nullify_all_wrapper: Callable[..., Any] = default_nullify_all_wrapper
    db_delete_all_wrapper: Callable[..., Any] = default_delete_all_wrapper

    def batch_size_for(self, stage: Stage) -> int:
        specific = getattr(self, f"{stage}_batch_size")
        if specific is not None:
            return specific
        if self.batch_size is not None:
            return self.batch_size
        return DEFAULT_BATCH_SIZES[stage]

    def batching_disabled_for(self, stage: Stage) -> bool:
        specific = getattr(self, f"disable_{stage}_batching")
        return self.disable_batching if specific is None else specific

    def page_size_for(self, stage: Stage) -> int | None:
        """Batch size for `stage`, or None when batching is disabled."""
        if self.batching_disabled_for(stage):
            return None
        return self.batch_size_for(stage)
