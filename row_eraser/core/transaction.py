"""Transaction management.

TransactionManager pins one pooled connection to the Store for the duration
of a `with` block, so every read and write in the block shares it. Commits
on success, rolls back on exception.

The module also provides ready-made hooks for the eraser's wrapping options.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from row_eraser.core.exceptions import HaltExecution, StageError, TransactionStateError
from row_eraser.core.options import report_stage_error

if TYPE_CHECKING:
    from row_eraser.core.store import Store

logger = logging.getLogger(__name__)


class _TxState(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class TransactionManager:
    """Synchronous transaction context manager over a Store."""

    def __init__(self, store: Store) -> None:
        self._store = store
        self._connection: Any = None
        self._state = _TxState.IDLE

    @property
    def state(self) -> str:
        return self._state.value

    def __enter__(self) -> TransactionManager:
        if self._state != _TxState.IDLE:
            raise TransactionStateError(self._state.value, "begin")
        if self._store.in_transaction:
            raise TransactionStateError("active", "nest")
        self._connection = self._store._pin()
        try:
            self._store.adapter.begin_transaction(self._connection)
        except Exception:
            self._store._unpin()
            raise
        self._store._transaction = self
        self._state = _TxState.ACTIVE
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        try:
            if self._state == _TxState.ACTIVE:
                if exc_type is not None:
                    self._connection.rollback()
                    self._state = _TxState.ROLLED_BACK
                else:
                    self._connection.commit()
                    self._state = _TxState.COMMITTED
        finally:
            self._store._transaction = None
            self._store._unpin()

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Execute a write statement within this transaction."""
        self._check_active()
        return self._store.execute(sql, params)

    def fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Fetch all rows within transaction context."""
        self._check_active()
        return self._store.fetch_all(sql, params)

    def commit(self) -> None:
        """Explicitly commit the transaction."""
        if self._state == _TxState.ROLLED_BACK:
            raise TransactionStateError("rolled_back", "commit")
        if self._state == _TxState.COMMITTED:
            raise TransactionStateError("committed", "commit")
        if self._state == _TxState.IDLE:
            raise TransactionStateError("idle", "commit")
        self._connection.commit()
        self._state = _TxState.COMMITTED

    def rollback(self) -> None:
        """Explicitly rollback the transaction."""
        if self._state == _TxState.COMMITTED:
            raise TransactionStateError("committed", "rollback")
        if self._state == _TxState.IDLE:
            raise TransactionStateError("idle", "rollback")
        self._connection.rollback()
        self._state = _TxState.ROLLED_BACK

    def _check_active(self) -> None:
        if self._state == _TxState.IDLE:
            raise TransactionStateError("idle", "execute")
        if self._state == _TxState.COMMITTED:
            raise TransactionStateError("committed", "execute")
        if self._state == _TxState.ROLLED_BACK:
            raise TransactionStateError("rolled_back", "execute")


# --- wrapping hooks ---


def transactional_wrapper(store: Store) -> Callable[[Any, Callable[[], Any]], Any]:
    """Build an all-stage hook that runs a whole stage in one transaction.

    The transaction is rolled back when the stage reports new errors, when a
    stage error or HaltExecution escapes the stage, or when the commit
    itself fails (deferred foreign-key checks fail at commit). Each of these
    is reported on the stage instead of raised.

    Usage:
        options = EraserOptions(
            db_nullify_all_wrapper=transactional_wrapper(store),
            db_delete_all_wrapper=transactional_wrapper(store),
        )
    """

    def wrapper(stage: Any, block: Callable[[], Any]) -> Any:
        errors_before = len(stage.errors)
        with store.transaction() as tx:
            result = None
            try:
                result = block()
            except StageError as e:
                report_stage_error(stage, e)
            except HaltExecution as e:
                stage.report_error(f"Halted: {e}")

            if len(stage.errors) > errors_before:
                logger.warning(
                    "%s reported %d error(s); rolling back",
                    type(stage).__name__,
                    len(stage.errors) - errors_before,
                )
                tx.rollback()
                return result

            try:
                tx.commit()
            except Exception as e:
                stage.report_error(
                    f"Issue attempting to commit {type(stage).__name__} transaction "
                    f"=> {type(e).__name__}: {e}"
                )
                tx.rollback()
            return result

    return wrapper


def halt_on_error(block: Callable[[], Any]) -> Any:
    """Per-batch hook that stops the stage at the first failing batch."""
    try:
        return block()
    except Exception as e:
        raise HaltExecution(f"{type(e).__name__}: {e}") from e
