"""Unit tests for TransactionManager and the transactional hooks."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from row_eraser.core.exceptions import DeleterError, HaltExecution, TransactionStateError
from row_eraser.core.store import Store
from row_eraser.core.transaction import halt_on_error, transactional_wrapper
from row_eraser.eraser.base import Stage


@pytest.fixture
def tx_store(store: Store, run_sql: Callable[..., None]) -> Store:
    run_sql("CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT)")
    return store


def _count(store: Store) -> int:
    return store.fetch_all("SELECT COUNT(*) AS cnt FROM users")[0]["cnt"]


class TestTransactionManager:
    def test_commit_persists_changes(self, tx_store: Store) -> None:
        with tx_store.transaction() as tx:
            tx.execute("INSERT INTO users (name) VALUES (:name)", {"name": "Alice"})
            assert tx_store.in_transaction

        assert not tx_store.in_transaction
        assert _count(tx_store) == 1

    def test_auto_rollback_on_exception(self, tx_store: Store) -> None:
        with pytest.raises(RuntimeError, match="boom"), tx_store.transaction() as tx:
            tx.execute("INSERT INTO users (name) VALUES (:name)", {"name": "Alice"})
            raise RuntimeError("boom")

        assert _count(tx_store) == 0
        assert tx.state == "rolled_back"

    def test_explicit_rollback(self, tx_store: Store) -> None:
        with tx_store.transaction() as tx:
            tx.execute("INSERT INTO users (name) VALUES (:name)", {"name": "Alice"})
            tx.rollback()

        assert _count(tx_store) == 0

    def test_store_writes_join_the_transaction(self, tx_store: Store) -> None:
        with tx_store.transaction() as tx:
            tx_store.execute("INSERT INTO users (name) VALUES ('Alice')")
            assert len(tx.fetch_all("SELECT name FROM users")) == 1
            tx.rollback()

        assert _count(tx_store) == 0

    def test_commit_after_rollback(self, tx_store: Store) -> None:
        with tx_store.transaction() as tx:
            tx.rollback()
            with pytest.raises(TransactionStateError):
                tx.commit()

    def test_execute_after_commit(self, tx_store: Store) -> None:
        with tx_store.transaction() as tx:
            tx.commit()
            with pytest.raises(TransactionStateError, match="committed"):
                tx.execute("INSERT INTO users (name) VALUES ('Alice')")

    def test_idle_transaction(self, tx_store: Store) -> None:
        tx = tx_store.transaction()
        with pytest.raises(TransactionStateError, match="idle"):
            tx.commit()
        with pytest.raises(TransactionStateError, match="idle"):
            tx.fetch_all("SELECT 1")

    def test_nesting_rejected(self, tx_store: Store) -> None:
        with tx_store.transaction():
            with pytest.raises(TransactionStateError, match="nest"):
                tx_store.transaction().__enter__()
        assert not tx_store.in_transaction


class _RecordingStage(Stage):
    def execute(self) -> bool:
        return not self.errors


class TestTransactionalWrapper:
    def test_commits_clean_stage(self, tx_store: Store) -> None:
        wrapper = transactional_wrapper(tx_store)
        stage = _RecordingStage()

        def block() -> str:
            tx_store.execute("INSERT INTO users (name) VALUES ('Alice')")
            return "done"

        assert wrapper(stage, block) == "done"
        assert _count(tx_store) == 1

    def test_rolls_back_when_errors_are_reported(self, tx_store: Store) -> None:
        wrapper = transactional_wrapper(tx_store)
        stage = _RecordingStage()

        def block() -> None:
            tx_store.execute("INSERT INTO users (name) VALUES ('Alice')")
            stage.report_error("something failed")

        wrapper(stage, block)
        assert _count(tx_store) == 0
        assert stage.errors == ["something failed"]

    def test_halt_rolls_back_and_reports(self, tx_store: Store) -> None:
        wrapper = transactional_wrapper(tx_store)
        stage = _RecordingStage()

        def block() -> None:
            tx_store.execute("INSERT INTO users (name) VALUES ('Alice')")
            raise HaltExecution("stop here")

        assert wrapper(stage, block) is None
        assert _count(tx_store) == 0
        assert stage.errors == ["Halted: stop here"]

    def test_stage_error_rolls_back_and_reports(self, tx_store: Store) -> None:
        wrapper = transactional_wrapper(tx_store)
        stage = _RecordingStage()

        def block() -> None:
            tx_store.execute("INSERT INTO users (name) VALUES ('Alice')")
            raise DeleterError(HaltExecution, "stop here", deleting_entity_name="User")

        assert wrapper(stage, block) is None
        assert _count(tx_store) == 0
        assert stage.errors == ["Issue attempting to delete 'User' => HaltExecution: stop here"]
        assert not tx_store.in_transaction

    def test_failed_commit_rolls_back_and_reports(
        self, tx_store: Store, run_sql: Callable[..., None]
    ) -> None:
        run_sql(
            "CREATE TABLE posts (id INTEGER PRIMARY KEY, "
            "user_id INTEGER NOT NULL REFERENCES users(id))",
            "INSERT INTO users (id, name) VALUES (1, 'Alice')",
            "INSERT INTO posts (id, user_id) VALUES (1, 1)",
        )
        wrapper = transactional_wrapper(tx_store)
        stage = _RecordingStage()

        def block() -> str:
            # checks are deferred inside the transaction and fail at commit
            with tx_store.referential_integrity_disabled():
                tx_store.execute("DELETE FROM users")
            return "done"

        assert wrapper(stage, block) == "done"
        assert len(stage.errors) == 1
        assert stage.errors[0].startswith(
            "Issue attempting to commit _RecordingStage transaction => IntegrityError"
        )
        assert _count(tx_store) == 1
        assert not tx_store.in_transaction


class TestHaltOnError:
    def test_passes_results_through(self) -> None:
        assert halt_on_error(lambda: 3) == 3

    def test_converts_failures(self) -> None:
        def block() -> None:
            raise KeyError("gone")

        with pytest.raises(HaltExecution, match="KeyError: 'gone'"):
            halt_on_error(block)
