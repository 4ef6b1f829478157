"""Contract tests for adapter protocol compliance."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from row_eraser.adapters.protocol import SyncAdapter
from row_eraser.adapters.sqlite import SqliteSyncAdapter
from row_eraser.core.connection import ConnectionConfig
from row_eraser.core.enums import DatabaseBackend


class TestSqliteSyncAdapterProtocol:
    def test_implements_sync_protocol(self) -> None:
        adapter = SqliteSyncAdapter()
        assert isinstance(adapter, SyncAdapter)

    def test_paramstyle(self) -> None:
        assert SqliteSyncAdapter().paramstyle == "named"

    def test_sql_fragments(self) -> None:
        adapter = SqliteSyncAdapter()
        assert adapter.quote_identifier("users") == "[users]"
        assert adapter.limit_clause(10) == "LIMIT 10"

    def test_lifecycle(self, sqlite_config: ConnectionConfig) -> None:
        adapter = SqliteSyncAdapter()
        pool = adapter.create_pool(sqlite_config)
        assert len(pool) == 1

        conn = adapter.acquire_connection(pool)
        row = adapter.execute(conn, "SELECT 1 AS val").fetchone()
        assert row["val"] == 1

        adapter.release_connection(conn, pool)
        assert len(pool) == 1

        adapter.close_pool(pool)
        assert len(pool) == 0

    def test_foreign_keys_on_by_default(self, sqlite_config: ConnectionConfig) -> None:
        adapter = SqliteSyncAdapter()
        pool = adapter.create_pool(sqlite_config)
        conn = adapter.acquire_connection(pool)
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

        with adapter.referential_integrity_disabled(conn):
            assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 0
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        adapter.close_pool([conn])

    def test_integrity_bypass_inside_transaction_defers_checks(
        self, sqlite_config: ConnectionConfig
    ) -> None:
        adapter = SqliteSyncAdapter()
        conn = adapter.acquire_connection(adapter.create_pool(sqlite_config))
        adapter.begin_transaction(conn)
        assert conn.in_transaction

        with adapter.referential_integrity_disabled(conn):
            assert conn.execute("PRAGMA defer_foreign_keys").fetchone()[0] == 1
        conn.rollback()
        assert conn.execute("PRAGMA defer_foreign_keys").fetchone()[0] == 0
        conn.close()


class TestConnectionConfig:
    def test_backend(self, sqlite_config: ConnectionConfig) -> None:
        assert sqlite_config.backend is DatabaseBackend.SQLITE

    def test_unknown_driver(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported database driver"):
            ConnectionConfig(driver="db2", database="x")


# --- PostgreSQL protocol compliance ---


class TestPostgresqlSyncAdapterProtocol:
    def test_implements_sync_protocol(self) -> None:
        from row_eraser.adapters.postgresql import PostgresqlSyncAdapter

        adapter = PostgresqlSyncAdapter()
        assert isinstance(adapter, SyncAdapter)

    def test_paramstyle(self) -> None:
        from row_eraser.adapters.postgresql import PostgresqlSyncAdapter

        adapter = PostgresqlSyncAdapter()
        assert adapter.paramstyle == "pyformat"
        assert adapter.quote_identifier("orders") == '"orders"'


# --- MySQL protocol compliance ---


class TestMysqlSyncAdapterProtocol:
    def test_implements_sync_protocol(self) -> None:
        from row_eraser.adapters.mysql import MysqlSyncAdapter

        adapter = MysqlSyncAdapter()
        assert isinstance(adapter, SyncAdapter)

    def test_paramstyle(self) -> None:
        from row_eraser.adapters.mysql import MysqlSyncAdapter

        adapter = MysqlSyncAdapter()
        assert adapter.paramstyle == "pyformat"
        assert adapter.quote_identifier("orders") == "`orders`"


# --- Oracle protocol compliance ---


class TestOracleSyncAdapterProtocol:
    def test_implements_sync_protocol(self) -> None:
        from row_eraser.adapters.oracle import OracleSyncAdapter

        adapter = OracleSyncAdapter()
        assert isinstance(adapter, SyncAdapter)

    def test_paramstyle(self) -> None:
        from row_eraser.adapters.oracle import OracleSyncAdapter

        adapter = OracleSyncAdapter()
        assert adapter.paramstyle == "named"
        assert adapter.limit_clause(5) == "FETCH FIRST 5 ROWS ONLY"
