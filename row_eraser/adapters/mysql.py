"""MySQL adapter using mysql-connector-python."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from row_eraser.core.connection import ConnectionConfig
from row_eraser.core.exceptions import PoolError


class MysqlSyncAdapter:
    """Synchronous MySQL adapter using mysql-connector-python."""

    @property
    def paramstyle(self) -> str:
        return "pyformat"

    def create_pool(self, config: ConnectionConfig) -> list[Any]:
        """Create a pool (list of connections) for MySQL."""
        import mysql.connector

        pool: list[Any] = []
        for _ in range(config.pool_size):
            conn = mysql.connector.connect(
                host=config.host,
                port=config.port,
                user=config.user,
                password=config.password,
                database=config.database,
            )
            pool.append(conn)
        return pool

    def acquire_connection(self, pool: list[Any]) -> Any:
        """Acquire a connection from the pool."""
        if not pool:
            raise PoolError("No connections available in pool")
        return pool.pop()

    def release_connection(self, connection: Any, pool: list[Any]) -> None:
        """Release a connection back to the pool."""
        pool.append(connection)

    def close_pool(self, pool: list[Any]) -> None:
        """Close all connections in the pool."""
        for conn in pool:
            conn.close()
        pool.clear()

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute SQL and return a cursor with dictionary results."""
        cursor = connection.cursor(dictionary=True)
        cursor.execute(sql, params or {})
        return cursor

    def quote_identifier(self, identifier: str) -> str:
        return f"`{identifier}`"

    def limit_clause(self, limit: int) -> str:
        return f"LIMIT {int(limit)}"

    def begin_transaction(self, connection: Any) -> None:
        if not connection.in_transaction:
            connection.start_transaction()

    @contextmanager
    def referential_integrity_disabled(self, connection: Any) -> Iterator[None]:
        """Toggle FOREIGN_KEY_CHECKS for the session, restoring the old value."""
        cursor = connection.cursor()
        cursor.execute("SELECT @@FOREIGN_KEY_CHECKS")
        old_checks = int(cursor.fetchone()[0])
        try:
            cursor.execute("SET FOREIGN_KEY_CHECKS = 0")
            yield
        finally:
            cursor.execute(f"SET FOREIGN_KEY_CHECKS = {old_checks}")
            cursor.close()
