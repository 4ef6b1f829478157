"""SQLite adapter using stdlib sqlite3."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from row_eraser.core.connection import ConnectionConfig
from row_eraser.core.exceptions import PoolError


class SqliteSyncAdapter:
    """Synchronous SQLite adapter using stdlib sqlite3."""

    @property
    def paramstyle(self) -> str:
        return "named"

    def create_pool(self, config: ConnectionConfig) -> list[sqlite3.Connection]:
        """Create a 'pool' (list of connections) for SQLite.

        Each `:memory:` connection is its own database, so in-memory setups
        should use pool_size=1.
        """
        pool: list[sqlite3.Connection] = []
        for _ in range(config.pool_size):
            conn = sqlite3.connect(config.database)
            conn.row_factory = sqlite3.Row
            if config.extra.get("foreign_keys", True):
                conn.execute("PRAGMA foreign_keys = ON")
            pool.append(conn)
        return pool

    def acquire_connection(self, pool: list[sqlite3.Connection]) -> sqlite3.Connection:
        """Acquire a connection from the pool."""
        if not pool:
            raise PoolError("No connections available in pool")
        return pool.pop()

    def release_connection(
        self, connection: sqlite3.Connection, pool: list[sqlite3.Connection]
    ) -> None:
        """Release a connection back to the pool."""
        pool.append(connection)

    def close_pool(self, pool: list[sqlite3.Connection]) -> None:
        """Close all connections in the pool."""
        for conn in pool:
            conn.close()
        pool.clear()

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> sqlite3.Cursor:
        """Execute SQL and return a cursor."""
        return connection.execute(sql, params or {})

    def quote_identifier(self, identifier: str) -> str:
        # an unknown double-quoted name would fall back to a string literal
        return f"[{identifier}]"

    def limit_clause(self, limit: int) -> str:
        return f"LIMIT {int(limit)}"

    def begin_transaction(self, connection: sqlite3.Connection) -> None:
        if not connection.in_transaction:
            connection.execute("BEGIN")

    @contextmanager
    def referential_integrity_disabled(self, connection: sqlite3.Connection) -> Iterator[None]:
        """Suspend foreign-key checks on `connection`.

        `PRAGMA foreign_keys` is a no-op inside an open transaction; there the
        checks are deferred to commit time instead. SQLite switches
        `defer_foreign_keys` back off by itself at COMMIT / ROLLBACK.
        """
        if connection.in_transaction:
            connection.execute("PRAGMA defer_foreign_keys = ON")
            yield
            return

        old_foreign_keys = connection.execute("PRAGMA foreign_keys").fetchone()[0]
        try:
            connection.execute("PRAGMA foreign_keys = OFF")
            yield
        finally:
            # a failed write leaves the implicit transaction open
            if connection.in_transaction:
                connection.rollback()
            connection.execute(f"PRAGMA foreign_keys = {int(old_foreign_keys)}")
