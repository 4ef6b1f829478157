"""PostgreSQL adapter using psycopg (v3+)."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from row_eraser.core.connection import ConnectionConfig
from row_eraser.core.exceptions import PoolError

_REPLICATION_ROLES = frozenset({"origin", "replica", "local"})


def _build_conninfo(config: ConnectionConfig) -> str:
    """Build a libpq connection string from config fields."""
    parts: list[str] = []
    if config.host is not None:
        parts.append(f"host={config.host}")
    if config.port is not None:
        parts.append(f"port={config.port}")
    if config.user is not None:
        parts.append(f"user={config.user}")
    if config.password is not None:
        parts.append(f"password={config.password}")
    parts.append(f"dbname={config.database}")
    return " ".join(parts)


class PostgresqlSyncAdapter:
    """Synchronous PostgreSQL adapter using psycopg (v3+)."""

    @property
    def paramstyle(self) -> str:
        return "pyformat"

    def create_pool(self, config: ConnectionConfig) -> list[Any]:
        import psycopg
        import psycopg.rows

        conninfo = _build_conninfo(config)
        pool: list[Any] = []
        for _ in range(config.pool_size):
            conn = psycopg.connect(conninfo, row_factory=psycopg.rows.dict_row)
            pool.append(conn)
        return pool

    def acquire_connection(self, pool: list[Any]) -> Any:
        if not pool:
            raise PoolError("No connections available in pool")
        return pool.pop()

    def release_connection(self, connection: Any, pool: list[Any]) -> None:
        pool.append(connection)

    def close_pool(self, pool: list[Any]) -> None:
        for conn in pool:
            conn.close()
        pool.clear()

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return connection.execute(sql, params)

    def quote_identifier(self, identifier: str) -> str:
        return f'"{identifier}"'

    def limit_clause(self, limit: int) -> str:
        return f"LIMIT {int(limit)}"

    def begin_transaction(self, connection: Any) -> None:
        # psycopg opens a transaction implicitly on the first statement
        return None

    @contextmanager
    def referential_integrity_disabled(self, connection: Any) -> Iterator[None]:
        """Skip FK triggers for this session via `session_replication_role`.

        Requires a role allowed to change the setting (superuser or, on
        PostgreSQL 15+, one granted SET on the parameter).
        """
        row = connection.execute("SHOW session_replication_role").fetchone()
        old_role = next(iter(row.values())) if isinstance(row, dict) else row[0]
        if old_role not in _REPLICATION_ROLES:
            old_role = "origin"
        try:
            connection.execute("SET session_replication_role = replica")
            yield
        finally:
            connection.execute(f"SET session_replication_role = {old_role}")
