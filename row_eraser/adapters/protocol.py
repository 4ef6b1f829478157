"""Database adapter protocol.

Every adapter module MUST implement this protocol. The Store only ever talks
to a backend through these methods, so all adapters expose identical public
interfaces.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Protocol, runtime_checkable

from row_eraser.core.connection import ConnectionConfig


@runtime_checkable
class SyncAdapter(Protocol):
    """Synchronous database adapter protocol."""

    @property
    def paramstyle(self) -> str:
        """Parameter binding style: 'named' (:name) or 'pyformat' (%(name)s)."""
        ...

    def create_pool(self, config: ConnectionConfig) -> Any:
        """Create a connection pool."""
        ...

    def acquire_connection(self, pool: Any) -> Any:
        """Acquire a connection from the pool."""
        ...

    def release_connection(self, connection: Any, pool: Any) -> None:
        """Release a connection back to the pool."""
        ...

    def close_pool(self, pool: Any) -> None:
        """Close the pool and release all connections."""
        ...

    def execute(
        self,
        connection: Any,
        sql: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute SQL and return a cursor-like object."""
        ...

    def quote_identifier(self, identifier: str) -> str:
        """Quote an already-validated table or column name."""
        ...

    def limit_clause(self, limit: int) -> str:
        """Trailing clause restricting a SELECT to `limit` rows."""
        ...

    def begin_transaction(self, connection: Any) -> None:
        """Open an explicit transaction on `connection` if none is open."""
        ...

    def referential_integrity_disabled(self, connection: Any) -> AbstractContextManager[None]:
        """Context manager suspending foreign-key enforcement on `connection`."""
        ...
