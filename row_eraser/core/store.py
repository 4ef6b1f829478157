"""Store - batched reads and writes of entity rows.

The Store compiles Selections to SQL for the configured backend, executes
them through the adapter and turns driver failures into ExecutionError.
Identity fetches are keyset-paged on the identity column, so every page is
an index range scan and pages never overlap.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from row_eraser.core.connection import ConnectionConfig, ConnectionManager
from row_eraser.core.exceptions import ExecutionError
from row_eraser.core.params import ParamBinder, normalize_params
from row_eraser.core.selection import Condition, Operator, Selection
from row_eraser.schema.model import validate_identifier

if TYPE_CHECKING:
    from row_eraser.core.transaction import TransactionManager

logger = logging.getLogger(__name__)

# Oracle rejects longer IN lists; other backends just plan them better
_IN_LIST_LIMIT = 1000


def _rows_to_dicts(cursor: Any) -> list[dict[str, Any]]:
    """Convert cursor results to a list of dicts.

    Handles both tuple-like rows and dict-like rows from different adapters.
    """
    if cursor.description is None:
        return []
    columns = [desc[0] for desc in cursor.description]
    rows = cursor.fetchall()
    if not rows:
        return []

    # psycopg dict_row, MySQL dictionary cursors and the Oracle row factory
    if isinstance(rows[0], dict):
        return [dict(row) for row in rows]

    return [dict(zip(columns, row, strict=True)) for row in rows]


class Store:
    """Synchronous row store over one connection manager.

    Writes commit immediately unless they run inside `transaction()`.
    """

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self._connection_manager = connection_manager
        self._adapter = connection_manager.adapter
        self._paramstyle: str = connection_manager.adapter.paramstyle
        self._pinned: Any = None
        self._pin_count = 0
        self._transaction: TransactionManager | None = None

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> Store:
        """Create a Store from a ConnectionConfig."""
        return cls(ConnectionManager(config))

    @property
    def adapter(self) -> Any:
        return self._adapter

    @property
    def connection_manager(self) -> ConnectionManager:
        return self._connection_manager

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    # --- reads ---

    def fetch_rows(
        self,
        selection: Selection,
        columns: Sequence[str] | None = None,
        *,
        batch_size: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch `columns` (default: the identity) of every selected row.

        With a `batch_size`, rows are read in keyset pages ordered by the
        identity column. A selection carrying its own limit, or a batch size
        of None, is read in a single query.
        """
        identity = selection.entity.identity
        columns = tuple(validate_identifier(c) for c in (columns or (identity,)))
        if selection.is_none:
            return []

        if batch_size is None or selection.limit_value is not None:
            binder = ParamBinder()
            sql = self._select_sql(selection, columns, binder, ordering=selection.ordering)
            if selection.limit_value is not None:
                sql += f" {self._adapter.limit_clause(selection.limit_value)}"
            return self.fetch_all(sql, binder.params)

        selected = columns if identity in columns else columns + (identity,)
        results: list[dict[str, Any]] = []
        last_key: Any = None
        while True:
            binder = ParamBinder()
            extra = None
            if last_key is not None:
                extra = f"{self._quote(identity)} > {binder.bind(last_key)}"
            sql = self._select_sql(
                selection, selected, binder, ordering=((identity, "ASC"),), extra=extra
            )
            sql += f" {self._adapter.limit_clause(batch_size)}"
            page = self.fetch_all(sql, binder.params)
            if selected is columns:
                results.extend(page)
            else:
                results.extend({c: row[c] for c in columns} for row in page)
            if len(page) < batch_size:
                return results
            last_key = page[-1][identity]

    def fetch_column(
        self,
        selection: Selection,
        column: str | None = None,
        *,
        batch_size: int | None = None,
    ) -> list[Any]:
        """Fetch one column (default: the identity) of every selected row."""
        column = column or selection.entity.identity
        rows = self.fetch_rows(selection, (column,), batch_size=batch_size)
        return [row[column] for row in rows]

    def fetch_pairs(
        self,
        selection: Selection,
        first: str,
        second: str,
        *,
        batch_size: int | None = None,
    ) -> list[tuple[Any, Any]]:
        """Fetch (first, second) column pairs of every selected row."""
        rows = self.fetch_rows(selection, (first, second), batch_size=batch_size)
        return [(row[first], row[second]) for row in rows]

    def exists(self, selection: Selection) -> bool:
        if selection.is_none:
            return False
        binder = ParamBinder()
        sql = self._select_sql(selection, (selection.entity.identity,), binder)
        sql += f" {self._adapter.limit_clause(1)}"
        return bool(self.fetch_all(sql, binder.params))

    # --- writes ---

    def delete(self, selection: Selection) -> int:
        """Delete every selected row. Returns the affected row count."""
        if selection.is_none:
            return 0
        binder = ParamBinder()
        sql = f"DELETE FROM {self._quote(selection.table)}"
        where = self._compile_where(selection.conditions, binder)
        if where:
            sql += f" WHERE {where}"
        return self.execute(sql, binder.params)

    def nullify(self, selection: Selection, columns: Sequence[str]) -> int:
        """Set every column in `columns` to NULL on the selected rows."""
        if selection.is_none:
            return 0
        if not columns:
            raise ValueError("nullify() needs at least one column")
        assignments = ", ".join(
            f"{self._quote(validate_identifier(c))} = NULL" for c in columns
        )
        binder = ParamBinder()
        sql = f"UPDATE {self._quote(selection.table)} SET {assignments}"
        where = self._compile_where(selection.conditions, binder)
        if where:
            sql += f" WHERE {where}"
        return self.execute(sql, binder.params)

    # --- raw SQL ---

    def fetch_all(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run a query written with :name placeholders and return its rows."""
        with self._connection() as conn:
            cursor = self._run(conn, sql, params)
            return _rows_to_dicts(cursor)

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> int:
        """Run a write statement. Returns the affected row count."""
        with self._connection() as conn:
            try:
                cursor = self._run(conn, sql, params)
            except ExecutionError:
                if not self.in_transaction:
                    conn.rollback()
                raise
            if not self.in_transaction:
                conn.commit()
            return int(cursor.rowcount)

    # --- connection scoping ---

    def transaction(self) -> TransactionManager:
        """Create a transaction context manager pinned to one connection."""
        from row_eraser.core.transaction import TransactionManager

        return TransactionManager(self)

    @contextmanager
    def referential_integrity_disabled(self) -> Iterator[None]:
        """Suspend foreign-key enforcement for statements run in this block."""
        conn = self._pin()
        try:
            with self._adapter.referential_integrity_disabled(conn):
                yield
        finally:
            self._unpin()

    def close(self) -> None:
        self._connection_manager.close_pool()

    def _pin(self) -> Any:
        """Route every statement through one connection until _unpin()."""
        if self._pinned is None:
            self._pinned = self._connection_manager.acquire()
        self._pin_count += 1
        return self._pinned

    def _unpin(self) -> None:
        self._pin_count -= 1
        if self._pin_count == 0:
            connection, self._pinned = self._pinned, None
            self._connection_manager.release(connection)

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        if self._pinned is not None:
            yield self._pinned
        else:
            with self._connection_manager.get_connection() as conn:
                yield conn

    def _run(self, conn: Any, sql: str, params: dict[str, Any] | None) -> Any:
        logger.debug("SQL: %s %s", sql, params or "")
        try:
            return self._adapter.execute(conn, normalize_params(sql, self._paramstyle), params)
        except Exception as e:
            raise ExecutionError(sql, f"{type(e).__name__}: {e}") from e

    # --- compilation ---

    def _quote(self, identifier: str) -> str:
        return self._adapter.quote_identifier(identifier)

    def _select_sql(
        self,
        selection: Selection,
        columns: Sequence[str],
        binder: ParamBinder,
        *,
        ordering: Sequence[tuple[str, str]] = (),
        extra: str | None = None,
    ) -> str:
        column_list = ", ".join(self._quote(c) for c in columns)
        sql = f"SELECT {column_list} FROM {self._quote(selection.table)}"
        where = self._compile_where(selection.conditions, binder)
        if extra:
            where = f"{where} AND {extra}" if where else extra
        if where:
            sql += f" WHERE {where}"
        if ordering:
            sql += " ORDER BY " + ", ".join(f"{self._quote(c)} {d}" for c, d in ordering)
        return sql

    def _compile_where(self, conditions: Sequence[Condition], binder: ParamBinder) -> str:
        return " AND ".join(self._compile_condition(c, binder) for c in conditions)

    def _compile_condition(self, condition: Condition, binder: ParamBinder) -> str:
        operator = condition.operator
        if operator == Operator.NONE:
            return "1 = 0"
        if operator == Operator.RAW:
            binder.merge(dict(condition.params))
            return f"({condition.sql})"

        column = self._quote(condition.column or "")
        if operator in (Operator.IS_NULL, Operator.IS_NOT_NULL):
            return f"{column} {operator}"
        if operator in (Operator.EQ, Operator.NE):
            return f"{column} {operator} {binder.bind(condition.value)}"

        values = list(condition.value)
        if not values:
            return "1 = 0" if operator == Operator.IN else "1 = 1"
        chunks = [
            f"{column} {operator} ({binder.bind_many(values[i : i + _IN_LIST_LIMIT])})"
            for i in range(0, len(values), _IN_LIST_LIMIT)
        ]
        if len(chunks) == 1:
            return chunks[0]
        joiner = " OR " if operator == Operator.IN else " AND "
        return "(" + joiner.join(chunks) + ")"
