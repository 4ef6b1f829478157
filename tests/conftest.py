"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest

from row_eraser.core.connection import ConnectionConfig
from row_eraser.core.store import Store
from row_eraser.schema.builder import entity
from row_eraser.schema.registry import SchemaRegistry

SHOP_DDL = [
    "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL)",
    "CREATE TABLE orders (id INTEGER PRIMARY KEY, "
    "user_id INTEGER NOT NULL REFERENCES users(id))",
    "CREATE TABLE line_items (id INTEGER PRIMARY KEY, "
    "order_id INTEGER NOT NULL REFERENCES orders(id))",
    "CREATE TABLE coupons (id INTEGER PRIMARY KEY, "
    "claimed_by_id INTEGER REFERENCES users(id))",
]

SHOP_ROWS = [
    "INSERT INTO users (id, name) VALUES (1, 'alice'), (2, 'bob')",
    "INSERT INTO orders (id, user_id) VALUES (10, 1), (11, 1), (12, 2)",
    "INSERT INTO line_items (id, order_id) VALUES (100, 10), (101, 10), (102, 11), (103, 12)",
    "INSERT INTO coupons (id, claimed_by_id) VALUES (5, 1), (6, 2), (7, NULL)",
]


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    """SQLite in-memory connection config (one connection, one database)."""
    return ConnectionConfig(driver="sqlite", database=":memory:", pool_size=1)


@pytest.fixture
def store(sqlite_config: ConnectionConfig) -> Iterator[Store]:
    """Empty in-memory store with foreign-key enforcement on."""
    st = Store.from_config(sqlite_config)
    yield st
    st.close()


@pytest.fixture
def run_sql(store: Store) -> Callable[..., None]:
    """Helper to run setup statements against the store.

    Usage:
        run_sql("CREATE TABLE t (id INTEGER PRIMARY KEY)", "INSERT INTO t VALUES (1)")
    """

    def _run(*statements: str) -> None:
        for statement in statements:
            store.execute(statement)

    return _run


@pytest.fixture
def shop_registry() -> SchemaRegistry:
    """User -> Order -> LineItem (destroy) and User -> Coupon (nullify)."""
    return SchemaRegistry(
        [
            entity("User", "users")
            .has_many("orders", "Order", dependent="destroy")
            .has_many("coupons", "Coupon", foreign_key="claimed_by_id", dependent="nullify"),
            entity("Order", "orders")
            .has_many("line_items", "LineItem", dependent="destroy")
            .belongs_to("user", "User"),
            entity("LineItem", "line_items").belongs_to("order", "Order"),
            entity("Coupon", "coupons").belongs_to("claimed_by", "User"),
        ]
    )


@pytest.fixture
def shop_store(store: Store, run_sql: Callable[..., None]) -> Store:
    """Store seeded with two users, their orders, line items and coupons."""
    run_sql(*SHOP_DDL, *SHOP_ROWS)
    return store


@pytest.fixture
def table_ids(store: Store) -> Callable[[str], list[int]]:
    """Helper returning the sorted ids currently stored in a table."""

    def _ids(table: str) -> list[int]:
        return [row["id"] for row in store.fetch_all(f"SELECT id FROM {table} ORDER BY id")]

    return _ids
