"""
Example 01: Basic Erase

This example declares a small schema, builds the deletion and nullification
plans for one user and then executes them with RowEraser's Manager.
"""

from row_eraser import ConnectionConfig, Manager, SchemaRegistry, Selection, Store, entity
import tempfile
import sqlite3
from pathlib import Path


def main():
    # Create a temporary database
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    # Set up the database with some test data
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL);
        CREATE TABLE orders (id INTEGER PRIMARY KEY, user_id INTEGER NOT NULL REFERENCES users(id));
        CREATE TABLE line_items (id INTEGER PRIMARY KEY, order_id INTEGER NOT NULL REFERENCES orders(id));
        CREATE TABLE coupons (id INTEGER PRIMARY KEY, claimed_by_id INTEGER REFERENCES users(id));

        INSERT INTO users (id, name) VALUES (1, 'Alice'), (2, 'Bob');
        INSERT INTO orders (id, user_id) VALUES (10, 1), (11, 1), (12, 2);
        INSERT INTO line_items (id, order_id) VALUES (100, 10), (101, 10), (102, 11), (103, 12);
        INSERT INTO coupons (id, claimed_by_id) VALUES (5, 1), (6, 2);
    """)
    conn.close()

    # Declare the schema
    registry = SchemaRegistry([
        entity("User", "users")
            .has_many("orders", "Order", dependent="destroy")
            .has_many("coupons", "Coupon", foreign_key="claimed_by_id", dependent="nullify"),
        entity("Order", "orders")
            .has_many("line_items", "LineItem", dependent="destroy")
            .belongs_to("user", "User"),
        entity("LineItem", "line_items").belongs_to("order", "Order"),
        entity("Coupon", "coupons").belongs_to("claimed_by", "User"),
    ])

    config = ConnectionConfig(driver="sqlite", database=db_path)
    store = Store.from_config(config)

    print("=== Basic Erase ===\n")

    alice = Selection(registry.get("User")).where(id=1)
    manager = Manager(alice, store, registry)

    # build: walk the dependencies without writing anything
    manager.build()
    print(f"Deletion plan:      {manager.deletion_plan.to_dict()}")
    print(f"Nullification plan: {manager.nullification_plan.to_dict()}\n")

    # execute: nullify, then delete dependents before their owners
    ok = manager.execute()
    print(f"Execute succeeded: {ok}")
    print(f"Remaining users:      {store.fetch_all('SELECT id, name FROM users')}")
    print(f"Remaining line items: {store.fetch_all('SELECT id FROM line_items')}")
    print(f"Coupons:              {store.fetch_all('SELECT id, claimed_by_id FROM coupons')}\n")

    # Clean up
    store.close()
    Path(db_path).unlink()


if __name__ == "__main__":
    main()
