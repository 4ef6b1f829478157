"""
Example 03: Transactions and Hooks

This example runs the nullify and delete stages inside transactions, audits
every batch through a per-batch hook and stops at the first failing batch.
"""

from row_eraser import (
    ConnectionConfig,
    EraserOptions,
    Manager,
    SchemaRegistry,
    Selection,
    Store,
    entity,
    halt_on_error,
    transactional_wrapper,
)
import tempfile
import sqlite3
from pathlib import Path


def main():
    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE categories (id INTEGER PRIMARY KEY, parent_id INTEGER REFERENCES categories(id));
        CREATE TABLE products (id INTEGER PRIMARY KEY, category_id INTEGER REFERENCES categories(id));

        INSERT INTO categories (id, parent_id) VALUES (1, NULL), (2, 1), (3, 2), (4, 1);
        INSERT INTO products (id, category_id) VALUES (20, 2), (21, 3), (22, 4);
    """)
    conn.close()

    # A self-referencing tree: each level is deleted before its parent
    registry = SchemaRegistry([
        entity("Category", "categories", singular="category")
            .has_many("children", "Category", foreign_key="parent_id", dependent="destroy")
            .has_many("products", "Product", dependent="nullify"),
        entity("Product", "products"),
    ])

    store = Store.from_config(ConnectionConfig(driver="sqlite", database=db_path))

    print("=== Transactions and Hooks ===\n")

    batches = []

    def audit(block):
        count, selection, ids, *columns = block()
        batches.append((selection.entity.name, ids, count))
        return count

    options = EraserOptions(
        delete_batch_size=2,
        enable_invalid_foreign_key_detection=True,
        db_delete_wrapper=audit,
        db_nullify_all_wrapper=transactional_wrapper(store),
        db_delete_all_wrapper=transactional_wrapper(store),
    )
    root = Selection(registry.get("Category")).where(id=1)
    manager = Manager(root, store, registry, options)

    manager.build()
    print(f"1. Deletion plan (deepest level last): {manager.deletion_plan.to_dict()}")
    print(f"   Execute succeeded: {manager.execute()}")
    for name, ids, count in batches:
        print(f"   deleted {count} {name} row(s): {ids}")
    print(f"   Remaining categories: {store.fetch_all('SELECT id FROM categories')}\n")

    # Stop at the first failing batch; the transaction rolls the stage back
    print("2. Halting on the first failing batch:")
    store.execute("INSERT INTO categories (id, parent_id) VALUES (5, NULL), (6, 5)")
    options = EraserOptions(
        enable_invalid_foreign_key_detection=True,
        deletion_scopes_per_entity={"Category": lambda s: s.where(no_such_column=1)},
        db_delete_wrapper=halt_on_error,
        db_delete_all_wrapper=transactional_wrapper(store),
    )
    manager = Manager(Selection(registry.get("Category")).where(id=5), store, registry, options)
    print(f"   Execute succeeded: {manager.execute()}")
    for error in manager.errors:
        print(f"   error: {error}")
    print(f"   Remaining categories: {store.fetch_all('SELECT id FROM categories')}\n")

    store.close()
    Path(db_path).unlink()


if __name__ == "__main__":
    main()
