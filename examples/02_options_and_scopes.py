"""
Example 02: Options and Scopes

This example shows scope overrides, ignored tables, restricted associations
and how errors are reported instead of raised.
"""

from row_eraser import ConnectionConfig, EraserOptions, Manager, SchemaRegistry, Store, entity
import logging
import tempfile
import sqlite3
from pathlib import Path


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    db_file = tempfile.NamedTemporaryFile(delete=False, suffix=".db")
    db_path = db_file.name
    db_file.close()

    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE accounts (id INTEGER PRIMARY KEY, archived INTEGER DEFAULT 0);
        CREATE TABLE projects (id INTEGER PRIMARY KEY, account_id INTEGER, archived INTEGER DEFAULT 0);
        CREATE TABLE invoices (id INTEGER PRIMARY KEY, account_id INTEGER);
        CREATE TABLE audits (id INTEGER PRIMARY KEY, project_id INTEGER);

        INSERT INTO accounts (id, archived) VALUES (1, 1), (2, 1), (3, 0);
        INSERT INTO projects (id, account_id, archived) VALUES (10, 1, 1), (11, 1, 0), (12, 2, 1);
        INSERT INTO invoices (id, account_id) VALUES (50, 2);
        INSERT INTO audits (id, project_id) VALUES (70, 10), (71, 12);
    """)
    conn.close()

    registry = SchemaRegistry([
        entity("Account", "accounts")
            .has_many("projects", "Project", dependent="destroy")
            .has_many("invoices", "Invoice", dependent="restrict_with_error"),
        entity("Project", "projects").has_many("audits", "Audit", dependent="destroy"),
        entity("Invoice", "invoices"),
        entity("Audit", "audits"),
    ])

    store = Store.from_config(ConnectionConfig(driver="sqlite", database=db_path))

    print("=== Options and Scopes ===\n")

    options = EraserOptions(
        verbose=True,
        # only archived projects go with their account
        scopes_per_entity={"Project": lambda s: s.where(archived=1)},
        # audits are kept; their rows show up in the ignored plan instead
        ignore_tables=["audits"],
        read_batch_size=2,
        # the global scope applies to types without an entry above
        scope=lambda s: s.where(archived=1) if s.entity.name == "Account" else None,
    )

    # A name selects every row of that entity type
    manager = Manager("Account", store, registry, options)
    manager.build()
    print(f"\nDeletion plan:         {manager.deletion_plan.to_dict()}")
    print(f"Ignored deletion plan: {manager.ignored_deletion_plan.to_dict()}")
    print(f"Errors: {manager.errors}\n")

    # account 2 still has an invoice: the build failed and nothing is erased
    print(f"Execute succeeded: {manager.execute()}")

    options = options.model_copy(update={"force_destroy_restricted": True})
    manager = Manager("Account", store, registry, options)
    print(f"Forced execute succeeded: {manager.execute()}")
    print(f"Remaining accounts: {store.fetch_all('SELECT id FROM accounts')}")
    print(f"Remaining projects: {store.fetch_all('SELECT id FROM projects')}")
    print(f"Remaining audits:   {store.fetch_all('SELECT id FROM audits')}\n")

    # Unknown options are rejected up front
    try:
        EraserOptions(batch_sise=10)
    except ValueError as e:
        print(f"Invalid options: {type(e).__name__}")

    store.close()
    Path(db_path).unlink()


if __name__ == "__main__":
    main()
