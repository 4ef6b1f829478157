"""Unit tests for PlanBuilder against an in-memory SQLite store."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from row_eraser.core.options import EraserOptions
from row_eraser.core.selection import Selection
from row_eraser.core.store import Store
from row_eraser.eraser.builder import PlanBuilder
from row_eraser.schema.builder import entity
from row_eraser.schema.registry import SchemaRegistry


def _build(
    store: Store,
    registry: SchemaRegistry,
    selection: Selection | str,
    **options,
) -> PlanBuilder:
    builder = PlanBuilder(selection, store, registry, EraserOptions(**options))
    builder.execute()
    return builder


def _user(registry: SchemaRegistry, *ids: int) -> Selection:
    return Selection(registry.get("User")).where(id=list(ids))


class TestShopPlans:
    def test_cascade_and_nullify(self, shop_store: Store, shop_registry: SchemaRegistry) -> None:
        builder = _build(shop_store, shop_registry, _user(shop_registry, 1))

        assert builder.errors == []
        assert builder.deletion_plan.to_dict() == {
            "User": [1],
            "Order": [10, 11],
            "LineItem": [100, 101, 102],
        }
        assert builder.nullification_plan.to_dict() == {"Coupon": {"claimed_by_id": [5]}}
        assert builder.graph is not None and builder.graph.root == "User"

    def test_builds_nothing_is_written(
        self,
        shop_store: Store,
        shop_registry: SchemaRegistry,
        table_ids: Callable[[str], list[int]],
    ) -> None:
        _build(shop_store, shop_registry, _user(shop_registry, 1, 2))
        assert table_ids("users") == [1, 2]
        assert table_ids("line_items") == [100, 101, 102, 103]

    def test_entity_name_means_every_row(
        self, shop_store: Store, shop_registry: SchemaRegistry
    ) -> None:
        builder = _build(shop_store, shop_registry, "Order")
        assert builder.deletion_plan.to_dict() == {
            "Order": [10, 11, 12],
            "LineItem": [100, 101, 102, 103],
        }
        assert not builder.nullification_plan

    def test_rebuild_is_idempotent(self, shop_store: Store, shop_registry: SchemaRegistry) -> None:
        builder = _build(shop_store, shop_registry, _user(shop_registry, 1))
        first = builder.deletion_plan.to_dict()
        assert builder.build()
        assert builder.deletion_plan.to_dict() == first

    def test_paged_reads_give_the_same_plan(
        self, shop_store: Store, shop_registry: SchemaRegistry
    ) -> None:
        paged = _build(shop_store, shop_registry, _user(shop_registry, 1, 2), read_batch_size=1)
        whole = _build(
            shop_store, shop_registry, _user(shop_registry, 1, 2), disable_read_batching=True
        )
        assert paged.deletion_plan.keys() == whole.deletion_plan.keys()
        for key, ids in whole.deletion_plan.items():
            assert paged.deletion_plan.ids(key) == sorted(ids)
        assert paged.deletion_plan.ids("LineItem") == [100, 101, 102, 103]

    def test_table_names_to_entity_names(
        self, shop_store: Store, shop_registry: SchemaRegistry
    ) -> None:
        builder = _build(shop_store, shop_registry, _user(shop_registry, 1))
        assert builder.table_names_to_entity_names == {
            "users": ["User"],
            "orders": ["Order"],
            "line_items": ["LineItem"],
            "coupons": ["Coupon"],
        }

    def test_unresolvable_graph(self, shop_store: Store) -> None:
        registry = SchemaRegistry(
            [entity("User", "users").has_many("orders", "Order", dependent="destroy")]
        )
        builder = PlanBuilder(_user(registry, 1), shop_store, registry)
        assert not builder.execute()
        assert builder.errors == ["DependencyGraphResolver: Entity type not found: 'Order'"]
        assert not builder.deletion_plan


class TestIgnoreOptions:
    def test_ignore_tables_moves_entries_aside(
        self, shop_store: Store, shop_registry: SchemaRegistry
    ) -> None:
        builder = _build(
            shop_store, shop_registry, _user(shop_registry, 1), ignore_tables=["line_items"]
        )
        assert builder.deletion_plan.to_dict() == {"User": [1], "Order": [10, 11]}
        assert builder.ignored_deletion_plan.to_dict() == {"LineItem": [100, 101, 102]}

    def test_ignore_tables_for_nullified_entities(
        self, shop_store: Store, shop_registry: SchemaRegistry
    ) -> None:
        builder = _build(
            shop_store, shop_registry, _user(shop_registry, 1), ignore_tables=["coupons"]
        )
        assert not builder.nullification_plan
        assert builder.ignored_nullification_plan.to_dict() == {"Coupon": {"claimed_by_id": [5]}}

    def test_ignore_tables_and_dependencies(
        self, shop_store: Store, shop_registry: SchemaRegistry
    ) -> None:
        builder = _build(
            shop_store,
            shop_registry,
            _user(shop_registry, 1),
            ignore_tables_and_dependencies=["orders"],
        )
        assert builder.deletion_plan.to_dict() == {"User": [1]}
        assert not builder.ignored_deletion_plan

    def test_ignore_entities_and_dependencies(
        self, shop_store: Store, shop_registry: SchemaRegistry
    ) -> None:
        builder = _build(
            shop_store,
            shop_registry,
            _user(shop_registry, 1),
            ignore_entities_and_dependencies=["Order", "Coupon"],
        )
        assert builder.deletion_plan.to_dict() == {"User": [1]}
        assert not builder.nullification_plan


class TestScopes:
    def test_entity_scope(self, shop_store: Store, shop_registry: SchemaRegistry) -> None:
        builder = _build(
            shop_store,
            shop_registry,
            _user(shop_registry, 1),
            scopes_per_entity={"Order": lambda s: s.where_not(id=11)},
        )
        assert builder.deletion_plan.ids("Order") == [10]
        assert builder.deletion_plan.ids("LineItem") == [100, 101]

    def test_reading_scope_wins(self, shop_store: Store, shop_registry: SchemaRegistry) -> None:
        builder = _build(
            shop_store,
            shop_registry,
            _user(shop_registry, 1),
            scopes_per_entity={"Order": lambda s: s.where_not(id=11)},
            reading_scopes_per_entity={"Order": lambda s: s.where(id=11)},
        )
        assert builder.deletion_plan.ids("Order") == [11]

    def test_global_scope(self, shop_store: Store, shop_registry: SchemaRegistry) -> None:
        def skip_line_item_101(selection: Selection) -> Selection | None:
            if selection.entity.name == "LineItem":
                return selection.where_not(id=101)
            return None

        builder = _build(
            shop_store, shop_registry, _user(shop_registry, 1), scope=skip_line_item_101
        )
        assert builder.deletion_plan.ids("LineItem") == [100, 102]
        assert builder.deletion_plan.ids("Order") == [10, 11]

    def test_failing_scope_is_reported(
        self, shop_store: Store, shop_registry: SchemaRegistry
    ) -> None:
        builder = _build(
            shop_store,
            shop_registry,
            _user(shop_registry, 1),
            scopes_per_entity={"Order": lambda s: 1 / 0},
        )
        assert builder.errors == [
            "Issue attempting to build deletion query for 'Order' "
            "=> ZeroDivisionError: division by zero"
        ]


@pytest.fixture
def category_store(store: Store, run_sql: Callable[..., None]) -> Store:
    run_sql(
        "CREATE TABLE categories (id INTEGER PRIMARY KEY, parent_id INTEGER)",
        "INSERT INTO categories (id, parent_id) VALUES (1, NULL), (2, 1), (3, 2), (4, 1)",
    )
    return store


@pytest.fixture
def category_registry() -> SchemaRegistry:
    return SchemaRegistry(
        [
            entity("Category", "categories", singular="category")
            .has_many("children", "Category", foreign_key="parent_id", dependent="destroy")
            .belongs_to("parent", "Category")
        ]
    )


class TestCycles:
    def test_self_referencing_tree(
        self, category_store: Store, category_registry: SchemaRegistry
    ) -> None:
        root = Selection(category_registry.get("Category")).where(id=1)
        builder = _build(category_store, category_registry, root)

        assert builder.errors == []
        assert builder.deletion_plan.to_dict() == {
            "Category": [1],
            "Category.0": [2, 4],
            "Category.1": [3],
        }

    def test_cyclic_data_terminates(
        self,
        category_store: Store,
        category_registry: SchemaRegistry,
        run_sql: Callable[..., None],
    ) -> None:
        run_sql("UPDATE categories SET parent_id = 3 WHERE id = 1")
        root = Selection(category_registry.get("Category")).where(id=1)
        builder = _build(category_store, category_registry, root)

        assert builder.deletion_plan.to_dict() == {
            "Category": [1],
            "Category.0": [2, 4],
            "Category.1": [3],
        }


@pytest.fixture
def billing_store(shop_store: Store, run_sql: Callable[..., None]) -> Store:
    run_sql(
        "CREATE TABLE payments (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id))",
        "INSERT INTO payments (id, user_id) VALUES (40, 1)",
    )
    return shop_store


def _billing_registry(action: str) -> SchemaRegistry:
    return SchemaRegistry(
        [
            entity("User", "users")
            .has_many("payments", "Payment", dependent=action)
            .has_many("orders", "Order", dependent="destroy"),
            entity("Order", "orders"),
            entity("Payment", "payments"),
        ]
    )


class TestRestrictedAssociations:
    def test_restricted_branch_is_reported(self, billing_store: Store) -> None:
        registry = _billing_registry("restrict_with_error")
        builder = _build(billing_store, registry, _user(registry, 1))

        assert builder.errors == [
            "User's assoc 'payments' has a 'dependent: restrict_with_error' set. "
            "If you still wish to destroy, use the 'force_destroy_restricted' option"
        ]
        assert "Payment" not in builder.deletion_plan
        assert builder.deletion_plan.ids("Order") == [10, 11]

    def test_restriction_without_rows_is_clear(self, billing_store: Store) -> None:
        registry = _billing_registry("restrict_with_exception")
        builder = _build(billing_store, registry, _user(registry, 2))
        assert builder.errors == []

    def test_force_destroy_restricted(self, billing_store: Store) -> None:
        registry = _billing_registry("restrict_with_error")
        builder = _build(billing_store, registry, _user(registry, 1), force_destroy_restricted=True)
        assert builder.errors == []
        assert builder.deletion_plan.ids("Payment") == [40]


@pytest.fixture
def blog_store(store: Store, run_sql: Callable[..., None]) -> Store:
    run_sql(
        "CREATE TABLE users (id INTEGER PRIMARY KEY)",
        "CREATE TABLE posts (id INTEGER PRIMARY KEY, author_id INTEGER, editor_id INTEGER)",
        "CREATE TABLE photos (id INTEGER PRIMARY KEY, user_id INTEGER)",
        "CREATE TABLE comments (id INTEGER PRIMARY KEY, "
        "commentable_id INTEGER, commentable_type TEXT)",
        "CREATE TABLE flags (id INTEGER PRIMARY KEY, post_id INTEGER)",
        "INSERT INTO users (id) VALUES (1), (2)",
        "INSERT INTO posts (id, author_id, editor_id) VALUES (1, 1, 1), (2, 1, 2), (3, 2, 2)",
        "INSERT INTO photos (id, user_id) VALUES (7, 1)",
        "INSERT INTO comments (id, commentable_id, commentable_type) VALUES "
        "(50, 1, 'Post'), (51, 7, 'Photo'), (52, 1, 'Photo'), (53, 9, 'Ghost')",
        "INSERT INTO flags (id, post_id) VALUES (60, 1)",
    )
    return store


class TestNullification:
    def test_matching_column_groups_merge(self, blog_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("User", "users")
                .has_many("authored", "Post", foreign_key="author_id", dependent="nullify")
                .has_many("edited", "Post", foreign_key="editor_id", dependent="nullify"),
                entity("Post", "posts"),
            ]
        )
        merged = _build(blog_store, registry, _user(registry, 1, 2))
        assert merged.nullification_plan.to_dict() == {
            "Post": {("author_id", "editor_id"): [1, 2, 3]}
        }

        separate = _build(blog_store, registry, _user(registry, 1))
        assert separate.nullification_plan.to_dict() == {
            "Post": {"author_id": [1, 2], "editor_id": [1]}
        }

    def test_nullified_rows_are_not_walked(self, blog_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("User", "users").has_many(
                    "authored", "Post", foreign_key="author_id", dependent="nullify"
                ),
                entity("Post", "posts").has_many("flags", "Flag", dependent="destroy"),
                entity("Flag", "flags"),
            ]
        )
        builder = _build(blog_store, registry, _user(registry, 1))
        assert builder.deletion_plan.to_dict() == {"User": [1]}

    def test_nullify_on_reference_is_invalid(self, blog_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("Post", "posts").belongs_to(
                    "author", "User", foreign_key="author_id", dependent="nullify"
                ),
                entity("User", "users"),
            ]
        )
        builder = _build(blog_store, registry, "Post")
        assert builder.errors == [
            "Post's association 'author' - dependent 'nullify' invalid for a reference"
        ]

    def test_polymorphic_nullify_clears_both_columns(self, blog_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("Photo", "photos").has_many(
                    "comments", "Comment", as_="commentable", dependent="nullify"
                ),
                entity("Comment", "comments"),
            ]
        )
        builder = _build(blog_store, registry, "Photo")
        assert builder.nullification_plan.to_dict() == {
            "Comment": {("commentable_id", "commentable_type"): [51]}
        }


class TestPolymorphicAssociations:
    def test_as_filters_on_owner_type(self, blog_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("Photo", "photos").has_many(
                    "comments", "Comment", as_="commentable", dependent="destroy"
                ),
                entity("Comment", "comments"),
            ]
        )
        builder = _build(blog_store, registry, "Photo")
        assert builder.deletion_plan.to_dict() == {"Photo": [7], "Comment": [51]}

    def test_polymorphic_reference(self, blog_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("Post", "posts").has_many("comments", "Comment", as_="commentable"),
                entity("Photo", "photos").has_many("comments", "Comment", as_="commentable"),
                entity("Comment", "comments").belongs_to(
                    "commentable", polymorphic=True, dependent="destroy"
                ),
            ]
        )
        root = Selection(registry.get("Comment")).where(id=[50, 51, 53])
        builder = _build(blog_store, registry, root)

        assert builder.deletion_plan.to_dict() == {
            "Comment": [50, 51, 53],
            "Post": [1],
            "Photo": [7],
        }
        assert builder.errors == [
            "Comment's association 'commentable' - 'Ghost' in column "
            "'commentable_type' is not a registered entity type"
        ]


@pytest.fixture
def team_store(store: Store, run_sql: Callable[..., None]) -> Store:
    run_sql(
        "CREATE TABLE users (id INTEGER PRIMARY KEY)",
        "CREATE TABLE teams (id INTEGER PRIMARY KEY)",
        "CREATE TABLE memberships (id INTEGER PRIMARY KEY, user_id INTEGER, team_id INTEGER)",
        "INSERT INTO users (id) VALUES (1), (2)",
        "INSERT INTO teams (id) VALUES (8), (9)",
        "INSERT INTO memberships (id, user_id, team_id) VALUES (20, 1, 8), (21, 1, 9), (22, 2, 8)",
    )
    return store


class TestThroughAssociations:
    def test_through_deletes_join_rows_only(self, team_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("User", "users")
                .has_many("memberships", "Membership")
                .has_many("teams", "Team", through="memberships", dependent="destroy"),
                entity("Membership", "memberships").belongs_to("team", "Team"),
                entity("Team", "teams"),
            ]
        )
        builder = _build(team_store, registry, _user(registry, 1))
        assert builder.deletion_plan.to_dict() == {"User": [1], "Membership": [20, 21]}


class TestAssociationScopes:
    def test_plain_association_scope(self, shop_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("User", "users").has_many(
                    "orders",
                    "Order",
                    dependent="destroy",
                    scope=lambda s: s.where_not(id=10).order_by("-id").limit(1),
                ),
                entity("Order", "orders"),
            ]
        )
        builder = _build(shop_store, registry, _user(registry, 1))
        assert builder.deletion_plan.ids("Order") == [11]

    def test_scope_with_owner_parameter_is_reported(self, shop_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("User", "users").has_many(
                    "orders",
                    "Order",
                    dependent="destroy",
                    scope=lambda s, user: s.where_not(id=user["id"] + 10),
                ),
                entity("Order", "orders"),
            ]
        )
        builder = _build(shop_store, registry, _user(registry, 1))
        assert builder.errors == [
            "User and 'orders' - scope has instance parameters. "
            "Use the 'instantiate_if_assoc_scope_with_arity' option?"
        ]
        assert "Order" not in builder.deletion_plan

    def test_scope_with_owner_parameter_instantiated(self, shop_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("User", "users").has_many(
                    "orders",
                    "Order",
                    dependent="destroy",
                    scope=lambda s, user: s.where_not(id=user["id"] + 10),
                ),
                entity("Order", "orders"),
            ]
        )
        builder = _build(
            shop_store,
            registry,
            _user(registry, 1, 2),
            instantiate_if_assoc_scope_with_arity=True,
        )
        assert builder.errors == []
        assert builder.deletion_plan.ids("Order") == [10]


class TestSchemaProblems:
    def test_root_without_canonical_primary_key(self, shop_store: Store) -> None:
        registry = SchemaRegistry([entity("Account", "users", primary_key="name")])
        builder = _build(shop_store, registry, "Account")
        assert builder.errors == [
            "Account - does not use primary key 'id'. Cannot use this tool to bulk delete."
        ]

    def test_identity_is_checked_before_ignoring(self, shop_store: Store) -> None:
        registry = SchemaRegistry([entity("Account", "users", primary_key="name")])
        builder = _build(
            shop_store, registry, "Account", ignore_entities_and_dependencies=["Account"]
        )
        assert builder.errors == [
            "Account - does not use primary key 'id'. Cannot use this tool to bulk delete."
        ]
        assert not builder.deletion_plan

    def test_target_without_canonical_primary_key(self, shop_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("User", "users").has_many("orders", "Order", dependent="destroy"),
                entity("Order", "orders", primary_key="code"),
            ]
        )
        builder = _build(shop_store, registry, _user(registry, 1))
        assert builder.errors == [
            "User's association 'orders' - assoc class does not use 'id' as a primary_key"
        ]

    def test_missing_foreign_key_column(self, shop_store: Store) -> None:
        registry = SchemaRegistry(
            [
                entity("User", "users").has_many(
                    "coupons", "Coupon", foreign_key="owner_id", dependent="nullify"
                ),
                entity("Coupon", "coupons", columns=["id", "claimed_by_id"]),
            ]
        )
        builder = _build(shop_store, registry, _user(registry, 1))
        assert builder.errors == [
            "For User's association 'coupons': Could not determine the foreign key. "
            "Column 'owner_id' does not exist on the coupons table."
        ]
