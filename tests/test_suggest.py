"""Tests for mapping suggestion."""

import logging
from copy import deepcopy

import pytest
from schema_factory import column, database, foreign_key, shop, table

from docmap.mapping import suggest_mapping, table_roles
from docmap.mapping.suggest import relationship_kind
from docmap.schema.types import DatabaseSchema


@pytest.fixture(name="school")
def school_schema() -> DatabaseSchema:
    """Students and courses linked through a pure link table."""
    return database(
        table("students", column("name", "text"), row_count=1_000),
        table("courses", column("title", "text"), row_count=40),
        table(
            "enrollments",
            column("student_id"),
            column("course_id"),
            foreign_keys=[foreign_key("student_id", "students"), foreign_key("course_id", "courses")],
            primary_key=None,
            row_count=4_000,
        ),
    )


@pytest.mark.parametrize(
    ("child_rows", "parent_rows", "expected"),
    [
        (5_000, 1_000, "array"),
        (1_000, 1_000, "single"),
        (250, 1_000, "single"),
        (800, 1_000, "single"),
        (0, 1_000, "array"),
        (1_000, 0, "array"),
        (None, 1_000, "array"),
    ],
)
def test_relationship_kind(child_rows: int | None, parent_rows: int | None, expected: str) -> None:
    """Test the row ratio rule at its boundaries."""
    assert relationship_kind(child_rows, parent_rows) == expected


def test_multi_level_nesting() -> None:
    """Test customers embedding orders embedding order items."""
    mapping = suggest_mapping(shop(), ["customers", "orders", "order_items"])

    [customers] = mapping["collections"]
    assert customers["name"] == "customers"
    [orders] = customers["embedded"]
    assert orders["source_table"] == "orders"
    assert orders["relationship"] == "array"
    assert orders["join_column"] == "customer_id"
    assert orders["parent_column"] == "id"
    [items] = orders["embedded"]
    assert items["source_table"] == "order_items"
    assert items["join_column"] == "order_id"
    assert "embedded" not in items


def test_single_relationship() -> None:
    """Test that a one to one child embeds as a sub-document."""
    schema = database(
        table("users", row_count=100),
        table("profiles", column("user_id"), foreign_keys=[foreign_key("user_id", "users")], row_count=100),
    )
    mapping = suggest_mapping(schema, ["users", "profiles"])

    [users] = mapping["collections"]
    assert users["embedded"][0]["relationship"] == "single"


def test_self_reference_is_never_embedded() -> None:
    """Test that a self-referencing table keeps a reference to itself only."""
    schema = database(
        table(
            "employees",
            column("manager_id", nullable=True),
            foreign_keys=[foreign_key("manager_id", "employees")],
            row_count=300,
        ),
    )
    mapping = suggest_mapping(schema, ["employees"])

    [employees] = mapping["collections"]
    assert "embedded" not in employees
    assert employees["references"] == [
        {
            "source_table": "employees",
            "field_name": "manager_id",
            "join_column": "manager_id",
            "parent_column": "id",
        },
    ]


def test_self_referencing_child_becomes_reference() -> None:
    """Test that a self-referencing child of a root is linked, not embedded."""
    schema = database(
        table("departments", row_count=10),
        table(
            "employees",
            column("department_id"),
            column("manager_id", nullable=True),
            foreign_keys=[
                foreign_key("department_id", "departments"),
                foreign_key("manager_id", "employees"),
            ],
            row_count=300,
        ),
    )
    mapping = suggest_mapping(schema, ["departments", "employees"])

    [departments] = mapping["collections"]
    assert "embedded" not in departments
    [reference] = departments["references"]
    assert reference["source_table"] == "employees"
    assert reference["join_column"] == "department_id"
    assert table_roles(mapping) == {"departments": ["collection"], "employees": ["reference"]}


def test_deep_self_referencing_child_is_linked_from_its_owner() -> None:
    """Test that a self-referencing grandchild is linked from the embedded table owning it."""
    schema = database(
        table("customers", row_count=100),
        table(
            "orders",
            column("customer_id"),
            foreign_keys=[foreign_key("customer_id", "customers")],
            row_count=1_000,
        ),
        table(
            "notes",
            column("order_id"),
            column("parent_note_id", nullable=True),
            foreign_keys=[
                foreign_key("order_id", "orders"),
                foreign_key("parent_note_id", "notes"),
            ],
            row_count=5_000,
        ),
    )
    mapping = suggest_mapping(schema, ["customers", "orders", "notes"])

    [customers] = mapping["collections"]
    [orders] = customers["embedded"]
    assert orders["source_table"] == "orders"
    assert "embedded" not in orders
    assert customers["references"] == [
        {
            "source_table": "notes",
            "field_name": "notes",
            "join_column": "order_id",
            "parent_column": "id",
            "parent_table": "orders",
        },
    ]
    assert table_roles(mapping) == {
        "customers": ["collection"],
        "orders": ["embedded"],
        "notes": ["reference"],
    }


def test_join_table_is_dissolved(school: DatabaseSchema) -> None:
    """Test that a link table is embedded into its owner, never a collection."""
    mapping = suggest_mapping(school, ["students", "courses", "enrollments"])

    names = [collection["name"] for collection in mapping["collections"]]
    assert "enrollments" not in names
    assert sorted(names) == ["courses", "students"]

    students = next(c for c in mapping["collections"] if c["name"] == "students")
    [enrollments] = students["embedded"]
    assert enrollments["source_table"] == "enrollments"
    assert enrollments["join_column"] == "student_id"


def test_cycle_falls_back_to_all_roots() -> None:
    """Test that a fully cyclic graph still yields a collection."""
    schema = database(
        table("a", column("b_id"), foreign_keys=[foreign_key("b_id", "b")], row_count=10),
        table("b", column("a_id"), foreign_keys=[foreign_key("a_id", "a")], row_count=10),
    )
    mapping = suggest_mapping(schema, ["a", "b"])

    assert len(mapping["collections"]) >= 1
    assert sorted(table_roles(mapping)) == ["a", "b"]


def test_excluded_table_is_never_embedded() -> None:
    """Test that unselected tables are not embed targets and orphans become roots."""
    mapping = suggest_mapping(shop(), ["customers", "order_items"])

    assert [c["name"] for c in mapping["collections"]] == ["customers", "order_items"]
    for collection in mapping["collections"]:
        assert "embedded" not in collection
    assert "orders" not in table_roles(mapping)


def test_root_hints() -> None:
    """Test that hinted roots come first and unreached tables still get placed."""
    mapping = suggest_mapping(shop(), ["customers", "orders", "order_items"], ["orders"])

    assert [c["name"] for c in mapping["collections"]] == ["orders", "customers"]
    orders = mapping["collections"][0]
    assert [node["source_table"] for node in orders["embedded"]] == ["order_items"]


def test_every_table_has_exactly_one_role(school: DatabaseSchema) -> None:
    """Test that every selected table is placed once and only once."""
    schema = database(
        *school["tables"],
        *shop()["tables"],
        table(
            "employees",
            column("manager_id", nullable=True),
            foreign_keys=[foreign_key("manager_id", "employees")],
        ),
    )
    selected = [t["name"] for t in schema["tables"]]

    roles = table_roles(suggest_mapping(schema, selected))

    assert sorted(roles) == sorted(selected)
    assert all(len(placements) == 1 for placements in roles.values())


def test_suggestion_is_deterministic(school: DatabaseSchema) -> None:
    """Test that selection order does not change the result."""
    selected = ["students", "courses", "enrollments"]

    first = suggest_mapping(school, selected)
    second = suggest_mapping(school, list(reversed(selected)))

    assert first == second


def test_schema_is_not_mutated() -> None:
    """Test that suggestion leaves its input untouched."""
    schema = shop()
    before = deepcopy(schema)

    suggest_mapping(schema, ["customers", "orders", "order_items"])

    assert schema == before


def test_unknown_selection_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    """Test that names missing from the schema are logged and ignored."""
    with caplog.at_level(logging.WARNING):
        mapping = suggest_mapping(shop(), ["customers", "invoices"])

    assert [c["name"] for c in mapping["collections"]] == ["customers"]
    assert "invoices" in caplog.text
