"""Tests for worst-case document size estimation."""

import logging

import pytest
from schema_factory import column, database, foreign_key, shop, table

from docmap.mapping import (
    BSON_DOCUMENT_LIMIT,
    column_row_size,
    disk_row_size,
    estimate_sizes,
    suggest_mapping,
)
from docmap.mapping.types import Mapping
from docmap.schema.types import TableSchema


def events_mapping() -> Mapping:
    """Accounts embedding all of their events."""
    return {
        "collections": [
            {
                "name": "accounts",
                "source_table": "accounts",
                "embedded": [
                    {
                        "source_table": "events",
                        "field_name": "events",
                        "relationship": "array",
                        "join_column": "account_id",
                        "parent_column": "id",
                    },
                ],
            },
        ],
    }


def test_half_million_children_exceed_limit() -> None:
    """Test that a parent with 500,000 related rows is flagged."""
    schema = database(
        table("accounts", row_count=1_000, size_bytes=100_000),
        table(
            "events",
            column("account_id"),
            foreign_keys=[foreign_key("account_id", "accounts", max_rows_per_parent=500_000)],
            row_count=2_000_000,
            size_bytes=200_000_000,
        ),
    )

    [estimate] = estimate_sizes(schema, events_mapping())

    assert estimate.max_document_bytes == int((100 + 500_000 * 100) * 1.5)
    assert estimate.max_document_bytes >= BSON_DOCUMENT_LIMIT
    assert estimate.exceeds_limit
    assert estimate.warning is not None


def test_skewed_average_without_observed_maximum() -> None:
    """Test the fallback fan-out of ten times the mean ratio."""
    schema = database(
        table("accounts", row_count=1_000, size_bytes=100_000),
        table(
            "events",
            column("account_id"),
            foreign_keys=[foreign_key("account_id", "accounts")],
            row_count=500_000,
            size_bytes=50_000_000,
        ),
    )

    [estimate] = estimate_sizes(schema, events_mapping())

    [_, events] = estimate.breakdown
    assert events.rows_per_document == 5_000
    assert not estimate.exceeds_limit


def test_zero_rows_are_never_flagged(caplog: pytest.LogCaptureFixture) -> None:
    """Test that missing cardinality defers the check instead of flagging."""
    schema = database(
        table("accounts"),
        table("events", column("account_id"), foreign_keys=[foreign_key("account_id", "accounts")]),
    )

    with caplog.at_level(logging.WARNING):
        [estimate] = estimate_sizes(schema, events_mapping())

    assert estimate.max_document_bytes == 0
    assert not estimate.exceeds_limit
    assert estimate.warning is not None
    assert "accounts" in caplog.text


def test_nested_sizes_compound() -> None:
    """Test that nested embeddings multiply down the tree."""
    schema = shop()
    mapping = suggest_mapping(schema, ["customers", "orders", "order_items"])

    [estimate] = estimate_sizes(schema, mapping)

    # Row sizes: customers 100, orders 80, order_items 50 bytes.
    # Worst fan-out: 50 orders per customer, 40 items per order.
    assert estimate.max_document_bytes == int((100 + 50 * (80 + 40 * 50)) * 1.5)
    assert estimate.mean_document_bytes == int((100 + 5 * (80 + 4 * 50)) * 1.3)
    contributions = {c.path: c for c in estimate.breakdown}
    assert contributions["customers"].total_bytes == 100
    assert contributions["customers.orders"].rows_per_document == 50
    assert contributions["customers.orders.order_items"].rows_per_document == 2_000
    assert contributions["customers.orders.order_items"].total_bytes == 100_000
    assert not estimate.exceeds_limit


def test_single_relationship_contributes_one_row() -> None:
    """Test that sub-documents count once."""
    schema = database(
        table("users", row_count=10, size_bytes=1_000),
        table(
            "profiles",
            column("user_id"),
            foreign_keys=[foreign_key("user_id", "users")],
            row_count=10,
            size_bytes=5_000,
        ),
    )
    mapping = suggest_mapping(schema, ["users", "profiles"])

    [estimate] = estimate_sizes(schema, mapping)

    assert estimate.max_document_bytes == int((100 + 500) * 1.5)


def test_row_size_strategies() -> None:
    """Test disk statistics first, column widths as the fallback."""
    measured = table("a", column("name", "text"), row_count=10, size_bytes=2_000)
    unmeasured = table("b", column("name", "text"))

    assert disk_row_size(measured, "postgresql") == 200
    assert disk_row_size(unmeasured, "postgresql") == column_row_size(unmeasured, "postgresql")
    assert column_row_size(unmeasured, "postgresql") == 4 + 100


def test_custom_row_size_strategy() -> None:
    """Test that the row size strategy can be swapped."""

    def flat(_table: TableSchema, _dialect: str) -> float:
        return 10.0

    schema = database(
        table("accounts", row_count=1),
        table(
            "events",
            column("account_id"),
            foreign_keys=[foreign_key("account_id", "accounts", max_rows_per_parent=3)],
            row_count=3,
        ),
    )

    [estimate] = estimate_sizes(schema, events_mapping(), row_size=flat)

    assert estimate.max_document_bytes == int((10 + 3 * 10) * 1.5)


@pytest.mark.parametrize(
    ("row_bytes", "expected_bytes", "exceeds"),
    [
        (11_184_811.0, BSON_DOCUMENT_LIMIT, True),
        (11_184_810.0, BSON_DOCUMENT_LIMIT - 1, False),
    ],
)
def test_limit_boundary(row_bytes: float, expected_bytes: int, exceeds: bool) -> None:  # noqa: FBT001
    """Test that a document of exactly the BSON limit is flagged and one byte less is not."""
    schema = database(table("blobs", row_count=1))
    mapping = suggest_mapping(schema, ["blobs"])

    [estimate] = estimate_sizes(schema, mapping, row_size=lambda _table, _dialect: row_bytes)

    assert estimate.max_document_bytes == expected_bytes
    assert estimate.exceeds_limit is exceeds
    assert (estimate.warning is not None) is exceeds
