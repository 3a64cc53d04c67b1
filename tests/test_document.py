"""Tests for reading and writing mapping documents."""

from pathlib import Path

import pytest

from docmap.mapping import (
    MappingFormatError,
    load_mapping,
    mapping_from_json,
    mapping_to_json,
    save_mapping,
)
from docmap.mapping.types import Mapping


@pytest.fixture(name="mapping")
def sample_mapping() -> Mapping:
    """A mapping using every document feature."""
    return {
        "collections": [
            {
                "name": "customers",
                "source_table": "customers",
                "embedded": [
                    {
                        "source_table": "orders",
                        "field_name": "orders",
                        "relationship": "array",
                        "join_column": "customer_id",
                        "parent_column": "id",
                        "transformations": [{"operation": "exclude", "source_field": "internal_note"}],
                    },
                ],
                "references": [
                    {
                        "source_table": "tickets",
                        "field_name": "tickets",
                        "join_column": "customer_id",
                        "parent_column": "id",
                    },
                    {
                        "source_table": "remarks",
                        "field_name": "remarks",
                        "join_column": "order_id",
                        "parent_column": "id",
                        "parent_table": "orders",
                    },
                ],
                "transformations": [
                    {"operation": "rename", "source_field": "name", "target_field": "full_name"},
                    {"operation": "default", "source_field": "country", "value": "NL"},
                ],
            },
        ],
    }


def test_round_trip(mapping: Mapping, tmp_path: Path) -> None:
    """Test that save then load gives the same document."""
    location = tmp_path / "nested" / "mapping.json"

    save_mapping(mapping, location)

    assert load_mapping(location) == mapping
    assert mapping_to_json(load_mapping(location)) == location.read_text()


def test_not_json() -> None:
    """Test that invalid JSON is reported as a format error."""
    with pytest.raises(MappingFormatError, match="not valid JSON"):
        mapping_from_json("{collections:")


def test_missing_collections() -> None:
    """Test that the root object needs a collections list."""
    with pytest.raises(MappingFormatError, match="collections"):
        mapping_from_json('{"tables": []}')


def test_bad_relationship() -> None:
    """Test that relationships are limited to array and single."""
    text = """
    {"collections": [{"name": "c", "source_table": "c", "embedded": [
        {"source_table": "o", "field_name": "o", "relationship": "many",
         "join_column": "c_id", "parent_column": "id"}]}]}
    """
    with pytest.raises(MappingFormatError, match="relationship"):
        mapping_from_json(text)


def test_missing_field() -> None:
    """Test that required names must be present."""
    with pytest.raises(MappingFormatError, match="source_table"):
        mapping_from_json('{"collections": [{"name": "c"}]}')


def test_reference_owner_must_be_named() -> None:
    """Test that a reference owned by an embedded table names it."""
    text = """
    {"collections": [{"name": "c", "source_table": "c", "references": [
        {"source_table": "n", "field_name": "n", "join_column": "o_id",
         "parent_column": "id", "parent_table": ""}]}]}
    """
    with pytest.raises(MappingFormatError, match="parent_table"):
        mapping_from_json(text)


def test_transformation_needs_operation() -> None:
    """Test that transformations must carry an operation tag."""
    text = '{"collections": [{"name": "c", "source_table": "c", "transformations": [{"source_field": "x"}]}]}'
    with pytest.raises(MappingFormatError, match="operation"):
        mapping_from_json(text)


def test_unknown_operation_is_kept() -> None:
    """Test that unrecognised operations are left for generation to reject."""
    text = '{"collections": [{"name": "c", "source_table": "c", "transformations": [{"operation": "pivot"}]}]}'
    mapping = mapping_from_json(text)
    assert mapping["collections"][0]["transformations"] == [{"operation": "pivot"}]
