"""TypedDict schemas for the discovered relational schema."""

from __future__ import annotations

from typing import Literal, NotRequired, TypedDict

type Dialect = Literal["postgresql", "oracle"]


class ColumnSchema(TypedDict):
    """Schema for a database column."""

    name: str
    data_type: str
    nullable: bool
    default_value: NotRequired[str | None]
    max_length: NotRequired[int | None]
    precision: NotRequired[int | None]
    scale: NotRequired[int | None]
    is_sequence: NotRequired[bool]


class PrimaryKeySchema(TypedDict):
    """Primary key constraint with its ordered columns."""

    name: str
    columns: list[str]


class ForeignKeySchema(TypedDict):
    """Foreign key constraint, composite keys included."""

    name: str
    columns: list[str]  # Local columns, ordered
    referenced_table: str
    referenced_columns: list[str]  # Paired with columns by position
    max_rows_per_parent: NotRequired[int]  # Largest observed fan-out for one key value


class IndexSchema(TypedDict):
    """Schema for a table index."""

    name: str
    columns: list[str]
    unique: bool
    type: NotRequired[str]


class TableSchema(TypedDict):
    """Schema for a database table with its statistics."""

    name: str
    columns: list[ColumnSchema]
    primary_key: NotRequired[PrimaryKeySchema | None]
    foreign_keys: list[ForeignKeySchema]
    indexes: NotRequired[list[IndexSchema]]
    row_count: int
    size_bytes: int


class DatabaseSchema(TypedDict):
    """Root schema for a discovered source database."""

    database_type: str
    database: str
    host: NotRequired[str]
    schema_name: NotRequired[str]
    tables: list[TableSchema]
