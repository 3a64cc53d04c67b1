"""Main module for loading the discovered schema model."""

import json
from collections.abc import Mapping
from logging import getLogger
from pathlib import Path
from typing import Any, TypedDict

from sqlalchemy import Column, ForeignKeyConstraint, Index, MetaData, Table
from sqlalchemy.dialects import oracle, postgresql
from sqlalchemy.engine import Dialect
from sqlalchemy.schema import DefaultClause
from sqlalchemy.types import NullType, Numeric, TypeEngine

from docmap.schema.types import (
    ColumnSchema,
    DatabaseSchema,
    ForeignKeySchema,
    IndexSchema,
    TableSchema,
)

logger = getLogger(__name__)

DIALECTS: dict[str, type[Dialect]] = {
    "postgresql": postgresql.dialect,
    "oracle": oracle.dialect,
}


class TableStatistics(TypedDict):
    """Row and size statistics gathered by the discovery collaborator."""

    row_count: int
    size_bytes: int


def load_schema(schema_location: Path) -> DatabaseSchema:
    """Load a discovered schema from its JSON document."""
    with schema_location.open("rb") as f:
        schema: DatabaseSchema = json.load(f)
    for table in schema["tables"]:
        table.setdefault("foreign_keys", [])
        table.setdefault("row_count", 0)
        table.setdefault("size_bytes", 0)
    return schema


def tables_by_name(schema: DatabaseSchema) -> dict[str, TableSchema]:
    """Index the schema tables by name."""
    return {table["name"]: table for table in schema["tables"]}


def _type_name(sql_type: TypeEngine[Any], dialect: Dialect) -> str:
    if isinstance(sql_type, NullType):
        return "unknown"
    return sql_type.compile(dialect=dialect)


def _column_from_sqla(column: Column[Any], dialect: Dialect) -> ColumnSchema:
    """Derive ColumnSchema from SQLAlchemy Column object."""
    sql_type = column.type
    default = column.server_default
    return {
        "name": column.name,
        "data_type": _type_name(sql_type, dialect),
        "nullable": bool(column.nullable),
        "default_value": str(default.arg) if isinstance(default, DefaultClause) else None,
        "max_length": getattr(sql_type, "length", None),
        "precision": sql_type.precision if isinstance(sql_type, Numeric) else None,
        "scale": sql_type.scale if isinstance(sql_type, Numeric) else None,
        "is_sequence": column.identity is not None or column.autoincrement is True,
    }


def _foreign_key_from_sqla(constraint: ForeignKeyConstraint) -> ForeignKeySchema:
    """Derive ForeignKeySchema without resolving the referenced Table object."""
    targets = [element.target_fullname.rsplit(".", 1) for element in constraint.elements]
    referenced_table = targets[0][0].rsplit(".", 1)[-1]
    columns = list(constraint.column_keys)
    return {
        "name": constraint.name or f"fk_{constraint.table.name}_{'_'.join(columns)}",
        "columns": columns,
        "referenced_table": referenced_table,
        "referenced_columns": [column for _table, column in targets],
    }


def _index_from_sqla(index: Index) -> IndexSchema:
    return {
        "name": index.name or "",
        "columns": [column.name for column in index.columns],
        "unique": bool(index.unique),
    }


def _table_from_sqla(
    table: Table,
    dialect: Dialect,
    statistics: TableStatistics | None,
) -> TableSchema:
    """Derive TableSchema from SQLAlchemy Table object."""
    foreign_keys = [_foreign_key_from_sqla(fk) for fk in table.foreign_key_constraints]
    indexes = [_index_from_sqla(index) for index in table.indexes]
    primary_key = table.primary_key
    return {
        "name": table.name,
        "columns": [_column_from_sqla(column, dialect) for column in table.columns],
        "primary_key": (
            {"name": primary_key.name or "", "columns": primary_key.columns.keys()}
            if primary_key.columns
            else None
        ),
        "foreign_keys": sorted(foreign_keys, key=lambda fk: fk["name"]),
        "indexes": sorted(indexes, key=lambda index: index["name"]),
        "row_count": statistics["row_count"] if statistics else 0,
        "size_bytes": statistics["size_bytes"] if statistics else 0,
    }


def metadata_to_schema(
    metadata: MetaData,
    database_type: str,
    database: str,
    statistics: Mapping[str, TableStatistics] | None = None,
) -> DatabaseSchema:
    """Convert reflected SQLAlchemy metadata into the schema model.

    Tables without statistics get zero row and size counts, which downstream
    analysis treats as unknown cardinality.
    """
    if database_type not in DIALECTS:
        msg = f"Unsupported database type: {database_type}"
        raise ValueError(msg)
    dialect = DIALECTS[database_type]()
    statistics = statistics or {}

    tables = sorted(metadata.tables.values(), key=lambda table: table.name)
    for table in tables:
        if table.name not in statistics:
            logger.debug("No statistics for table %s", table.name)

    return {
        "database_type": database_type,
        "database": database,
        "tables": [
            _table_from_sqla(table, dialect, statistics.get(table.name))
            for table in tables
        ],
    }
