"""Source schema model for docmap."""

from docmap.schema.main import (
    TableStatistics,
    load_schema,
    metadata_to_schema,
    tables_by_name,
)
from docmap.schema.type_conversion import (
    column_width,
    is_numeric,
    is_temporal,
    source_to_sql,
)
from docmap.schema.types import (
    ColumnSchema,
    DatabaseSchema,
    ForeignKeySchema,
    IndexSchema,
    PrimaryKeySchema,
    TableSchema,
)

__all__ = [
    "ColumnSchema",
    "DatabaseSchema",
    "ForeignKeySchema",
    "IndexSchema",
    "PrimaryKeySchema",
    "TableSchema",
    "TableStatistics",
    "column_width",
    "is_numeric",
    "is_temporal",
    "load_schema",
    "metadata_to_schema",
    "source_to_sql",
    "tables_by_name",
]
