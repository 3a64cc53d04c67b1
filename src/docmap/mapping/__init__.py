"""Mapping model, suggestion and document size estimation."""

from docmap.mapping.document import (
    MappingFormatError,
    load_mapping,
    mapping_from_json,
    mapping_to_json,
    save_mapping,
)
from docmap.mapping.graph import Edge, JoinTable, RelationshipGraph
from docmap.mapping.sizing import (
    BSON_DOCUMENT_LIMIT,
    CollectionSizeEstimate,
    TableContribution,
    column_row_size,
    disk_row_size,
    estimate_sizes,
)
from docmap.mapping.suggest import relationship_kind, suggest_mapping
from docmap.mapping.transformations import (
    UnknownOperationError,
    validate_transformation,
    validate_transformations,
)
from docmap.mapping.tree import (
    EmbedStep,
    bottom_up,
    collection_tables,
    nesting_depth,
    table_roles,
    walk_embedded,
)
from docmap.mapping.types import (
    Collection,
    Embedded,
    Mapping,
    Reference,
    Relationship,
    Transformation,
)

__all__ = [
    "BSON_DOCUMENT_LIMIT",
    "Collection",
    "CollectionSizeEstimate",
    "EmbedStep",
    "Edge",
    "Embedded",
    "JoinTable",
    "Mapping",
    "MappingFormatError",
    "Reference",
    "Relationship",
    "RelationshipGraph",
    "TableContribution",
    "Transformation",
    "UnknownOperationError",
    "bottom_up",
    "collection_tables",
    "column_row_size",
    "disk_row_size",
    "estimate_sizes",
    "load_mapping",
    "mapping_from_json",
    "mapping_to_json",
    "nesting_depth",
    "relationship_kind",
    "save_mapping",
    "suggest_mapping",
    "table_roles",
    "validate_transformation",
    "validate_transformations",
    "walk_embedded",
]
