"""Source type to BSON type mapping."""

from docmap.typemap.main import (
    BsonType,
    TypeMap,
    default_mappings,
    load_typemap,
    save_typemap,
    typemap_from_json,
    typemap_to_json,
)

__all__ = [
    "BsonType",
    "TypeMap",
    "default_mappings",
    "load_typemap",
    "save_typemap",
    "typemap_from_json",
    "typemap_to_json",
]
