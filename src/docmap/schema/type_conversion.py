"""Module for classifying source column types with SQLAlchemy's type system."""

from logging import getLogger
from re import sub
from typing import Any

from sqlalchemy.dialects import oracle, postgresql
from sqlalchemy.types import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    Integer,
    LargeBinary,
    NullType,
    Numeric,
    SmallInteger,
    String,
    TypeEngine,
    Uuid,
)

from docmap.schema.types import ColumnSchema

logger = getLogger(__name__)

type TypeRegistry = dict[str, type[TypeEngine[Any]]]

# Spellings found in catalogs that the dialect registries do not carry
POSTGRES_ALIASES: TypeRegistry = {
    "int": Integer,
    "int2": SmallInteger,
    "int4": Integer,
    "int8": BigInteger,
    "serial": Integer,
    "serial4": Integer,
    "smallserial": SmallInteger,
    "bigserial": BigInteger,
    "serial8": BigInteger,
    "varchar": String,
    "char": String,
    "bool": Boolean,
    "decimal": Numeric,
    "float4": Float,
    "float8": Float,
    "timestamptz": DateTime,
}

ORACLE_ALIASES: TypeRegistry = {
    "INTEGER": Integer,
    "SMALLINT": SmallInteger,
    "VARCHAR": String,
}

REGISTRIES: dict[str, TypeRegistry] = {
    "postgresql": {**postgresql.dialect.ischema_names, **POSTGRES_ALIASES},
    "oracle": {**oracle.dialect.ischema_names, **ORACLE_ALIASES},
}

MAX_STRING_WIDTH = 255
DEFAULT_STRING_WIDTH = 100


def base_type_name(data_type: str) -> str:
    """Strip length, precision and scale parameters from a type name.

    Examples:
        character varying(255) -> character varying
        TIMESTAMP(6) WITH TIME ZONE -> TIMESTAMP WITH TIME ZONE

    """
    return " ".join(sub(r"\([^)]*\)", " ", data_type).split())


def _lookup(registry: TypeRegistry, data_type: str) -> type[TypeEngine[Any]] | None:
    name = base_type_name(data_type)
    for candidate in (name, name.lower(), name.upper()):
        if candidate in registry:
            return registry[candidate]
    return None


def source_to_sql(data_type: str, dialect: str) -> TypeEngine[Any]:
    """Parse a catalog type name into a SQLAlchemy TypeEngine.

    Unknown dialects search every registry; unknown types become NullType.
    """
    registries = (
        [REGISTRIES[dialect]] if dialect in REGISTRIES else list(REGISTRIES.values())
    )
    for registry in registries:
        if (type_class := _lookup(registry, data_type)) is None:
            continue
        try:
            return type_class()
        except TypeError:
            # Container types such as ARRAY need arguments we do not have
            logger.debug("Cannot instantiate %s for %r", type_class.__name__, data_type)
            return NullType()
    return NullType()


def is_numeric(sql_type: TypeEngine[Any]) -> bool:
    """Check whether values of the type can drive numeric range partitioning."""
    return isinstance(sql_type, Integer | Numeric)


def is_temporal(sql_type: TypeEngine[Any]) -> bool:
    """Check whether the type is a date or timestamp."""
    return isinstance(sql_type, Date | DateTime)


def column_width(column: ColumnSchema, dialect: str) -> int:
    """Estimate the stored width of one value of the column in bytes."""
    match source_to_sql(column["data_type"], dialect):
        case Boolean():
            return 1
        case Float():
            return 8
        case Numeric():
            return 16
        case BigInteger():
            return 8
        case SmallInteger():
            return 2
        case Integer():
            return 4
        case DateTime():
            return 8
        case Date():
            return 4
        case Uuid():
            return 16
        case JSON():
            return 200
        case LargeBinary():
            return 256
        case String():
            if max_length := column.get("max_length"):
                return min(max_length, MAX_STRING_WIDTH)
            return DEFAULT_STRING_WIDTH
        case _:
            return 32
