"""Mapping of source column types to BSON types."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum
from json import dumps, loads
from logging import getLogger
from pathlib import Path
from tomllib import load
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from docmap.schema.type_conversion import base_type_name

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = getLogger(__name__)

DEFAULTS_FILE = Path(__file__).parent / "defaults.toml"


class BsonType(StrEnum):
    """Target BSON types."""

    NUMBER_LONG = "NumberLong"
    DECIMAL128 = "Decimal128"
    STRING = "String"
    ISO_DATE = "ISODate"
    BIN_DATA = "BinData"
    DOCUMENT = "Document"
    ARRAY = "Array"
    BOOLEAN = "Boolean"
    DOUBLE = "Double"


def _bson_type(value: Any, source_type: str) -> BsonType:  # noqa: ANN401
    try:
        return BsonType(value)
    except ValueError as err:
        msg = f"Unknown BSON type {value!r} for source type {source_type!r}"
        raise ValueError(msg) from err


def default_mappings(dialect: str) -> dict[str, BsonType]:
    """Load the bundled default mappings for a dialect."""
    with DEFAULTS_FILE.open("rb") as f:
        defaults: dict[str, dict[str, str]] = load(f)
    if dialect not in defaults:
        msg = f"Unsupported dialect: {dialect}"
        raise ValueError(msg)
    return {name: _bson_type(value, name) for name, value in defaults[dialect].items()}


@dataclass(frozen=True)
class TypeMap:
    """Immutable source type to BSON type mapping with user overrides.

    Every change returns a new value, so a map handed to the generator cannot
    shift underneath it.
    """

    dialect: str
    defaults: Mapping[str, BsonType] = field(default_factory=lambda: MappingProxyType({}))
    overrides: Mapping[str, BsonType] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def for_dialect(cls, dialect: str) -> TypeMap:
        """Create a map holding the dialect's defaults and no overrides."""
        return cls(dialect, MappingProxyType(default_mappings(dialect)))

    @property
    def mappings(self) -> dict[str, BsonType]:
        """Effective mappings, overrides taking precedence."""
        return {**self.defaults, **self.overrides}

    def _key(self, source_type: str) -> str | None:
        mappings = self.mappings
        name = base_type_name(source_type)
        for candidate in (name, name.lower(), name.upper()):
            if candidate in mappings:
                return candidate
        if name.endswith("[]") and "ARRAY" in mappings:
            return "ARRAY"
        return None

    def knows(self, source_type: str) -> bool:
        """Whether the source type has an explicit mapping."""
        return self._key(source_type) is not None

    def resolve(self, source_type: str) -> BsonType:
        """BSON type for a source type, String when the type is unknown."""
        key = self._key(source_type)
        if key is None:
            logger.debug("No mapping for %s type %s, using String", self.dialect, source_type)
            return BsonType.STRING
        return self.mappings[key]

    def is_overridden(self, source_type: str) -> bool:
        """Whether the source type differs from its default."""
        return source_type in self.overrides

    def override(self, source_type: str, bson_type: BsonType | str) -> TypeMap:
        """Return a map with the source type pointing at a new BSON type."""
        target = _bson_type(bson_type, source_type)
        overrides = dict(self.overrides)
        if self.defaults.get(source_type) == target:
            overrides.pop(source_type, None)
        else:
            overrides[source_type] = target
        return replace(self, overrides=MappingProxyType(overrides))

    def restore_default(self, source_type: str) -> TypeMap:
        """Return a map without the override for the source type."""
        overrides = {k: v for k, v in self.overrides.items() if k != source_type}
        return replace(self, overrides=MappingProxyType(overrides))

    def sorted_types(self) -> list[str]:
        """Source type names in alphabetical order."""
        return sorted(self.mappings)


def typemap_to_json(typemap: TypeMap) -> str:
    """Serialize the dialect and overrides; defaults are never stored."""
    data = {
        "dialect": typemap.dialect,
        "overrides": {name: str(value) for name, value in sorted(typemap.overrides.items())},
    }
    return dumps(data, indent=2) + "\n"


def typemap_from_json(text: str) -> TypeMap:
    """Rebuild a type map from its serialized overrides."""
    data = loads(text)
    if not isinstance(data, dict) or not isinstance(data.get("dialect"), str):
        msg = "Type map document requires a dialect"
        raise ValueError(msg)
    overrides = data.get("overrides", {})
    if not isinstance(overrides, dict):
        msg = "Type map overrides must be an object"
        raise ValueError(msg)

    typemap = TypeMap.for_dialect(data["dialect"])
    for source_type, bson_type in overrides.items():
        typemap = typemap.override(source_type, bson_type)
    return typemap


def load_typemap(typemap_location: Path) -> TypeMap:
    """Load a type map saved with save_typemap."""
    return typemap_from_json(typemap_location.read_text(encoding="utf-8"))


def save_typemap(typemap: TypeMap, typemap_location: Path) -> None:
    """Write the type map's overrides to a file."""
    typemap_location.parent.mkdir(parents=True, exist_ok=True)
    typemap_location.write_text(typemap_to_json(typemap), encoding="utf-8")
