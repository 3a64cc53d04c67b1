"""Reading and writing the mapping document."""

import json
from pathlib import Path
from typing import Any, cast

from docmap.mapping.types import Collection, Embedded, Mapping, Reference


class MappingFormatError(ValueError):
    """Raised when a mapping document does not have the expected structure."""


def _require(data: dict[str, Any], keys: tuple[str, ...], where: str) -> None:
    for key in keys:
        if not isinstance(data.get(key), str) or not data[key]:
            msg = f"{where}: '{key}' must be a non-empty string"
            raise MappingFormatError(msg)


def _check_list(data: dict[str, Any], key: str, where: str) -> list[Any]:
    value = data.get(key, [])
    if not isinstance(value, list):
        msg = f"{where}: '{key}' must be a list"
        raise MappingFormatError(msg)
    return cast("list[Any]", value)


def _check_transformations(data: dict[str, Any], where: str) -> None:
    for position, transformation in enumerate(_check_list(data, "transformations", where)):
        if not isinstance(transformation, dict) or not isinstance(
            cast("dict[str, Any]", transformation).get("operation"),
            str,
        ):
            msg = f"{where}: transformation {position} needs an 'operation'"
            raise MappingFormatError(msg)


def _check_embedded(data: Any, where: str) -> Embedded:  # noqa: ANN401
    if not isinstance(data, dict):
        msg = f"{where}: embedded entry must be an object"
        raise MappingFormatError(msg)
    node = cast("dict[str, Any]", data)
    _require(node, ("source_table", "field_name", "join_column", "parent_column"), where)
    where = f"{where}.{node['field_name']}"
    if node.get("relationship") not in ("array", "single"):
        msg = f"{where}: relationship must be 'array' or 'single'"
        raise MappingFormatError(msg)
    for child in _check_list(node, "embedded", where):
        _check_embedded(child, where)
    _check_transformations(node, where)
    return cast("Embedded", node)


def _check_reference(data: Any, where: str) -> Reference:  # noqa: ANN401
    if not isinstance(data, dict):
        msg = f"{where}: reference entry must be an object"
        raise MappingFormatError(msg)
    reference = cast("dict[str, Any]", data)
    _require(reference, ("source_table", "field_name", "join_column", "parent_column"), where)
    if "parent_table" in reference:
        _require(reference, ("parent_table",), where)
    return cast("Reference", reference)


def _check_collection(data: Any, position: int) -> Collection:  # noqa: ANN401
    where = f"collections[{position}]"
    if not isinstance(data, dict):
        msg = f"{where}: collection must be an object"
        raise MappingFormatError(msg)
    collection = cast("dict[str, Any]", data)
    _require(collection, ("name", "source_table"), where)
    where = collection["name"]
    for node in _check_list(collection, "embedded", where):
        _check_embedded(node, where)
    for reference in _check_list(collection, "references", where):
        _check_reference(reference, where)
    _check_transformations(collection, where)
    return cast("Collection", collection)


def mapping_from_json(text: str) -> Mapping:
    """Parse and structurally check a mapping document.

    Transformation operations are only checked for presence; recognising them
    is left to the code generator.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as err:
        msg = f"Mapping is not valid JSON: {err}"
        raise MappingFormatError(msg) from err
    if not isinstance(data, dict) or not isinstance(data.get("collections"), list):
        msg = "Mapping must be an object with a 'collections' list"
        raise MappingFormatError(msg)
    collections = cast("list[Any]", data["collections"])
    return {
        "collections": [
            _check_collection(collection, position)
            for position, collection in enumerate(collections)
        ],
    }


def mapping_to_json(mapping: Mapping) -> str:
    """Serialize a mapping document."""
    return json.dumps(mapping, indent=2) + "\n"


def load_mapping(mapping_location: Path) -> Mapping:
    """Load a mapping document from a file."""
    return mapping_from_json(mapping_location.read_text())


def save_mapping(mapping: Mapping, mapping_location: Path) -> None:
    """Write a mapping document, creating the parent directory if needed."""
    mapping_location.parent.mkdir(parents=True, exist_ok=True)
    mapping_location.write_text(mapping_to_json(mapping))
