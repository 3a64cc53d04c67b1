"""Traversal helpers over the mapping tree."""

from collections import defaultdict
from collections.abc import Iterable, Iterator
from typing import Literal, NamedTuple

from docmap.mapping.types import Collection, Embedded, Mapping

type Role = Literal["collection", "embedded", "reference"]


class EmbedStep(NamedTuple):
    """An embedded node together with the table it is nested into."""

    parent_table: str
    node: Embedded
    depth: int  # 1 for direct children of the collection


def walk_embedded(embedded: Iterable[Embedded]) -> Iterator[Embedded]:
    """Yield every embedded node, parents before their children."""
    for node in embedded:
        yield node
        yield from walk_embedded(node.get("embedded", []))


def _post_order(
    parent_table: str,
    embedded: Iterable[Embedded],
    depth: int,
) -> Iterator[EmbedStep]:
    for node in embedded:
        yield from _post_order(node["source_table"], node.get("embedded", []), depth + 1)
        yield EmbedStep(parent_table, node, depth)


def bottom_up(collection: Collection) -> list[EmbedStep]:
    """Order the embedded nodes so every node follows all of its descendants.

    This is the order in which nested structures must be materialized: a node
    can only be aggregated once its own children are already columns on it.
    """
    return list(_post_order(collection["source_table"], collection.get("embedded", []), 1))


def nesting_depth(collection: Collection) -> int:
    """Maximum embedding depth of a collection, zero when nothing is embedded."""
    return max((step.depth for step in bottom_up(collection)), default=0)


def collection_tables(collection: Collection) -> list[str]:
    """Every source table a collection reads: root, embedded, then referenced."""
    tables = [collection["source_table"]]
    tables.extend(node["source_table"] for node in walk_embedded(collection.get("embedded", [])))
    tables.extend(
        reference["source_table"]
        for reference in collection.get("references", [])
        if reference["source_table"] != collection["source_table"]
    )
    return tables


def table_roles(mapping: Mapping) -> dict[str, list[Role]]:
    """Collect every placement of each source table in the mapping.

    A collection's reference to its own source table records a self-link and
    is not a separate placement.
    """
    roles: dict[str, list[Role]] = defaultdict(list)
    for collection in mapping["collections"]:
        roles[collection["source_table"]].append("collection")
        for node in walk_embedded(collection.get("embedded", [])):
            roles[node["source_table"]].append("embedded")
        for reference in collection.get("references", []):
            if reference["source_table"] != collection["source_table"]:
                roles[reference["source_table"]].append("reference")
    return dict(roles)
