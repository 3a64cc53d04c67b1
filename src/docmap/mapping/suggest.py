"""Suggest a document mapping from the foreign key structure of a schema."""

from collections import defaultdict, deque
from collections.abc import Iterable
from logging import getLogger
from typing import Literal, NamedTuple

from docmap.mapping.graph import Edge, JoinTable, RelationshipGraph
from docmap.mapping.types import Collection, Embedded, Mapping, Reference, Relationship
from docmap.schema.main import tables_by_name
from docmap.schema.types import DatabaseSchema

logger = getLogger(__name__)


class Placement(NamedTuple):
    """Where a child table lands under the table that claimed it."""

    table: str
    edge: Edge
    kind: Literal["embedded", "reference"]


type Placements = dict[str, list[Placement]]


def relationship_kind(child_rows: int | None, parent_rows: int | None) -> Relationship:
    """Pick the container for a child from the child/parent row ratio.

    Unknown or zero counts cannot rule out one-to-many, so they embed as arrays.
    """
    if not child_rows or not parent_rows:
        return "array"
    return "array" if child_rows / parent_rows > 1.0 else "single"


def _child_edges(
    graph: RelationshipGraph,
    parent: str,
    join_tables: dict[str, JoinTable],
) -> list[Edge]:
    """Edges to children of a table, with link tables only under their owner."""
    edges: list[Edge] = []
    for edge in graph.children(parent):
        link = join_tables.get(graph.name(edge.child))
        if link is None or link.owner_edge == edge:
            edges.append(edge)
    return edges


def _roots(
    graph: RelationshipGraph,
    candidates: list[str],
    root_tables: Iterable[str] | None,
) -> list[str]:
    """Choose root tables, from hints when given, else from the graph."""
    if root_tables:
        allowed = set(candidates)
        hinted = [name for name in dict.fromkeys(root_tables) if name in allowed]
        if hinted:
            return hinted
        logger.warning("None of the root hints are selectable tables, inferring roots")

    roots = [name for name in candidates if graph.out_degree(name) == 0]
    if candidates and not roots:
        logger.warning(
            "Every selected table references another (cycles: %s), using all as roots",
            graph.detect_cycles(),
        )
        return candidates
    return roots


def _plan(
    graph: RelationshipGraph,
    roots: list[str],
    candidates: list[str],
    join_tables: dict[str, JoinTable],
) -> tuple[list[str], Placements]:
    """Claim every table for exactly one parent, breadth first from each root."""
    claimed: set[str] = set()
    collections: list[str] = []
    placements: Placements = defaultdict(list)

    def expand(root: str) -> None:
        claimed.add(root)
        collections.append(root)
        queue = deque([root])
        while queue:
            parent = queue.popleft()
            for edge in _child_edges(graph, parent, join_tables):
                child = graph.name(edge.child)
                if child in claimed:
                    continue
                if graph.is_self_referencing(child):
                    # Never embedded, linked from whichever level reached it
                    claimed.add(child)
                    placements[parent].append(Placement(child, edge, "reference"))
                    continue
                claimed.add(child)
                placements[parent].append(Placement(child, edge, "embedded"))
                queue.append(child)

    for root in roots:
        if root not in claimed:
            expand(root)
    # Anything unreachable from a root becomes its own collection
    for name in candidates:
        if name not in claimed:
            expand(name)
    return collections, placements


def _embedded(
    parent: str,
    placement: Placement,
    graph: RelationshipGraph,
    placements: Placements,
) -> Embedded:
    """Build an embedded node with all of its nested children."""
    child = placement.table
    node: Embedded = {
        "source_table": child,
        "field_name": child,
        "relationship": relationship_kind(
            graph.table(child)["row_count"],
            graph.table(parent)["row_count"],
        ),
        "join_column": placement.edge.child_column,
        "parent_column": placement.edge.parent_column,
    }
    nested = [
        _embedded(child, nested_placement, graph, placements)
        for nested_placement in placements.get(child, [])
        if nested_placement.kind == "embedded"
    ]
    if nested:
        node["embedded"] = nested
    return node


def _tree_tables(root: str, placements: Placements) -> list[str]:
    """Tables of a collection's embedding tree, parents before children."""
    tables = [root]
    for placement in placements.get(root, []):
        if placement.kind == "embedded":
            tables.extend(_tree_tables(placement.table, placements))
    return tables


def _collection(root: str, graph: RelationshipGraph, placements: Placements) -> Collection:
    """Build a collection and its embedding tree for a root table."""
    collection: Collection = {"name": root, "source_table": root}

    embedded = [
        _embedded(root, placement, graph, placements)
        for placement in placements.get(root, [])
        if placement.kind == "embedded"
    ]
    references: list[Reference] = [
        {
            "source_table": root,
            "field_name": edge.child_column,
            "join_column": edge.child_column,
            "parent_column": edge.parent_column,
        }
        for edge in graph.self_references()
        if graph.name(edge.child) == root
    ]
    for owner in _tree_tables(root, placements):
        for placement in placements.get(owner, []):
            if placement.kind != "reference":
                continue
            reference: Reference = {
                "source_table": placement.table,
                "field_name": placement.table,
                "join_column": placement.edge.child_column,
                "parent_column": placement.edge.parent_column,
            }
            if owner != root:
                reference["parent_table"] = owner
            references.append(reference)

    if embedded:
        collection["embedded"] = embedded
    if references:
        collection["references"] = references
    return collection


def suggest_mapping(
    schema: DatabaseSchema,
    selected_tables: Iterable[str],
    root_tables: Iterable[str] | None = None,
) -> Mapping:
    """Suggest how the selected tables map to document collections.

    Link tables of many-to-many relationships are dissolved into their owning
    side, children are embedded as arrays or single documents following their
    row ratio, and self-referencing tables are kept as references. The result
    places every selected table exactly once and is identical for identical
    input.
    """
    selected = set(selected_tables)
    known = tables_by_name(schema)
    for missing in sorted(selected - known.keys()):
        logger.warning("Selected table %s is not in the schema, skipping", missing)

    graph = RelationshipGraph.build(schema, selected)
    join_tables = graph.join_tables()
    for link in join_tables.values():
        logger.info("Dissolving link table %s into %s", link.table, link.owner)

    candidates = [name for name in graph.names if name not in join_tables]
    roots = _roots(graph, candidates, root_tables)
    collections, placements = _plan(graph, roots, candidates, join_tables)

    return {
        "collections": [_collection(root, graph, placements) for root in collections],
    }
