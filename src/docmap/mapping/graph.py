"""Foreign key relationship graph over a selection of tables."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from docmap.schema.types import DatabaseSchema, ForeignKeySchema, TableSchema


@dataclass(frozen=True)
class Edge:
    """A foreign key from a child table to the parent table it references."""

    child: int
    parent: int
    foreign_key: ForeignKeySchema

    @property
    def is_self_reference(self) -> bool:
        """Whether the key points back at its own table."""
        return self.child == self.parent

    @property
    def child_column(self) -> str:
        """First local column of the key."""
        return self.foreign_key["columns"][0]

    @property
    def parent_column(self) -> str:
        """First referenced column of the key."""
        return self.foreign_key["referenced_columns"][0]


@dataclass(frozen=True)
class JoinTable:
    """A many-to-many link table and the side that will own its rows."""

    table: str
    sides: tuple[str, ...]
    owner: str
    owner_edge: Edge


class RelationshipGraph:
    """Directed foreign key graph restricted to a set of tables.

    Tables live in an arena sorted by name so that every index, edge list and
    adjacency list has the same order for the same input.
    """

    def __init__(self, tables: Iterable[TableSchema]) -> None:
        """Index the tables and collect edges whose both ends are present."""
        self.tables: list[TableSchema] = sorted(tables, key=lambda table: table["name"])
        self.index: dict[str, int] = {
            table["name"]: position for position, table in enumerate(self.tables)
        }
        self.edges: list[Edge] = []
        self._children: list[list[Edge]] = [[] for _ in self.tables]
        self._parents: list[list[Edge]] = [[] for _ in self.tables]

        for position, table in enumerate(self.tables):
            for foreign_key in sorted(table["foreign_keys"], key=lambda fk: fk["name"]):
                parent = self.index.get(foreign_key["referenced_table"])
                if parent is None or not foreign_key["columns"]:
                    continue
                edge = Edge(child=position, parent=parent, foreign_key=foreign_key)
                self.edges.append(edge)
                self._children[parent].append(edge)
                self._parents[position].append(edge)

        for edges in self._children:
            edges.sort(key=lambda edge: (self.name(edge.child), edge.foreign_key["name"]))
        for edges in self._parents:
            edges.sort(key=lambda edge: (self.name(edge.parent), edge.foreign_key["name"]))

    @classmethod
    def build(cls, schema: DatabaseSchema, selected: Iterable[str]) -> RelationshipGraph:
        """Build the graph for the selected tables of a schema."""
        wanted = set(selected)
        return cls(table for table in schema["tables"] if table["name"] in wanted)

    @property
    def names(self) -> list[str]:
        """Table names in arena order."""
        return [table["name"] for table in self.tables]

    def name(self, position: int) -> str:
        """Table name at an arena position."""
        return self.tables[position]["name"]

    def table(self, name: str) -> TableSchema:
        """Table schema by name."""
        return self.tables[self.index[name]]

    def children(self, name: str) -> list[Edge]:
        """Edges from other tables referencing this one."""
        return [edge for edge in self._children[self.index[name]] if not edge.is_self_reference]

    def parents(self, name: str) -> list[Edge]:
        """Edges from this table to the other tables it references."""
        return [edge for edge in self._parents[self.index[name]] if not edge.is_self_reference]

    def in_degree(self, name: str) -> int:
        """Number of foreign keys in other tables pointing at this table."""
        return len(self.children(name))

    def out_degree(self, name: str) -> int:
        """Number of foreign keys from this table to other tables."""
        return len(self.parents(name))

    def self_references(self) -> list[Edge]:
        """All edges where a table references itself."""
        return [edge for edge in self.edges if edge.is_self_reference]

    def is_self_referencing(self, name: str) -> bool:
        """Whether the table has any key pointing back at itself."""
        return any(edge.is_self_reference for edge in self._parents[self.index[name]])

    def join_tables(self) -> dict[str, JoinTable]:
        """Detect many-to-many link tables that can be dissolved.

        A link table references at least two distinct other tables, carries no
        columns besides its key columns, is not referenced by any other table
        and has at least one side able to hold embedded rows.
        """
        result: dict[str, JoinTable] = {}
        for table in self.tables:
            name = table["name"]
            parents = self.parents(name)
            sides = tuple(sorted({self.name(edge.parent) for edge in parents}))
            if len(sides) < 2 or self.in_degree(name) or self.is_self_referencing(name):
                continue

            key_columns = {column for fk in table["foreign_keys"] for column in fk["columns"]}
            if primary_key := table.get("primary_key"):
                key_columns.update(primary_key["columns"])
            if any(column["name"] not in key_columns for column in table["columns"]):
                continue

            owners = [side for side in sides if not self.is_self_referencing(side)]
            if not owners:
                continue
            # The side with more rows is the natural aggregate owner
            owner = min(owners, key=lambda side: (-self.table(side)["row_count"], side))
            owner_edge = next(edge for edge in parents if self.name(edge.parent) == owner)
            result[name] = JoinTable(name, sides, owner, owner_edge)
        return result

    def detect_cycles(self) -> list[list[str]]:
        """Find cycles along foreign key direction, ignoring self-references."""
        cycles: list[list[str]] = []
        visited: set[int] = set()
        on_path: list[int] = []

        def visit(node: int) -> None:
            visited.add(node)
            on_path.append(node)
            for edge in self._parents[node]:
                if edge.is_self_reference:
                    continue
                if edge.parent in on_path:
                    start = on_path.index(edge.parent)
                    cycles.append([self.name(position) for position in on_path[start:]])
                elif edge.parent not in visited:
                    visit(edge.parent)
            on_path.pop()

        for position in range(len(self.tables)):
            if position not in visited:
                visit(position)
        return cycles
