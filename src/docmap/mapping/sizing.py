"""Worst-case BSON document size estimation for a mapping."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from logging import getLogger
from math import ceil

from docmap.mapping.types import Collection, Embedded, Mapping
from docmap.schema.main import tables_by_name
from docmap.schema.type_conversion import column_width
from docmap.schema.types import DatabaseSchema, ForeignKeySchema, TableSchema

logger = getLogger(__name__)

BSON_DOCUMENT_LIMIT = 16 * 1024 * 1024

# Field names, type markers and length prefixes on top of the raw row bytes
MEAN_OVERHEAD = 1.3
WORST_CASE_OVERHEAD = 1.5

# Fan-out multiplier over the mean when no per-parent maximum was observed
SKEW_FACTOR = 10

FALLBACK_ROW_BYTES = 100.0

type RowSizeStrategy = Callable[[TableSchema, str], float]


def column_row_size(table: TableSchema, dialect: str) -> float:
    """Estimate a row's size from the widths of its column types."""
    size = sum(column_width(column, dialect) for column in table["columns"])
    return float(size) if size else FALLBACK_ROW_BYTES


def disk_row_size(table: TableSchema, dialect: str) -> float:
    """Average on-disk row size, falling back to column widths without statistics."""
    if table["size_bytes"] > 0 and table["row_count"] > 0:
        return table["size_bytes"] / table["row_count"]
    return column_row_size(table, dialect)


@dataclass
class TableContribution:
    """Bytes one source table adds to the largest document of a collection."""

    table: str
    path: str
    rows_per_document: int
    row_bytes: float
    total_bytes: float


@dataclass
class CollectionSizeEstimate:
    """Estimated document sizes for one target collection."""

    collection: str
    source_table: str
    max_document_bytes: int
    mean_document_bytes: int
    exceeds_limit: bool
    breakdown: list[TableContribution] = field(default_factory=list)
    warning: str | None = None


@dataclass
class _Estimator:
    tables: dict[str, TableSchema]
    dialect: str
    row_size: RowSizeStrategy

    def row_bytes(self, name: str) -> float:
        table = self.tables.get(name)
        return self.row_size(table, self.dialect) if table else 0.0

    def row_count(self, name: str) -> int:
        table = self.tables.get(name)
        return table["row_count"] if table else 0

    def foreign_key(self, node: Embedded, parent: str) -> ForeignKeySchema | None:
        child = self.tables.get(node["source_table"])
        if child is None:
            return None
        return next(
            (
                fk
                for fk in child["foreign_keys"]
                if fk["referenced_table"] == parent and node["join_column"] in fk["columns"]
            ),
            None,
        )

    def fan_out(self, node: Embedded, parent: str) -> tuple[int, float]:
        """Worst-case and mean child rows under one parent row."""
        if node["relationship"] == "single":
            return 1, 1.0
        child_rows = self.row_count(node["source_table"])
        parent_rows = self.row_count(parent)
        mean = child_rows / parent_rows if child_rows and parent_rows else 1.0

        foreign_key = self.foreign_key(node, parent)
        if foreign_key and foreign_key.get("max_rows_per_parent"):
            return foreign_key["max_rows_per_parent"], mean
        if not child_rows or not parent_rows:
            return 1, mean
        return min(ceil(mean) * SKEW_FACTOR, child_rows), mean

    def embedded(
        self,
        nodes: Iterable[Embedded],
        parent: str,
        path: str,
        multiplier: int,
        breakdown: list[TableContribution],
    ) -> tuple[float, float]:
        """Worst-case and mean bytes the nodes add to one parent row."""
        worst_total = 0.0
        mean_total = 0.0
        for node in nodes:
            child = node["source_table"]
            node_path = f"{path}.{node['field_name']}"
            worst_rows, mean_rows = self.fan_out(node, parent)
            row_bytes = self.row_bytes(child)

            nested_worst, nested_mean = self.embedded(
                node.get("embedded", []),
                child,
                node_path,
                multiplier * worst_rows,
                breakdown,
            )
            breakdown.append(
                TableContribution(
                    table=child,
                    path=node_path,
                    rows_per_document=multiplier * worst_rows,
                    row_bytes=row_bytes,
                    total_bytes=multiplier * worst_rows * row_bytes,
                ),
            )
            worst_total += worst_rows * (row_bytes + nested_worst)
            mean_total += mean_rows * (row_bytes + nested_mean)
        return worst_total, mean_total

    def has_cardinality(self, collection: Collection) -> bool:
        names = [collection["source_table"]]
        stack = list(collection.get("embedded", []))
        while stack:
            node = stack.pop()
            names.append(node["source_table"])
            stack.extend(node.get("embedded", []))
        return any(self.row_count(name) > 0 for name in names)

    def estimate(self, collection: Collection) -> CollectionSizeEstimate:
        name = collection["name"]
        root = collection["source_table"]
        estimate = CollectionSizeEstimate(
            collection=name,
            source_table=root,
            max_document_bytes=0,
            mean_document_bytes=0,
            exceeds_limit=False,
        )
        if root not in self.tables:
            estimate.warning = f"Source table {root} is not in the schema."
            return estimate
        if not self.has_cardinality(collection):
            logger.warning("No row counts for collection %s, size check deferred", name)
            estimate.warning = "No row counts available; size check deferred."
            return estimate

        root_bytes = self.row_bytes(root)
        estimate.breakdown.append(TableContribution(root, name, 1, root_bytes, root_bytes))
        worst, mean = self.embedded(
            collection.get("embedded", []),
            root,
            name,
            1,
            estimate.breakdown,
        )
        estimate.max_document_bytes = int((root_bytes + worst) * WORST_CASE_OVERHEAD)
        estimate.mean_document_bytes = int((root_bytes + mean) * MEAN_OVERHEAD)
        estimate.exceeds_limit = estimate.max_document_bytes >= BSON_DOCUMENT_LIMIT
        if estimate.exceeds_limit:
            estimate.warning = (
                "Estimated maximum document size exceeds the 16MB BSON limit. "
                "Consider reducing embedding depth or turning large arrays into references."
            )
        return estimate


def estimate_sizes(
    schema: DatabaseSchema,
    mapping: Mapping,
    row_size: RowSizeStrategy = disk_row_size,
) -> list[CollectionSizeEstimate]:
    """Estimate the largest possible document of every collection.

    Fan-out uses the most densely populated parent rather than the average one,
    so a single pathological document is caught.
    """
    estimator = _Estimator(tables_by_name(schema), schema["database_type"], row_size)
    return [estimator.estimate(collection) for collection in mapping["collections"]]
