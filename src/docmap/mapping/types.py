"""TypedDict schemas for the relational-to-document mapping."""

from __future__ import annotations

from typing import Any, Literal, NotRequired, TypedDict

type Relationship = Literal["array", "single"]

type Operation = Literal["rename", "compute", "cast", "filter", "default", "exclude"]

OPERATIONS: tuple[Operation, ...] = (
    "rename",
    "compute",
    "cast",
    "filter",
    "default",
    "exclude",
)


class RenameTransformation(TypedDict):
    """Rename a field."""

    operation: Literal["rename"]
    source_field: str
    target_field: str


class ComputeTransformation(TypedDict):
    """Derive a new field from a SQL expression."""

    operation: Literal["compute"]
    target_field: str
    expression: str


class CastTransformation(TypedDict):
    """Coerce a field, to the type map's target unless target_type overrides it."""

    operation: Literal["cast"]
    source_field: str
    target_type: NotRequired[str]


class FilterTransformation(TypedDict):
    """Keep only rows matching a SQL predicate."""

    operation: Literal["filter"]
    expression: str


class DefaultTransformation(TypedDict):
    """Replace nulls in a field with a literal value."""

    operation: Literal["default"]
    source_field: str
    value: Any


class ExcludeTransformation(TypedDict):
    """Drop a field."""

    operation: Literal["exclude"]
    source_field: str


type Transformation = (
    RenameTransformation
    | ComputeTransformation
    | CastTransformation
    | FilterTransformation
    | DefaultTransformation
    | ExcludeTransformation
)


class Embedded(TypedDict):
    """A child table nested inside its parent document."""

    source_table: str
    field_name: str
    relationship: Relationship
    join_column: str  # Column on the child
    parent_column: str  # Column on the parent
    embedded: NotRequired[list[Embedded]]
    transformations: NotRequired[list[Transformation]]


class Reference(TypedDict):
    """A table kept as its own collection and linked by a field."""

    source_table: str
    field_name: str
    join_column: str  # Column on the referenced table
    parent_column: str  # Column on the owning table
    parent_table: NotRequired[str]  # Embedded table owning the link, the root when absent


class Collection(TypedDict):
    """A target document collection rooted at one source table."""

    name: str
    source_table: str
    embedded: NotRequired[list[Embedded]]
    references: NotRequired[list[Reference]]
    transformations: NotRequired[list[Transformation]]


class Mapping(TypedDict):
    """Root of the mapping document."""

    collections: list[Collection]
