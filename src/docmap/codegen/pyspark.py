"""PySpark statements for reads, transformations and nested joins."""

from __future__ import annotations

from json import dumps
from re import sub
from typing import TYPE_CHECKING

from docmap.mapping.transformations import UnknownOperationError
from docmap.typemap import BsonType, TypeMap

if TYPE_CHECKING:
    from docmap.mapping.tree import EmbedStep
    from docmap.mapping.types import Reference, Transformation
    from docmap.schema.types import TableSchema

type Imports = dict[str, set[str]]

FUNCTIONS = "pyspark.sql.functions"

SPARK_TYPES: dict[BsonType, str] = {
    BsonType.NUMBER_LONG: "long",
    BsonType.DECIMAL128: "decimal(38,10)",
    BsonType.DOUBLE: "double",
    BsonType.STRING: "string",
    BsonType.ISO_DATE: "timestamp",
    BsonType.BOOLEAN: "boolean",
    BsonType.BIN_DATA: "binary",
    # Nested values arrive from JDBC as serialized text
    BsonType.DOCUMENT: "string",
    BsonType.ARRAY: "string",
}


def quote(value: str) -> str:
    """Python string literal for a name or expression."""
    return dumps(value)


def variable(table: str, suffix: str = "df") -> str:
    """Python identifier for a DataFrame built from a table."""
    name = sub(r"\W", "_", table)
    if name[:1].isdigit():
        name = f"_{name}"
    return f"{name}_{suffix}"


def generate_imports(imports: Imports) -> str:
    """Generate import statements from collected imports."""
    lines = [
        f"from {module} import {', '.join(sorted(names))}" if names else f"import {module}"
        for module, names in imports.items()
    ]
    return "\n".join(lines)


def spark_type(bson_type: BsonType) -> str:
    """Spark SQL type the connector writes as the BSON type."""
    return SPARK_TYPES[bson_type]


def cast_target(
    transformation: Transformation,
    table: TableSchema | None,
    typemap: TypeMap,
    notes: list[str],
) -> str:
    """Spark type a cast coerces its field to.

    An explicit target type wins; BSON type names are translated and anything
    else is passed to Spark unchanged. Without one the source column's type
    is looked up in the type map.
    """
    field = transformation.get("source_field", "")
    if target := transformation.get("target_type"):
        try:
            return spark_type(BsonType(target))
        except ValueError:
            return target

    column = next((c for c in table["columns"] if c["name"] == field), None) if table else None
    if column is None:
        notes.append(f"Cast of {field}: column not found in the source schema, using string")
        return spark_type(BsonType.STRING)
    if not typemap.knows(column["data_type"]):
        notes.append(
            f"{table['name'] if table else '?'}.{field}: no type mapping for "
            f"{column['data_type']}, using String",
        )
    return spark_type(typemap.resolve(column["data_type"]))


def transformation_lines(
    df: str,
    transformations: list[Transformation],
    table: TableSchema | None,
    typemap: TypeMap,
    imports: Imports,
    notes: list[str],
) -> list[str]:
    """Statements applying transformations to a DataFrame in declared order."""
    lines: list[str] = []
    for transformation in transformations:
        match transformation:
            case {"operation": "rename", "source_field": source, "target_field": target}:
                call = f"withColumnRenamed({quote(source)}, {quote(target)})"
            case {"operation": "compute", "target_field": target, "expression": expression}:
                imports[FUNCTIONS].add("expr")
                call = f"withColumn({quote(target)}, expr({quote(expression)}))"
            case {"operation": "cast", "source_field": field}:
                imports[FUNCTIONS].add("col")
                target = cast_target(transformation, table, typemap, notes)
                call = f"withColumn({quote(field)}, col({quote(field)}).cast({quote(target)}))"
            case {"operation": "filter", "expression": expression}:
                imports[FUNCTIONS].add("expr")
                call = f"filter(expr({quote(expression)}))"
            case {"operation": "default", "source_field": field, "value": value}:
                imports[FUNCTIONS].update(("coalesce", "col", "lit"))
                call = f"withColumn({quote(field)}, coalesce(col({quote(field)}), lit({value!r})))"
            case {"operation": "exclude", "source_field": field}:
                call = f"drop({quote(field)})"
            case _:
                raise UnknownOperationError(transformation.get("operation"))
        lines.append(f"{df} = {df}.{call}")
    return lines


def nesting_lines(step: EmbedStep, imports: Imports) -> list[str]:
    """Fold a child DataFrame into its parent as an array or a sub-document."""
    node = step.node
    child_df = variable(node["source_table"])
    nested = variable(node["source_table"], "nested")
    parent_df = variable(step.parent_table)
    join_column = quote(node["join_column"])

    aggregate = "collect_list" if node["relationship"] == "array" else "first"
    imports[FUNCTIONS].update((aggregate, "struct"))
    return [
        f"{nested} = {child_df}.groupBy({join_column}).agg(\n"
        f"    {aggregate}(struct(*{child_df}.columns)).alias({quote(node['field_name'])})\n"
        ")",
        f"{parent_df} = {parent_df}.join(\n"
        f"    {nested},\n"
        f"    {parent_df}[{quote(node['parent_column'])}] == {nested}[{join_column}],\n"
        '    "left",\n'
        f").drop({nested}[{join_column}])",
    ]


def reference_lines(
    reference: Reference,
    root_table: str,
    referenced: TableSchema | None,
    imports: Imports,
) -> list[str]:
    """Attach the keys of referenced rows to their owning table as an array.

    The owner is the collection root unless the reference names an embedded
    table, whose rows then carry the array into their nested structure.
    """
    join_column = quote(reference["join_column"])
    owner_table = reference.get("parent_table", root_table)
    if reference["source_table"] == owner_table:
        return [
            f"# {reference['field_name']} links {owner_table} rows to other {owner_table} "
            f"rows through {reference['parent_column']} and is kept as a plain field",
        ]

    primary_key = referenced.get("primary_key") if referenced else None
    key = primary_key["columns"][0] if primary_key else reference["join_column"]
    source_df = variable(reference["source_table"], "ref_df")
    links = variable(reference["source_table"], "links")
    owner_df = variable(owner_table)

    imports[FUNCTIONS].add("collect_list")
    return [
        f"{links} = {source_df}.groupBy({join_column}).agg(\n"
        f"    collect_list({quote(key)}).alias({quote(reference['field_name'])})\n"
        ")",
        f"{owner_df} = {owner_df}.join(\n"
        f"    {links},\n"
        f"    {owner_df}[{quote(reference['parent_column'])}] == {links}[{join_column}],\n"
        '    "left",\n'
        f").drop({links}[{join_column}])",
    ]
