"""Rendering of the PySpark migration script."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from docmap.codegen.jdbc import ORACLE_GUIDANCE, jdbc_driver, jdbc_url, partition_column
from docmap.codegen.pyspark import (
    Imports,
    generate_imports,
    nesting_lines,
    quote,
    reference_lines,
    transformation_lines,
    variable,
)
from docmap.mapping.transformations import UnknownOperationError, validate_transformations
from docmap.mapping.tree import bottom_up, walk_embedded
from docmap.schema.main import tables_by_name
from docmap.typemap import TypeMap

if TYPE_CHECKING:
    from docmap.codegen.config import GeneratorConfig, SourceConfig
    from docmap.mapping.types import Collection, Mapping, Transformation
    from docmap.schema.types import DatabaseSchema, TableSchema

logger = getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

SUPPORTED_DIALECTS = ("postgresql", "oracle")

PASSWORD_VARIABLE = "DOCMAP_SOURCE_PASSWORD"
TARGET_URI_VARIABLE = "DOCMAP_TARGET_URI"


class GenerationError(ValueError):
    """Raised when the inputs cannot produce a migration script."""


@dataclass(frozen=True)
class GenerateResult:
    """A rendered migration script and the caveats found while producing it."""

    script: str
    notes: list[str] = field(default_factory=list)


@dataclass
class CollectionScript:
    """Statements for one target collection, grouped by stage."""

    name: str
    source_table: str
    reads: list[str] = field(default_factory=list)
    transformations: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    nesting: list[str] = field(default_factory=list)
    writes: list[str] = field(default_factory=list)


def target_uri(connection_string: str, pool_size: int) -> str:
    """Tune a MongoDB URI for bulk loading and strip any password from it."""
    parts = urlsplit(connection_string)
    netloc = parts.netloc
    userinfo, at, hosts = netloc.rpartition("@")
    if at and ":" in userinfo:
        netloc = f"{userinfo.split(':', 1)[0]}@{hosts}"

    query = dict(parse_qsl(parts.query))
    query["compressors"] = "zstd"
    query["maxPoolSize"] = str(pool_size)
    return urlunsplit((parts.scheme, netloc, parts.path or "/", urlencode(query), ""))


def qualified(source: SourceConfig, table: str) -> str:
    """Table name as the source database addresses it."""
    return f"{source.schema}.{table}" if source.schema else table


class _CollectionBuilder:
    """Accumulates the script for every collection of a mapping."""

    def __init__(
        self,
        config: GeneratorConfig,
        schema: DatabaseSchema,
        mapping: Mapping,
        typemap: TypeMap,
    ) -> None:
        self.source = config.source
        self.tables = tables_by_name(schema)
        self.typemap = typemap
        self.imports: Imports = defaultdict(set)
        self.imports["os"] = set()
        self.imports["time"] = set()
        self.imports["pyspark.sql"].add("SparkSession")
        self.notes: list[str] = []
        self.collection_tables = {c["source_table"] for c in mapping["collections"]}
        self.written: set[str] = set()
        self.missing: set[str] = set()

    def table(self, name: str) -> TableSchema | None:
        table = self.tables.get(name)
        if table is None and name not in self.missing:
            self.missing.add(name)
            self.notes.append(f"Table {name} is not in the source schema")
        return table

    def read(self, name: str, df: str) -> str:
        table = self.table(name)
        column = partition_column(table, self.source.type) if table else None
        arguments = [quote(qualified(self.source, name))]
        if column is not None:
            arguments.append(quote(column))
        else:
            logger.debug("No partition column for %s, reading in one partition", name)
        return f"{df} = read_table({', '.join(arguments)})"

    def transform(self, name: str, transformations: list[Transformation]) -> list[str]:
        try:
            validate_transformations(transformations)
        except UnknownOperationError:
            raise
        except ValueError as err:
            msg = f"{name}: {err}"
            raise GenerationError(msg) from err
        return transformation_lines(
            variable(name),
            transformations,
            self.tables.get(name),
            self.typemap,
            self.imports,
            self.notes,
        )

    def build(self, collection: Collection) -> CollectionScript:
        root = collection["source_table"]
        script = CollectionScript(collection["name"], root)
        root_df = variable(root)
        embedded = list(walk_embedded(collection.get("embedded", [])))
        references = [
            reference
            for reference in collection.get("references", [])
            if reference["source_table"] != root
        ]

        script.reads.append(self.read(root, root_df))
        script.reads.append(f"{variable(root, 'rows')} = {root_df}.count()")
        script.reads.extend(
            self.read(node["source_table"], variable(node["source_table"])) for node in embedded
        )
        script.reads.extend(
            self.read(reference["source_table"], variable(reference["source_table"], "ref_df"))
            for reference in references
        )

        script.transformations.extend(self.transform(root, collection.get("transformations", [])))
        for node in embedded:
            script.transformations.extend(
                self.transform(node["source_table"], node.get("transformations", [])),
            )

        owners = {root} | {node["source_table"] for node in embedded}
        # Links join onto their owning table before it is nested into its parent
        for reference in collection.get("references", []):
            owner = reference.get("parent_table", root)
            if owner not in owners:
                msg = (
                    f"{collection['name']}: reference {reference['field_name']} "
                    f"is owned by {owner}, which is not in the collection"
                )
                raise GenerationError(msg)
            script.links.extend(
                reference_lines(
                    reference,
                    root,
                    self.tables.get(reference["source_table"]),
                    self.imports,
                ),
            )

        for step in bottom_up(collection):
            script.nesting.extend(nesting_lines(step, self.imports))

        script.writes.append(
            f"write_collection({root_df}, {quote(collection['name'])}, {variable(root, 'rows')})",
        )
        self.written.add(collection["name"])
        # Referenced tables become collections of their own, written once
        for reference in references:
            name = reference["source_table"]
            if name in self.collection_tables or name in self.written:
                continue
            self.written.add(name)
            source_df = variable(name, "ref_df")
            script.writes.append(
                f"write_collection({source_df}, {quote(name)}, {source_df}.count())",
            )
        return script


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=False,  # noqa: S701
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["q"] = quote
    return env


def generate(
    config: GeneratorConfig | None,
    schema: DatabaseSchema | None,
    mapping: Mapping | None,
    typemap: TypeMap | None = None,
) -> GenerateResult:
    """Generate a PySpark script migrating the mapped tables into MongoDB.

    Every participating table is read in parallel range partitions, the
    transformations are applied in declared order, embedded tables are folded
    into their parents deepest first and each collection is bulk written with
    throughput-oriented settings. Identical inputs render identical scripts.
    """
    if config is None:
        msg = "A generator configuration is required"
        raise GenerationError(msg)
    if schema is None:
        msg = "A source schema is required"
        raise GenerationError(msg)
    if mapping is None:
        msg = "A mapping is required"
        raise GenerationError(msg)
    source = config.source
    if source.type not in SUPPORTED_DIALECTS:
        msg = f"Unsupported source type: {source.type}"
        raise GenerationError(msg)

    builder = _CollectionBuilder(config, schema, mapping, typemap or TypeMap.for_dialect(source.type))
    collections = [builder.build(collection) for collection in mapping["collections"]]
    if source.type == "oracle":
        builder.notes.append("Oracle source: supply the ojdbc jar to spark-submit with --jars")

    script = (
        _environment()
        .get_template("migration.py.jinja")
        .render(
            dialect=source.type,
            url=jdbc_url(source),
            driver=jdbc_driver(source),
            username=source.username,
            password_variable=PASSWORD_VARIABLE,
            target_uri_variable=TARGET_URI_VARIABLE,
            target_uri=target_uri(config.target.connection_string, source.max_connections),
            target_database=config.target.database,
            partitions=source.max_connections,
            guidance=ORACLE_GUIDANCE if source.type == "oracle" else "",
            imports=generate_imports(builder.imports),
            collections=collections,
        )
    )
    for note in builder.notes:
        logger.debug("%s", note)
    return GenerateResult(script, builder.notes)
