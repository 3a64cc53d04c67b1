"""Command line interface for docmap."""

import sys
from dataclasses import asdict
from json import dumps
from logging import DEBUG, INFO, basicConfig
from pathlib import Path
from sys import stdout
from typing import Annotated, Literal

from cyclopts import App, Parameter
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from docmap.codegen import generate as generate_script
from docmap.codegen import load_config
from docmap.mapping import (
    CollectionSizeEstimate,
    estimate_sizes,
    load_mapping,
    mapping_to_json,
    save_mapping,
    suggest_mapping,
)
from docmap.schema import load_schema
from docmap.typemap import TypeMap, load_typemap, save_typemap

app = App(help="Relational to MongoDB document mapping toolkit")

type Format = Literal["table", "json"]

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[bold red]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print success message to stderr."""
    err_console.print(f"[bold green]✓[/] {message}")


def print_info(message: str) -> None:
    """Print info message to stderr."""
    err_console.print(f"[bold blue]i[/] {message}")


def print_warning(message: str) -> None:
    """Print warning message to stderr."""
    err_console.print(f"[bold yellow]![/] {message}")


def validate_file_location(location: Path) -> None:
    """Validate that an input file exists."""
    if not location.is_file():
        print_error(f"File does not exist: {location}")
        sys.exit(1)


def configure_logging(*, verbose: bool) -> None:
    """Send log records to stderr through rich."""
    basicConfig(
        level=DEBUG if verbose else INFO,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def format_size(size: int) -> str:
    """Render a byte count with a binary unit."""
    value = float(size)
    for unit in ("B", "KiB", "MiB"):
        if value < 1024:  # noqa: PLR2004
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


def format_estimate_table(estimates: list[CollectionSizeEstimate]) -> None:
    """Format size estimates as a rich table."""
    table = Table(title="Estimated Document Sizes")
    table.add_column("Collection", style="bold cyan")
    table.add_column("Source Table")
    table.add_column("Mean", justify="right")
    table.add_column("Worst Case", justify="right")
    table.add_column("Exceeds 16MB", justify="center")

    for estimate in estimates:
        table.add_row(
            estimate.collection,
            estimate.source_table,
            format_size(estimate.mean_document_bytes),
            format_size(estimate.max_document_bytes),
            "[bold red]yes[/]" if estimate.exceeds_limit else "no",
        )
    console.print(table)

    for estimate in estimates:
        if estimate.warning:
            print_warning(f"{estimate.collection}: {estimate.warning}")


def format_typemap_table(typemap: TypeMap) -> None:
    """Format a type map as a rich table."""
    table = Table(title=f"Type Mapping ({typemap.dialect})")
    table.add_column("Source Type", style="bold cyan")
    table.add_column("BSON Type")
    table.add_column("Overridden", justify="center")

    for source_type in typemap.sorted_types():
        overridden = typemap.is_overridden(source_type)
        table.add_row(
            source_type,
            typemap.resolve(source_type),
            "[bold yellow]yes[/]" if overridden else "",
        )
    console.print(table)


@app.command
def suggest(
    schema_location: Path,
    *,
    table: list[str] | None = None,
    root: list[str] | None = None,
    output: Path | None = None,
) -> None:
    """Suggest a document mapping for the selected tables (all by default)."""
    validate_file_location(schema_location)
    try:
        schema_data = load_schema(schema_location)
    except (OSError, ValueError, KeyError) as e:
        print_error(f"Failed to read schema: {e}")
        sys.exit(1)

    selected = table or [t["name"] for t in schema_data["tables"]]
    print_info(f"Selected tables: {len(selected)}")
    mapping = suggest_mapping(schema_data, selected, root)

    if output:
        save_mapping(mapping, output)
        print_success(f"Mapping written to {output}")
    else:
        stdout.write(mapping_to_json(mapping))
        print_success(f"Suggested {len(mapping['collections'])} collections")


@app.command
def estimate(schema_location: Path, mapping_location: Path, fmt: Format = "table") -> None:
    """Estimate worst-case document sizes for a mapping."""
    validate_file_location(schema_location)
    validate_file_location(mapping_location)
    try:
        schema_data = load_schema(schema_location)
        mapping = load_mapping(mapping_location)
    except (OSError, ValueError, KeyError) as e:
        print_error(f"Failed to read input: {e}")
        sys.exit(1)

    estimates = estimate_sizes(schema_data, mapping)
    if fmt == "json":
        stdout.write(dumps([asdict(e) for e in estimates], indent=2) + "\n")
    elif fmt == "table":
        format_estimate_table(estimates)


@app.command
def generate(
    config_location: Path,
    schema_location: Path,
    mapping_location: Path,
    *,
    typemap: Path | None = None,
    output: Path | None = None,
) -> None:
    """Generate a PySpark migration script."""
    for location in (config_location, schema_location, mapping_location):
        validate_file_location(location)
    try:
        config = load_config(config_location)
        schema_data = load_schema(schema_location)
        mapping = load_mapping(mapping_location)
        type_map = load_typemap(typemap) if typemap else None
        result = generate_script(config, schema_data, mapping, type_map)
    except (OSError, ValueError, KeyError) as e:
        print_error(str(e))
        sys.exit(1)

    for note in result.notes:
        print_warning(note)
    if output:
        output.write_text(result.script, encoding="utf-8")
        print_success(f"Migration script written to {output}")
    else:
        stdout.write(result.script)
        print_success("Migration script generated")


@app.command
def types(
    dialect: Literal["postgresql", "oracle"],
    *,
    typemap: Path | None = None,
    override: list[str] | None = None,
    restore: list[str] | None = None,
    save: Path | None = None,
) -> None:
    """Show the source to BSON type mapping, optionally editing its overrides.

    Overrides are given as SOURCE_TYPE=BSON_TYPE.
    """
    try:
        type_map = load_typemap(typemap) if typemap else TypeMap.for_dialect(dialect)
        for item in override or []:
            source_type, separator, bson_type = item.partition("=")
            if not separator:
                msg = f"Override must look like SOURCE_TYPE=BSON_TYPE: {item}"
                raise ValueError(msg)
            type_map = type_map.override(source_type.strip(), bson_type.strip())
        for source_type in restore or []:
            type_map = type_map.restore_default(source_type)
    except (OSError, ValueError) as e:
        print_error(str(e))
        sys.exit(1)

    if type_map.dialect != dialect:
        print_warning(f"Type map {typemap} is for {type_map.dialect}, not {dialect}")
    format_typemap_table(type_map)
    if save:
        save_typemap(type_map, save)
        print_success(f"Type map written to {save}")


@app.meta.default
def launcher(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    verbose: bool = False,
) -> None:
    """Configure logging, then run the requested command."""
    configure_logging(verbose=verbose)
    app(tokens)


def main() -> None:
    """Entry point for the CLI."""
    app.meta()


if __name__ == "__main__":
    main()
