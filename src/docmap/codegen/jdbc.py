"""JDBC connection details and partition planning for source reads."""

from docmap.codegen.config import SourceConfig
from docmap.schema.type_conversion import is_numeric, is_temporal, source_to_sql
from docmap.schema.types import TableSchema

DRIVERS = {
    "postgresql": "org.postgresql.Driver",
    "oracle": "oracle.jdbc.OracleDriver",
}

ORACLE_GUIDANCE = """\
# The Oracle JDBC driver cannot be redistributed. Download ojdbc11.jar from
# https://www.oracle.com/database/technologies/appdev/jdbc-downloads.html
# and pass it to spark-submit with: --jars /path/to/ojdbc11.jar"""


def _unsupported(source: SourceConfig) -> ValueError:
    msg = f"Unsupported source type: {source.type}"
    return ValueError(msg)


def jdbc_url(source: SourceConfig) -> str:
    """Build the JDBC URL for the source database."""
    match source.type:
        case "postgresql":
            ssl = "true" if source.ssl else "false"
            return f"jdbc:postgresql://{source.host}:{source.port}/{source.database}?ssl={ssl}"
        case "oracle":
            return f"jdbc:oracle:thin:@{source.host}:{source.port}/{source.database}"
        case _:
            raise _unsupported(source)


def jdbc_driver(source: SourceConfig) -> str:
    """Driver class name Spark loads for the source database."""
    try:
        return DRIVERS[source.type]
    except KeyError as err:
        raise _unsupported(source) from err


def partition_column(table: TableSchema, dialect: str) -> str | None:
    """Pick the column Spark splits parallel reads on.

    A numeric primary key column is preferred, then the first date or
    timestamp column. Tables with neither are read without partitioning.
    """
    columns = {column["name"]: column for column in table["columns"]}
    primary_key = table.get("primary_key")
    for name in primary_key["columns"] if primary_key else []:
        column = columns.get(name)
        if column and is_numeric(source_to_sql(column["data_type"], dialect)):
            return name
    for column in table["columns"]:
        if is_temporal(source_to_sql(column["data_type"], dialect)):
            return column["name"]
    return None
