"""PySpark migration script generation."""

from docmap.codegen.config import (
    ConfigError,
    GeneratorConfig,
    SourceConfig,
    TargetConfig,
    load_config,
)
from docmap.codegen.generator import GenerateResult, GenerationError, generate, target_uri
from docmap.codegen.jdbc import jdbc_driver, jdbc_url, partition_column

__all__ = [
    "ConfigError",
    "GenerateResult",
    "GenerationError",
    "GeneratorConfig",
    "SourceConfig",
    "TargetConfig",
    "generate",
    "jdbc_driver",
    "jdbc_url",
    "load_config",
    "partition_column",
    "target_uri",
]
