"""Connection settings consumed by the code generator."""

from __future__ import annotations

from dataclasses import dataclass
from os import environ
from re import Match, compile
from tomllib import TOMLDecodeError, load
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

CONFIG_VERSION = 1
DEFAULT_MAX_CONNECTIONS = 20
MAX_CONNECTIONS_CEILING = 50

ENV_REFERENCE = compile(r"\$\{ENV:([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(ValueError):
    """Raised when a configuration file cannot be used."""


def clamp_connections(value: int | None) -> int:
    """Apply the default and the 1..50 bounds to a connection count."""
    if value is None:
        return DEFAULT_MAX_CONNECTIONS
    return max(1, min(value, MAX_CONNECTIONS_CEILING))


@dataclass(frozen=True)
class SourceConfig:
    """Relational source connection."""

    type: str
    host: str
    port: int
    database: str
    schema: str | None = None
    username: str = ""
    password: str = ""
    ssl: bool = False
    max_connections: int = DEFAULT_MAX_CONNECTIONS

    def __post_init__(self) -> None:
        """Keep the connection count within its bounds."""
        object.__setattr__(self, "max_connections", clamp_connections(self.max_connections))


@dataclass(frozen=True)
class TargetConfig:
    """MongoDB target connection."""

    connection_string: str
    database: str


@dataclass(frozen=True)
class GeneratorConfig:
    """Everything the generator needs to know about both ends."""

    source: SourceConfig
    target: TargetConfig


def resolve_env(value: str) -> str:
    """Substitute ${ENV:NAME} references from the environment."""

    def substitute(match: Match[str]) -> str:
        name = match.group(1)
        try:
            return environ[name]
        except KeyError as err:
            msg = f"Environment variable {name} is not set"
            raise ConfigError(msg) from err

    return ENV_REFERENCE.sub(substitute, value)


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    section = data.get(key)
    if not isinstance(section, dict):
        msg = f"Missing [{key}] section"
        raise ConfigError(msg)
    return section


def _required(section: dict[str, Any], key: str, where: str) -> Any:  # noqa: ANN401
    if key not in section:
        msg = f"Missing {where}.{key}"
        raise ConfigError(msg)
    return section[key]


def config_from_dict(data: dict[str, Any]) -> GeneratorConfig:
    """Build a configuration from parsed TOML data."""
    version = data.get("version")
    if version != CONFIG_VERSION:
        msg = f"Unsupported config version: {version!r} (expected {CONFIG_VERSION})"
        raise ConfigError(msg)

    source = _table(data, "source")
    target = _table(data, "target")
    try:
        source_config = SourceConfig(
            type=str(_required(source, "type", "source")),
            host=str(_required(source, "host", "source")),
            port=int(_required(source, "port", "source")),
            database=str(_required(source, "database", "source")),
            schema=source.get("schema"),
            username=str(source.get("username", "")),
            password=resolve_env(str(source.get("password", ""))),
            ssl=bool(source.get("ssl", False)),
            max_connections=int(source.get("max_connections", DEFAULT_MAX_CONNECTIONS)),
        )
    except ConfigError:
        raise
    except (TypeError, ValueError) as err:
        msg = f"Invalid [source] section: {err}"
        raise ConfigError(msg) from err

    target_config = TargetConfig(
        connection_string=resolve_env(str(_required(target, "connection_string", "target"))),
        database=str(_required(target, "database", "target")),
    )
    return GeneratorConfig(source_config, target_config)


def load_config(config_location: Path) -> GeneratorConfig:
    """Read a TOML configuration file."""
    try:
        with config_location.open("rb") as f:
            data = load(f)
    except OSError as err:
        msg = f"Cannot read config {config_location}: {err}"
        raise ConfigError(msg) from err
    except TOMLDecodeError as err:
        msg = f"Invalid TOML in {config_location}: {err}"
        raise ConfigError(msg) from err
    return config_from_dict(data)
