"""
plughost Configuration - TOML-based host settings.

Settings live in the ``[host]`` table of ``config/plughost.toml``:

    [host]
    plugins_dir = "~/.lapce/plugins"
    host_namespace = "lapce"
    log_level = "DEBUG"

Missing fields take their defaults, unknown fields are rejected.
"""

from dataclasses import dataclass
from pathlib import Path

from plughost.config.schema import ConfigField, ValidationError, validate_table
from plughost.config.toml_handler import (
    TOMLError,
    generate_toml_from_schema,
    read_toml,
    write_toml,
)

DEFAULT_CONFIG_FILE = Path("config/plughost.toml")
SECTION = "host"

SETTINGS_SCHEMA: dict[str, ConfigField] = {
    "plugins_dir": ConfigField(
        str, "~/.lapce/plugins", "Directory holding one subdirectory per plugin"
    ),
    "manifest_name": ConfigField(
        str, "manifest.toml", "Manifest file name inside each plugin directory"
    ),
    "host_namespace": ConfigField(
        str, "lapce", "Import module name under which host functions are exposed"
    ),
    "log_level": ConfigField(
        str,
        "INFO",
        "Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    ),
    "rpc_timeout": ConfigField(
        float, 30.0, "Seconds to wait for a legacy plugin response", min=0.1
    ),
    "shutdown_timeout": ConfigField(
        float, 5.0, "Seconds to wait for a legacy plugin to exit", min=0.0
    ),
}


class ConfigError(Exception):
    """Raised when host settings cannot be loaded."""

    pass


@dataclass(frozen=True)
class HostSettings:
    """Resolved host settings."""

    plugins_dir: Path
    manifest_name: str = "manifest.toml"
    host_namespace: str = "lapce"
    log_level: str = "INFO"
    rpc_timeout: float = 30.0
    shutdown_timeout: float = 5.0

    @classmethod
    def defaults(cls) -> "HostSettings":
        return cls.from_mapping({})

    @classmethod
    def from_mapping(cls, table: dict) -> "HostSettings":
        """
        Build settings from a raw ``[host]`` table.

        Raises:
            ConfigError: If the table fails validation
        """
        try:
            values = validate_table(table, SETTINGS_SCHEMA)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
        values["plugins_dir"] = Path(values["plugins_dir"]).expanduser()
        return cls(**values)


def load_settings(config_file: Path | None = None) -> HostSettings:
    """
    Load host settings.

    An explicitly given file must exist. The default file is optional and
    defaults apply when it is absent.

    Args:
        config_file: Settings file, or None for the default location

    Returns:
        HostSettings instance

    Raises:
        ConfigError: If the file is unreadable or invalid
    """
    path = config_file or DEFAULT_CONFIG_FILE
    if config_file is None and not path.exists():
        return HostSettings.defaults()

    try:
        data = read_toml(path)
    except TOMLError as e:
        raise ConfigError(str(e)) from e

    table = data.get(SECTION, {})
    if not isinstance(table, dict):
        raise ConfigError(f"'{SECTION}' in {path} must be a table")
    return HostSettings.from_mapping(table)


def write_default_config(config_file: Path | None = None) -> Path:
    """
    Write a commented settings file populated with defaults.

    Returns:
        The path written
    """
    path = config_file or DEFAULT_CONFIG_FILE
    try:
        write_toml(path, generate_toml_from_schema(SECTION, SETTINGS_SCHEMA))
    except TOMLError as e:
        raise ConfigError(str(e)) from e
    return path


__all__ = [
    "ConfigError",
    "HostSettings",
    "SETTINGS_SCHEMA",
    "load_settings",
    "write_default_config",
]
