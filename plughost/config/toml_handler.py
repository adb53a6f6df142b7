"""
TOML File I/O Handler.

Manifests and host settings are both TOML. Reading goes through tomllib,
writing through tomlkit so generated files keep their comments.
"""

import tomllib
from pathlib import Path
from typing import Any

import tomlkit

from plughost.config.schema import ConfigField


class TOMLError(Exception):
    """Raised when a TOML file cannot be read, parsed or written."""

    pass


def read_toml(file_path: Path) -> dict[str, Any]:
    """
    Read and parse a TOML file.

    Args:
        file_path: Path to the TOML file

    Returns:
        Parsed TOML data

    Raises:
        TOMLError: If file cannot be read or parsed
    """
    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise TOMLError(f"TOML file not found: {file_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise TOMLError(f"Failed to parse TOML file {file_path}: {e}") from e
    except OSError as e:
        raise TOMLError(f"Failed to read TOML file {file_path}: {e}") from e


def write_toml(file_path: Path, content: str) -> None:
    """
    Write a TOML document, creating parent directories as needed.

    Args:
        file_path: Destination path
        content: Rendered TOML text

    Raises:
        TOMLError: If file cannot be written
    """
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise TOMLError(f"Failed to write TOML file {file_path}: {e}") from e


def generate_toml_from_schema(
    section: str, schema: dict[str, ConfigField], values: dict[str, Any] | None = None
) -> str:
    """
    Render a settings table with each field's description as a comment.

    Args:
        section: Table name
        schema: Schema dictionary (field_name -> ConfigField)
        values: Values to write instead of the defaults

    Returns:
        TOML text
    """
    values = values or {}
    doc = tomlkit.document()
    doc.add(tomlkit.comment("plughost settings"))
    doc.add(tomlkit.nl())

    table = tomlkit.table()
    for name, field in schema.items():
        if field.description:
            table.add(tomlkit.comment(field.description))
        if field.choices is not None:
            table.add(tomlkit.comment(f"choices: {', '.join(map(str, field.choices))}"))
        table.add(name, values.get(name, field.default))
        table.add(tomlkit.nl())

    doc.add(section, table)
    return tomlkit.dumps(doc)
