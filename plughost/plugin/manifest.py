"""
Plugin Manifest Loader.

Each plugin lives in its own directory under the plugins root and is
described by a ``manifest.toml``:

    name = "demo"
    version = "0.1"
    exec_path = "./demo.wasm"

    [configuration]
    verbose = true

Key features:
- Required field and type validation
- Relative ``exec_path`` resolved against the manifest directory
- Optional execution ``kind`` ("wasm" or "process")
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from plughost.config.toml_handler import TOMLError, read_toml

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.toml"
KINDS = ("wasm", "process")


class ManifestError(Exception):
    """Raised when a manifest cannot be read, parsed or resolved."""

    pass


@dataclass(frozen=True)
class PluginDescription:
    """
    A loaded plugin manifest.

    Attributes:
        name: Plugin name (unique within a catalog)
        version: Free-form version string
        exec_path: Absolute path to the module or executable
        dir: Absolute manifest directory
        configuration: Value handed to the plugin at initialization
        kind: Execution strategy, or None to detect it from exec_path
    """

    name: str
    version: str
    exec_path: Path
    dir: Path
    configuration: Any = None
    kind: str | None = None


@dataclass(frozen=True, order=True)
class PluginId:
    """Identifier of a started plugin."""

    value: int

    def __str__(self) -> str:
        return str(self.value)


def load_manifest(manifest_path: Path) -> PluginDescription:
    """
    Load a manifest and resolve its paths.

    Args:
        manifest_path: Path to manifest.toml

    Returns:
        PluginDescription with canonical absolute paths

    Raises:
        ManifestError: If the file is unreadable or invalid, or exec_path
            does not exist
    """
    try:
        data = read_toml(manifest_path)
    except TOMLError as e:
        raise ManifestError(str(e)) from e

    validate_manifest_structure(data)

    parent = manifest_path.parent
    try:
        plugin_dir = parent.resolve(strict=True)
        exec_path = (parent / data["exec_path"]).resolve(strict=True)
    except (OSError, RuntimeError) as e:
        raise ManifestError(
            f"Cannot resolve exec_path {data['exec_path']!r} for {manifest_path}: {e}"
        ) from e

    return PluginDescription(
        name=data["name"],
        version=data["version"],
        exec_path=exec_path,
        dir=plugin_dir,
        configuration=data.get("configuration"),
        kind=data.get("kind"),
    )


def validate_manifest_structure(data: dict[str, Any]) -> None:
    """
    Check required fields and their types.

    Raises:
        ManifestError: If manifest structure is invalid
    """
    for field in ("name", "version", "exec_path"):
        if field not in data:
            raise ManifestError(f"Missing required field: {field}")
        if not isinstance(data[field], str) or not data[field]:
            raise ManifestError(f"'{field}' must be a non-empty string")

    kind = data.get("kind")
    if kind is not None and kind not in KINDS:
        raise ManifestError(f"Invalid kind: {kind!r}. Must be one of {KINDS}")


def find_all_manifests(
    plugins_dir: Path, manifest_name: str = MANIFEST_NAME
) -> list[Path]:
    """
    List the manifests of every plugin directory.

    Args:
        plugins_dir: Plugins root, one subdirectory per plugin
        manifest_name: Manifest file name inside each subdirectory

    Returns:
        Manifest paths, in filesystem order
    """
    try:
        entries = list(plugins_dir.iterdir())
    except OSError as e:
        logger.debug("Plugins directory %s not readable: %s", plugins_dir, e)
        return []

    manifests = [
        entry / manifest_name
        for entry in entries
        if entry.is_dir() and (entry / manifest_name).is_file()
    ]
    logger.debug("Found manifests: %s", manifests)
    return manifests
