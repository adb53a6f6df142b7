"""
Plugin Catalog.

This module keeps the registry of known plugins and of the running ones.

Key features:
- Discovery of manifests under the plugins directory
- Sandbox-first startup with a legacy process fallback
- Ids assigned at start time, never at discovery
- Per-plugin failure isolation
- Whole-registry reload
"""

import contextlib
import logging
from pathlib import Path
from typing import Protocol

from plughost.config import HostSettings
from plughost.dispatch import Dispatcher
from plughost.plugin.legacy import LegacyPlugin, LegacyPluginError
from plughost.plugin.manifest import (
    ManifestError,
    PluginDescription,
    PluginId,
    find_all_manifests,
    load_manifest,
)
from plughost.plugin.sandbox import WASM_MAGIC, SandboxEngine, SandboxError

logger = logging.getLogger(__name__)

WASM_SUFFIXES = (".wasm", ".wat")


class PluginInstance(Protocol):
    """What the catalog needs from a running plugin of either kind."""

    id: PluginId | None

    @property
    def name(self) -> str: ...

    def attach(self, plugin_id: PluginId) -> None: ...

    def close(self) -> None: ...


def detect_kind(description: PluginDescription) -> str:
    """
    Choose the execution strategy for a plugin.

    An explicit manifest ``kind`` wins. Otherwise a WebAssembly module
    (by suffix or magic bytes) runs sandboxed and anything else runs as a
    process.
    """
    if description.kind is not None:
        return description.kind
    if description.exec_path.suffix in WASM_SUFFIXES:
        return "wasm"
    with contextlib.suppress(OSError), open(description.exec_path, "rb") as f:
        if f.read(len(WASM_MAGIC)) == WASM_MAGIC:
            return "wasm"
    return "process"


class PluginCatalog:
    """
    Registry of plugin descriptions and running plugins.

    Descriptions are keyed by name, running plugins by PluginId.
    """

    def __init__(
        self,
        settings: HostSettings | None = None,
        sandbox: SandboxEngine | None = None,
    ):
        """
        Initialize PluginCatalog.

        Args:
            settings: Host settings (plugins directory, timeouts)
            sandbox: Engine for wasm plugins, created on first use if None
        """
        self.settings = settings or HostSettings.defaults()
        self._sandbox = sandbox
        self._next_id = 1
        self._items: dict[str, PluginDescription] = {}
        self._plugins: dict[PluginId, PluginInstance] = {}

    @property
    def plugins_dir(self) -> Path:
        return self.settings.plugins_dir

    @property
    def sandbox(self) -> SandboxEngine:
        if self._sandbox is None:
            self._sandbox = SandboxEngine(self.settings.host_namespace)
        return self._sandbox

    def descriptions(self) -> dict[str, PluginDescription]:
        return dict(self._items)

    def running(self) -> dict[PluginId, PluginInstance]:
        return dict(self._plugins)

    def load(self) -> list[str]:
        """
        Load every manifest under the plugins directory.

        Entries are inserted or replaced by name. A manifest that fails to
        load is logged and skipped.

        Returns:
            Names loaded by this call
        """
        loaded = []
        for manifest_path in find_all_manifests(
            self.plugins_dir, self.settings.manifest_name
        ):
            try:
                description = load_manifest(manifest_path)
            except ManifestError as e:
                logger.warning("Failed to load manifest %s: %s", manifest_path, e)
                continue

            self._items[description.name] = description
            loaded.append(description.name)

        logger.info("Loaded %d plugin manifest(s) from %s", len(loaded), self.plugins_dir)
        return loaded

    def reload(self) -> list[str]:
        """Drop all running plugins and descriptions, then load again."""
        logger.info("Reloading plugins from %s", self.plugins_dir)
        self._close_all()
        self._items.clear()
        return self.load()

    def start_all(self, dispatcher: Dispatcher) -> list[PluginId]:
        """
        Start every known plugin, one after another.

        A plugin that fails to start is logged and skipped.

        Returns:
            Ids of the plugins started by this call
        """
        started = []
        for description in list(self._items.values()):
            try:
                plugin = self.start_plugin(dispatcher, description)
            except (SandboxError, LegacyPluginError) as e:
                logger.error("Failed to start plugin %r: %s", description.name, e)
                continue

            # The id is only consumed once attach succeeds.
            plugin_id = PluginId(self._next_id)
            try:
                plugin.attach(plugin_id)
            except LegacyPluginError as e:
                logger.error("Failed to start plugin %r: %s", description.name, e)
                plugin.close()
                continue

            self._next_id += 1
            self._plugins[plugin_id] = plugin
            started.append(plugin_id)
        return started

    def start_plugin(
        self, dispatcher: Dispatcher, description: PluginDescription
    ) -> PluginInstance:
        """
        Start one plugin with the strategy matching its kind.

        Raises:
            SandboxError: If a wasm plugin fails to start
            LegacyPluginError: If a process plugin fails to start
        """
        if detect_kind(description) == "wasm":
            return self.sandbox.start(description, dispatcher)
        return LegacyPlugin.spawn(
            description,
            dispatcher,
            rpc_timeout=self.settings.rpc_timeout,
            shutdown_timeout=self.settings.shutdown_timeout,
        )

    def next_plugin_id(self) -> PluginId:
        plugin_id = PluginId(self._next_id)
        self._next_id += 1
        return plugin_id

    def shutdown(self) -> None:
        """Close every running plugin."""
        self._close_all()

    def _close_all(self) -> None:
        plugins = list(self._plugins.values())
        self._plugins.clear()
        for plugin in plugins:
            try:
                plugin.close()
            except Exception:
                logger.exception("Failed to close plugin %r", plugin.name)
