"""
plughost - Plugin host for sandboxed and out-of-process editor extensions.

This is the main package that exports the public API of the host.
"""

__version__ = "0.1.0"

from plughost.dispatch import Dispatcher
from plughost.plugin.catalog import PluginCatalog, PluginId
from plughost.plugin.manifest import ManifestError, PluginDescription

__all__ = [
    "__version__",
    "Dispatcher",
    "ManifestError",
    "PluginCatalog",
    "PluginDescription",
    "PluginId",
]
