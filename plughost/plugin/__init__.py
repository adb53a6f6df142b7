"""
plughost Plugin System - Discovery, sandboxing and lifecycle of plugins.

This module handles:
- Manifest loading and path resolution
- The plugin catalog (discovery, start, reload)
- WebAssembly sandboxing with injected host functions
- The host/sandbox object channel and notification protocol
- Legacy process plugins over JSON-RPC
"""

__all__ = []
