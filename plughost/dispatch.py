"""
Host-side dispatcher for plugin notifications.

The language-server registry is the one resource shared by every running
plugin. The Dispatcher owns it behind a single non-reentrant lock and is
handed to each plugin at start time.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class LanguageServerHost(Protocol):
    """What the dispatcher needs from the language-server manager."""

    def start_server(
        self, exec_path: str, language_id: str, options: Any | None
    ) -> None: ...


class Dispatcher:
    """
    Guarded handle to host subsystems.

    Copies of the reference are shared between plugins; the lock is held
    only for the duration of a forwarded call.
    """

    def __init__(self, lsp: LanguageServerHost):
        self._lsp = lsp
        self._lock = threading.Lock()

    @contextmanager
    def lsp(self) -> Iterator[LanguageServerHost]:
        """Hold the registry lock and yield the language-server manager."""
        with self._lock:
            yield self._lsp

    def start_server(
        self, exec_path: str, language_id: str, options: Any | None = None
    ) -> None:
        logger.info("Starting %s language server: %s", language_id, exec_path)
        with self.lsp() as lsp:
            lsp.start_server(exec_path, language_id, options)
