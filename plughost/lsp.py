"""
Language Server Lifecycle.

A minimal language-server manager that plugins drive through the
Dispatcher. One server runs per language id; asking again for a language
whose server is still alive does nothing.

Key features:
- Process spawning with piped stdio
- Idempotent start per language
- Graceful shutdown with kill fallback
"""

import logging
import subprocess
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class LspError(Exception):
    """Raised when a language server cannot be started or is unknown."""

    pass


@dataclass
class LspServer:
    """
    A language server launched on behalf of a plugin.

    Attributes:
        language_id: Language the server handles
        exec_path: Server executable
        options: Initialization options from the plugin
        process: Running process
    """

    language_id: str
    exec_path: str
    options: Any = None
    process: subprocess.Popen | None = field(default=None, repr=False)

    @property
    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None


class LspCatalog:
    """
    Language servers keyed by language id.

    Not thread-safe on its own; callers go through ``Dispatcher``.
    """

    def __init__(self, shutdown_timeout: float = 5.0):
        self.shutdown_timeout = shutdown_timeout
        self._servers: dict[str, LspServer] = {}

    def start_server(
        self, exec_path: str, language_id: str, options: Any | None = None
    ) -> None:
        """
        Start the server for ``language_id`` unless one is already running.

        Raises:
            LspError: If the process cannot be spawned
        """
        existing = self._servers.get(language_id)
        if existing is not None and existing.running:
            logger.debug("%s language server already running", language_id)
            return

        try:
            process = subprocess.Popen(
                [exec_path],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise LspError(f"Failed to start {language_id} server {exec_path}: {e}") from e

        self._servers[language_id] = LspServer(
            language_id=language_id,
            exec_path=exec_path,
            options=options,
            process=process,
        )

    def stop_server(self, language_id: str) -> None:
        """
        Stop the server for ``language_id``.

        Raises:
            LspError: If no server was started for the language
        """
        server = self._servers.pop(language_id, None)
        if server is None:
            raise LspError(f"No language server for '{language_id}'")
        if not server.running:
            return

        server.process.terminate()
        try:
            server.process.wait(timeout=self.shutdown_timeout)
        except subprocess.TimeoutExpired:
            server.process.kill()
            server.process.wait()

    def stop_all(self) -> None:
        for language_id in list(self._servers):
            self.stop_server(language_id)

    def get_server(self, language_id: str) -> LspServer | None:
        return self._servers.get(language_id)

    def list_servers(self) -> list[str]:
        return list(self._servers)
