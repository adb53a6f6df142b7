"""
Legacy Process Plugins.

Plugins that cannot run in the sandbox are spawned as child processes and
spoken to over line-framed JSON-RPC on their stdin/stdout. They use the
same notification vocabulary as sandboxed plugins; requests from them are
not supported and are answered with an "Invalid request" error.
"""

import contextlib
import logging
import subprocess
from typing import Any

from plughost.dispatch import Dispatcher
from plughost.plugin.manifest import PluginDescription, PluginId
from plughost.plugin.notification import (
    NotificationDecodeError,
    decode_notification,
    dispatch_notification,
)
from plughost.rpc.peer import RemoteError, RpcError, RpcPeer

logger = logging.getLogger(__name__)


class LegacyPluginError(Exception):
    """Raised when a legacy plugin cannot be spawned or initialized."""

    pass


class PluginHandler:
    """Routes a legacy plugin's notifications to the dispatcher."""

    def __init__(self, name: str, dispatcher: Dispatcher):
        self.name = name
        self.dispatcher = dispatcher

    def handle_notification(self, peer: RpcPeer, method: str, params: Any) -> None:
        try:
            notification = decode_notification({"method": method, "params": params})
        except NotificationDecodeError as e:
            logger.debug("Plugin %r: ignoring notification: %s", self.name, e)
            return
        dispatch_notification(notification, self.dispatcher)

    def handle_request(self, peer: RpcPeer, method: str, params: Any) -> Any:
        logger.debug("Plugin %r: rejecting request %r", self.name, method)
        raise RemoteError.invalid_request()


class LegacyPlugin:
    """A plugin running as a child process."""

    def __init__(
        self,
        description: PluginDescription,
        process: subprocess.Popen,
        peer: RpcPeer,
        shutdown_timeout: float = 5.0,
    ):
        self.description = description
        self.process = process
        self.peer = peer
        self.shutdown_timeout = shutdown_timeout
        self.id: PluginId | None = None

    @property
    def name(self) -> str:
        return self.description.name

    @classmethod
    def spawn(
        cls,
        description: PluginDescription,
        dispatcher: Dispatcher,
        rpc_timeout: float = 30.0,
        shutdown_timeout: float = 5.0,
    ) -> "LegacyPlugin":
        """
        Spawn the plugin executable and start listening to it.

        Raises:
            LegacyPluginError: If the process cannot be started
        """
        try:
            process = subprocess.Popen(
                [str(description.exec_path)],
                cwd=description.dir,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
            )
        except OSError as e:
            raise LegacyPluginError(
                f"Failed to spawn plugin {description.name!r}: {e}"
            ) from e

        peer = RpcPeer(process.stdin, process.stdout, timeout=rpc_timeout)
        peer.start(
            PluginHandler(description.name, dispatcher),
            name=f"plugin-{description.name}-rpc",
        )
        logger.info(
            "Spawned legacy plugin %r (pid %d)", description.name, process.pid
        )
        return cls(description, process, peer, shutdown_timeout)

    def attach(self, plugin_id: PluginId) -> None:
        """
        Record the plugin's id and send the ``initialize`` notification.

        Raises:
            LegacyPluginError: If the notification cannot be delivered
        """
        self.id = plugin_id
        try:
            self.peer.send_notification(
                "initialize",
                {
                    "plugin_id": plugin_id.value,
                    "configuration": self.description.configuration,
                },
            )
        except RpcError as e:
            raise LegacyPluginError(
                f"Failed to initialize plugin {self.name!r}: {e}"
            ) from e

    def close(self) -> None:
        """Stop the peer and terminate the process."""
        self.peer.stop()
        if self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=self.shutdown_timeout)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        self.peer.join(self.shutdown_timeout)
        for stream in (self.process.stdin, self.process.stdout):
            if stream is not None:
                with contextlib.suppress(OSError):
                    stream.close()
