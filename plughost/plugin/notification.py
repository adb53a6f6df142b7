"""
Plugin Notification Protocol.

Notifications are one-way messages from a plugin to the host. On the wire
they are tagged with a ``method`` discriminator and carry a ``params``
payload:

    {"method": "start_lsp_server",
     "params": {"exec_path": "...", "language_id": "...", "options": null}}

Both execution strategies (sandboxed and legacy process) decode through
this module, so the vocabulary is defined once.
"""

from dataclasses import dataclass
from typing import Any

from plughost.dispatch import Dispatcher
from plughost.plugin.channel import ChannelDecodeError


class NotificationDecodeError(ChannelDecodeError):
    """Raised when a message is not a known, well-formed notification."""

    pass


@dataclass(frozen=True)
class StartLspServer:
    """Ask the host to launch a language server."""

    exec_path: str
    language_id: str
    options: Any | None = None

    method = "start_lsp_server"

    @classmethod
    def from_params(cls, params: dict[str, Any]) -> "StartLspServer":
        for key in ("exec_path", "language_id"):
            if not isinstance(params.get(key), str):
                raise NotificationDecodeError(
                    f"{cls.method}: '{key}' must be a string"
                )
        return cls(
            exec_path=params["exec_path"],
            language_id=params["language_id"],
            options=params.get("options"),
        )

    def to_message(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "params": {
                "exec_path": self.exec_path,
                "language_id": self.language_id,
                "options": self.options,
            },
        }


PluginNotification = StartLspServer

# method name -> variant
NOTIFICATIONS: dict[str, type[PluginNotification]] = {
    StartLspServer.method: StartLspServer,
}


def decode_notification(message: Any) -> PluginNotification:
    """
    Decode a tagged notification.

    Args:
        message: Parsed JSON value

    Returns:
        The matching notification variant

    Raises:
        NotificationDecodeError: On unknown methods or malformed payloads
    """
    if not isinstance(message, dict):
        raise NotificationDecodeError(
            f"Notification must be an object, got {type(message).__name__}"
        )

    method = message.get("method")
    if not isinstance(method, str):
        raise NotificationDecodeError("Notification is missing 'method'")

    variant = NOTIFICATIONS.get(method)
    if variant is None:
        raise NotificationDecodeError(f"Unknown notification: {method[:100]}")

    params = message.get("params")
    if not isinstance(params, dict):
        raise NotificationDecodeError(f"{method}: 'params' must be an object")

    return variant.from_params(params)


def dispatch_notification(
    notification: PluginNotification, dispatcher: Dispatcher
) -> None:
    """Forward a decoded notification to the host subsystem that handles it."""
    if isinstance(notification, StartLspServer):
        dispatcher.start_server(
            notification.exec_path,
            notification.language_id,
            notification.options,
        )
    else:
        raise TypeError(f"Unhandled notification: {notification!r}")
