"""
Host Capability Bridge.

The functions in this module are the only way sandboxed code can reach
into the host. They are imported by guest modules from the host namespace
(``lapce`` by default), take no wasm arguments, and exchange their
payloads over the instance's virtual standard streams instead.

Guest input is untrusted: a bridge function logs and drops anything it
cannot handle and never lets an exception reach the engine.
"""

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass

import wasmtime

from plughost.dispatch import Dispatcher
from plughost.plugin.channel import ChannelDecodeError, PipePair, read_object
from plughost.plugin.notification import decode_notification, dispatch_notification

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class PluginEnv:
    """
    State every host function of one instance closes over.

    Attributes:
        name: Plugin name, for log messages
        pipes: The instance's virtual stdin/stdout
        dispatcher: Shared handle to host subsystems
    """

    name: str
    pipes: PipePair
    dispatcher: Dispatcher


def host_handle_notification(env: PluginEnv) -> None:
    """Read one notification from the guest's stdout and dispatch it."""
    try:
        notification = decode_notification(read_object(env.pipes.stdout))
    except ChannelDecodeError as e:
        logger.debug("Plugin %r: ignoring notification: %s", env.name, e)
        return
    except Exception:
        logger.exception("Plugin %r: failed to read notification", env.name)
        return

    try:
        dispatch_notification(notification, env.dispatcher)
    except Exception:
        logger.exception(
            "Plugin %r: failed to handle %s", env.name, type(notification).__name__
        )


HOST_FUNCTIONS: dict[str, Callable[[PluginEnv], None]] = {
    "host_handle_notification": host_handle_notification,
}


def define_host_functions(
    linker: wasmtime.Linker, env: PluginEnv, namespace: str
) -> None:
    """
    Define every bridge function under ``namespace`` in ``linker``.

    Each definition is bound to the same ``env`` object.
    """
    for name, func in HOST_FUNCTIONS.items():
        linker.define_func(
            namespace, name, wasmtime.FuncType([], []), functools.partial(func, env)
        )
