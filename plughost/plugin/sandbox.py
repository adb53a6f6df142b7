"""
Sandbox Execution Engine.

Runs WebAssembly plugins under wasmtime with WASI. Every instance gets its
own store and its own virtual stdin/stdout, and can only reach the host
through the bridge functions.

Startup of one plugin:
1. Compile the module against the shared engine
2. Create the instance's pipe pair and point WASI stdin/stdout at it
3. Build the PluginEnv (pipes + dispatcher)
4. Define the bridge functions next to the WASI imports
5. Instantiate
6. Write the configuration to stdin and call the ``initialize`` export
"""

import logging
from pathlib import Path

import wasmtime

from plughost.dispatch import Dispatcher
from plughost.plugin.bridge import PluginEnv, define_host_functions
from plughost.plugin.channel import PipePair, write_object
from plughost.plugin.manifest import PluginDescription, PluginId

logger = logging.getLogger(__name__)

WASM_MAGIC = b"\0asm"
ENTRY_POINT = "initialize"
DEFAULT_NAMESPACE = "lapce"

_ENGINE_ERRORS = (wasmtime.WasmtimeError, wasmtime.Trap)


class SandboxError(Exception):
    """Raised when a plugin cannot be compiled, instantiated or initialized."""

    pass


class SandboxInstance:
    """A running sandboxed plugin."""

    def __init__(
        self,
        description: PluginDescription,
        store: wasmtime.Store,
        instance: wasmtime.Instance,
        env: PluginEnv,
    ):
        self.description = description
        self.store = store
        self.instance = instance
        self.env = env
        self.id: PluginId | None = None

    @property
    def name(self) -> str:
        return self.description.name

    def attach(self, plugin_id: PluginId) -> None:
        self.id = plugin_id

    def close(self) -> None:
        self.env.pipes.close()


class SandboxEngine:
    """
    Compiles and starts sandboxed plugins.

    The wasmtime engine (and with it the compilation cache) is shared by
    every instance; stores are not.
    """

    def __init__(self, namespace: str = DEFAULT_NAMESPACE):
        self.namespace = namespace
        self.engine = wasmtime.Engine()

    def compile(self, exec_path: Path) -> wasmtime.Module:
        """
        Compile a module from a binary or text (WAT) file.

        Raises:
            SandboxError: If the file cannot be read or is not a valid module
        """
        try:
            data = exec_path.read_bytes()
            if not data.startswith(WASM_MAGIC):
                data = wasmtime.wat2wasm(data.decode("utf-8"))
            return wasmtime.Module(self.engine, data)
        except (OSError, UnicodeDecodeError, *_ENGINE_ERRORS) as e:
            raise SandboxError(f"Failed to compile {exec_path}: {e}") from e

    def start(
        self, description: PluginDescription, dispatcher: Dispatcher
    ) -> SandboxInstance:
        """
        Start a plugin in a fresh sandbox.

        Args:
            description: Plugin to start
            dispatcher: Shared handle passed to the bridge functions

        Returns:
            The initialized instance

        Raises:
            SandboxError: If any startup step fails
        """
        module = self.compile(description.exec_path)

        pipes = PipePair.create(prefix=f"plughost-{description.name}-")
        try:
            store = wasmtime.Store(self.engine)
            wasi = wasmtime.WasiConfig()
            wasi.argv = [description.name]
            wasi.stdin_file = str(pipes.stdin.path)
            wasi.stdout_file = str(pipes.stdout.path)
            store.set_wasi(wasi)

            env = PluginEnv(name=description.name, pipes=pipes, dispatcher=dispatcher)

            linker = wasmtime.Linker(self.engine)
            linker.define_wasi()
            define_host_functions(linker, env, self.namespace)

            instance = linker.instantiate(store, module)

            try:
                initialize = instance.exports(store)[ENTRY_POINT]
            except KeyError as e:
                raise SandboxError(
                    f"Plugin {description.name!r} does not export '{ENTRY_POINT}'"
                ) from e
            if not isinstance(initialize, wasmtime.Func):
                raise SandboxError(
                    f"Plugin {description.name!r}: '{ENTRY_POINT}' is not a function"
                )

            configuration = (
                description.configuration
                if description.configuration is not None
                else {}
            )
            write_object(pipes.stdin, configuration)
            initialize(store)
        except SandboxError:
            pipes.close()
            raise
        except (OSError, *_ENGINE_ERRORS) as e:
            pipes.close()
            raise SandboxError(
                f"Failed to start plugin {description.name!r}: {e}"
            ) from e

        logger.info("Started sandboxed plugin %r", description.name)
        return SandboxInstance(description, store, instance, env)
