"""
plughost CLI.

Usage:
    plughost list                  List discovered plugins
    plughost run                   Start all plugins and wait for Ctrl-C
    plughost init-config [PATH]    Write a default settings file
"""

import argparse
import logging
import sys
import threading
from dataclasses import replace
from pathlib import Path

from plughost.config import ConfigError, load_settings, write_default_config
from plughost.dispatch import Dispatcher
from plughost.lsp import LspCatalog
from plughost.plugin.catalog import PluginCatalog, detect_kind

logger = logging.getLogger("plughost")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plughost",
        description="Plugin host for sandboxed and process plugins",
    )
    parser.add_argument(
        "-c", "--config", type=Path, default=None, help="Settings file"
    )
    parser.add_argument(
        "--plugins-dir", type=Path, default=None, help="Override plugins directory"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    commands = parser.add_subparsers(dest="command")
    commands.add_parser("list", help="List discovered plugins")
    commands.add_parser("run", help="Start all plugins and wait for Ctrl-C")
    init = commands.add_parser("init-config", help="Write a default settings file")
    init.add_argument("path", nargs="?", type=Path, default=None)

    return parser


def list_command(catalog: PluginCatalog) -> int:
    catalog.load()
    descriptions = catalog.descriptions()
    if not descriptions:
        print(f"No plugins found in {catalog.plugins_dir}")
        return 0

    for name in sorted(descriptions):
        description = descriptions[name]
        print(
            f"{name} {description.version} [{detect_kind(description)}] "
            f"{description.exec_path}"
        )
    return 0


def run_command(catalog: PluginCatalog, stop: threading.Event | None = None) -> int:
    lsp = LspCatalog(shutdown_timeout=catalog.settings.shutdown_timeout)
    dispatcher = Dispatcher(lsp)

    catalog.load()
    started = catalog.start_all(dispatcher)
    logger.info(
        "Started %d of %d plugin(s)", len(started), len(catalog.descriptions())
    )

    stop = stop or threading.Event()
    try:
        stop.wait()
    finally:
        catalog.shutdown()
        with dispatcher.lsp() as servers:
            servers.stop_all()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the plughost CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        if args.command == "init-config":
            path = write_default_config(args.path)
            print(f"Wrote {path}")
            return 0

        settings = load_settings(args.config)
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        if args.plugins_dir is not None:
            settings = replace(settings, plugins_dir=args.plugins_dir.expanduser())

        catalog = PluginCatalog(settings)
        if args.command == "list":
            return list_command(catalog)
        return run_command(catalog)

    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
