"""
Tests for the language server registry.

Processes are replaced with a fake Popen.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from plughost.dispatch import Dispatcher
from plughost.lsp import LspCatalog, LspError

# Captured before any test patches subprocess.Popen.
_POPEN = subprocess.Popen


def fake_process(alive: bool = True) -> MagicMock:
    process = MagicMock(spec=_POPEN)
    process.poll.return_value = None if alive else 0
    return process


class TestLspCatalog:
    """Test starting and stopping language servers."""

    def test_start_server(self):
        catalog = LspCatalog()
        with patch("plughost.lsp.subprocess.Popen", return_value=fake_process()) as popen:
            catalog.start_server("/usr/bin/rust-analyzer", "rust", {"a": 1})

        assert popen.call_args.args[0] == ["/usr/bin/rust-analyzer"]
        server = catalog.get_server("rust")
        assert server.exec_path == "/usr/bin/rust-analyzer"
        assert server.options == {"a": 1}
        assert server.running
        assert catalog.list_servers() == ["rust"]

    def test_start_is_idempotent_while_running(self):
        """A second start for a live language should not spawn again."""
        catalog = LspCatalog()
        with patch("plughost.lsp.subprocess.Popen", return_value=fake_process()) as popen:
            catalog.start_server("rust-analyzer", "rust")
            catalog.start_server("rust-analyzer", "rust")

        assert popen.call_count == 1

    def test_restart_after_exit(self):
        """A server that has exited should be started again."""
        catalog = LspCatalog()
        with patch(
            "plughost.lsp.subprocess.Popen",
            side_effect=[fake_process(alive=False), fake_process()],
        ) as popen:
            catalog.start_server("gopls", "go")
            catalog.start_server("gopls", "go")

        assert popen.call_count == 2
        assert catalog.get_server("go").running

    def test_spawn_failure(self):
        catalog = LspCatalog()
        with patch("plughost.lsp.subprocess.Popen", side_effect=FileNotFoundError("nope")):
            with pytest.raises(LspError, match="Failed to start go server"):
                catalog.start_server("gopls", "go")

        assert catalog.list_servers() == []

    def test_stop_server(self):
        catalog = LspCatalog()
        process = fake_process()
        with patch("plughost.lsp.subprocess.Popen", return_value=process):
            catalog.start_server("gopls", "go")

        catalog.stop_server("go")

        process.terminate.assert_called_once()
        assert catalog.get_server("go") is None

    def test_stop_kills_after_timeout(self):
        catalog = LspCatalog(shutdown_timeout=0.1)
        process = fake_process()
        process.wait.side_effect = [subprocess.TimeoutExpired("gopls", 0.1), 0]
        with patch("plughost.lsp.subprocess.Popen", return_value=process):
            catalog.start_server("gopls", "go")

        catalog.stop_server("go")

        process.kill.assert_called_once()

    def test_stop_unknown_language(self):
        with pytest.raises(LspError, match="No language server for 'cobol'"):
            LspCatalog().stop_server("cobol")

    def test_stop_all(self):
        catalog = LspCatalog()
        with patch("plughost.lsp.subprocess.Popen", side_effect=lambda *a, **k: fake_process()):
            catalog.start_server("gopls", "go")
            catalog.start_server("rust-analyzer", "rust")

        catalog.stop_all()

        assert catalog.list_servers() == []


class TestDispatcherWithLspCatalog:
    """Test the dispatcher driving a real registry."""

    def test_forward_through_dispatcher(self):
        catalog = LspCatalog()
        dispatcher = Dispatcher(catalog)
        with patch("plughost.lsp.subprocess.Popen", return_value=fake_process()):
            dispatcher.start_server("pyright", "python")

        with dispatcher.lsp() as servers:
            assert servers.list_servers() == ["python"]
