"""Tests for scripts/run_pipe.py."""

import importlib.util
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "run_pipe.py"


@pytest.fixture(scope="module")
def run_pipe():
    spec = importlib.util.spec_from_file_location("run_pipe", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


async def invoke(module, *args) -> int:
    with patch.object(sys, "argv", ["run_pipe.py", *args]):
        return await module.main()


class TestRunPipeScript:
    """Tests for the command-line entry point."""

    @pytest.mark.asyncio
    async def test_single_command(self, run_pipe, capsys):
        """Test a single local command prints its output."""
        assert await invoke(run_pipe, "printf %s hello") == 0
        assert capsys.readouterr().out == "hello"

    @pytest.mark.asyncio
    async def test_single_command_with_input(self, run_pipe, capsys):
        """Test --input is fed to the command."""
        assert await invoke(run_pipe, "--input", "abc", "tr a-z A-Z") == 0
        assert capsys.readouterr().out == "ABC"

    @pytest.mark.asyncio
    async def test_pipe(self, run_pipe, capsys):
        """Test --into pipes the command into a second one."""
        assert await invoke(run_pipe, "printf %s payload", "--into", "tr a-z A-Z") == 0
        assert capsys.readouterr().out == "PAYLOAD"

    @pytest.mark.asyncio
    async def test_failure_exit_status(self, run_pipe, capsys):
        """Test a failing command yields exit status 1."""
        assert await invoke(run_pipe, "exit 3") == 1
        assert "completed with error: exit status 3" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_bad_location(self, run_pipe, capsys):
        """Test an unknown location is rejected."""
        assert await invoke(run_pipe, "--on", "ftp://host", "true") == 2
        assert "expected an ssh:// URL" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_remote_location(self, run_pipe, capsys, fake_ssh_env):
        """Test an ssh:// location runs through the ssh client."""
        assert await invoke(run_pipe, "--on", "ssh://deploy@worker-1", "printf %s remote") == 0
        assert capsys.readouterr().out == "remote"


@pytest.fixture
def fake_ssh_env(tmp_path, monkeypatch):
    """Point SHELLPIPE_SSH_BINARY at the stand-in client used by execution tests."""
    from tests.unit.execution.conftest import FAKE_SSH_SCRIPT

    path = tmp_path / "ssh"
    path.write_text(FAKE_SSH_SCRIPT)
    path.chmod(0o755)
    monkeypatch.setenv("SHELLPIPE_SSH_BINARY", str(path))
    return path
