"""Shared pytest fixtures for execution tests.

Remote launchers are exercised against a stand-in ``ssh`` client: a small
shell script that treats control invocations (master start, ``-O exit``) as
successful and runs the command after ``--`` with the local shell. Its
control exit status and diagnostics can be steered through
FAKE_SSH_CONTROL_STATUS / FAKE_SSH_STDERR.
"""

from pathlib import Path

import pytest

from shellpipe.config import ExecutionConfig
from shellpipe.execution import (
    LocalLauncher,
    SSHConfig,
    SSHLauncher,
    VerboseLauncher,
)

FAKE_SSH_SCRIPT = """#!/bin/sh
while [ $# -gt 0 ]; do
    case "$1" in
        --)
            exec /bin/sh -c "$2"
            ;;
        -N|-O)
            if [ -n "$FAKE_SSH_STDERR" ]; then
                echo "$FAKE_SSH_STDERR" >&2
            fi
            exit "${FAKE_SSH_CONTROL_STATUS:-0}"
            ;;
    esac
    shift
done
echo "fake ssh: no command given" >&2
exit 255
"""


# =============================================================================
# LOG RECORDING
# =============================================================================


class LogRecorder:
    """printf-style log hook that keeps every formatted line."""

    def __init__(self):
        self.lines: list[str] = []

    def __call__(self, fmt: str, *args) -> None:
        self.lines.append(fmt % args)

    def count(self, fragment: str) -> int:
        return sum(1 for line in self.lines if fragment in line)


@pytest.fixture
def recorder():
    """Provide a fresh LogRecorder."""
    return LogRecorder()


# =============================================================================
# CONFIG / LAUNCHER FIXTURES
# =============================================================================


@pytest.fixture
def fake_ssh(tmp_path) -> Path:
    """Write the stand-in ssh client and return its path."""
    path = tmp_path / "ssh"
    path.write_text(FAKE_SSH_SCRIPT)
    path.chmod(0o755)
    return path


@pytest.fixture
def exec_config(fake_ssh) -> ExecutionConfig:
    """ExecutionConfig whose ssh_binary is the stand-in client."""
    return ExecutionConfig(ssh_binary=str(fake_ssh))


@pytest.fixture
def local_launcher(exec_config):
    return LocalLauncher(exec_config)


@pytest.fixture
def ssh_launcher(exec_config):
    return SSHLauncher(SSHConfig(host="worker-1", user="deploy"), exec_config)


def make_launcher(kind: str, config: ExecutionConfig):
    if kind == "local":
        return LocalLauncher(config)
    if kind == "ssh":
        return SSHLauncher(SSHConfig(host="worker-1", user="deploy"), config)
    if kind == "verbose":
        return VerboseLauncher(LocalLauncher(config), logf=LogRecorder())
    raise ValueError(kind)


@pytest.fixture(params=["local", "ssh", "verbose"])
def launcher(request, exec_config):
    """Every launcher variant in turn."""
    return make_launcher(request.param, exec_config)


@pytest.fixture(params=[
    ("local", "local"),
    ("local", "ssh"),
    ("ssh", "local"),
    ("ssh", "ssh"),
], ids=lambda pair: f"{pair[0]}-to-{pair[1]}")
def side_pair(request, exec_config):
    """(source launcher, sink launcher) for all four local/remote combinations."""
    src_kind, snk_kind = request.param
    return make_launcher(src_kind, exec_config), make_launcher(snk_kind, exec_config)
