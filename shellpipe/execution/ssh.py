"""Remote execution backend over the system OpenSSH client.

Each command runs as its own ``ssh target -- command`` process, so its stdin,
stdout and stderr are the remote command's streams. A launcher can optionally
hold a multiplexed master connection (ControlMaster) so that commands reuse
one authenticated transport instead of reconnecting; close() tears it down.

Usage:
    from shellpipe.execution.ssh import open_ssh_launcher

    launcher = await open_ssh_launcher("worker-1", user="deploy", key_path="~/.ssh/id_ed25519")
    try:
        stdout, stderr = await run_cmd_capture(launcher, "uname -a")
    finally:
        await launcher.close()
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from urllib.parse import urlsplit

from shellpipe.config.execution_config import ExecutionConfig, get_execution_config
from shellpipe.errors import ExecutionError, LaunchError, ProcessExitError
from shellpipe.execution.base import Launcher, SubprocessExecutor
from shellpipe.execution.ssh_errors import classify_ssh_error
from shellpipe.utils.exceptions import PROCESS_ERRORS

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_SSH_PORT",
    "SSH_TRANSPORT_FAILURE",
    "SSHConfig",
    "SSHExecutor",
    "SSHLauncher",
    "open_ssh_launcher",
]

DEFAULT_SSH_PORT = 22

# Exit status ssh uses for its own (transport) failures
SSH_TRANSPORT_FAILURE = 255


@dataclass(frozen=True)
class SSHConfig:
    """SSH connection target."""
    host: str
    port: int = DEFAULT_SSH_PORT
    user: str | None = None
    key_path: str | None = None

    @classmethod
    def from_url(cls, url: str, key_path: str | None = None) -> SSHConfig:
        """Parse ``ssh://[user@]host[:port]``.

        Raises:
            ValueError: If the scheme is not ssh or the host is missing
        """
        parts = urlsplit(url)
        if parts.scheme != "ssh":
            raise ValueError(f"expected an ssh:// URL, got {url!r}")
        if not parts.hostname:
            raise ValueError(f"no host in {url!r}")
        return cls(
            host=parts.hostname,
            port=parts.port or DEFAULT_SSH_PORT,
            user=parts.username or None,
            key_path=key_path,
        )

    @property
    def target(self) -> str:
        """``user@host``, or just ``host`` to let ssh pick the user."""
        return f"{self.user}@{self.host}" if self.user else self.host

    def __str__(self) -> str:
        return f"{self.target}:{self.port}"


class SSHExecutor(SubprocessExecutor):
    """Runs a command on a remote host through the ssh client."""

    def __init__(
        self,
        command: str,
        launcher_identity: str,
        config: ExecutionConfig,
        ssh_argv: list[str],
    ):
        super().__init__(command, launcher_identity, config)
        self._ssh_argv = list(ssh_argv)

    def build_argv(self) -> list[str]:
        # "--" keeps a command starting with "-" from being read as an option
        return [*self._ssh_argv, "--", self._command]

    def _exit_error(self, returncode: int) -> ProcessExitError:
        if returncode == SSH_TRANSPORT_FAILURE:
            reason = f"remote session failed (ssh exit status {returncode})"
            return self.describe_error(
                reason, error_cls=ProcessExitError, exit_code=returncode, reason=reason,
            )
        return super()._exit_error(returncode)


class SSHLauncher(Launcher):
    """Launcher for one remote host.

    Without connect() every command opens its own ssh connection. After
    connect() commands are multiplexed over a master connection kept on a
    private control socket until close().
    """

    kind = "ssh"

    def __init__(self, ssh_config: SSHConfig, config: ExecutionConfig | None = None):
        self._ssh_config = ssh_config
        self._config = config or get_execution_config()
        self._control_dir: str | None = None
        self._control_path: str | None = None
        self._closed = False

    @property
    def identity(self) -> str:
        return str(self._ssh_config)

    @property
    def ssh_config(self) -> SSHConfig:
        return self._ssh_config

    @property
    def connected(self) -> bool:
        """True while a master connection is held."""
        return self._control_path is not None

    @property
    def closed(self) -> bool:
        return self._closed

    # -------------------------------------------------------------------------
    # argv construction
    # -------------------------------------------------------------------------

    def base_argv(self) -> list[str]:
        """ssh binary plus the options shared by every invocation."""
        cfg = self._config
        strict = "yes" if cfg.ssh_strict_host_key_checking else "no"
        argv = [
            cfg.ssh_binary,
            "-o", "BatchMode=yes",
            "-o", f"ConnectTimeout={cfg.ssh_connect_timeout}",
            "-o", f"StrictHostKeyChecking={strict}",
        ]
        if self._ssh_config.port != DEFAULT_SSH_PORT:
            argv.extend(["-p", str(self._ssh_config.port)])
        if self._ssh_config.key_path:
            argv.extend(["-i", os.path.expanduser(self._ssh_config.key_path)])
        for option in cfg.ssh_options:
            argv.extend(["-o", option])
        return argv

    def command_argv(self) -> list[str]:
        """argv prefix for running a command, up to and including the target."""
        argv = self.base_argv()
        if self._control_path is not None:
            argv.extend([
                "-o", "ControlMaster=no",
                "-o", f"ControlPath={self._control_path}",
            ])
        argv.append(self._ssh_config.target)
        return argv

    # -------------------------------------------------------------------------
    # Launcher contract
    # -------------------------------------------------------------------------

    async def launch(self, command: str) -> SSHExecutor:
        if self._closed:
            raise self.describe_error("launcher is closed", error_cls=LaunchError)
        return SSHExecutor(command, self.identity, self._config, self.command_argv())

    async def connect(self) -> None:
        """Open the master connection.

        Raises:
            LaunchError: If ssh could not connect or authenticate. The message
                includes ssh's diagnostics and a classification of them.
        """
        if self._closed:
            raise self.describe_error("launcher is closed", error_cls=LaunchError)
        if self._control_path is not None:
            return

        control_dir = tempfile.mkdtemp(prefix="shellpipe-ssh-")
        control_path = os.path.join(control_dir, "cm")
        argv = [
            *self.base_argv(),
            "-o", "ControlMaster=yes",
            "-o", "ControlPersist=yes",
            "-o", f"ControlPath={control_path}",
            "-N", "-f",
            self._ssh_config.target,
        ]
        try:
            returncode, diagnostics = await self._run_control(argv)
        except ExecutionError:
            shutil.rmtree(control_dir, ignore_errors=True)
            raise
        if returncode != 0:
            shutil.rmtree(control_dir, ignore_errors=True)
            classification = classify_ssh_error(diagnostics, returncode)
            detail = diagnostics.strip() or f"ssh exit status {returncode}"
            raise self.describe_error(
                "error opening ssh connection [%s]: %s (%s)",
                classification.error_type.value, detail, classification.recommended_action,
                error_cls=LaunchError,
            )

        self._control_dir = control_dir
        self._control_path = control_path
        logger.info(f"[SSHLauncher] Connected to {self.identity}")

    async def close(self) -> None:
        """Stop the master connection, if any. Later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        if self._control_path is None:
            return

        argv = [
            *self.base_argv(),
            "-o", f"ControlPath={self._control_path}",
            "-O", "exit",
            self._ssh_config.target,
        ]
        try:
            returncode, diagnostics = await self._run_control(argv)
        finally:
            shutil.rmtree(self._control_dir, ignore_errors=True)
            self._control_dir = None
            self._control_path = None
        if returncode != 0:
            detail = diagnostics.strip() or f"ssh exit status {returncode}"
            raise self.describe_error("error closing ssh connection: %s", detail)
        logger.info(f"[SSHLauncher] Closed connection to {self.identity}")

    async def _run_control(self, argv: list[str]) -> tuple[int, str]:
        """Run a short-lived ssh control command and collect its stderr.

        stderr goes to a temporary file rather than a pipe: a backgrounded
        master may inherit the descriptor and keep a pipe open indefinitely.
        """
        with tempfile.TemporaryFile() as errfile:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *argv,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=errfile,
                )
            except PROCESS_ERRORS as e:
                raise self.describe_error(
                    "error running %s: %s", argv[0], e, error_cls=LaunchError,
                ) from e
            returncode = await proc.wait()
            errfile.seek(0)
            diagnostics = errfile.read().decode(self._config.encoding, errors="replace")
        return returncode, diagnostics


async def open_ssh_launcher(
    host: str,
    user: str | None = None,
    key_path: str | None = None,
    port: int = DEFAULT_SSH_PORT,
    config: ExecutionConfig | None = None,
) -> SSHLauncher:
    """Create an SSHLauncher and open its master connection.

    Raises:
        LaunchError: If the connection cannot be established
    """
    launcher = SSHLauncher(SSHConfig(host=host, port=port, user=user, key_path=key_path), config)
    await launcher.connect()
    return launcher
