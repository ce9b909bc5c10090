"""Launcher and Executor contracts plus the shared subprocess implementation.

A Launcher is a named factory bound to one execution environment (the local
machine, a remote host, ...). It produces Executors; it does not run anything
itself. An Executor manages one command through a strict lifecycle:

    CREATED --start()--> STARTED --wait()--> WAITED
    CREATED --start() fails--> FAILED

Rules every caller must follow:
- open_input/open_output/open_error_output only before start()
- wait() exactly once after a successful start(), and only once every opened
  output endpoint has been read to EOF; skipping it leaks the process
- kill() may be called any time after start(); it does not reap, so wait()
  must still follow

Usage:
    from shellpipe.execution.base import Launchable

    exe = await launcher.launch("ls -l")
    out = exe.open_output()
    await exe.start()
    ...
    await exe.wait()
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from shellpipe.config.execution_config import ExecutionConfig
from shellpipe.errors import (
    EndpointError,
    ExecutionError,
    ExecutorStateError,
    ProcessExitError,
    StartError,
)
from shellpipe.execution.streams import InputEndpoint, OutputEndpoint
from shellpipe.utils.exceptions import PROCESS_ERRORS

logger = logging.getLogger(__name__)

__all__ = [
    "Executor",
    "ExecutorState",
    "Launchable",
    "Launcher",
    "SubprocessExecutor",
]


def _format(pattern: str, args: tuple[Any, ...]) -> str:
    return pattern % args if args else pattern


class ExecutorState(str, Enum):
    """Lifecycle state of an Executor."""
    CREATED = "created"
    STARTED = "started"
    WAITED = "waited"
    FAILED = "failed"


# =============================================================================
# Contracts
# =============================================================================


class Executor(ABC):
    """One command, not yet started or running, wherever it runs."""

    @property
    @abstractmethod
    def command(self) -> str:
        """The command text. Immutable."""

    @abstractmethod
    def describe_error(
        self,
        pattern: str,
        *args: Any,
        error_cls: type[ExecutionError] = ExecutionError,
        **fields: Any,
    ) -> ExecutionError:
        """Build an error whose message names the launcher and command."""

    @abstractmethod
    def open_input(self) -> InputEndpoint:
        """Endpoint that feeds the command's stdin."""

    @abstractmethod
    def open_output(self) -> OutputEndpoint:
        """Endpoint yielding what the command writes to stdout."""

    @abstractmethod
    def open_error_output(self) -> OutputEndpoint:
        """Endpoint yielding what the command writes to stderr."""

    @abstractmethod
    async def start(self) -> None:
        """Spawn the command.

        On failure the executor abandons every endpoint it handed out.

        Raises:
            StartError: If the command could not be spawned
            ExecutorStateError: If already started
        """

    @abstractmethod
    async def wait(self) -> None:
        """Wait for the command to finish and release its resources.

        Raises:
            ProcessExitError: If the command exited non-zero or was killed
            ExecutorStateError: If not started or already waited
        """

    @abstractmethod
    async def kill(self) -> None:
        """Ask the command to terminate immediately.

        Returns promptly, including when the command already exited. There is
        no guarantee the command is gone when this returns.
        """

    async def run(self) -> None:
        """Start the command and wait for it. No endpoints may be open."""
        await self.start()
        await self.wait()


class Launcher(ABC):
    """Factory for Executors bound to one execution environment."""

    # Short label used for metrics ("local", "ssh", ...)
    kind: ClassVar[str] = "custom"

    @property
    @abstractmethod
    def identity(self) -> str:
        """Stable human-readable label used in diagnostics."""

    @abstractmethod
    async def launch(self, command: str) -> Executor:
        """Create an Executor for command without starting it.

        Raises:
            LaunchError: If no executor can be produced
        """

    def describe_error(
        self,
        pattern: str,
        *args: Any,
        error_cls: type[ExecutionError] = ExecutionError,
        **fields: Any,
    ) -> ExecutionError:
        """Build an error as ``pattern % args``, prefixed with the identity."""
        return error_cls(f"{self.identity}: {_format(pattern, args)}", **fields)

    async def close(self) -> None:
        """Release launcher-level resources. Nothing to release by default."""
        return None

    async def __aenter__(self) -> Launcher:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __str__(self) -> str:
        return self.identity


@dataclass(frozen=True)
class Launchable:
    """A launcher paired with the command to launch on it."""
    launcher: Launcher
    command: str

    async def launch(self) -> Executor:
        return await self.launcher.launch(self.command)

    def __str__(self) -> str:
        return f"{self.launcher.identity}{{{self.command}}}"


# =============================================================================
# Subprocess Implementation
# =============================================================================


class SubprocessExecutor(Executor):
    """Executor backed by an asyncio subprocess.

    Subclasses supply the argv; streams that were not opened are connected to
    /dev/null. With ``kill_process_group`` enabled the child leads its own
    session, so kill() reaches every process it spawned, and with them every
    holder of the output pipes.
    """

    def __init__(self, command: str, launcher_identity: str, config: ExecutionConfig):
        self._command = command
        self._launcher_identity = launcher_identity
        self._config = config
        self._state = ExecutorState.CREATED
        self._proc: asyncio.subprocess.Process | None = None
        self._stdin: InputEndpoint | None = None
        self._stdout: OutputEndpoint | None = None
        self._stderr: OutputEndpoint | None = None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self._launcher_identity!r}, {self._command!r}, "
            f"state={self._state.value})"
        )

    @abstractmethod
    def build_argv(self) -> list[str]:
        """Return the argv that runs the command."""

    def _spawn_kwargs(self) -> dict[str, Any]:
        return {"start_new_session": self._config.kill_process_group}

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def command(self) -> str:
        return self._command

    @property
    def state(self) -> ExecutorState:
        return self._state

    @property
    def pid(self) -> int | None:
        return self._proc.pid if self._proc is not None else None

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode if self._proc is not None else None

    def describe_error(
        self,
        pattern: str,
        *args: Any,
        error_cls: type[ExecutionError] = ExecutionError,
        **fields: Any,
    ) -> ExecutionError:
        prefix = f"cmd {self._launcher_identity}{{{self._command}}}"
        return error_cls(f"{prefix}: {_format(pattern, args)}", **fields)

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    def _check_can_open(self, name: str, current: object | None) -> None:
        if self._state is not ExecutorState.CREATED:
            raise self.describe_error(
                "cannot open %s pipe: executor is %s", name, self._state.value,
                error_cls=ExecutorStateError,
            )
        if current is not None:
            raise self.describe_error("%s pipe already opened", name, error_cls=EndpointError)

    def open_input(self) -> InputEndpoint:
        self._check_can_open("stdin", self._stdin)
        self._stdin = InputEndpoint("stdin")
        return self._stdin

    def open_output(self) -> OutputEndpoint:
        self._check_can_open("stdout", self._stdout)
        self._stdout = OutputEndpoint("stdout")
        return self._stdout

    def open_error_output(self) -> OutputEndpoint:
        self._check_can_open("stderr", self._stderr)
        self._stderr = OutputEndpoint("stderr")
        return self._stderr

    def _abandon_endpoints(self) -> None:
        for endpoint in (self._stdin, self._stdout, self._stderr):
            if endpoint is not None:
                endpoint.abandon()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @staticmethod
    def _pipe_or_null(endpoint: object | None) -> int:
        return asyncio.subprocess.PIPE if endpoint is not None else asyncio.subprocess.DEVNULL

    async def start(self) -> None:
        if self._state is not ExecutorState.CREATED:
            raise self.describe_error(
                "start called on %s executor", self._state.value,
                error_cls=ExecutorStateError,
            )
        argv = self.build_argv()
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=self._pipe_or_null(self._stdin),
                stdout=self._pipe_or_null(self._stdout),
                stderr=self._pipe_or_null(self._stderr),
                **self._spawn_kwargs(),
            )
        except PROCESS_ERRORS as e:
            self._state = ExecutorState.FAILED
            self._abandon_endpoints()
            raise self.describe_error("error starting: %s", e, error_cls=StartError) from e

        self._state = ExecutorState.STARTED
        if self._stdin is not None:
            self._stdin.attach(self._proc.stdin)
        if self._stdout is not None:
            self._stdout.attach(self._proc.stdout)
        if self._stderr is not None:
            self._stderr.attach(self._proc.stderr)
        logger.debug(f"[{type(self).__name__}] Started pid {self._proc.pid}: {argv[0]} ... {self._command}")

    async def wait(self) -> None:
        if self._state is ExecutorState.WAITED:
            raise self.describe_error("wait called twice", error_cls=ExecutorStateError)
        if self._state is not ExecutorState.STARTED or self._proc is None:
            raise self.describe_error(
                "wait called on %s executor", self._state.value,
                error_cls=ExecutorStateError,
            )
        self._state = ExecutorState.WAITED
        returncode = await self._proc.wait()
        if returncode != 0:
            raise self._exit_error(returncode)

    def _exit_error(self, returncode: int) -> ProcessExitError:
        if returncode < 0:
            signum = -returncode
            name = signal.strsignal(signum) or f"signal {signum}"
            reason = f"signal: {name.lower()}"
            return self.describe_error(
                reason, error_cls=ProcessExitError, signal=signum, reason=reason,
            )
        reason = f"exit status {returncode}"
        return self.describe_error(
            reason, error_cls=ProcessExitError, exit_code=returncode, reason=reason,
        )

    async def kill(self) -> None:
        if self._proc is None:
            raise self.describe_error(
                "kill called on %s executor", self._state.value,
                error_cls=ExecutorStateError,
            )
        if self._proc.returncode is not None:
            return
        self._send_kill()

    def _send_kill(self) -> None:
        if self._config.kill_process_group:
            try:
                os.killpg(self._proc.pid, signal.SIGKILL)
                return
            except ProcessLookupError:
                return
            except PermissionError as e:
                logger.warning(f"[{type(self).__name__}] killpg({self._proc.pid}) refused: {e}")
        try:
            self._proc.kill()
        except ProcessLookupError:
            # Process already exited
            pass
