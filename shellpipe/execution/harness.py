"""Single-command harness: run one command with optional input and capture.

The harness opens the endpoints the caller asked for, starts one task per
endpoint (drain stdout/stderr into a buffer, feed stdin from a string), starts
the command, collects exactly one completion per task, and only then waits
for the command. Waiting last matters: an unread output pipe would keep the
command (and wait()) blocked forever.

Error precedence: if wait() fails, that failure is reported as
"completed with error", since a command that ran and failed is authoritative.
Only when the command succeeded does the first drain/feed failure surface.
Both are raised as CommandError, carrying whatever output was captured.

Usage:
    from shellpipe.execution import LocalLauncher, run_cmd_capture

    launcher = LocalLauncher()
    stdout, stderr = await run_cmd_capture(launcher, "git rev-parse HEAD")

    await run_cmd_with_input(launcher, "grep -q needle", "haystack with needle")
"""

from __future__ import annotations

import asyncio
import logging
import time

from shellpipe.config.execution_config import ExecutionConfig, get_execution_config
from shellpipe.errors import (
    CommandError,
    ExecutionError,
    ProcessExitError,
    SetupError,
    StreamError,
)
from shellpipe.execution.base import Executor, Launcher
from shellpipe.execution.cleanup import discard_output, kill_quietly, wait_quietly
from shellpipe.execution.streams import InputEndpoint, OutputEndpoint, drain
from shellpipe.metrics import (
    OUTCOME_CANCELLED,
    OUTCOME_EXIT_ERROR,
    OUTCOME_IO_ERROR,
    OUTCOME_SETUP_ERROR,
    OUTCOME_SUCCESS,
    record_command_outcome,
)
from shellpipe.utils.exceptions import STREAM_ERRORS

logger = logging.getLogger(__name__)

__all__ = [
    "run_cmd",
    "run_cmd_with_input",
    "run_cmd_capture",
    "run_cmd_with_input_capture",
]


class _Harness:
    """Drives one executor through start, I/O and wait. Single use."""

    def __init__(
        self,
        exe: Executor,
        config: ExecutionConfig,
        stdin: str | None = None,
        capture: bool = False,
    ):
        self.exe = exe
        self.config = config
        self.stdin = stdin.encode(config.encoding) if stdin is not None else None
        self.stdout = bytearray() if capture else None
        self.stderr = bytearray() if capture else None

        self._out: OutputEndpoint | None = None
        self._err: OutputEndpoint | None = None
        self._in: InputEndpoint | None = None

    def _open_endpoints(self) -> None:
        # Order: stdout, stderr, stdin. Nothing has started yet, so on failure
        # it is enough to abandon what was opened.
        try:
            if self.stdout is not None:
                self._out = self.exe.open_output()
            if self.stderr is not None:
                self._err = self.exe.open_error_output()
            if self.stdin is not None:
                self._in = self.exe.open_input()
        except ExecutionError:
            for endpoint in (self._out, self._err, self._in):
                if endpoint is not None:
                    endpoint.abandon()
            raise

    def _stream_error(self, action: str, name: str, e: BaseException) -> ExecutionError:
        err = self.exe.describe_error("error %s %s: %s", action, name, e, error_cls=StreamError)
        err.__cause__ = e
        return err

    async def _drain(self, endpoint: OutputEndpoint, dest: bytearray) -> ExecutionError | None:
        try:
            await drain(endpoint, dest, self.config.chunk_size)
        except STREAM_ERRORS as e:
            return self._stream_error("reading", endpoint.name, e)
        return None

    async def _feed(self, endpoint: InputEndpoint, data: bytes) -> ExecutionError | None:
        try:
            await endpoint.write(data)
        except STREAM_ERRORS as e:
            return self._stream_error("writing", endpoint.name, e)
        finally:
            await endpoint.close()
        return None

    def _decode(self, buf: bytearray | None) -> str:
        if buf is None:
            return ""
        return buf.decode(self.config.encoding, errors="replace")

    async def _abort(self, tasks: list[asyncio.Task]) -> None:
        """Tear down after an aborted collect: kill, drain, reap. Never raises."""
        await kill_quietly(self.exe, "command")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self._in is not None:
            await self._in.close()
        for endpoint in (self._out, self._err):
            if endpoint is not None:
                await discard_output(endpoint, "command", self.config.chunk_size)
        await wait_quietly(self.exe, "command")

    async def run(self) -> tuple[str, str]:
        """Run the command.

        Returns:
            (stdout, stderr) decoded; empty strings for streams not captured

        Raises:
            SetupError: If an endpoint could not be opened or start failed
            CommandError: If the command failed or an I/O task failed
        """
        self._open_endpoints()

        tasks: list[asyncio.Task] = []
        if self._out is not None:
            tasks.append(asyncio.create_task(self._drain(self._out, self.stdout)))
        if self._err is not None:
            tasks.append(asyncio.create_task(self._drain(self._err, self.stderr)))
        if self._in is not None:
            tasks.append(asyncio.create_task(self._feed(self._in, self.stdin)))

        try:
            await self.exe.start()
        except (ExecutionError, asyncio.CancelledError):
            # The executor abandoned its endpoints; the tasks end on their own
            # but are cancelled anyway so none is left behind.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        # Anything escaping the collect step (cancellation or an unexpected
        # task failure) still tears the command down and reaps it.
        collected = False
        try:
            io_errors = [await fut for fut in asyncio.as_completed(tasks)]
            collected = True
        finally:
            if not collected:
                await self._abort(tasks)

        wait_error: ExecutionError | None = None
        try:
            await self.exe.wait()
        except ExecutionError as e:
            wait_error = e
        except asyncio.CancelledError:
            # wait() was already issued; make sure the command does not outlive us
            await kill_quietly(self.exe, "command")
            raise

        stdout, stderr = self._decode(self.stdout), self._decode(self.stderr)
        if wait_error is not None:
            is_exit = isinstance(wait_error, ProcessExitError)
            raise self.exe.describe_error(
                "completed with error: %s",
                wait_error.reason if is_exit else wait_error,
                error_cls=CommandError,
                command=self.exe.command,
                stdout=stdout,
                stderr=stderr,
                exit_code=wait_error.exit_code if is_exit else None,
            ) from wait_error

        io_error = next((e for e in io_errors if e is not None), None)
        if io_error is None:
            return stdout, stderr
        raise CommandError(
            str(io_error),
            command=self.exe.command,
            stdout=stdout,
            stderr=stderr,
        ) from io_error


def _outcome(e: BaseException) -> str:
    if isinstance(e, asyncio.CancelledError):
        return OUTCOME_CANCELLED
    if isinstance(e, CommandError) and isinstance(e.__cause__, ProcessExitError):
        return OUTCOME_EXIT_ERROR
    if isinstance(e, CommandError):
        return OUTCOME_IO_ERROR
    return OUTCOME_SETUP_ERROR


async def _run(
    launcher: Launcher,
    command: str,
    stdin: str | None,
    capture: bool,
    config: ExecutionConfig | None,
) -> tuple[str, str]:
    config = config or get_execution_config()
    started = time.monotonic()
    # Anything other than a clean return or a known error counts as an I/O failure
    outcome = OUTCOME_IO_ERROR
    try:
        exe = await launcher.launch(command)
        result = await _Harness(exe, config, stdin=stdin, capture=capture).run()
        outcome = OUTCOME_SUCCESS
        return result
    except (ExecutionError, asyncio.CancelledError) as e:
        outcome = _outcome(e)
        if isinstance(e, SetupError):
            logger.debug(f"[Harness] {launcher.identity}: setup failed for [{command}]: {e}")
        raise
    finally:
        record_command_outcome(launcher.kind, outcome, time.monotonic() - started)


# =============================================================================
# Public API
# =============================================================================

async def run_cmd(
    launcher: Launcher,
    command: str,
    *,
    config: ExecutionConfig | None = None,
) -> None:
    """Run command, discarding all output.

    Raises:
        SetupError: If the command could not be launched or started
        CommandError: If the command exited non-zero or was killed
    """
    await _run(launcher, command, None, False, config)


async def run_cmd_with_input(
    launcher: Launcher,
    command: str,
    input_text: str,
    *,
    config: ExecutionConfig | None = None,
) -> None:
    """Run command with input_text on its stdin, discarding all output."""
    await _run(launcher, command, input_text, False, config)


async def run_cmd_capture(
    launcher: Launcher,
    command: str,
    *,
    config: ExecutionConfig | None = None,
) -> tuple[str, str]:
    """Run command and return what it wrote to stdout and stderr.

    On failure the CommandError raised carries the captured stdout/stderr.
    """
    return await _run(launcher, command, None, True, config)


async def run_cmd_with_input_capture(
    launcher: Launcher,
    command: str,
    input_text: str,
    *,
    config: ExecutionConfig | None = None,
) -> tuple[str, str]:
    """Run command with input_text on its stdin; return (stdout, stderr)."""
    return await _run(launcher, command, input_text, True, config)
