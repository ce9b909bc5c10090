"""Two-stage pipes: source stdout → sink stdin, each side local or remote.

Lifecycle of one pipe:

1. Source setup: launch, open stdout/stderr, start. Failure ends the pipe;
   nothing else was started.
2. Sink setup: launch, open stdout/stderr/stdin, start. On failure the
   already running source is killed, drained and reaped. Errors from that
   teardown are logged, not reported: the sink failure is the result.
3. Four concurrent tasks: the connecting copy (source stdout → sink stdin,
   closing sink stdin when done), source stderr drain, sink stdout drain, sink
   stderr drain. All four are always collected; the first error is kept.
4. Both sides are waited concurrently. A failing sink gets the source killed
   so an upstream producer is never left blocked on a pipe nobody reads.
5. The collect error and the wait errors are joined into PipeResult.error.

Usage:
    from shellpipe.execution import Launchable, LocalLauncher, pipe

    local = LocalLauncher()
    result = await pipe(
        Launchable(remote, "tar czf - /var/log"),
        Launchable(local, "tar tzf -"),
    )
    if not result.success:
        print(f"pipe failed: {result.error}\n{result.sink_stderr}")
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from shellpipe.config.execution_config import ExecutionConfig, get_execution_config
from shellpipe.errors import ExecutionError, PipeStageError, join_errors
from shellpipe.execution.base import Executor, Launchable
from shellpipe.execution.cleanup import discard_output, kill_quietly, wait_quietly
from shellpipe.execution.streams import InputEndpoint, OutputEndpoint, copy_stream, drain
from shellpipe.metrics import (
    OUTCOME_CANCELLED,
    OUTCOME_FAILED,
    OUTCOME_SETUP_ERROR,
    OUTCOME_SUCCESS,
    record_pipe_outcome,
)
from shellpipe.utils.exceptions import STREAM_ERRORS

logger = logging.getLogger(__name__)

__all__ = ["PipeResult", "pipe"]

SOURCE = "source"
SINK = "sink"
PIPE = "pipe"


@dataclass(frozen=True)
class PipeResult:
    """Outcome of a pipe.

    There is no source stdout: it was fed into the sink.

    Attributes:
        source_stderr: What the source wrote to stderr
        sink_stdout: What the sink wrote to stdout
        sink_stderr: What the sink wrote to stderr
        error: None if both commands exited zero and all I/O completed
    """

    source_stderr: str = ""
    sink_stdout: str = ""
    sink_stderr: str = ""
    error: BaseException | None = None

    @property
    def success(self) -> bool:
        return self.error is None


def _stage_error(message: str, cause: BaseException, side: str) -> PipeStageError:
    err = PipeStageError(f"{message}: {cause}", side=side)
    err.__cause__ = cause
    return err


async def _drain_reporting(
    endpoint: OutputEndpoint,
    dest: bytearray,
    chunk_size: int,
) -> BaseException | None:
    try:
        await drain(endpoint, dest, chunk_size)
    except STREAM_ERRORS as e:
        return e
    return None


def _open_outputs(exe: Executor) -> tuple[OutputEndpoint, OutputEndpoint]:
    stdout = exe.open_output()
    try:
        stderr = exe.open_error_output()
    except ExecutionError:
        stdout.abandon()
        raise
    return stdout, stderr


# =============================================================================
# Pipe Sides
# =============================================================================


@dataclass
class _Source:
    """Writing side: its stdout feeds the sink, its stderr is captured."""
    exe: Executor
    stdout: OutputEndpoint
    stderr: OutputEndpoint
    stderr_buf: bytearray
    stderr_task: asyncio.Task


@dataclass
class _Sink:
    """Reading side: stdin comes from the source, stdout/stderr are captured."""
    exe: Executor
    stdin: InputEndpoint
    stdout: OutputEndpoint
    stderr: OutputEndpoint
    stdout_buf: bytearray
    stderr_buf: bytearray
    stdout_task: asyncio.Task
    stderr_task: asyncio.Task


async def _send(source: Launchable, config: ExecutionConfig) -> _Source:
    """Launch and start the source. Once its stderr task completed and its
    stdout was read to EOF it is safe to wait() it."""
    try:
        exe = await source.launch()
    except ExecutionError as e:
        raise _stage_error("error creating pipe source", e, SOURCE) from e
    try:
        stdout, stderr = _open_outputs(exe)
        await exe.start()
    except ExecutionError as e:
        raise _stage_error("error starting pipe source", e, SOURCE) from e

    buf = bytearray()
    task = asyncio.create_task(_drain_reporting(stderr, buf, config.chunk_size))
    return _Source(exe=exe, stdout=stdout, stderr=stderr, stderr_buf=buf, stderr_task=task)


async def _recv(sink: Launchable, config: ExecutionConfig) -> _Sink:
    """Launch and start the sink with both output drains running."""
    try:
        exe = await sink.launch()
    except ExecutionError as e:
        raise _stage_error("error creating pipe sink", e, SINK) from e
    try:
        stdout, stderr = _open_outputs(exe)
        try:
            stdin = exe.open_input()
        except ExecutionError:
            stdout.abandon()
            stderr.abandon()
            raise
        await exe.start()
    except ExecutionError as e:
        raise _stage_error("error starting pipe sink", e, SINK) from e

    out_buf, err_buf = bytearray(), bytearray()
    return _Sink(
        exe=exe,
        stdin=stdin,
        stdout=stdout,
        stderr=stderr,
        stdout_buf=out_buf,
        stderr_buf=err_buf,
        stdout_task=asyncio.create_task(_drain_reporting(stdout, out_buf, config.chunk_size)),
        stderr_task=asyncio.create_task(_drain_reporting(stderr, err_buf, config.chunk_size)),
    )


async def _reap_source(src: _Source, config: ExecutionConfig) -> None:
    """Tear down a started source whose sink never came up."""
    await kill_quietly(src.exe, SOURCE)
    await discard_output(src.stdout, SOURCE, config.chunk_size)
    err = await src.stderr_task
    if err is not None:
        logger.debug(f"[Pipe] source stderr drain ended with {err}")
    await wait_quietly(src.exe, SOURCE)


# =============================================================================
# Running Pipe
# =============================================================================


class _Pipe:
    """A started source and sink, connected and driven to completion."""

    def __init__(self, src: _Source, snk: _Sink, config: ExecutionConfig):
        self.src = src
        self.snk = snk
        self.config = config
        self._waited: set[str] = set()

    async def _connect(self) -> BaseException | None:
        """Copy source stdout into sink stdin; close sink stdin when done."""
        error: BaseException | None = None
        try:
            await copy_stream(self.src.stdout, self.snk.stdin, self.config.chunk_size)
        except STREAM_ERRORS as e:
            error = e
        finally:
            # End-of-input for the sink as soon as the copy is over
            await self.snk.stdin.close()

        if error is not None:
            # Nothing will read the rest of the source's output; stop it so it
            # cannot block on a full pipe, then drain what is left.
            logger.info(f"[Pipe] copy into sink failed ({error}); killing source")
            await kill_quietly(self.src.exe, SOURCE)
            await discard_output(self.src.stdout, SOURCE, self.config.chunk_size)
        return error

    async def _collect(self, labels: dict[asyncio.Task, tuple[str, str]]) -> PipeStageError | None:
        """Wait for every I/O task; return the first failure seen."""
        first: PipeStageError | None = None
        pending = set(labels)
        while pending:
            done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                err = task.result()
                if err is not None and first is None:
                    side, message = labels[task]
                    first = _stage_error(message, err, side)
        return first

    async def _wait_source(self) -> PipeStageError | None:
        self._waited.add(SOURCE)
        try:
            await self.src.exe.wait()
        except ExecutionError as e:
            return _stage_error("source exited with error", e, SOURCE)
        return None

    async def _wait_sink(self) -> PipeStageError | None:
        self._waited.add(SINK)
        try:
            await self.snk.exe.wait()
        except ExecutionError as e:
            await kill_quietly(self.src.exe, SOURCE)
            return _stage_error("sink exited with error", e, SINK)
        return None

    async def _wait(self) -> BaseException | None:
        # Exit order of the two sides is unspecified; wait for both at once.
        src_err, snk_err = await asyncio.gather(self._wait_source(), self._wait_sink())
        return join_errors(src_err, snk_err)

    async def _abort(self, tasks: list[asyncio.Task]) -> None:
        """Tear both sides down after an aborted run. Never raises."""
        await kill_quietly(self.src.exe, SOURCE)
        await kill_quietly(self.snk.exe, SINK)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.snk.stdin.close()
        chunk = self.config.chunk_size
        await discard_output(self.src.stdout, SOURCE, chunk)
        await discard_output(self.src.stderr, SOURCE, chunk)
        await discard_output(self.snk.stdout, SINK, chunk)
        await discard_output(self.snk.stderr, SINK, chunk)
        if SOURCE not in self._waited:
            await wait_quietly(self.src.exe, SOURCE)
        if SINK not in self._waited:
            await wait_quietly(self.snk.exe, SINK)

    def _decode(self, buf: bytearray) -> str:
        return buf.decode(self.config.encoding, errors="replace")

    async def run(self) -> PipeResult:
        copy_task = asyncio.create_task(self._connect())
        labels = {
            copy_task: (PIPE, "error piping"),
            self.src.stderr_task: (SOURCE, "source error"),
            self.snk.stdout_task: (SINK, "sink error"),
            self.snk.stderr_task: (SINK, "sink error"),
        }
        # Cancellation or an unexpected task failure still kills and reaps
        # both sides before propagating.
        finished = False
        try:
            io_error = await self._collect(labels)
            wait_error = await self._wait()
            finished = True
        finally:
            if not finished:
                await self._abort(list(labels))

        return PipeResult(
            source_stderr=self._decode(self.src.stderr_buf),
            sink_stdout=self._decode(self.snk.stdout_buf),
            sink_stderr=self._decode(self.snk.stderr_buf),
            error=join_errors(io_error, wait_error),
        )


# =============================================================================
# Public API
# =============================================================================

async def pipe(
    source: Launchable,
    sink: Launchable,
    *,
    config: ExecutionConfig | None = None,
) -> PipeResult:
    """Run source and sink with source's stdout connected to sink's stdin.

    Never raises for command or I/O failures; they are reported in
    PipeResult.error. Cancelling the calling task kills both sides, reaps
    them, and re-raises CancelledError.

    Args:
        source: Producing side
        sink: Consuming side
        config: Execution settings (chunk size, encoding)

    Returns:
        PipeResult with captured streams and the aggregated error
    """
    config = config or get_execution_config()

    try:
        src = await _send(source, config)
    except PipeStageError as e:
        logger.debug(f"[Pipe] {e}")
        record_pipe_outcome(OUTCOME_SETUP_ERROR)
        return PipeResult(error=e)

    try:
        snk = await _recv(sink, config)
    except PipeStageError as e:
        logger.debug(f"[Pipe] {e}")
        await _reap_source(src, config)
        record_pipe_outcome(OUTCOME_SETUP_ERROR)
        return PipeResult(error=e)
    except asyncio.CancelledError:
        await _reap_source(src, config)
        record_pipe_outcome(OUTCOME_CANCELLED)
        raise

    try:
        result = await _Pipe(src, snk, config).run()
    except asyncio.CancelledError:
        record_pipe_outcome(OUTCOME_CANCELLED)
        raise
    record_pipe_outcome(OUTCOME_SUCCESS if result.success else OUTCOME_FAILED)
    return result
