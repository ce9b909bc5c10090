"""Exception hierarchy for command execution and pipelines.

Every exception raised by the execution layer derives from ExecutionError.
Messages are already prefixed with the launcher identity and, where one is
involved, the command text, so callers can log ``str(err)`` directly and still
tell which host and which stage failed. The underlying exception, when there
is one, is chained as ``__cause__``.

Taxonomy:
    SetupError (LaunchError, EndpointError, StartError):
        Nothing is left running; fail fast.
    StreamError (EndpointClosedError):
        A drain, feed, or copy task failed. The process lifecycle is still
        completed with wait()/kill().
    ProcessExitError:
        The command ran and exited non-zero or was killed. Authoritative over
        stream errors.
    CommandError / PipeStageError:
        Outcome of a harness run or of one side of a pipe.
    MultiError:
        Several independent failures reported together.

Usage:
    from shellpipe.errors import join_errors

    err = join_errors(copy_error, wait_error)
    if err is not None:
        logger.error(f"[Pipe] {err}")
"""

from __future__ import annotations

from collections.abc import Iterable

__all__ = [
    "ExecutionError",
    "ExecutorStateError",
    "SetupError",
    "LaunchError",
    "EndpointError",
    "StartError",
    "StreamError",
    "EndpointClosedError",
    "ProcessExitError",
    "CommandError",
    "PipeStageError",
    "MultiError",
    "join_errors",
    "DEFAULT_SEPARATOR",
]

DEFAULT_SEPARATOR = "; "


class ExecutionError(Exception):
    """Base class for all execution failures."""


class ExecutorStateError(ExecutionError):
    """An executor operation was called in the wrong lifecycle state."""


# =============================================================================
# Setup Errors
# =============================================================================


class SetupError(ExecutionError):
    """Launching, opening an endpoint, or starting failed."""


class LaunchError(SetupError):
    """The launcher could not produce an executor."""


class EndpointError(SetupError):
    """An input or output endpoint could not be opened."""


class StartError(SetupError):
    """The command could not be spawned."""


# =============================================================================
# I/O Errors
# =============================================================================


class StreamError(ExecutionError):
    """Copying bytes to or from a command failed."""


class EndpointClosedError(StreamError):
    """I/O was attempted on an endpoint that was abandoned or closed."""


# =============================================================================
# Outcome Errors
# =============================================================================


class ProcessExitError(ExecutionError):
    """The command exited with a non-zero status or was killed by a signal.

    Attributes:
        exit_code: Exit status, or None when the process died from a signal
        signal: Signal number that terminated the process, if any
        reason: The outcome without the launcher/command prefix, e.g.
            "exit status 1" or "signal: killed"
    """

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        signal: int | None = None,
        reason: str = "",
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.signal = signal
        self.reason = reason or message

    @property
    def killed(self) -> bool:
        """True if the process was terminated by a signal."""
        return self.signal is not None


class CommandError(ExecutionError):
    """A harness run failed.

    Carries whatever output was captured before the failure so callers of
    the capture helpers do not lose it.
    """

    def __init__(
        self,
        message: str,
        command: str = "",
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code


class PipeStageError(ExecutionError):
    """One side of a pipe failed.

    Attributes:
        side: "source", "sink", or "pipe" (the connecting copy)
    """

    def __init__(self, message: str, side: str):
        super().__init__(message)
        self.side = side


# =============================================================================
# Aggregation
# =============================================================================


class MultiError(ExecutionError):
    """Several independent failures, kept in the order they were reported.

    ``str()`` joins the individual messages with the separator; the original
    exceptions stay available on ``errors``.
    """

    def __init__(self, errors: Iterable[BaseException], sep: str = DEFAULT_SEPARATOR):
        self.errors: list[BaseException] = list(errors)
        self.sep = sep
        super().__init__(sep.join(str(e) for e in self.errors))

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self):
        return iter(self.errors)

    def __repr__(self) -> str:
        return f"MultiError({self.errors!r})"


def join_errors(
    *errors: BaseException | None,
    sep: str = DEFAULT_SEPARATOR,
) -> BaseException | None:
    """Merge zero or more independent failures into one.

    Args:
        *errors: Errors in reporting order; None entries are skipped
        sep: Separator placed between messages

    Returns:
        None if every input is None, the error itself if exactly one is set,
        otherwise a MultiError holding all of them. Nested MultiErrors are
        flattened so ``errors`` is always a flat list.
    """
    collected: list[BaseException] = []
    for err in errors:
        if err is None:
            continue
        if isinstance(err, MultiError):
            collected.extend(err.errors)
        else:
            collected.append(err)

    if not collected:
        return None
    if len(collected) == 1:
        return collected[0]
    return MultiError(collected, sep=sep)
