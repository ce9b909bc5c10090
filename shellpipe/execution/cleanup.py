"""Teardown helpers for failure and cancellation paths.

When a command has to be torn down because something else already failed,
the failure that triggered the teardown is what gets reported. Errors raised
by the teardown itself are logged and counted instead of being raised.
"""

from __future__ import annotations

import logging

from shellpipe.errors import ProcessExitError
from shellpipe.execution.base import Executor
from shellpipe.execution.streams import DEFAULT_CHUNK_SIZE, OutputEndpoint, drain
from shellpipe.metrics import record_cleanup_error
from shellpipe.utils.exceptions import CLEANUP_ERRORS, STREAM_ERRORS, log_and_continue

logger = logging.getLogger(__name__)

__all__ = ["discard_output", "kill_quietly", "wait_quietly"]


def _suppressed(e: BaseException, side: str) -> None:
    log_and_continue(e, f"{side}_cleanup", logger)
    record_cleanup_error(side)


async def kill_quietly(exe: Executor, side: str) -> None:
    """kill() the executor, logging instead of raising on failure."""
    try:
        await exe.kill()
    except CLEANUP_ERRORS as e:
        _suppressed(e, side)


async def wait_quietly(exe: Executor, side: str) -> None:
    """wait() the executor, logging instead of raising on failure.

    A "killed" outcome is what the caller asked for and is only logged at
    debug level.
    """
    try:
        await exe.wait()
    except ProcessExitError as e:
        if e.killed:
            logger.debug(f"[{side}_cleanup] {e}")
        else:
            _suppressed(e, side)
    except CLEANUP_ERRORS as e:
        _suppressed(e, side)


async def discard_output(
    endpoint: OutputEndpoint,
    side: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """Read an endpoint to EOF and throw the bytes away.

    wait() must not run while an output pipe is still full, so every endpoint
    is exhausted before reaping, even on failure paths.
    """
    try:
        await drain(endpoint, None, chunk_size)
    except STREAM_ERRORS as e:
        logger.debug(f"[{side}_cleanup] discarding {endpoint.name} stopped: {e}")
