"""Exception utilities for narrow exception catching.

This module provides exception type tuples for use in narrow exception handlers,
replacing broad `except Exception:` with specific exception types. This allows
programming errors (NameError, AttributeError, etc.) to bubble up immediately
while still handling expected operational errors gracefully.

Usage:
    from shellpipe.utils.exceptions import STREAM_ERRORS, log_and_continue

    try:
        await endpoint.write(data)
    except STREAM_ERRORS as e:
        return e

    # Cleanup where the primary failure is what gets reported
    try:
        await exe.kill()
    except CLEANUP_ERRORS as e:
        log_and_continue(e, "pipe_cleanup", logger)
"""

from __future__ import annotations

import logging

from shellpipe.errors import ExecutionError, StreamError

__all__ = [
    "STREAM_ERRORS",
    "PROCESS_ERRORS",
    "CLEANUP_ERRORS",
    "log_and_continue",
]

# =============================================================================
# Exception Type Tuples
# =============================================================================

# Errors a drain, feed, or copy task reports instead of raising
# Use for: endpoint reads/writes, pipe copies
STREAM_ERRORS: tuple[type[BaseException], ...] = (
    BrokenPipeError,       # Peer closed its end while we were writing
    ConnectionResetError,  # asyncio pipe transport reset
    OSError,               # Other low-level pipe failures
    StreamError,           # Abandoned or closed endpoint
)

# Process/subprocess exceptions
# Use for: spawning commands and signalling them
PROCESS_ERRORS: tuple[type[BaseException], ...] = (
    OSError,                   # Process-related OS errors
    PermissionError,           # Permission to execute
    FileNotFoundError,         # Shell or ssh binary not found
)

# Anything a kill()/wait() pair may raise while tearing down a peer
CLEANUP_ERRORS: tuple[type[BaseException], ...] = (
    ExecutionError,
    OSError,
)


# =============================================================================
# Utility Functions
# =============================================================================

def log_and_continue(
    e: BaseException,
    context: str,
    logger_instance: logging.Logger,
    level: int = logging.WARNING,
) -> None:
    """Log exception with context, allowing the caller to continue.

    Use this for errors that are deliberately kept out of the reported result
    but should not vanish.

    Args:
        e: The exception that was caught
        context: Short description of the operation (e.g., "pipe_cleanup")
        logger_instance: Logger to use for logging
        level: Logging level (default: WARNING)

    Example:
        try:
            await source.kill()
        except CLEANUP_ERRORS as e:
            log_and_continue(e, "pipe_cleanup", logger)
    """
    logger_instance.log(
        level,
        f"[{context}] Caught {type(e).__name__}: {e}",
    )
