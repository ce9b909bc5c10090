"""Utility modules for shellpipe.

Modules:
    exceptions: Exception tuples for narrow handlers and logging helpers
"""

from __future__ import annotations

from shellpipe.utils.exceptions import (
    CLEANUP_ERRORS,
    PROCESS_ERRORS,
    STREAM_ERRORS,
    log_and_continue,
)

__all__ = [
    "exceptions",
    "CLEANUP_ERRORS",
    "PROCESS_ERRORS",
    "STREAM_ERRORS",
    "log_and_continue",
]
