"""Prometheus metrics for command execution.

This module centralises counters and histograms so the harness and the pipe
orchestrator can record lightweight telemetry without each call site having to
manage its own metric instances. Labels are kept coarse (launcher kind and
outcome) so cardinality stays bounded no matter how many distinct commands or
hosts are used.
"""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Histogram

# Outcome label values
OUTCOME_SUCCESS: Final[str] = "success"
OUTCOME_SETUP_ERROR: Final[str] = "setup_error"
OUTCOME_EXIT_ERROR: Final[str] = "exit_error"
OUTCOME_IO_ERROR: Final[str] = "io_error"
OUTCOME_CANCELLED: Final[str] = "cancelled"
OUTCOME_FAILED: Final[str] = "failed"


COMMANDS_TOTAL: Final[Counter] = Counter(
    "shellpipe_commands_total",
    "Total commands run through the harness, labeled by launcher kind and outcome.",
    labelnames=("kind", "outcome"),
)

COMMAND_DURATION: Final[Histogram] = Histogram(
    "shellpipe_command_duration_seconds",
    "Wall clock duration of harness runs in seconds, labeled by launcher kind.",
    labelnames=("kind",),
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 120.0, 600.0),
)

PIPES_TOTAL: Final[Counter] = Counter(
    "shellpipe_pipes_total",
    "Total two-stage pipes run, labeled by outcome.",
    labelnames=("outcome",),
)

CLEANUP_ERRORS: Final[Counter] = Counter(
    "shellpipe_cleanup_errors_total",
    (
        "Errors raised while tearing down a pipe side after another failure. "
        "These are logged but not part of the reported result."
    ),
    labelnames=("side",),
)


def record_command_outcome(kind: str, outcome: str, duration_seconds: float) -> None:
    """Record one finished harness run.

    Args:
        kind: Launcher kind ("local", "ssh", ...)
        outcome: One of the OUTCOME_* values
        duration_seconds: Wall clock time from launch to result
    """
    COMMANDS_TOTAL.labels(kind, outcome).inc()
    COMMAND_DURATION.labels(kind).observe(duration_seconds)


def record_pipe_outcome(outcome: str) -> None:
    PIPES_TOTAL.labels(outcome).inc()


def record_cleanup_error(side: str) -> None:
    CLEANUP_ERRORS.labels(side).inc()


__all__ = [
    "COMMANDS_TOTAL",
    "COMMAND_DURATION",
    "PIPES_TOTAL",
    "CLEANUP_ERRORS",
    "OUTCOME_SUCCESS",
    "OUTCOME_SETUP_ERROR",
    "OUTCOME_EXIT_ERROR",
    "OUTCOME_IO_ERROR",
    "OUTCOME_CANCELLED",
    "OUTCOME_FAILED",
    "record_command_outcome",
    "record_pipe_outcome",
    "record_cleanup_error",
]
