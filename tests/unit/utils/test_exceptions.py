"""Tests for shellpipe.utils.exceptions."""

import logging

from shellpipe.errors import EndpointClosedError, ExecutionError
from shellpipe.utils.exceptions import (
    CLEANUP_ERRORS,
    PROCESS_ERRORS,
    STREAM_ERRORS,
    log_and_continue,
)


class TestExceptionTuples:
    """Tests for the narrow exception tuples."""

    def test_stream_errors(self):
        """Test pipe failures and closed endpoints are stream errors."""
        for exc in (BrokenPipeError(), ConnectionResetError(), EndpointClosedError("closed")):
            assert isinstance(exc, STREAM_ERRORS)

    def test_process_errors(self):
        """Test a missing binary is a process error."""
        assert isinstance(FileNotFoundError(), PROCESS_ERRORS)

    def test_programming_errors_not_caught(self):
        """Test bugs are not swallowed by the tuples."""
        for exc in (AttributeError(), TypeError(), KeyError()):
            assert not isinstance(exc, STREAM_ERRORS + PROCESS_ERRORS + CLEANUP_ERRORS)

    def test_cleanup_errors(self):
        """Test execution errors are cleanup errors."""
        assert isinstance(ExecutionError("x"), CLEANUP_ERRORS)


class TestLogAndContinue:
    """Tests for log_and_continue."""

    def test_logs_with_context(self, caplog):
        """Test the message names the context and exception type."""
        logger = logging.getLogger("test.log_and_continue")
        with caplog.at_level(logging.WARNING, logger="test.log_and_continue"):
            log_and_continue(ValueError("bad"), "pipe_cleanup", logger)
        assert "[pipe_cleanup] Caught ValueError: bad" in caplog.text

    def test_custom_level(self, caplog):
        """Test the level can be lowered."""
        logger = logging.getLogger("test.log_and_continue")
        with caplog.at_level(logging.WARNING, logger="test.log_and_continue"):
            log_and_continue(ValueError("bad"), "ctx", logger, level=logging.DEBUG)
        assert caplog.text == ""
