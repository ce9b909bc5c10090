"""Tests for shellpipe.errors.

Covers the exception hierarchy and join_errors aggregation.
"""

import pytest

from shellpipe.errors import (
    CommandError,
    EndpointClosedError,
    ExecutionError,
    LaunchError,
    MultiError,
    PipeStageError,
    ProcessExitError,
    SetupError,
    StartError,
    StreamError,
    join_errors,
)


class TestJoinErrors:
    """Tests for join_errors."""

    def test_no_errors_returns_none(self):
        """Test joining nothing yields None."""
        assert join_errors() is None

    def test_all_none_returns_none(self):
        """Test only None entries yield None."""
        assert join_errors(None, None, None) is None

    def test_single_error_returned_unchanged(self):
        """Test a single error is returned as-is, not wrapped."""
        err = ValueError("boom")
        assert join_errors(None, err, None) is err

    def test_two_errors_concatenated_in_order(self):
        """Test messages are joined in the order given."""
        first = ExecutionError("source failed")
        second = ExecutionError("sink failed")

        joined = join_errors(first, None, second)

        assert isinstance(joined, MultiError)
        assert str(joined) == "source failed; sink failed"
        assert joined.errors == [first, second]
        assert len(joined) == 2

    def test_custom_separator(self):
        """Test the separator can be overridden."""
        joined = join_errors(ValueError("a"), ValueError("b"), sep=" | ")
        assert str(joined) == "a | b"

    def test_nested_multi_errors_flattened(self):
        """Test a MultiError argument contributes its members, not itself."""
        a, b, c = ValueError("a"), ValueError("b"), ValueError("c")
        inner = join_errors(a, b)

        joined = join_errors(inner, c)

        assert list(joined) == [a, b, c]
        assert str(joined) == "a; b; c"

    def test_multi_error_is_execution_error(self):
        """Test MultiError can be caught as ExecutionError."""
        with pytest.raises(ExecutionError):
            raise join_errors(ValueError("a"), ValueError("b"))


class TestErrorHierarchy:
    """Tests for the exception taxonomy."""

    @pytest.mark.parametrize("cls", [LaunchError, StartError])
    def test_setup_errors(self, cls):
        """Test launch/start failures are setup errors."""
        assert issubclass(cls, SetupError)
        assert issubclass(cls, ExecutionError)

    def test_endpoint_closed_is_stream_error(self):
        """Test closed endpoint errors are I/O errors."""
        assert issubclass(EndpointClosedError, StreamError)

    def test_process_exit_error_exit_code(self):
        """Test a non-zero exit is not a kill."""
        err = ProcessExitError("cmd local{false}: exit status 1", exit_code=1, reason="exit status 1")
        assert err.exit_code == 1
        assert err.signal is None
        assert err.killed is False
        assert err.reason == "exit status 1"

    def test_process_exit_error_signal(self):
        """Test a signal death reports killed."""
        err = ProcessExitError("signal: killed", signal=9)
        assert err.killed is True
        assert err.exit_code is None

    def test_process_exit_error_reason_defaults_to_message(self):
        """Test reason falls back to the full message."""
        err = ProcessExitError("exit status 2", exit_code=2)
        assert err.reason == "exit status 2"

    def test_command_error_carries_output(self):
        """Test CommandError keeps the captured streams."""
        err = CommandError("failed", command="make", stdout="out", stderr="err", exit_code=2)
        assert err.command == "make"
        assert err.stdout == "out"
        assert err.stderr == "err"
        assert err.exit_code == 2

    def test_pipe_stage_error_side(self):
        """Test PipeStageError names its side."""
        err = PipeStageError("sink error: broken", side="sink")
        assert err.side == "sink"
        assert str(err) == "sink error: broken"
