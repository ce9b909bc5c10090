"""Tests for shellpipe.execution.ssh_errors."""

import pytest

from shellpipe.execution.ssh_errors import (
    SSHErrorClassification,
    SSHErrorType,
    classify_ssh_error,
)


class TestClassifySSHError:
    """Tests for classify_ssh_error."""

    @pytest.mark.parametrize("message,expected", [
        ("ubuntu@10.0.0.5: Permission denied (publickey).", SSHErrorType.AUTH_FAILURE),
        ("Host key verification failed.", SSHErrorType.HOST_KEY),
        ("@ WARNING: REMOTE HOST IDENTIFICATION HAS CHANGED! @", SSHErrorType.HOST_KEY),
        ("ssh: Could not resolve hostname nowhere: Name or service not known", SSHErrorType.NETWORK),
        ("ssh: connect to host 10.0.0.5 port 22: No route to host", SSHErrorType.NETWORK),
        ("command-line line 0: Bad configuration option: bogus", SSHErrorType.CONFIG),
        ("ssh: connect to host 10.0.0.5 port 22: Connection timed out", SSHErrorType.TRANSIENT),
        ("ssh: connect to host 10.0.0.5 port 22: Connection refused", SSHErrorType.TRANSIENT),
        ("kex_exchange_identification: read: Connection reset by peer", SSHErrorType.TRANSIENT),
    ])
    def test_classifies_known_messages(self, message, expected):
        """Test well-known ssh diagnostics map to their type."""
        result = classify_ssh_error(message, 255)
        assert result.error_type is expected
        assert result.matched_pattern is not None
        assert result.recommended_action

    def test_first_rule_wins(self):
        """Test auth failures are reported before the transient close that follows."""
        result = classify_ssh_error("Permission denied (publickey).\nConnection closed by 10.0.0.5")
        assert result.error_type is SSHErrorType.AUTH_FAILURE
        assert result.matched_pattern == "permission_denied"

    def test_exit_code_255_fallback(self):
        """Test an unmatched message with ssh's failure status is a connection failure."""
        result = classify_ssh_error("something odd happened", 255)
        assert result.error_type is SSHErrorType.TRANSIENT
        assert result.matched_pattern == "exit_code_255"

    def test_unknown(self):
        """Test unmatched messages are unknown."""
        result = classify_ssh_error("something odd happened", 1)
        assert result == SSHErrorClassification(SSHErrorType.UNKNOWN, "inspect the ssh output")

    def test_actions_never_suggest_retrying(self):
        """Test no recommended action asks the caller to retry."""
        messages = ["Connection timed out", "Network is unreachable", "odd"]
        for message in messages:
            for exit_code in (1, 255):
                action = classify_ssh_error(message, exit_code).recommended_action
                assert "retry" not in action.lower()
