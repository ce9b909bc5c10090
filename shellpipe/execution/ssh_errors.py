"""SSH error classification.

When the OpenSSH client fails it only leaves an exit status (255 for
transport failures) and a line or two on stderr. This module maps that text
to a coarse error type and a hint on what to check, which SSHLauncher.connect
puts into its LaunchError:

    - AUTH_FAILURE: Key or user rejected
    - HOST_KEY: known_hosts mismatch
    - NETWORK: Host unreachable, DNS failure
    - CONFIG: Bad ssh option or missing file
    - TRANSIENT: Timeout, reset, refused
    - UNKNOWN: Cannot classify

Usage:
    from shellpipe.execution.ssh_errors import classify_ssh_error

    result = classify_ssh_error(stderr_text, exit_code)
    logger.warning(f"[SSH] {result.error_type.value}: {result.recommended_action}")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "SSHErrorType",
    "SSHErrorClassification",
    "classify_ssh_error",
]


class SSHErrorType(Enum):
    """Classification of SSH error types."""

    AUTH_FAILURE = "auth_failure"
    HOST_KEY = "host_key"
    NETWORK = "network"
    CONFIG = "config"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class SSHErrorClassification:
    """What went wrong and where to look."""

    error_type: SSHErrorType
    recommended_action: str
    matched_pattern: str | None = None


AUTH_FAILURE_PATTERNS = [
    (r"Permission denied", "permission_denied"),
    (r"publickey.*denied", "publickey_denied"),
    (r"Too many authentication failures", "too_many_failures"),
    (r"no matching key exchange method", "key_exchange_mismatch"),
    (r"sign_and_send_pubkey: signing failed", "signing_failed"),
]

HOST_KEY_PATTERNS = [
    (r"Host key verification failed", "host_key_verification"),
    (r"REMOTE HOST IDENTIFICATION HAS CHANGED", "host_key_changed"),
]

NETWORK_PATTERNS = [
    (r"No route to host", "no_route"),
    (r"Network is unreachable", "network_unreachable"),
    (r"Could not resolve hostname", "hostname_unresolved"),
    (r"Name or service not known", "dns_failure"),
]

CONFIG_PATTERNS = [
    (r"Bad configuration option", "bad_option"),
    (r"Identity file .* not accessible", "identity_file_missing"),
    (r"No such file or directory", "file_not_found"),
]

TRANSIENT_PATTERNS = [
    (r"Connection timed out", "timeout"),
    (r"Connection reset by peer", "reset"),
    (r"Connection refused", "refused"),
    (r"Connection closed", "closed"),
    (r"kex_exchange_identification", "kex_failed"),
]


def _compile(patterns: list[tuple[str, str]]) -> list[tuple[re.Pattern[str], str]]:
    return [(re.compile(p, re.IGNORECASE), name) for p, name in patterns]


# Checked in this order; the first match wins.
_RULES: list[tuple[SSHErrorType, list[tuple[re.Pattern[str], str]], str]] = [
    (SSHErrorType.AUTH_FAILURE, _compile(AUTH_FAILURE_PATTERNS),
     "check the ssh user and private key"),
    (SSHErrorType.HOST_KEY, _compile(HOST_KEY_PATTERNS),
     "update known_hosts or verify the host identity"),
    (SSHErrorType.NETWORK, _compile(NETWORK_PATTERNS),
     "check the host name and network reachability"),
    (SSHErrorType.CONFIG, _compile(CONFIG_PATTERNS),
     "check ssh options and file paths"),
    (SSHErrorType.TRANSIENT, _compile(TRANSIENT_PATTERNS),
     "check that sshd is running and reachable on the port"),
]


def classify_ssh_error(error_message: str, exit_code: int = 1) -> SSHErrorClassification:
    """Classify ssh diagnostics.

    Args:
        error_message: ssh stderr output
        exit_code: ssh exit status (255 means the connection failed)

    Returns:
        SSHErrorClassification; UNKNOWN with no matched pattern if nothing fits
    """
    for error_type, patterns, action in _RULES:
        for pattern, name in patterns:
            if pattern.search(error_message):
                return SSHErrorClassification(error_type, action, name)

    # 255 without a recognisable message is still a failed connection
    if exit_code == 255:
        return SSHErrorClassification(
            SSHErrorType.TRANSIENT,
            "ssh could not connect; run ssh -v against the host",
            "exit_code_255",
        )
    return SSHErrorClassification(SSHErrorType.UNKNOWN, "inspect the ssh output")
