"""Configuration for local and remote command execution.

Values are resolved in three layers, later layers winning:

1. Dataclass defaults
2. The ``execution:`` section of a YAML file (path passed explicitly or taken
   from ``SHELLPIPE_CONFIG``)
3. ``SHELLPIPE_*`` environment variables

Usage:
    from shellpipe.config import get_execution_config

    config = get_execution_config()
    print(config.shell, config.ssh_binary)

Example YAML:
    execution:
      shell: /bin/bash
      chunk_size: 65536
      ssh_connect_timeout: 5
      ssh_options:
        - ServerAliveInterval=15
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, ClassVar

import yaml

from shellpipe.config.base_config import BaseConfig

logger = logging.getLogger(__name__)

__all__ = [
    "ExecutionConfig",
    "CONFIG_PATH_ENV",
    "load_execution_config",
    "get_execution_config",
    "reset_execution_config",
]

CONFIG_PATH_ENV = "SHELLPIPE_CONFIG"


@dataclass
class ExecutionConfig(BaseConfig):
    """Settings shared by launchers and the harness/pipe engine.

    Attributes:
        shell: Shell used to interpret local commands (run as ``shell -c cmd``)
        chunk_size: Read size for drain and copy tasks
        encoding: Encoding used to decode captured output
        kill_process_group: Run local commands in their own session and kill
            the whole group, so children of the shell die with it
        ssh_binary: OpenSSH client executable
        ssh_connect_timeout: ConnectTimeout passed to ssh (seconds)
        ssh_strict_host_key_checking: StrictHostKeyChecking value (yes/no)
        ssh_options: Extra ``-o`` options, e.g. ``ServerAliveInterval=15``
    """

    _env_prefix: ClassVar[str] = "SHELLPIPE"

    shell: str = "/bin/sh"
    chunk_size: int = 32 * 1024
    encoding: str = "utf-8"
    kill_process_group: bool = True
    ssh_binary: str = "ssh"
    ssh_connect_timeout: int = 10
    ssh_strict_host_key_checking: bool = False
    ssh_options: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    @classmethod
    def from_env(cls) -> ExecutionConfig:
        return cls().with_env_overrides()

    @classmethod
    def from_file(cls, path: str | Path) -> ExecutionConfig:
        """Load the ``execution:`` section of a YAML file.

        Args:
            path: YAML file path

        Returns:
            Config built from the file (defaults for missing keys)

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a mapping
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at top level")
        section = data.get("execution", {}) or {}
        if not isinstance(section, dict):
            raise ValueError(f"{path}: 'execution' must be a mapping")
        return cls.from_dict(section)

    def with_env_overrides(self) -> ExecutionConfig:
        """Return a copy with any ``SHELLPIPE_*`` variables applied."""
        overrides: dict[str, Any] = {}
        if self._has_env("SHELL"):
            overrides["shell"] = self._get_env_str("SHELL", self.shell)
        if self._has_env("CHUNK_SIZE"):
            overrides["chunk_size"] = self._get_env_int("CHUNK_SIZE", self.chunk_size)
        if self._has_env("ENCODING"):
            overrides["encoding"] = self._get_env_str("ENCODING", self.encoding)
        if self._has_env("KILL_PROCESS_GROUP"):
            overrides["kill_process_group"] = self._get_env_bool(
                "KILL_PROCESS_GROUP", self.kill_process_group
            )
        if self._has_env("SSH_BINARY"):
            overrides["ssh_binary"] = self._get_env_str("SSH_BINARY", self.ssh_binary)
        if self._has_env("SSH_CONNECT_TIMEOUT"):
            overrides["ssh_connect_timeout"] = self._get_env_int(
                "SSH_CONNECT_TIMEOUT", self.ssh_connect_timeout
            )
        if self._has_env("SSH_STRICT_HOST_KEY_CHECKING"):
            overrides["ssh_strict_host_key_checking"] = self._get_env_bool(
                "SSH_STRICT_HOST_KEY_CHECKING", self.ssh_strict_host_key_checking
            )
        if self._has_env("SSH_OPTIONS"):
            overrides["ssh_options"] = self._get_env_list("SSH_OPTIONS", self.ssh_options)
        return replace(self, **overrides)


def load_execution_config(path: str | Path | None = None) -> ExecutionConfig:
    """Resolve configuration from defaults, an optional YAML file and env vars.

    Args:
        path: YAML file; falls back to ``$SHELLPIPE_CONFIG`` when None

    Returns:
        Fully resolved ExecutionConfig
    """
    path = path or os.environ.get(CONFIG_PATH_ENV)
    if path:
        config = ExecutionConfig.from_file(path)
        logger.debug(f"[ExecutionConfig] Loaded {path}")
    else:
        config = ExecutionConfig()
    return config.with_env_overrides()


# =============================================================================
# Singleton Access
# =============================================================================

_instance: ExecutionConfig | None = None


def get_execution_config() -> ExecutionConfig:
    """Get the process-wide ExecutionConfig, loading it on first use."""
    global _instance
    if _instance is None:
        _instance = load_execution_config()
    return _instance


def reset_execution_config() -> None:
    """Reset the singleton (for testing)."""
    global _instance
    _instance = None
