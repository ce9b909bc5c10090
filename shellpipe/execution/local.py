"""Local execution backend: commands run through the configured shell."""

from __future__ import annotations

import logging

from shellpipe.config.execution_config import ExecutionConfig, get_execution_config
from shellpipe.execution.base import Launcher, SubprocessExecutor

logger = logging.getLogger(__name__)

__all__ = ["LocalExecutor", "LocalLauncher"]


class LocalExecutor(SubprocessExecutor):
    """Runs ``<shell> -c <command>`` on this machine."""

    def build_argv(self) -> list[str]:
        return [self._config.shell, "-c", self._command]


class LocalLauncher(Launcher):
    """Launcher for the local machine. Holds no resources."""

    kind = "local"

    def __init__(self, config: ExecutionConfig | None = None):
        self._config = config or get_execution_config()

    @property
    def identity(self) -> str:
        return "local"

    @property
    def config(self) -> ExecutionConfig:
        return self._config

    async def launch(self, command: str) -> LocalExecutor:
        logger.debug(f"[LocalLauncher] Creating executor for [{command}]")
        return LocalExecutor(command, self.identity, self._config)
