"""Logging decorator for launchers and the executors they build.

VerboseLauncher wraps any Launcher and describes what it and its executors
do: launch, run, start, wait, kill and close. Each operation calls the log
hook first and then delegates to the wrapped object, so the wrapped behavior
is unchanged.

Usage:
    launcher = VerboseLauncher(LocalLauncher())
    await run_cmd(launcher, "make test")

    # Or route to a custom sink
    launcher = VerboseLauncher(SSHLauncher(cfg), logf=my_logger.debug)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from shellpipe.errors import ExecutionError
from shellpipe.execution.base import Executor, Launcher
from shellpipe.execution.streams import InputEndpoint, OutputEndpoint

logger = logging.getLogger(__name__)

__all__ = ["LogFunc", "VerboseExecutor", "VerboseLauncher"]

# printf-style hook, e.g. logger.info
LogFunc = Callable[..., None]


class VerboseLauncher(Launcher):
    """Launcher decorator that logs every lifecycle operation."""

    def __init__(self, inner: Launcher, logf: LogFunc | None = None):
        self.inner = inner
        self.logf = logf or logger.info

    @property
    def kind(self) -> str:  # type: ignore[override]
        return self.inner.kind

    @property
    def identity(self) -> str:
        return self.inner.identity

    def describe_error(self, pattern: str, *args: Any, **kwargs: Any) -> ExecutionError:
        return self.inner.describe_error(pattern, *args, **kwargs)

    async def launch(self, command: str) -> VerboseExecutor:
        self.logf("[%s] Launching command [%s]", self.identity, command)
        exe = await self.inner.launch(command)
        return VerboseExecutor(exe, self)

    async def close(self) -> None:
        self.logf("[%s] Closing", self.identity)
        try:
            await self.inner.close()
        except ExecutionError as e:
            self.logf("[%s] Close returned %s", self.identity, e)
            raise
        self.logf("[%s] Close returned %s", self.identity, None)


class VerboseExecutor(Executor):
    """Executor decorator created by VerboseLauncher."""

    def __init__(self, inner: Executor, launcher: VerboseLauncher):
        self.inner = inner
        self.launcher = launcher

    def _log(self, fmt: str, *args: Any) -> None:
        self.launcher.logf(fmt, self.launcher.identity, self.inner.command, *args)

    @property
    def command(self) -> str:
        return self.inner.command

    def describe_error(self, pattern: str, *args: Any, **kwargs: Any) -> ExecutionError:
        return self.inner.describe_error(pattern, *args, **kwargs)

    def open_input(self) -> InputEndpoint:
        return self.inner.open_input()

    def open_output(self) -> OutputEndpoint:
        return self.inner.open_output()

    def open_error_output(self) -> OutputEndpoint:
        return self.inner.open_error_output()

    async def run(self) -> None:
        self._log("[%s] Running command [%s]")
        try:
            await self.inner.run()
        except ExecutionError as e:
            self._log("[%s] Command [%s] failed: %s", e)
            raise

    async def start(self) -> None:
        self._log("[%s] Starting command [%s]")
        await self.inner.start()

    async def wait(self) -> None:
        self._log("[%s] Waiting for command [%s]")
        try:
            await self.inner.wait()
        except ExecutionError as e:
            self._log("[%s] Command [%s] failed: %s", e)
            raise

    async def kill(self) -> None:
        self._log("[%s] Killing command [%s]")
        await self.inner.kill()
