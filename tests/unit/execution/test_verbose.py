"""Tests for shellpipe.execution.verbose."""

import logging

import pytest

from shellpipe.errors import CommandError, ProcessExitError
from shellpipe.execution import VerboseExecutor, VerboseLauncher, run_cmd


class TestVerboseLauncher:
    """Tests for VerboseLauncher."""

    def test_delegates_labels(self, ssh_launcher, recorder):
        """Test identity and kind come from the wrapped launcher."""
        launcher = VerboseLauncher(ssh_launcher, logf=recorder)
        assert launcher.identity == "deploy@worker-1:22"
        assert launcher.kind == "ssh"
        assert str(launcher.describe_error("oops")) == "deploy@worker-1:22: oops"

    @pytest.mark.asyncio
    async def test_launch_wraps_executor(self, local_launcher, recorder):
        """Test launch logs and returns a logging executor."""
        launcher = VerboseLauncher(local_launcher, logf=recorder)
        exe = await launcher.launch("true")

        assert isinstance(exe, VerboseExecutor)
        assert exe.command == "true"
        assert recorder.lines == ["[local] Launching command [true]"]

    @pytest.mark.asyncio
    async def test_harness_lifecycle_logged(self, local_launcher, recorder):
        """Test a harness run logs launch, start and wait in order."""
        await run_cmd(VerboseLauncher(local_launcher, logf=recorder), "true")

        assert recorder.lines == [
            "[local] Launching command [true]",
            "[local] Starting command [true]",
            "[local] Waiting for command [true]",
        ]

    @pytest.mark.asyncio
    async def test_wait_failure_logged(self, local_launcher, recorder):
        """Test a failing wait is logged and still raised."""
        with pytest.raises(CommandError):
            await run_cmd(VerboseLauncher(local_launcher, logf=recorder), "false")

        assert recorder.lines[-1] == "[local] Command [false] failed: cmd local{false}: exit status 1"

    @pytest.mark.asyncio
    async def test_run_logged(self, local_launcher, recorder):
        """Test run logs once and delegates the whole lifecycle."""
        exe = await VerboseLauncher(local_launcher, logf=recorder).launch("exit 2")

        with pytest.raises(ProcessExitError):
            await exe.run()

        assert recorder.lines == [
            "[local] Launching command [exit 2]",
            "[local] Running command [exit 2]",
            "[local] Command [exit 2] failed: cmd local{exit 2}: exit status 2",
        ]

    @pytest.mark.asyncio
    async def test_kill_logged(self, local_launcher, recorder):
        """Test kill is logged before it is delegated."""
        exe = await VerboseLauncher(local_launcher, logf=recorder).launch("sleep 30")
        await exe.start()
        await exe.kill()
        with pytest.raises(ProcessExitError):
            await exe.wait()

        assert "[local] Killing command [sleep 30]" in recorder.lines

    @pytest.mark.asyncio
    async def test_close_logged(self, local_launcher, recorder):
        """Test close logs before and after."""
        await VerboseLauncher(local_launcher, logf=recorder).close()
        assert recorder.lines == ["[local] Closing", "[local] Close returned None"]

    @pytest.mark.asyncio
    async def test_default_hook_uses_logging(self, local_launcher, caplog):
        """Test the default hook writes to the module logger at INFO."""
        with caplog.at_level(logging.INFO, logger="shellpipe.execution.verbose"):
            await run_cmd(VerboseLauncher(local_launcher), "true")

        assert "[local] Launching command [true]" in caplog.messages
