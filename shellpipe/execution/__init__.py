"""Command execution: local and SSH launchers, the harness and two-stage pipes.

Every backend implements the same Launcher/Executor contract, so the harness
and the pipe orchestrator do not care where a command runs.

Usage:
    from shellpipe.execution import (
        Launchable,
        LocalLauncher,
        SSHConfig,
        SSHLauncher,
        pipe,
        run_cmd_capture,
    )

    # Single command
    local = LocalLauncher()
    stdout, stderr = await run_cmd_capture(local, "uname -a")

    # Remote source piped into a local sink
    async with SSHLauncher(SSHConfig(host="worker-1", user="deploy")) as remote:
        result = await pipe(
            Launchable(remote, "cat /var/log/syslog"),
            Launchable(local, "grep -c error"),
        )
    if result.success:
        print(result.sink_stdout)
    else:
        print(f"Failed: {result.error}")
"""

from shellpipe.errors import (
    CommandError,
    EndpointClosedError,
    EndpointError,
    ExecutionError,
    ExecutorStateError,
    LaunchError,
    MultiError,
    PipeStageError,
    ProcessExitError,
    SetupError,
    StartError,
    StreamError,
    join_errors,
)
from shellpipe.execution.base import (
    Executor,
    ExecutorState,
    Launchable,
    Launcher,
    SubprocessExecutor,
)
from shellpipe.execution.harness import (
    run_cmd,
    run_cmd_capture,
    run_cmd_with_input,
    run_cmd_with_input_capture,
)
from shellpipe.execution.local import LocalExecutor, LocalLauncher
from shellpipe.execution.pipe import PipeResult, pipe
from shellpipe.execution.ssh import SSHConfig, SSHExecutor, SSHLauncher, open_ssh_launcher
from shellpipe.execution.streams import InputEndpoint, OutputEndpoint
from shellpipe.execution.verbose import VerboseExecutor, VerboseLauncher

__all__ = [
    # Contracts
    "Executor",
    "ExecutorState",
    "Launchable",
    "Launcher",
    "SubprocessExecutor",
    "InputEndpoint",
    "OutputEndpoint",
    # Backends
    "LocalExecutor",
    "LocalLauncher",
    "SSHConfig",
    "SSHExecutor",
    "SSHLauncher",
    "open_ssh_launcher",
    "VerboseExecutor",
    "VerboseLauncher",
    # Engine
    "run_cmd",
    "run_cmd_with_input",
    "run_cmd_capture",
    "run_cmd_with_input_capture",
    "PipeResult",
    "pipe",
    # Errors
    "ExecutionError",
    "ExecutorStateError",
    "SetupError",
    "LaunchError",
    "EndpointError",
    "StartError",
    "StreamError",
    "EndpointClosedError",
    "ProcessExitError",
    "CommandError",
    "PipeStageError",
    "MultiError",
    "join_errors",
]
