#!/usr/bin/env python3
"""Run a command, or a two-stage pipe, locally or over SSH.

Each side runs on a location: ``local`` (the default) or
``ssh://[user@]host[:port]``. Remote launchers open one multiplexed ssh
connection that every command on that host reuses.

Usage:
    # Single local command
    python scripts/run_pipe.py "uname -a"

    # Single remote command with input on stdin
    python scripts/run_pipe.py --on ssh://deploy@worker-1 --input "hello" "cat"

    # Remote source piped into a local sink
    python scripts/run_pipe.py --on ssh://worker-1 "tar czf - /var/log" --into "tar tzf -"

    # Log every launcher/executor operation
    python scripts/run_pipe.py -v "printf %s payload" --into "cat"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add repository root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from shellpipe.config import ExecutionConfig, load_execution_config
from shellpipe.errors import CommandError, ExecutionError
from shellpipe.execution import (
    Launchable,
    Launcher,
    LocalLauncher,
    SSHConfig,
    SSHLauncher,
    VerboseLauncher,
    pipe,
    run_cmd_capture,
    run_cmd_with_input_capture,
)

logger = logging.getLogger(__name__)

LOCAL = "local"


async def build_launcher(
    location: str,
    config: ExecutionConfig,
    key_path: str | None,
    verbose: bool,
) -> Launcher:
    """Create (and for ssh, connect) the launcher for one location."""
    if location == LOCAL:
        launcher: Launcher = LocalLauncher(config)
    else:
        ssh_launcher = SSHLauncher(SSHConfig.from_url(location, key_path=key_path), config)
        await ssh_launcher.connect()
        launcher = ssh_launcher
    if verbose:
        launcher = VerboseLauncher(launcher)
    return launcher


async def run_single(launcher: Launcher, command: str, input_text: str | None) -> int:
    try:
        if input_text is None:
            stdout, stderr = await run_cmd_capture(launcher, command)
        else:
            stdout, stderr = await run_cmd_with_input_capture(launcher, command, input_text)
    except CommandError as e:
        sys.stdout.write(e.stdout)
        sys.stderr.write(e.stderr)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except ExecutionError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    sys.stdout.write(stdout)
    sys.stderr.write(stderr)
    return 0


async def run_two_stage(source: Launchable, sink: Launchable) -> int:
    result = await pipe(source, sink)
    sys.stdout.write(result.sink_stdout)
    sys.stderr.write(result.source_stderr)
    sys.stderr.write(result.sink_stderr)
    if not result.success:
        print(f"error: {result.error}", file=sys.stderr)
        return 1
    return 0


async def main() -> int:
    """Run one command or a source/sink pipe."""
    parser = argparse.ArgumentParser(
        description="Run a shell command, or pipe two commands, locally or over SSH",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("command", help="Command to run (the pipe source with --into)")
    parser.add_argument(
        "--on",
        default=LOCAL,
        metavar="LOCATION",
        help="Where the command runs: local or ssh://[user@]host[:port] (default: local)",
    )
    parser.add_argument(
        "--into",
        metavar="COMMAND",
        help="Pipe the command's stdout into this command",
    )
    parser.add_argument(
        "--into-on",
        default=LOCAL,
        metavar="LOCATION",
        help="Where the --into command runs (default: local)",
    )
    parser.add_argument(
        "--input",
        metavar="TEXT",
        help="Text fed to the command's stdin (single command only)",
    )
    parser.add_argument("--key", metavar="PATH", help="SSH private key for remote locations")
    parser.add_argument("--config", metavar="PATH", help="YAML config file (execution: section)")
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every launcher and command operation",
    )
    args = parser.parse_args()

    if args.input is not None and args.into:
        parser.error("--input cannot be combined with --into")

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_execution_config(args.config)
    except (OSError, ValueError) as e:
        print(f"error: cannot load config: {e}", file=sys.stderr)
        return 1

    # One launcher per distinct location so both sides can share a connection
    launchers: dict[str, Launcher] = {}
    try:
        locations = [args.on] + ([args.into_on] if args.into else [])
        for location in locations:
            if location not in launchers:
                launchers[location] = await build_launcher(
                    location, config, args.key, args.verbose
                )

        if not args.into:
            return await run_single(launchers[args.on], args.command, args.input)
        return await run_two_stage(
            Launchable(launchers[args.on], args.command),
            Launchable(launchers[args.into_on], args.into),
        )
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except ExecutionError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        for launcher in launchers.values():
            try:
                await launcher.close()
            except ExecutionError as e:
                logger.warning(f"[run_pipe] {e}")


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
