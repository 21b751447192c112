"""
Command execution engine.

Runs one external process per call, optionally behind sudo, feeds an
optional payload on stdin and classifies the outcome:

- exit code 0: success, the CommandResult is returned
- non-zero exit code: ExecutionError with code and captured output
- no exit code (signal or timeout): ExecutionError with code None and
  timeout set

There is no retry logic here; format and check tools are not safe to
retry blindly.
"""

from __future__ import annotations

import os
import shlex
import signal
import subprocess
import time
from collections.abc import Callable, Sequence
from typing import Any

from blockforge.core.config import ExecutionConfig
from blockforge.core.errors import ExecutionError
from blockforge.core.logging import get_logger
from blockforge.platform.base import CommandResult

logger = get_logger(__name__)

Spawner = Callable[..., Any]

# Shell convention for "command not found / not executable".
SPAWN_FAILURE_CODE = 127

# Upper bound on collecting output once a timed-out process is killed.
KILL_DRAIN_SECONDS = 2.0


class CommandExecutor:
    """Runs storage utilities and returns structured results."""

    def __init__(
        self,
        config: ExecutionConfig | None = None,
        spawn: Spawner = subprocess.Popen,
    ) -> None:
        self.config = config or ExecutionConfig()
        self.spawn = spawn

    def build_argv(self, command: str, args: Sequence[str] | None = None) -> list[str]:
        """Compose the argument vector, prefixing sudo when configured."""
        argv = [command, *(str(arg) for arg in args or [])]
        if self.config.sudo:
            argv.insert(0, str(self.config.sudo_path))
        return argv

    @staticmethod
    def render_command_line(argv: Sequence[str], input: str | None = None) -> str:
        """Render a command line for logs, with any stdin payload inline."""
        command_line = shlex.join(argv)
        if input:
            payload = input.replace("\n", "\\n")
            command_line = f"echo '{payload}' | {command_line}"
        return command_line

    def _build_env(self, env: dict[str, str] | None) -> dict[str, str] | None:
        overrides = {**self.config.environment, **(env or {})}
        if not overrides:
            return None
        return {**os.environ, **overrides}

    def execute(
        self,
        command: str,
        args: Sequence[str] | None = None,
        *,
        input: str | None = None,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        cwd: str | os.PathLike[str] | None = None,
    ) -> CommandResult:
        """
        Run a command to completion.

        ``input`` is written to stdin once the process has been spawned,
        then stdin is closed. stdout and stderr are drained concurrently
        so a child blocked on a full pipe cannot deadlock us.

        Raises ExecutionError unless the process exits with code 0.
        """
        argv = self.build_argv(command, args)
        if timeout is None:
            timeout = self.config.default_timeout_seconds
        if cwd is None:
            cwd = self.config.working_directory

        logger.info(
            "Executing command",
            command_line=self.render_command_line(argv, input),
        )
        start_time = time.monotonic()

        try:
            process = self.spawn(
                argv,
                stdin=subprocess.PIPE if input is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self._build_env(env),
                cwd=cwd,
                # own process group, so a timeout can kill sudo and its tool together
                start_new_session=True,
            )
        except OSError as e:
            result = CommandResult(
                command=tuple(argv),
                code=SPAWN_FAILURE_CODE,
                stdout="",
                stderr=str(e),
                duration_seconds=time.monotonic() - start_time,
            )
            self._log_failure(result)
            raise ExecutionError(result) from e

        timed_out = False
        try:
            stdout, stderr = process.communicate(input=input, timeout=timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            stdout, stderr = self._kill(process)

        returncode = process.returncode
        killed = timed_out or returncode is None or returncode < 0

        result = CommandResult(
            command=tuple(argv),
            code=None if killed else returncode,
            stdout=stdout or "",
            stderr=stderr or "",
            timeout=killed,
            duration_seconds=time.monotonic() - start_time,
        )

        if not result.success:
            self._log_failure(result)
            raise ExecutionError(result)

        return result

    def _kill(self, process: Any) -> tuple[str, str]:
        """
        Kill a timed-out process group and collect what it printed.

        Grandchildren that escaped the group may still hold the pipes
        open; the drain gives up after KILL_DRAIN_SECONDS either way.
        """
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            process.kill()

        try:
            return process.communicate(timeout=KILL_DRAIN_SECONDS)
        except subprocess.TimeoutExpired:
            logger.warning("Output still open after kill, abandoning drain", pid=process.pid)
            for stream in (process.stdin, process.stdout, process.stderr):
                if stream is not None:
                    stream.close()
            return "", ""

    def _log_failure(self, result: CommandResult) -> None:
        logger.warning(
            "Command failed",
            command_line=result.command_line,
            code=result.code,
            timeout=result.timeout,
            stdout=result.stdout,
            stderr=result.stderr,
            duration_seconds=result.duration_seconds,
        )
