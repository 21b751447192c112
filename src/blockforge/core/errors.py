"""
BlockForge error types.

Every failure carries enough context (command line, exit code and
captured output) for an operator to diagnose a privileged command
without re-running it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from blockforge.platform.base import CommandResult


class BlockForgeError(Exception):
    """Base class for all BlockForge errors."""


class ExecutionError(BlockForgeError):
    """A command exited non-zero, was killed, or could not be started."""

    def __init__(self, result: CommandResult) -> None:
        self.result = result
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.result.timeout:
            status = "terminated without exit code"
        else:
            status = f"exited with code {self.result.code}"
        message = f"Command {status}: {self.result.command_line}"
        detail = (self.result.stderr or self.result.stdout).strip()
        if detail:
            message = f"{message}: {detail[:500]}"
        return message

    @property
    def code(self) -> int | None:
        return self.result.code

    @property
    def stdout(self) -> str:
        return self.result.stdout

    @property
    def stderr(self) -> str:
        return self.result.stderr

    @property
    def timeout(self) -> bool:
        return self.result.timeout

    @property
    def command_line(self) -> str:
        return self.result.command_line


class TopologyError(BlockForgeError):
    """
    A device topology or device-mapper query failed.

    When the failure came from a command, ``result`` holds its captured
    output and the ``ExecutionError`` is chained as ``__cause__``.
    """

    def __init__(self, message: str, result: CommandResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class ParseError(TopologyError):
    """Command output did not have the expected structure."""

    def __init__(
        self,
        message: str,
        output: str = "",
        result: CommandResult | None = None,
    ) -> None:
        super().__init__(message, result)
        self.output = output[:500]


class ResolutionError(TopologyError):
    """A query found no matching device where one was expected."""


class UnsupportedOperationError(BlockForgeError):
    """No known handler exists for the filesystem type and operation."""

    def __init__(self, operation: str, fstype: str) -> None:
        super().__init__(f"Unsupported {operation} operation for filesystem: {fstype}")
        self.operation = operation
        self.fstype = fstype
