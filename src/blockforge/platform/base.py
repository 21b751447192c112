"""
BlockForge Platform Backend Base.

Defines the command result type and the abstract interface for
platform-specific storage primitives.
"""

from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from blockforge.core.models import BlockDevice


@dataclass(frozen=True)
class CommandResult:
    """
    Result of a command execution.

    ``code`` is None when the process ended without an exit code (killed
    by a signal or by a timeout); ``timeout`` is then True.
    """

    command: tuple[str, ...]
    code: int | None
    stdout: str
    stderr: str
    timeout: bool = False
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.code == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.command)

    def __repr__(self) -> str:
        return f"CommandResult(code={self.code}, timeout={self.timeout}, cmd='{self.command_line[:50]}')"


class PlatformBackend(ABC):
    """Abstract base class for platform-specific storage operations."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Platform name (e.g., 'linux')."""

    @abstractmethod
    def is_admin(self) -> bool:
        """Check if running with admin privileges."""

    # ==================== Topology ====================

    @abstractmethod
    def list_block_devices(self) -> list[BlockDevice]:
        """List all block devices as a tree of root nodes."""

    @abstractmethod
    def get_block_device(self, device: str) -> BlockDevice:
        """Describe a single block device."""

    @abstractmethod
    def realpath(self, path: str) -> str:
        """Resolve a path to its canonical form."""

    @abstractmethod
    def is_block_device(self, device: str) -> bool:
        """Check whether a path refers to a known block device."""

    # ==================== Filesystem Operations ====================

    @abstractmethod
    def format_device(
        self, device: str, fstype: str, options: list[str] | None = None
    ) -> CommandResult:
        """Create a filesystem on a device."""

    @abstractmethod
    def check_filesystem(
        self,
        device: str,
        fstype: str,
        options: list[str] | None = None,
        fs_options: list[str] | None = None,
    ) -> CommandResult:
        """Check (and where the tool does so, repair) a filesystem."""

    @abstractmethod
    def expand_filesystem(
        self, device: str, fstype: str, options: list[str] | None = None
    ) -> CommandResult | None:
        """Grow a filesystem to fill its device."""

    @abstractmethod
    def rescan_device(self, device: str) -> None:
        """Ask the kernel to re-read a device's size."""
