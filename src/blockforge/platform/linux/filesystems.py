"""
Filesystem operation dispatcher.

Selects the tool and argument convention to format, check or expand a
filesystem of a given type. The recipes are a static table; there is no
topology logic here.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from blockforge.core.errors import UnsupportedOperationError
from blockforge.core.logging import OperationLogger, get_logger
from blockforge.core.models import FileSystem
from blockforge.platform.base import CommandResult

if TYPE_CHECKING:
    from blockforge.platform.linux.executor import CommandExecutor

logger = get_logger(__name__)

Command = tuple[str, list[str]]


class FilesystemOperations:
    """Format, check and expand filesystems through their native tools."""

    # Check/repair tools
    FSCK = "fsck"
    BTRFS = "btrfs"
    XFS_REPAIR = "xfs_repair"
    NTFSFIX = "ntfsfix"

    # Resize tools
    RESIZE2FS = "resize2fs"
    XFS_GROWFS = "xfs_growfs"
    NTFSRESIZE = "ntfsresize"
    FATRESIZE = "fatresize"

    MKFS_PREFIX = "mkfs."

    def __init__(self, executor: CommandExecutor) -> None:
        self.executor = executor

    # ==================== Command Builders ====================

    def build_format_command(
        self, device: str, fstype: str, options: Sequence[str] | None = None
    ) -> Command:
        """mkfs.<fstype> [<options>] <device>"""
        filesystem = FileSystem.from_string(fstype)
        if filesystem == FileSystem.UNKNOWN:
            raise UnsupportedOperationError("format", fstype)

        args = list(options or [])
        if filesystem == FileSystem.VFAT:
            # allow formatting a whole device without a partition table
            args.append("-I")
        args.append(device)
        return f"{self.MKFS_PREFIX}{filesystem.value}", args

    def build_check_command(
        self,
        device: str,
        fstype: str,
        options: Sequence[str] | None = None,
        fs_options: Sequence[str] | None = None,
    ) -> Command:
        """
        Build the check command for a filesystem type.

        Unknown types fall back to ``fsck [<options>] <device> -- [<fs_options>]``.
        """
        filesystem = FileSystem.from_string(fstype)
        options = list(options or [])
        fs_options = list(fs_options or [])

        if filesystem == FileSystem.BTRFS:
            return self.BTRFS, [*options, "check", device]

        if filesystem.is_ext:
            # -f: force a check, -p: repair without questions
            return self.FSCK, [*options, device, "--", *fs_options, "-f", "-p"]

        if filesystem == FileSystem.NTFS:
            return self.NTFSFIX, [device]

        if filesystem == FileSystem.XFS:
            return self.XFS_REPAIR, ["-o", "force_geometry", *options, device]

        return self.FSCK, [*options, device, "--", *fs_options]

    def build_expand_command(
        self, device: str, fstype: str, options: Sequence[str] | None = None
    ) -> Command | None:
        """
        Build the grow-to-fill command for a filesystem type.

        btrfs and xfs expect a mounted path; ntfs and vfat must be
        unmounted. Returns None for exfat, which has no resize tool.
        """
        filesystem = FileSystem.from_string(fstype)
        options = list(options or [])

        if filesystem == FileSystem.BTRFS:
            return self.BTRFS, ["filesystem", "resize", "max", device]

        if filesystem == FileSystem.EXFAT:
            return None

        if filesystem.is_ext:
            return self.RESIZE2FS, [*options, device]

        if filesystem == FileSystem.NTFS:
            return self.NTFSRESIZE, [*options, device]

        if filesystem == FileSystem.XFS:
            return self.XFS_GROWFS, [*options, device]

        if filesystem == FileSystem.VFAT:
            return self.FATRESIZE, [*options, "-s", "max", device]

        raise UnsupportedOperationError("expand", fstype)

    # ==================== Operations ====================

    def format_device(
        self, device: str, fstype: str, options: Sequence[str] | None = None
    ) -> CommandResult:
        command, args = self.build_format_command(device, fstype, options)
        with OperationLogger("format", logger, device=device, fstype=fstype):
            return self.executor.execute(command, args)

    def check_filesystem(
        self,
        device: str,
        fstype: str,
        options: Sequence[str] | None = None,
        fs_options: Sequence[str] | None = None,
    ) -> CommandResult:
        command, args = self.build_check_command(device, fstype, options, fs_options)
        with OperationLogger("filesystem check", logger, device=device, fstype=fstype):
            return self.executor.execute(command, args)

    def expand_filesystem(
        self, device: str, fstype: str, options: Sequence[str] | None = None
    ) -> CommandResult | None:
        built = self.build_expand_command(device, fstype, options)
        if built is None:
            logger.info("Filesystem cannot be expanded, skipping", device=device, fstype=fstype)
            return None

        command, args = built
        with OperationLogger("filesystem expand", logger, device=device, fstype=fstype):
            return self.executor.execute(command, args)
