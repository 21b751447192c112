"""
Linux Platform Backend Implementation.

Composes the command executor, topology resolver, device-mapper matcher
and filesystem dispatcher behind a single storage-primitive interface.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from pathlib import Path

from blockforge.core.config import BlockForgeConfig
from blockforge.core.errors import ExecutionError, ResolutionError
from blockforge.core.logging import OperationLogger, get_logger
from blockforge.core.models import DEVICE_MAPPER_MARKER, BlockDevice
from blockforge.platform.base import CommandResult, PlatformBackend
from blockforge.platform.linux.executor import CommandExecutor
from blockforge.platform.linux.filesystems import FilesystemOperations
from blockforge.platform.linux.mapper import DeviceMapperResolver
from blockforge.platform.linux.topology import DeviceTopology

logger = get_logger(__name__)

LINUX_PARTITION_TYPE = "0FC63DAF-8483-4772-8E79-3D69D8477DE4"


class LinuxBackend(PlatformBackend):
    """Linux implementation of the storage primitives."""

    # Tool paths (can be overridden for testing)
    SFDISK = "sfdisk"
    MULTIPATH = "multipath"
    TEE = "tee"
    STAT = "stat"
    LN = "ln"
    RM = "rm"
    TOUCH = "touch"
    DIRNAME = "dirname"
    MKDIR = "mkdir"
    RMDIR = "rmdir"

    def __init__(
        self,
        config: BlockForgeConfig | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.config = config or BlockForgeConfig()
        self.executor = executor or CommandExecutor(self.config.execution)
        self.topology = DeviceTopology(self.executor, self.config.topology)
        self.mapper = DeviceMapperResolver(self.executor, self.topology, self.config.topology)
        self.filesystems = FilesystemOperations(self.executor)

    @property
    def name(self) -> str:
        return "linux"

    def is_admin(self) -> bool:
        return os.geteuid() == 0

    def run_command(
        self, command: str, args: Sequence[str] | None = None, input: str | None = None
    ) -> CommandResult:
        """Run an arbitrary command through the configured executor."""
        return self.executor.execute(command, args, input=input)

    # ==================== Topology ====================

    def list_block_devices(self) -> list[BlockDevice]:
        return self.topology.list_all_devices()

    def get_block_device(self, device: str) -> BlockDevice:
        return self.topology.describe_device(device)

    def realpath(self, path: str) -> str:
        return self.topology.canonicalize(path)

    def is_block_device(self, device: str) -> bool:
        return self.topology.is_block_device(device)

    def get_block_device_parent(self, device: str) -> BlockDevice:
        return self.topology.get_parent(device)

    def get_largest_partition(self, device: str) -> str | None:
        partition = self.topology.largest_partition(device)
        return partition.path if partition else None

    def get_partition_count(self, device: str) -> int:
        return self.topology.partition_count(device)

    def device_is_formatted(self, device: str) -> bool:
        return self.topology.is_formatted(device)

    def device_is_iscsi(self, device: str) -> bool:
        return self.topology.is_iscsi(device)

    def get_filesystem_info(self, device: str) -> dict[str, str]:
        return self.topology.get_filesystem_info(device)

    # ==================== Device Mapper ====================

    def is_device_mapper_device(self, device: str) -> bool:
        return self.mapper.is_device_mapper_device(device)

    def is_device_mapper_slave_device(self, device: str) -> bool:
        return self.mapper.is_device_mapper_slave_device(device)

    def get_all_device_mapper_devices(self) -> list[str]:
        return self.mapper.all_mapper_devices()

    def get_all_device_mapper_slave_devices(self) -> list[str]:
        return self.mapper.all_slave_devices()

    def get_device_mapper_device_slaves(self, device: str) -> list[str]:
        return sorted(self.mapper.slaves_of(device))

    def get_device_mapper_device_from_slaves(
        self, slaves: Iterable[str], match_all: bool = True
    ) -> str | None:
        return self.mapper.find_mapper_device_for_slaves(slaves, match_all=match_all)

    # ==================== Filesystem Operations ====================

    def format_device(
        self, device: str, fstype: str, options: list[str] | None = None
    ) -> CommandResult:
        return self.filesystems.format_device(device, fstype, options)

    def check_filesystem(
        self,
        device: str,
        fstype: str,
        options: list[str] | None = None,
        fs_options: list[str] | None = None,
    ) -> CommandResult:
        return self.filesystems.check_filesystem(device, fstype, options, fs_options)

    def expand_filesystem(
        self, device: str, fstype: str, options: list[str] | None = None
    ) -> CommandResult | None:
        return self.filesystems.expand_filesystem(device, fstype, options)

    # ==================== Device Operations ====================

    def partition_device(
        self,
        device: str,
        label: str = "gpt",
        partition_type: str = LINUX_PARTITION_TYPE,
    ) -> None:
        """
        Write a partition table with one partition spanning the device.

        Common types: 0FC63DAF-... linux, EBD0A0A2-... ntfs, C12A7328-... EFI.
        """
        with OperationLogger("partition", logger, device=device, label=label):
            self.executor.execute(self.SFDISK, [device], input=f"label: {label}\n")
            self.executor.execute(self.SFDISK, [device], input=f"type={partition_type}\n")

    def rescan_device(self, device: str) -> None:
        """
        Make the kernel pick up a changed device size.

        Device-mapper devices are reloaded with multipath. Other devices
        get ``1`` written to their sysfs rescan file; devices without one
        (node-local disks) are skipped.
        """
        if not self.is_block_device(device):
            raise ResolutionError(
                f"cannot rescan device {device} because it is not a block device"
            )

        device_name = Path(self.realpath(device)).name

        with OperationLogger("rescan", logger, device=device):
            if DEVICE_MAPPER_MARKER in device_name:
                self.executor.execute(self.MULTIPATH, ["-r", device])
                return

            sys_file = self.config.topology.sys_block_directory / device_name / "device" / "rescan"
            if not self.path_exists(str(sys_file)):
                logger.debug("Device has no rescan control file, skipping", device=device)
                return
            self.executor.execute(self.TEE, [str(sys_file)], input="1")

    # ==================== Path Helpers ====================

    def symlink(self, target: str, link: str, options: Sequence[str] | None = None) -> None:
        self.executor.execute(self.LN, ["-s", *(options or []), target, link])

    def rm(self, options: Sequence[str]) -> None:
        self.executor.execute(self.RM, list(options))

    def touch(self, path: str, options: Sequence[str] | None = None) -> None:
        self.executor.execute(self.TOUCH, [*(options or []), path])

    def dirname(self, path: str) -> str:
        return self.executor.execute(self.DIRNAME, [path]).stdout.strip()

    def mkdir(self, path: str, options: Sequence[str] | None = None) -> bool:
        self.executor.execute(self.MKDIR, [*(options or []), path])
        return True

    def rmdir(self, path: str, options: Sequence[str] | None = None) -> bool:
        self.executor.execute(self.RMDIR, [*(options or []), path])
        return True

    def path_exists(self, path: str) -> bool:
        """Check a path with stat, so sudo-only paths are visible too."""
        try:
            self.executor.execute(self.STAT, [path])
        except ExecutionError:
            return False
        return True
