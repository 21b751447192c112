"""
Tests for blockforge.platform.linux.filesystems module.
"""

from typing import Any

import pytest

from blockforge.core.errors import ExecutionError, UnsupportedOperationError
from blockforge.platform.base import CommandResult
from blockforge.platform.linux.filesystems import FilesystemOperations
from blockforge.platform.linux.topology import DeviceTopology

SUPPORTED = ["btrfs", "ext3", "ext4", "ext4dev", "xfs", "ntfs", "vfat", "exfat"]


@pytest.fixture
def operations(fake_executor: Any) -> FilesystemOperations:
    return FilesystemOperations(fake_executor)


class TestFormatCommands:
    """mkfs command selection."""

    @pytest.mark.parametrize("fstype", ["btrfs", "ext4", "xfs", "ntfs", "exfat"])
    def test_mkfs_per_type(self, operations: FilesystemOperations, fstype: str) -> None:
        command, args = operations.build_format_command("/dev/sdb", fstype, ["-L", "data"])
        assert command == f"mkfs.{fstype}"
        assert args == ["-L", "data", "/dev/sdb"]

    def test_vfat_formats_whole_device(self, operations: FilesystemOperations) -> None:
        command, args = operations.build_format_command("/dev/sdb", "vfat")
        assert command == "mkfs.vfat"
        assert args == ["-I", "/dev/sdb"]

    def test_case_insensitive(self, operations: FilesystemOperations) -> None:
        command, _ = operations.build_format_command("/dev/sdb", "EXT4")
        assert command == "mkfs.ext4"

    def test_unknown_type(self, operations: FilesystemOperations) -> None:
        with pytest.raises(UnsupportedOperationError) as exc_info:
            operations.build_format_command("/dev/sdb", "zfs")
        assert exc_info.value.operation == "format"
        assert exc_info.value.fstype == "zfs"


class TestCheckCommands:
    """Checker selection."""

    def test_btrfs(self, operations: FilesystemOperations) -> None:
        assert operations.build_check_command("/dev/sdb", "btrfs", ["--readonly"]) == (
            "btrfs",
            ["--readonly", "check", "/dev/sdb"],
        )

    @pytest.mark.parametrize("fstype", ["ext3", "ext4", "ext4dev"])
    def test_ext(self, operations: FilesystemOperations, fstype: str) -> None:
        assert operations.build_check_command("/dev/sdb", fstype, ["-M"], ["-v"]) == (
            "fsck",
            ["-M", "/dev/sdb", "--", "-v", "-f", "-p"],
        )

    def test_ntfs(self, operations: FilesystemOperations) -> None:
        assert operations.build_check_command("/dev/sdb", "ntfs", ["-x"]) == ("ntfsfix", ["/dev/sdb"])

    def test_xfs(self, operations: FilesystemOperations) -> None:
        assert operations.build_check_command("/dev/sdb", "xfs", ["-n"]) == (
            "xfs_repair",
            ["-o", "force_geometry", "-n", "/dev/sdb"],
        )

    @pytest.mark.parametrize("fstype", ["vfat", "exfat", "zfs"])
    def test_generic_fallback(self, operations: FilesystemOperations, fstype: str) -> None:
        assert operations.build_check_command("/dev/sdb", fstype, ["-a"], ["-y"]) == (
            "fsck",
            ["-a", "/dev/sdb", "--", "-y"],
        )


class TestExpandCommands:
    """Resize tool selection."""

    def test_btrfs_ignores_options(self, operations: FilesystemOperations) -> None:
        assert operations.build_expand_command("/mnt/data", "btrfs", ["-x"]) == (
            "btrfs",
            ["filesystem", "resize", "max", "/mnt/data"],
        )

    def test_ext(self, operations: FilesystemOperations) -> None:
        assert operations.build_expand_command("/dev/sdb", "ext4", ["-p"]) == (
            "resize2fs",
            ["-p", "/dev/sdb"],
        )

    def test_ntfs(self, operations: FilesystemOperations) -> None:
        assert operations.build_expand_command("/dev/sdb", "ntfs", ["-f"]) == (
            "ntfsresize",
            ["-f", "/dev/sdb"],
        )

    def test_xfs(self, operations: FilesystemOperations) -> None:
        assert operations.build_expand_command("/mnt/data", "xfs") == ("xfs_growfs", ["/mnt/data"])

    def test_vfat(self, operations: FilesystemOperations) -> None:
        assert operations.build_expand_command("/dev/sdb", "vfat") == (
            "fatresize",
            ["-s", "max", "/dev/sdb"],
        )

    def test_exfat_has_no_resize(self, operations: FilesystemOperations) -> None:
        assert operations.build_expand_command("/dev/sdb", "exfat") is None

    def test_unknown_type(self, operations: FilesystemOperations) -> None:
        with pytest.raises(UnsupportedOperationError):
            operations.build_expand_command("/dev/sdb", "zfs")


class TestOperations:
    """Running operations through the executor."""

    def test_format_runs_mkfs(self, operations: FilesystemOperations, fake_executor: Any) -> None:
        fake_executor.respond("mkfs.xfs", "meta-data=/dev/sdb\n")

        result = operations.format_device("/dev/sdb", "xfs", ["-f"])

        assert result.stdout == "meta-data=/dev/sdb\n"
        assert fake_executor.calls == [("mkfs.xfs", ["-f", "/dev/sdb"], None)]

    def test_format_failure_propagates(self, operations: FilesystemOperations, fake_executor: Any) -> None:
        fake_executor.respond("mkfs.ext4", "", code=1, stderr="/dev/sdb is mounted")

        with pytest.raises(ExecutionError) as exc_info:
            operations.format_device("/dev/sdb", "ext4")
        assert exc_info.value.stderr == "/dev/sdb is mounted"

    def test_check_runs_checker(self, operations: FilesystemOperations, fake_executor: Any) -> None:
        fake_executor.respond("fsck")
        operations.check_filesystem("/dev/sdb", "ext4")
        assert fake_executor.calls == [("fsck", ["/dev/sdb", "--", "-f", "-p"], None)]

    def test_check_unclean_exit(self, operations: FilesystemOperations, fake_executor: Any) -> None:
        fake_executor.respond("xfs_repair", "", code=1)
        with pytest.raises(ExecutionError) as exc_info:
            operations.check_filesystem("/dev/sdb", "xfs")
        assert exc_info.value.code == 1

    def test_expand_runs_resizer(self, operations: FilesystemOperations, fake_executor: Any) -> None:
        fake_executor.respond("resize2fs")
        result = operations.expand_filesystem("/dev/sdb", "ext4")
        assert result is not None
        assert fake_executor.commands() == ["resize2fs"]

    def test_expand_exfat_is_noop(self, operations: FilesystemOperations, fake_executor: Any) -> None:
        assert operations.expand_filesystem("/dev/sdb", "exfat") is None
        assert fake_executor.calls == []

    def test_unsupported_runs_nothing(self, operations: FilesystemOperations, fake_executor: Any) -> None:
        with pytest.raises(UnsupportedOperationError):
            operations.format_device("/dev/sdb", "zfs")
        assert fake_executor.calls == []


@pytest.mark.parametrize("fstype", SUPPORTED)
def test_format_then_probe_reports_requested_type(fake_executor: Any, fstype: str) -> None:
    formatted: dict[str, str] = {}

    def mkfs(args: list[str], input: str | None) -> CommandResult:
        formatted[args[-1]] = fstype
        return CommandResult((f"mkfs.{fstype}", *args), 0, "", "")

    def blkid(args: list[str], input: str | None) -> CommandResult:
        device = args[-1]
        return CommandResult(("blkid", *args), 0, f"DEVNAME={device}\nTYPE={formatted[device]}\n", "")

    fake_executor.on(f"mkfs.{fstype}", mkfs)
    fake_executor.on("blkid", blkid)

    FilesystemOperations(fake_executor).format_device("/dev/sdd", fstype)
    info = DeviceTopology(fake_executor).get_filesystem_info("/dev/sdd")

    assert info["type"] == fstype
