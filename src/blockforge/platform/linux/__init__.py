"""
BlockForge Linux Platform Backend.

Implements storage primitives using standard Linux tools:
- lsblk, blkid, realpath for topology
- /dev/mapper and /sys/block for device-mapper slave sets
- sfdisk for partitioning
- mkfs.*, fsck, xfs_repair, ntfsfix for format and check
- resize2fs, xfs_growfs, btrfs, ntfsresize, fatresize for expansion
"""

from blockforge.platform.linux.backend import LinuxBackend
from blockforge.platform.linux.executor import CommandExecutor
from blockforge.platform.linux.filesystems import FilesystemOperations
from blockforge.platform.linux.mapper import DeviceMapperResolver
from blockforge.platform.linux.parsers import (
    parse_blkid_export,
    parse_lsblk_json,
    parse_mapper_listing,
)
from blockforge.platform.linux.topology import DeviceTopology

__all__ = [
    "LinuxBackend",
    "CommandExecutor",
    "DeviceTopology",
    "DeviceMapperResolver",
    "FilesystemOperations",
    "parse_lsblk_json",
    "parse_blkid_export",
    "parse_mapper_listing",
]
