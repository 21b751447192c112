"""
BlockForge data models.

Defines the block device tree and device-mapper mapping structures.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


PARTITION_TYPE = "part"
DEVICE_MAPPER_MARKER = "dm-"


class FileSystem(Enum):
    """File system types with known format/check/expand recipes."""

    BTRFS = "btrfs"
    EXT3 = "ext3"
    EXT4 = "ext4"
    EXT4DEV = "ext4dev"
    XFS = "xfs"
    NTFS = "ntfs"
    VFAT = "vfat"
    EXFAT = "exfat"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str | None) -> FileSystem:
        """Create FileSystem from string value."""
        if not value:
            return cls.UNKNOWN
        value_lower = value.lower().strip()
        for fs in cls:
            if fs.value == value_lower:
                return fs
        aliases = {
            "fat": cls.VFAT,
            "fat32": cls.VFAT,
            "ntfs3": cls.NTFS,
        }
        return aliases.get(value_lower, cls.UNKNOWN)

    @property
    def is_ext(self) -> bool:
        return self in (FileSystem.EXT3, FileSystem.EXT4, FileSystem.EXT4DEV)


@dataclass
class BlockDevice:
    """
    One node of the block device tree as reported by lsblk.

    Children keep listing order. Instances are built fresh for every
    query and never cached, since hot-plug and repartitioning change
    the topology between calls.
    """

    path: str
    kname: str
    pkname: str = ""
    fstype: str | None = None
    size_bytes: int = 0
    type: str = ""
    transport: str = ""
    children: list[BlockDevice] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_partition(self) -> bool:
        return self.type == PARTITION_TYPE

    @property
    def is_root(self) -> bool:
        return not self.pkname

    @property
    def is_formatted(self) -> bool:
        return bool(self.fstype)

    @property
    def is_device_mapper(self) -> bool:
        return self.kname.startswith(DEVICE_MAPPER_MARKER)

    @property
    def partitions(self) -> list[BlockDevice]:
        """Direct children of partition type, in listing order."""
        return [child for child in self.children if child.is_partition]

    def walk(self) -> Iterator[BlockDevice]:
        """Yield this device and all descendants, depth first."""
        stack = [self]
        while stack:
            device = stack.pop()
            yield device
            stack.extend(reversed(device.children))

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "kname": self.kname,
            "pkname": self.pkname,
            "fstype": self.fstype,
            "size": self.size_bytes,
            "type": self.type,
            "tran": self.transport,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class DeviceMapperMapping:
    """A device-mapper composite and the real devices it aggregates."""

    device: str
    slaves: frozenset[str]

    def intersection(self, candidates: set[str] | frozenset[str]) -> frozenset[str]:
        return self.slaves & frozenset(candidates)

    def matches(self, candidates: set[str] | frozenset[str], match_all: bool = True) -> bool:
        """
        Check the candidate set against this composite's slaves.

        With ``match_all`` the slave set, the candidates and their
        intersection must all be the same size (set equality). Otherwise
        any overlap is enough.
        """
        common = self.intersection(candidates)
        if not match_all:
            return len(common) > 0
        return len(common) == len(self.slaves) == len(candidates)
