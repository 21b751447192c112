"""
Device topology resolver.

Builds BlockDevice trees from lsblk and answers relationship queries:
canonical paths, parent chains, partitions and transports. Nothing is
cached; every query lists devices afresh.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

from blockforge.core.config import TopologyConfig
from blockforge.core.errors import ExecutionError, ParseError, ResolutionError, TopologyError
from blockforge.core.logging import get_logger
from blockforge.core.models import BlockDevice
from blockforge.platform.base import CommandResult
from blockforge.platform.linux.parsers import (
    device_path_for,
    parse_blkid_export,
    parse_lsblk_json,
    parse_realpath_output,
)

if TYPE_CHECKING:
    from blockforge.platform.linux.executor import CommandExecutor

logger = get_logger(__name__)


def is_local_device_path(path: str) -> bool:
    """NFS (``host:/export``) and SMB (``//host/share``) paths are never block devices."""
    return path.startswith("/") and not path.startswith("//")


class DeviceTopology:
    """Queries over the host's block device tree."""

    LSBLK = "lsblk"
    BLKID = "blkid"
    REALPATH = "realpath"

    # all devices, sizes in bytes, JSON, every column
    LSBLK_ARGS = ["-a", "-b", "-J", "-O"]

    ISCSI_TRANSPORT = "iscsi"

    def __init__(
        self,
        executor: CommandExecutor,
        config: TopologyConfig | None = None,
    ) -> None:
        self.executor = executor
        self.config = config or TopologyConfig()

    def _run(self, command: str, args: Sequence[str], purpose: str) -> CommandResult:
        try:
            return self.executor.execute(command, list(args))
        except ExecutionError as e:
            raise TopologyError(f"Failed to {purpose}: {e}", result=e.result) from e

    # ==================== Paths ====================

    def canonicalize(self, path: str) -> str:
        """Resolve symlinks and relative segments to an absolute path."""
        return self.canonicalize_many([path])[0]

    def canonicalize_many(self, paths: Sequence[str]) -> list[str]:
        """Canonicalize several paths with a single realpath run."""
        if not paths:
            return []
        result = self._run(self.REALPATH, paths, f"resolve {', '.join(paths)}")
        try:
            return parse_realpath_output(result.stdout, len(paths))
        except ParseError as e:
            e.result = result
            raise

    # ==================== Listing ====================

    def _list(self, args: Sequence[str], purpose: str) -> list[BlockDevice]:
        result = self._run(self.LSBLK, args, purpose)
        try:
            return parse_lsblk_json(result.stdout)
        except ParseError as e:
            e.result = result
            raise

    def list_all_devices(self) -> list[BlockDevice]:
        """List every block device as root nodes with nested children."""
        return self._list(self.LSBLK_ARGS, "list block devices")

    def iter_all_devices(self) -> Iterator[BlockDevice]:
        """Yield every node of the device tree, roots and descendants."""
        for root in self.list_all_devices():
            yield from root.walk()

    def describe_device(self, path: str) -> BlockDevice:
        """Describe one device; the path is canonicalized first."""
        device_path = self.canonicalize(path)
        devices = self._list([*self.LSBLK_ARGS, device_path], f"describe {device_path}")
        if not devices:
            raise ResolutionError(f"lsblk returned no device for {device_path}")
        return devices[0]

    def is_block_device(self, path: str) -> bool:
        """
        Check whether a path refers to an enumerated block device.

        Network paths are rejected before any command runs.
        """
        if not is_local_device_path(path):
            return False

        device_path = self.canonicalize(path)
        known_paths = list(dict.fromkeys(device.path for device in self.iter_all_devices()))
        return device_path in set(self.canonicalize_many(known_paths))

    # ==================== Relationships ====================

    def parent_chain(self, path: str) -> list[BlockDevice]:
        """
        Walk parent kernel names up from a device.

        Returns the chain from the device itself to its topmost ancestor.
        Raises ResolutionError on cycles or when the chain is deeper than
        ``max_parent_depth``.
        """
        device = self.describe_device(path)
        chain = [device]
        seen = {device.kname}

        while not device.is_root:
            if len(chain) > self.config.max_parent_depth:
                raise ResolutionError(
                    f"Parent chain of {path} exceeds {self.config.max_parent_depth} levels"
                )
            if device.pkname in seen:
                raise ResolutionError(
                    f"Parent chain of {path} loops back to {device.pkname}"
                )
            seen.add(device.pkname)
            device = self.describe_device(device_path_for(device.pkname))
            chain.append(device)

        return chain

    def get_parent(self, path: str) -> BlockDevice:
        """Return the topmost ancestor of a device (the device itself for a root)."""
        return self.parent_chain(path)[-1]

    def transport_of(self, path: str) -> str:
        """Transport reported by the device's topmost ancestor, empty if local."""
        return self.get_parent(path).transport

    def has_transport(self, path: str, transport: str) -> bool:
        return self.transport_of(path) == transport

    def is_iscsi(self, path: str) -> bool:
        return self.has_transport(path, self.ISCSI_TRANSPORT)

    # ==================== Partitions ====================

    def largest_partition(self, path: str) -> BlockDevice | None:
        """
        Return the biggest direct partition child, or None.

        Ties keep the first partition in listing order.
        """
        largest: BlockDevice | None = None
        for partition in self.describe_device(path).partitions:
            if largest is None or partition.size_bytes > largest.size_bytes:
                largest = partition
        return largest

    def partition_count(self, path: str) -> int:
        return len(self.describe_device(path).partitions)

    # ==================== Filesystems ====================

    def is_formatted(self, path: str) -> bool:
        return self.describe_device(path).is_formatted

    def get_filesystem_info(self, path: str) -> dict[str, str]:
        """Probe a device with blkid; keys are lower-cased (``type``, ``uuid``, ...)."""
        result = self._run(self.BLKID, ["-p", "-o", "export", path], f"probe {path}")
        return parse_blkid_export(result.stdout)
