"""
Device-mapper slave-set matcher.

Maps every device-mapper composite (multipath, LVM, crypt, ...) to the
set of real devices it aggregates, and finds the composite that
corresponds to a given set of real devices.

Discovery reads /dev/mapper symlinks and the sysfs ``slaves``
directories directly. The ``shell`` discovery mode runs a listing script
and parses its ``dm-N:sdX sdY`` lines instead, for hosts where the
caller can only reach sysfs through sudo.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from blockforge.core.config import TopologyConfig
from blockforge.core.errors import ExecutionError, ParseError, ResolutionError, TopologyError
from blockforge.core.logging import get_logger
from blockforge.core.models import DEVICE_MAPPER_MARKER, DeviceMapperMapping
from blockforge.platform.linux.parsers import device_path_for, parse_mapper_listing
from blockforge.platform.linux.topology import is_local_device_path

if TYPE_CHECKING:
    from blockforge.platform.linux.executor import CommandExecutor
    from blockforge.platform.linux.topology import DeviceTopology

logger = get_logger(__name__)


class DeviceMapperResolver:
    """Resolves relationships between composites and their slave devices."""

    SH = "sh"

    # Prints "<kname>:<slave knames>" for every /dev/mapper symlink.
    SHELL_DISCOVERY_SCRIPT = (
        'for link in "{mapper}"/*; do '
        '[ -L "$link" ] || continue; '
        'kname=$(basename "$(readlink -f "$link")"); '
        'echo "$kname:$(ls "{sys_block}/$kname/slaves/" | tr "\\n" " ")"; '
        "done"
    )

    def __init__(
        self,
        executor: CommandExecutor,
        topology: DeviceTopology,
        config: TopologyConfig | None = None,
    ) -> None:
        self.executor = executor
        self.topology = topology
        self.config = config or TopologyConfig()

    # ==================== Discovery ====================

    def _read_slaves(self, kname: str) -> frozenset[str]:
        slaves_dir = self.config.sys_block_directory / kname / "slaves"
        if not slaves_dir.is_dir():
            return frozenset()
        try:
            names = os.listdir(slaves_dir)
        except OSError as e:
            raise TopologyError(f"Cannot list {slaves_dir}: {e}") from e
        return frozenset(device_path_for(name) for name in names)

    def _discover_sysfs(self) -> list[DeviceMapperMapping]:
        mapper_dir = self.config.dev_mapper_directory
        if not mapper_dir.is_dir():
            return []

        knames: list[str] = []
        try:
            entries = sorted(mapper_dir.iterdir())
        except OSError as e:
            raise TopologyError(f"Cannot list {mapper_dir}: {e}") from e

        for entry in entries:
            # /dev/mapper/control is a character device, not a link
            if not entry.is_symlink():
                continue
            kname = Path(os.path.realpath(entry)).name
            if kname not in knames:
                knames.append(kname)

        mappings: list[DeviceMapperMapping] = []
        for kname in knames:
            slaves = self._read_slaves(kname)
            if not slaves:
                logger.warning("Device-mapper device has no slaves", device=device_path_for(kname))
                continue
            mappings.append(DeviceMapperMapping(device=device_path_for(kname), slaves=slaves))
        return mappings

    def _discover_shell(self) -> list[DeviceMapperMapping]:
        script = self.SHELL_DISCOVERY_SCRIPT.format(
            mapper=self.config.dev_mapper_directory,
            sys_block=self.config.sys_block_directory,
        )
        try:
            result = self.executor.execute(self.SH, ["-c", script])
        except ExecutionError as e:
            raise TopologyError(f"Failed to list device-mapper devices: {e}", result=e.result) from e

        try:
            mappings = parse_mapper_listing(result.stdout)
        except ParseError as e:
            e.result = result
            raise

        nonempty = []
        for mapping in mappings:
            if not mapping.slaves:
                logger.warning("Device-mapper device has no slaves", device=mapping.device)
                continue
            nonempty.append(mapping)
        return nonempty

    def get_mappings(self) -> list[DeviceMapperMapping]:
        """Map every composite device to its slave set."""
        if self.config.mapper_discovery == "shell":
            return self._discover_shell()
        return self._discover_sysfs()

    def all_mapper_devices(self) -> list[str]:
        """Paths of all composite devices, e.g. ``/dev/dm-0``."""
        return [mapping.device for mapping in self.get_mappings()]

    def all_slave_devices(self) -> list[str]:
        """Union of the slave devices of every composite."""
        slaves: dict[str, None] = {}
        for mapping in self.get_mappings():
            slaves.update(dict.fromkeys(sorted(mapping.slaves)))
        return list(slaves)

    # ==================== Queries ====================

    def slaves_of(self, composite: str) -> frozenset[str]:
        """
        Return the real devices behind a composite.

        Raises ResolutionError when the slave set is empty; an existing
        composite always has at least one slave.
        """
        device = self.topology.describe_device(composite)
        slaves = self._read_slaves(device.kname)
        if not slaves:
            raise ResolutionError(f"No slave devices found for {composite} ({device.kname})")
        return slaves

    def find_mapper_device_for_slaves(
        self, slaves: Iterable[str], match_all: bool = True
    ) -> str | None:
        """
        Find the composite for a set of real devices.

        With ``match_all`` the composite's slave set must equal the
        candidates exactly; otherwise the first composite sharing any
        device wins. Returns None when nothing matches.
        """
        candidates = list(dict.fromkeys(slaves))
        if not candidates:
            return None
        canonical = frozenset(self.topology.canonicalize_many(candidates))

        for mapping in self.get_mappings():
            if mapping.matches(canonical, match_all=match_all):
                logger.debug(
                    "Matched device-mapper device",
                    device=mapping.device,
                    slaves=sorted(mapping.slaves),
                    match_all=match_all,
                )
                return mapping.device

        return None

    def is_device_mapper_device(self, path: str) -> bool:
        if not self.topology.is_block_device(path):
            return False
        return DEVICE_MAPPER_MARKER in Path(self.topology.canonicalize(path)).name

    def is_device_mapper_slave_device(self, path: str) -> bool:
        """A device is a slave iff some composite lists it in its slave set."""
        if not is_local_device_path(path):
            return False
        return self.topology.canonicalize(path) in self.all_slave_devices()
