"""
Pytest configuration and fixtures for BlockForge tests.
"""

import copy
import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from blockforge.core.config import BlockForgeConfig, TopologyConfig  # noqa: E402
from blockforge.core.errors import ExecutionError  # noqa: E402
from blockforge.platform.base import CommandResult  # noqa: E402


Handler = Callable[[list[str], "str | None"], CommandResult]


class FakeExecutor:
    """
    Scripted stand-in for CommandExecutor.

    Handlers are registered per command name and receive the argument
    list and stdin payload. Non-zero results raise ExecutionError just
    like the real engine.
    """

    def __init__(self) -> None:
        self.handlers: dict[str, Handler] = {}
        self.calls: list[tuple[str, list[str], str | None]] = []

    def on(self, command: str, handler: Handler) -> None:
        self.handlers[command] = handler

    def respond(self, command: str, stdout: str = "", code: int = 0, stderr: str = "") -> None:
        def handler(args: list[str], input: str | None) -> CommandResult:
            return CommandResult((command, *args), code, stdout, stderr)

        self.on(command, handler)

    def commands(self) -> list[str]:
        return [command for command, _, _ in self.calls]

    def execute(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        input: str | None = None,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        cwd: Any = None,
    ) -> CommandResult:
        args = list(args or [])
        self.calls.append((command, args, input))
        if command not in self.handlers:
            raise AssertionError(f"Unexpected command: {command} {args}")
        result = self.handlers[command](args, input)
        if result.code != 0:
            raise ExecutionError(result)
        return result


SAMPLE_BLOCKDEVICES: list[dict[str, Any]] = [
    {
        "name": "sda",
        "kname": "sda",
        "path": "/dev/sda",
        "pkname": None,
        "fstype": None,
        "size": 1000,
        "type": "disk",
        "tran": "sata",
        "children": [
            {"name": "sda1", "kname": "sda1", "path": "/dev/sda1", "pkname": "sda",
             "fstype": "vfat", "size": 100, "type": "part", "tran": None},
            {"name": "sda2", "kname": "sda2", "path": "/dev/sda2", "pkname": "sda",
             "fstype": "ext4", "size": 300, "type": "part", "tran": None},
            {"name": "sda3", "kname": "sda3", "path": "/dev/sda3", "pkname": "sda",
             "fstype": "xfs", "size": 300, "type": "part", "tran": None},
            {"name": "sda4", "kname": "sda4", "path": "/dev/sda4", "pkname": "sda",
             "fstype": None, "size": 50, "type": "part", "tran": None},
        ],
    },
    {
        "name": "sdb",
        "kname": "sdb",
        "path": "/dev/sdb",
        "pkname": None,
        "fstype": "mpath_member",
        "size": 2000,
        "type": "disk",
        "tran": "iscsi",
        "children": [
            {"name": "mpatha", "kname": "dm-0", "path": "/dev/mapper/mpatha", "pkname": "sdb",
             "fstype": "ext4", "size": 2000, "type": "mpath", "tran": None},
        ],
    },
    {
        "name": "sdc",
        "kname": "sdc",
        "path": "/dev/sdc",
        "pkname": None,
        "fstype": "mpath_member",
        "size": "2000",
        "type": "disk",
        "tran": "iscsi",
        "children": [
            {"name": "mpatha", "kname": "dm-0", "path": "/dev/mapper/mpatha", "pkname": "sdc",
             "fstype": "ext4", "size": 2000, "type": "mpath", "tran": None},
        ],
    },
    {
        "name": "sdd",
        "kname": "sdd",
        "path": "/dev/sdd",
        "pkname": None,
        "fstype": None,
        "size": 4000,
        "type": "disk",
        "tran": "",
    },
    {
        "name": "broken",
        "kname": "dm-2",
        "path": "/dev/mapper/broken",
        "pkname": None,
        "fstype": None,
        "size": 10,
        "type": "dm",
        "tran": None,
    },
]

SAMPLE_ALIASES: dict[str, str] = {
    "/dev/mapper/mpatha": "/dev/dm-0",
    "/dev/mapper/vg-lv": "/dev/dm-1",
    "/dev/mapper/broken": "/dev/dm-2",
    "/dev/disk/by-id/wwn-sdb": "/dev/sdb",
    "/dev/disk/by-id/wwn-sdc": "/dev/sdc",
    "/dev/disk/by-label/data": "/dev/sda2",
}


def find_block(blocks: list[dict[str, Any]], path: str) -> dict[str, Any] | None:
    """Find a device entry by path or /dev/<kname>, depth first."""
    for block in blocks:
        if path in (block.get("path"), f"/dev/{block.get('kname')}"):
            return block
        found = find_block(block.get("children", []), path)
        if found is not None:
            return found
    return None


def install_realpath(executor: FakeExecutor, aliases: dict[str, str]) -> None:
    def realpath(args: list[str], input: str | None) -> CommandResult:
        stdout = "".join(f"{aliases.get(arg, arg)}\n" for arg in args)
        return CommandResult(("realpath", *args), 0, stdout, "")

    executor.on("realpath", realpath)


def install_lsblk(executor: FakeExecutor, blocks: list[dict[str, Any]]) -> None:
    def lsblk(args: list[str], input: str | None) -> CommandResult:
        if args and args[-1].startswith("/"):
            block = find_block(blocks, args[-1])
            if block is None:
                return CommandResult(
                    ("lsblk", *args), 32, "", f"lsblk: {args[-1]}: not a block device"
                )
            output = {"blockdevices": [copy.deepcopy(block)]}
        else:
            output = {"blockdevices": copy.deepcopy(blocks)}
        return CommandResult(("lsblk", *args), 0, json.dumps(output), "")

    executor.on("lsblk", lsblk)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_executor() -> FakeExecutor:
    """A fake executor answering lsblk and realpath from the sample topology."""
    executor = FakeExecutor()
    install_realpath(executor, SAMPLE_ALIASES)
    install_lsblk(executor, SAMPLE_BLOCKDEVICES)
    return executor


@pytest.fixture
def sysfs_root(temp_dir: Path) -> Path:
    """
    Build a fake /dev/mapper and /sys/block tree.

    mpatha -> dm-0 (sdb, sdc), vg-lv -> dm-1 (sda2), broken -> dm-2 (no slaves).
    """
    dev = temp_dir / "dev"
    mapper = dev / "mapper"
    sys_block = temp_dir / "sys" / "block"
    mapper.mkdir(parents=True)

    (mapper / "control").write_text("")
    for link, kname, slaves in (
        ("mpatha", "dm-0", ["sdb", "sdc"]),
        ("vg-lv", "dm-1", ["sda2"]),
        ("broken", "dm-2", []),
    ):
        (dev / kname).write_text("")
        os.symlink(f"../{kname}", mapper / link)
        slaves_dir = sys_block / kname / "slaves"
        slaves_dir.mkdir(parents=True)
        for slave in slaves:
            (slaves_dir / slave).write_text("")

    return temp_dir


@pytest.fixture
def topology_config(sysfs_root: Path) -> TopologyConfig:
    return TopologyConfig(
        sys_block_directory=sysfs_root / "sys" / "block",
        dev_mapper_directory=sysfs_root / "dev" / "mapper",
    )


@pytest.fixture
def sample_config(topology_config: TopologyConfig, temp_dir: Path) -> BlockForgeConfig:
    """Create a sample configuration for testing."""
    config = BlockForgeConfig(topology=topology_config)
    config.logging.log_directory = temp_dir / "logs"
    return config


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


@pytest.fixture
def make_executor() -> Callable[..., FakeExecutor]:
    """Factory for fake executors over a custom lsblk tree and alias map."""

    def factory(
        blocks: list[dict[str, Any]] | None = None,
        aliases: dict[str, str] | None = None,
    ) -> FakeExecutor:
        executor = FakeExecutor()
        install_realpath(executor, SAMPLE_ALIASES if aliases is None else aliases)
        install_lsblk(executor, SAMPLE_BLOCKDEVICES if blocks is None else blocks)
        return executor

    return factory
