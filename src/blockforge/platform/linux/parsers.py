"""
Linux output parsers.

Parsers for lsblk, blkid, realpath and device-mapper slave listings.
All text scraping lives here so callers only see model objects.
"""

from __future__ import annotations

import json
from typing import Any

from blockforge.core.errors import ParseError
from blockforge.core.models import BlockDevice, DeviceMapperMapping

# lsblk columns every entry must carry; fstype, pkname and tran may be null.
REQUIRED_LSBLK_FIELDS = ("type", "size")


def device_path_for(kname: str) -> str:
    """
    Map a kernel device name to its /dev node.

    sysfs spells a ``/`` inside a kernel name as ``!``, e.g. ``cciss!c0d0``
    for ``/dev/cciss/c0d0``.
    """
    if kname.startswith("/dev/"):
        return kname
    return f"/dev/{kname.replace('!', '/')}"


def parse_size(value: Any) -> int:
    """Parse an lsblk size field (int, numeric string or null)."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ParseError(f"Invalid size value: {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise ParseError(f"Invalid size value: {value!r}") from e


def build_block_device(block: dict[str, Any]) -> BlockDevice:
    """Build a BlockDevice tree from one lsblk JSON entry."""
    if not isinstance(block, dict):
        raise ParseError(f"Expected a block device object, got {type(block).__name__}")

    kname = block.get("kname") or block.get("name")
    if not kname:
        raise ParseError("Block device entry has no kname", output=json.dumps(block))

    device_path = block.get("path") or device_path_for(kname)

    for required in REQUIRED_LSBLK_FIELDS:
        if block.get(required) in (None, ""):
            raise ParseError(
                f"Block device entry {device_path} has no {required}",
                output=json.dumps(block),
            )

    children = block.get("children") or []
    if not isinstance(children, list):
        raise ParseError(f"Invalid children for {device_path}", output=json.dumps(block))

    return BlockDevice(
        path=device_path,
        kname=kname,
        pkname=block.get("pkname") or "",
        fstype=block.get("fstype") or None,
        size_bytes=parse_size(block["size"]),
        type=block["type"],
        transport=block.get("tran") or "",
        children=[build_block_device(child) for child in children],
        raw={key: value for key, value in block.items() if key != "children"},
    )


def parse_lsblk_json(output: str) -> list[BlockDevice]:
    """
    Parse JSON output from ``lsblk -J``.

    Raises ParseError when the output is not JSON or lacks the
    ``blockdevices`` array.
    """
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise ParseError(f"lsblk output is not valid JSON: {e}", output=output) from e

    if not isinstance(data, dict) or not isinstance(data.get("blockdevices"), list):
        raise ParseError("lsblk output has no blockdevices array", output=output)

    return [build_block_device(block) for block in data["blockdevices"]]


def parse_blkid_export(output: str) -> dict[str, str]:
    """
    Parse ``blkid -p -o export`` output.

    Example input:
    DEVNAME=/dev/sdb1
    UUID=1b2c...
    TYPE=ext4
    """
    properties: dict[str, str] = {}

    for line in output.strip().split("\n"):
        line = line.strip()
        if not line or "=" not in line:
            continue
        key, value = line.split("=", 1)
        properties[key.strip().lower()] = value.strip()

    return properties


def parse_mapper_listing(output: str) -> list[DeviceMapperMapping]:
    """
    Parse device-mapper discovery lines.

    Each line reads ``<composite kname>:<space separated slave knames>``,
    e.g. ``dm-0:sdb sdc``.
    """
    mappings: list[DeviceMapperMapping] = []

    for line in output.strip().split("\n"):
        line = line.strip()
        if not line:
            continue
        if ":" not in line:
            raise ParseError(f"Malformed device-mapper line: {line!r}", output=output)

        composite, slave_list = line.split(":", 1)
        composite = composite.strip()
        if not composite:
            raise ParseError(f"Malformed device-mapper line: {line!r}", output=output)

        mappings.append(
            DeviceMapperMapping(
                device=device_path_for(composite),
                slaves=frozenset(device_path_for(name) for name in slave_list.split()),
            )
        )

    return mappings


def parse_realpath_output(output: str, expected: int) -> list[str]:
    """Split ``realpath`` output into one canonical path per input."""
    paths = [line.strip() for line in output.strip().split("\n") if line.strip()]
    if len(paths) != expected:
        raise ParseError(
            f"realpath returned {len(paths)} paths for {expected} inputs",
            output=output,
        )
    return paths
