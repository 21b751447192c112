"""
BlockForge CLI Main Entry Point.

Provides a command-line interface for inspecting block devices and
running filesystem operations.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
import humanize
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from blockforge import __version__
from blockforge.core.config import BlockForgeConfig, load_config
from blockforge.core.errors import BlockForgeError
from blockforge.core.logging import setup_logging
from blockforge.core.models import BlockDevice
from blockforge.platform.linux.backend import LinuxBackend

console = Console()


def get_backend(ctx: click.Context) -> LinuxBackend:
    """Get or create the backend from context."""
    if "backend" not in ctx.obj:
        ctx.obj["backend"] = LinuxBackend(ctx.obj["config"])
    return ctx.obj["backend"]


def emit_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


def format_size(size_bytes: int) -> str:
    return humanize.naturalsize(size_bytes, binary=True)


@click.group()
@click.version_option(version=__version__, prog_name="BlockForge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--sudo", is_flag=True, help="Run storage tools through sudo")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option("--verbose", "-v", is_flag=True, help="Log every executed command")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    sudo: bool,
    json_output: bool,
    verbose: bool,
) -> None:
    """
    BlockForge - Block device and filesystem lifecycle tool.

    Lists the block device topology, resolves device-mapper composites
    and runs format, check, expand and rescan operations.
    """
    ctx.ensure_object(dict)

    loaded = BlockForgeConfig.load(config) if config else load_config()
    if sudo:
        loaded.execution.sudo = True
    loaded.logging.level = "DEBUG" if verbose else "WARNING"
    setup_logging(loaded.logging)

    ctx.obj["config"] = loaded
    ctx.obj["json_output"] = json_output


@cli.command("list")
@click.pass_context
def list_devices(ctx: click.Context) -> None:
    """List all block devices as a tree."""
    backend = get_backend(ctx)

    with console.status("Scanning block devices..."):
        devices = backend.list_block_devices()

    if ctx.obj.get("json_output"):
        emit_json([device.to_dict() for device in devices])
        return

    table = Table(title="Block Devices")
    table.add_column("Device", style="cyan")
    table.add_column("Kname", style="dim")
    table.add_column("Type", style="yellow")
    table.add_column("Size", style="green")
    table.add_column("FS", style="magenta")
    table.add_column("Transport", style="blue")

    def add_rows(device: BlockDevice, depth: int) -> None:
        table.add_row(
            "  " * depth + device.path,
            device.kname,
            device.type,
            format_size(device.size_bytes),
            device.fstype or "",
            device.transport,
        )
        for child in device.children:
            add_rows(child, depth + 1)

    for device in devices:
        add_rows(device, 0)

    console.print(table)


@cli.command("info")
@click.argument("device")
@click.pass_context
def device_info(ctx: click.Context, device: str) -> None:
    """Show detailed information about a device or partition."""
    backend = get_backend(ctx)
    info = backend.get_block_device(device)

    if ctx.obj.get("json_output"):
        emit_json(info.to_dict())
        return

    partitions = ", ".join(part.path for part in info.partitions) or "(none)"
    panel = Panel(
        f"""[cyan]Device:[/cyan] {info.path}
[cyan]Kernel name:[/cyan] {info.kname}
[cyan]Parent:[/cyan] {info.pkname or "(none)"}
[cyan]Type:[/cyan] {info.type}
[cyan]Size:[/cyan] {format_size(info.size_bytes)}
[cyan]Filesystem:[/cyan] {info.fstype or "(unformatted)"}
[cyan]Transport:[/cyan] {info.transport or "(local)"}
[cyan]Partitions:[/cyan] {partitions}""",
        title="Device Information",
    )
    console.print(panel)


@cli.command("parent")
@click.argument("device")
@click.pass_context
def device_parent(ctx: click.Context, device: str) -> None:
    """Show the parent chain of a device up to its top-level disk."""
    backend = get_backend(ctx)
    chain = backend.topology.parent_chain(device)

    if ctx.obj.get("json_output"):
        emit_json([node.path for node in chain])
        return

    console.print(" -> ".join(f"[cyan]{node.path}[/cyan]" for node in chain))


@cli.command("largest-partition")
@click.argument("device")
@click.pass_context
def largest_partition(ctx: click.Context, device: str) -> None:
    """Print the largest partition of a device."""
    backend = get_backend(ctx)
    partition = backend.get_largest_partition(device)

    if partition is None:
        console.print(f"[yellow]No partitions on {device}[/yellow]")
        sys.exit(1)
    click.echo(partition)


@cli.command("probe")
@click.argument("device")
@click.pass_context
def probe(ctx: click.Context, device: str) -> None:
    """Probe a device's filesystem signature with blkid."""
    backend = get_backend(ctx)
    properties = backend.get_filesystem_info(device)

    if ctx.obj.get("json_output"):
        emit_json(properties)
        return

    table = Table(title=f"Filesystem on {device}")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")
    for key, value in properties.items():
        table.add_row(key, value)
    console.print(table)


@cli.group("mapper")
def mapper() -> None:
    """Device-mapper composite devices."""


@mapper.command("list")
@click.pass_context
def mapper_list(ctx: click.Context) -> None:
    """List device-mapper devices and their slave devices."""
    backend = get_backend(ctx)
    mappings = backend.mapper.get_mappings()

    if ctx.obj.get("json_output"):
        emit_json({mapping.device: sorted(mapping.slaves) for mapping in mappings})
        return

    table = Table(title="Device-Mapper Devices")
    table.add_column("Device", style="cyan")
    table.add_column("Slaves", style="green")
    for mapping in mappings:
        table.add_row(mapping.device, ", ".join(sorted(mapping.slaves)))
    console.print(table)


@mapper.command("slaves")
@click.argument("device")
@click.pass_context
def mapper_slaves(ctx: click.Context, device: str) -> None:
    """List the slave devices of a device-mapper device."""
    backend = get_backend(ctx)
    slaves = backend.get_device_mapper_device_slaves(device)

    if ctx.obj.get("json_output"):
        emit_json(slaves)
        return

    for slave in slaves:
        click.echo(slave)


@mapper.command("find")
@click.argument("slaves", nargs=-1, required=True)
@click.option("--any", "match_any", is_flag=True, help="Match on any shared slave")
@click.pass_context
def mapper_find(ctx: click.Context, slaves: tuple[str, ...], match_any: bool) -> None:
    """Find the device-mapper device built from SLAVES."""
    backend = get_backend(ctx)
    device = backend.get_device_mapper_device_from_slaves(slaves, match_all=not match_any)

    if device is None:
        console.print("[yellow]No matching device-mapper device[/yellow]")
        sys.exit(1)
    click.echo(device)


def parse_options(options: tuple[str, ...]) -> list[str]:
    return [arg for option in options for arg in option.split()]


@cli.command("format")
@click.argument("device")
@click.argument("fstype")
@click.option("--option", "-o", "options", multiple=True, help="Extra mkfs argument(s)")
@click.confirmation_option(prompt="This destroys all data on the device. Continue?")
@click.pass_context
def format_device(ctx: click.Context, device: str, fstype: str, options: tuple[str, ...]) -> None:
    """Create a FSTYPE filesystem on DEVICE."""
    backend = get_backend(ctx)
    with console.status(f"Formatting {device} as {fstype}..."):
        backend.format_device(device, fstype, parse_options(options))
    console.print(f"[green]Formatted {device} as {fstype}[/green]")


@cli.command("check")
@click.argument("device")
@click.argument("fstype")
@click.option("--option", "-o", "options", multiple=True, help="Extra checker argument(s)")
@click.option("--fs-option", "fs_options", multiple=True, help="Arguments passed after --")
@click.pass_context
def check_filesystem(
    ctx: click.Context,
    device: str,
    fstype: str,
    options: tuple[str, ...],
    fs_options: tuple[str, ...],
) -> None:
    """Check the FSTYPE filesystem on DEVICE."""
    backend = get_backend(ctx)
    with console.status(f"Checking {device}..."):
        result = backend.check_filesystem(
            device, fstype, parse_options(options), parse_options(fs_options)
        )
    if result.stdout.strip():
        console.print(result.stdout.rstrip())
    console.print(f"[green]Filesystem on {device} is clean[/green]")


@cli.command("expand")
@click.argument("device")
@click.argument("fstype")
@click.option("--option", "-o", "options", multiple=True, help="Extra resize argument(s)")
@click.pass_context
def expand_filesystem(
    ctx: click.Context, device: str, fstype: str, options: tuple[str, ...]
) -> None:
    """Grow the FSTYPE filesystem on DEVICE (or mount path) to fill it."""
    backend = get_backend(ctx)
    result = backend.expand_filesystem(device, fstype, parse_options(options))
    if result is None:
        console.print(f"[yellow]{fstype} filesystems cannot be expanded, skipped[/yellow]")
        return
    console.print(f"[green]Expanded {device}[/green]")


@cli.command("rescan")
@click.argument("device")
@click.pass_context
def rescan(ctx: click.Context, device: str) -> None:
    """Ask the kernel to re-read the size of DEVICE."""
    backend = get_backend(ctx)
    backend.rescan_device(device)
    console.print(f"[green]Rescanned {device}[/green]")


@cli.command("status")
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show platform, privilege and execution settings."""
    backend = get_backend(ctx)
    execution = backend.config.execution
    timeout = (
        f"{execution.default_timeout_seconds}s" if execution.default_timeout_seconds else "none"
    )

    panel = Panel(
        f"""[cyan]Platform:[/cyan] {backend.name}
[cyan]Admin:[/cyan] {"Yes" if backend.is_admin() else "No"}
[cyan]Sudo:[/cyan] {execution.sudo_path if execution.sudo else "disabled"}
[cyan]Command timeout:[/cyan] {timeout}
[cyan]Mapper discovery:[/cyan] {backend.config.topology.mapper_discovery}""",
        title="BlockForge Status",
    )
    console.print(panel)


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={}, standalone_mode=False)
    except click.exceptions.Abort:
        console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(130)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except BlockForgeError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
