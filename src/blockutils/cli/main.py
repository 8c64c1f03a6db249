"""
blockutils CLI Main Entry Point.

Command-line access to device inventory, classification and formatting.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
import humanize
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from blockutils import __version__
from blockutils.core.config import BlockUtilsConfig, load_config
from blockutils.core.engine import BlockEngine
from blockutils.core.errors import DeviceNotFound
from blockutils.core.models import (
    FilesystemKind,
    FormatOptions,
    FormatOutcome,
    FormatRequest,
    MetadataProfile,
)
from blockutils.core.safety import confirmation_string
from blockutils.platform import is_admin

console = Console()

FORMATTABLE_KINDS = [kind.value for kind in FilesystemKind if kind is not FilesystemKind.UNKNOWN]


def get_engine(ctx: click.Context) -> BlockEngine:
    """Get or create the engine from context."""
    if "engine" not in ctx.obj:
        config = ctx.obj.get("config") or load_config()
        ctx.obj["engine"] = BlockEngine.from_config(config)
    return ctx.obj["engine"]


def format_size(size_bytes: int | None) -> str:
    if size_bytes is None:
        return "?"
    return humanize.naturalsize(size_bytes, binary=True)


def echo_json(data: object) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.version_option(version=__version__, prog_name="blockutils")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    json_output: bool,
    quiet: bool,
) -> None:
    """
    blockutils - block device discovery, classification and formatting.
    """
    ctx.ensure_object(dict)

    if "config" not in ctx.obj:
        ctx.obj["config"] = BlockUtilsConfig.load(config) if config else load_config()

    ctx.obj["json_output"] = json_output
    ctx.obj["quiet"] = quiet


@cli.command("list")
@click.pass_context
def list_devices(ctx: click.Context) -> None:
    """List all block devices."""
    engine = get_engine(ctx)

    with console.status("Scanning devices..."):
        inventory = engine.enumerate_devices()

    if ctx.obj.get("json_output", False):
        echo_json(inventory.to_dict())
        return

    table = Table(title="Block Devices")
    table.add_column("Device", style="cyan")
    table.add_column("Size", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Media", style="white")
    table.add_column("FS", style="yellow")
    table.add_column("Label", style="white")
    table.add_column("Mount", style="blue")
    table.add_column("Held by", style="magenta")

    for device in inventory:
        table.add_row(
            device.path,
            format_size(device.size_bytes),
            device.device_type.value,
            device.media_type.name,
            device.filesystem.value,
            device.label or "",
            device.mountpoint or "",
            ", ".join(sorted(device.holders)),
        )

    console.print(table)

    if inventory.errors and not ctx.obj.get("quiet", False):
        for error in inventory.errors:
            console.print(f"[yellow]Skipped: {error.message}[/yellow]")


@cli.command("info")
@click.argument("device")
@click.pass_context
def device_info(ctx: click.Context, device: str) -> None:
    """Show detailed information about a device."""
    engine = get_engine(ctx)

    try:
        info = engine.get_device_info(device)
    except DeviceNotFound as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)

    if ctx.obj.get("json_output", False):
        echo_json(info.to_dict())
        return

    panel = Panel(
        f"""[cyan]Device:[/cyan] {info.path}
[cyan]Type:[/cyan] {info.device_type.value}
[cyan]Media:[/cyan] {info.media_type.name}
[cyan]Size:[/cyan] {format_size(info.size_bytes)}
[cyan]Filesystem:[/cyan] {info.filesystem.value}
[cyan]Label:[/cyan] {info.label or "(none)"}
[cyan]UUID:[/cyan] {info.uuid or "(none)"}
[cyan]Mountpoint:[/cyan] {info.mountpoint or "(not mounted)"}
[cyan]Serial:[/cyan] {info.serial or "(unknown)"}
[cyan]Vendor:[/cyan] {info.vendor or "(unknown)"}
[cyan]Removable:[/cyan] {"Yes" if info.is_removable else "No"}
[cyan]Rotational:[/cyan] {"Yes" if info.is_rotational else "No"}
[cyan]Partitions:[/cyan] {", ".join(sorted(info.partitions)) or "(none)"}
[cyan]Holders:[/cyan] {", ".join(sorted(info.holders)) or "(none)"}
[cyan]Slaves:[/cyan] {", ".join(sorted(info.slaves)) or "(none)"}""",
        title="Device Information",
    )
    console.print(panel)


@cli.command("classify")
@click.argument("device")
@click.pass_context
def classify_device(ctx: click.Context, device: str) -> None:
    """Print what a device holds."""
    engine = get_engine(ctx)

    try:
        kind = engine.classify(device)
    except DeviceNotFound as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)

    if ctx.obj.get("json_output", False):
        echo_json({"device": device, "filesystem": kind.value})
    else:
        click.echo(kind.value)


@cli.command("format")
@click.argument("device")
@click.option(
    "--filesystem",
    "-f",
    type=click.Choice(FORMATTABLE_KINDS, case_sensitive=False),
    required=True,
    help="Filesystem type",
)
@click.option("--label", "-l", help="Volume label (pool name for zfs)")
@click.option("--block-size", "-b", type=int, help="Block size in bytes")
@click.option("--force", is_flag=True, help="Overwrite an existing filesystem")
@click.option("--option", "-o", "extra_options", multiple=True, help="Raw option passed to the tool")
@click.option("--inode-size", type=int, help="Inode size (ext, xfs)")
@click.option("--reserved-blocks", type=int, help="Reserved blocks percentage (ext)")
@click.option("--stride", type=int, help="RAID stride (ext)")
@click.option("--stripe-unit", type=int, help="RAID stripe unit (xfs)")
@click.option("--stripe-width", type=int, help="RAID stripe width (ext, xfs)")
@click.option("--agcount", type=int, help="Allocation group count (xfs)")
@click.option(
    "--metadata-profile",
    type=click.Choice([p.value for p in MetadataProfile]),
    help="Metadata profile (btrfs)",
)
@click.option("--node-size", type=int, help="Node size (btrfs)")
@click.option("--compression/--no-compression", default=None, help="Compression (zfs)")
@click.option("--key-file", type=click.Path(dir_okay=False), help="Key file for the passphrase (luks)")
@click.option(
    "--verify-unmounted/--no-verify-unmounted",
    default=None,
    help="Refuse to format mounted devices",
)
@click.option("--dry-run", is_flag=True, help="Show what would be done")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
@click.pass_context
def format_device(
    ctx: click.Context,
    device: str,
    filesystem: str,
    label: str | None,
    block_size: int | None,
    force: bool,
    extra_options: tuple[str, ...],
    inode_size: int | None,
    reserved_blocks: int | None,
    stride: int | None,
    stripe_unit: int | None,
    stripe_width: int | None,
    agcount: int | None,
    metadata_profile: str | None,
    node_size: int | None,
    compression: bool | None,
    key_file: str | None,
    verify_unmounted: bool | None,
    dry_run: bool,
    yes: bool,
) -> None:
    """Create a filesystem on a device."""
    engine = get_engine(ctx)
    json_output = ctx.obj.get("json_output", False)

    if verify_unmounted is None:
        verify_unmounted = engine.config.format.verify_unmounted_default

    request = FormatRequest(
        device_path=device,
        filesystem=FilesystemKind.from_string(filesystem),
        options=FormatOptions(
            force=force,
            block_size=block_size,
            label=label,
            extra_options=list(extra_options),
            inode_size=inode_size,
            reserved_blocks_percentage=reserved_blocks,
            stride=stride,
            stripe_unit=stripe_unit,
            stripe_width=stripe_width,
            agcount=agcount,
            metadata_profile=MetadataProfile(metadata_profile) if metadata_profile else None,
            node_size=node_size,
            compression=compression,
            key_file=key_file,
        ),
        verify_unmounted=verify_unmounted,
        dry_run=dry_run,
    )

    if not dry_run and not json_output and not is_admin():
        console.print("[yellow]Not running as root; the format tool will probably be refused access[/yellow]")

    if not dry_run and not yes:
        confirm_str = confirmation_string(device)
        console.print(f"[red]⚠️  This will ERASE ALL DATA on {device}[/red]")
        user_confirm = click.prompt(f"Type '{confirm_str}' to confirm")
        if user_confirm != confirm_str:
            console.print("[red]Confirmation failed[/red]")
            sys.exit(1)

    if dry_run and not json_output and not ctx.obj.get("quiet", False):
        print_preflight(engine, request)

    with console.status(f"Formatting {device}..."):
        outcome = engine.format(request)

    if json_output:
        echo_json(outcome.to_dict())
    else:
        print_outcome(outcome, quiet=ctx.obj.get("quiet", False))

    if not outcome.success:
        sys.exit(1)


def print_preflight(engine: BlockEngine, request: FormatRequest) -> None:
    try:
        report = engine.preflight(request)
    except DeviceNotFound:
        # the format call below reports the missing device
        return
    console.print(
        Panel(
            Text(report.get_summary()),
            title="Preflight",
            border_style="red" if report.has_errors else "green",
        )
    )


def print_outcome(outcome: FormatOutcome, quiet: bool = False) -> None:
    for warning in outcome.warnings:
        console.print(f"[yellow]Warning: {warning}[/yellow]")

    if outcome.success:
        if outcome.dry_run:
            console.print(Panel(outcome.stdout, title="[yellow]DRY RUN[/yellow]"))
            return
        console.print(
            f"[green]✓ Formatted {outcome.device_path} as {outcome.filesystem.value}[/green]"
        )
        if outcome.stdout and not quiet:
            console.print(outcome.stdout.rstrip())
        return

    error = outcome.error
    if error is not None:
        console.print(f"[red]✗ {error.kind}: {error.message}[/red]")
    if outcome.stderr and not quiet:
        console.print(outcome.stderr.rstrip(), markup=False)


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
