"""Sync command: scan, merge with the shared manifest, clone, write back."""

from __future__ import annotations

import sys
from pathlib import Path

import click
from rich.panel import Panel

from ._common import (
    FORMAT_CHOICE,
    console,
    home_option,
    policy_options,
    print_outcomes,
    resolve_policy,
)
from ..config import load_config
from ..engine import SyncEngine
from ..errors import SkReposError


def register_sync_commands(main: click.Group) -> None:
    """Register the sync command."""

    @main.command("sync")
    @home_option
    @click.option("--local-dir", "-d", type=click.Path(file_okay=False), default=None,
                  help="Checkout root on this machine (default: from config).")
    @click.option("--manifest", "-m", type=click.Path(dir_okay=False), default=None,
                  help="Shared manifest file (default: from config).")
    @policy_options
    @click.option("--dry-run", is_flag=True, help="Show what would happen; change nothing.")
    @click.option("--format", "fmt", type=FORMAT_CHOICE, default=None,
                  help="Manifest format (default: from extension, then config).")
    @click.option("--skip-remote-check", is_flag=True, help="Do not probe remote URLs.")
    @click.option("--machine", default=None, help="Machine identity for system filters.")
    def sync(home, local_dir, manifest, force, skip_existing, dry_run, fmt,
             skip_remote_check, machine):
        """Merge local checkouts with the shared manifest and clone what's missing."""
        config = load_config(home)
        local_dir = local_dir or config.local_dir
        manifest = manifest or config.manifest_path
        if not local_dir or not manifest:
            console.print(
                "[bold red]Need a local directory and a manifest.[/] "
                "Pass --local-dir/--manifest or set them with "
                "[cyan]skrepos config set[/cyan]."
            )
            sys.exit(1)

        policy = resolve_policy(force, skip_existing, config)
        engine = SyncEngine(
            machine_identity=machine or config.machine_identity,
            remote_name=config.remote_name,
            probe_timeout=config.probe_timeout,
        )

        try:
            result = engine.sync(
                Path(local_dir),
                Path(manifest),
                policy=policy,
                dry_run=dry_run,
                manifest_format=fmt,
                check_remote_accessibility=(
                    config.check_remote_accessibility and not skip_remote_check
                ),
                default_format=config.manifest_format,
            )
        except SkReposError as exc:
            console.print(f"[bold red]Sync failed:[/] {exc}")
            sys.exit(1)

        console.print()
        if result.manifest_existed:
            manifest_state = "[green]written[/]" if result.persisted else "[dim]unchanged[/]"
        else:
            manifest_state = "[green]created[/]" if result.persisted else "[yellow]new[/]"
        if dry_run:
            manifest_state = "[yellow]dry run[/]"

        console.print(
            Panel(
                f"Machine: [cyan]{engine.machine_identity}[/]\n"
                f"Local: {Path(local_dir).expanduser()}\n"
                f"Manifest: {Path(manifest).expanduser()} ({manifest_state})\n"
                f"Records: [bold]{len(result.records)}[/]\n"
                f"Changed: {'[yellow]yes[/]' if result.changed else '[green]no[/]'}",
                title="Repository Sync",
                border_style="cyan",
            )
        )
        print_outcomes(result.outcomes)

        if result.planned:
            console.print("\n  [bold yellow]Dry run — would:[/]")
            for action in result.planned:
                console.print(f"    {action}")
        console.print()

        if result.failed:
            sys.exit(1)
