"""Restore command: clone every record of a manifest into a directory."""

from __future__ import annotations

import sys
from pathlib import Path

import click

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
from ..manifest import load_manifest
from ..models import CloneStatus


def register_restore_commands(main: click.Group) -> None:
    """Register the restore command."""

    @main.command("restore")
    @click.argument("manifest", type=click.Path(exists=True, dir_okay=False))
    @click.option("--dest", "-d", required=True, type=click.Path(file_okay=False),
                  help="Directory to clone into.")
    @home_option
    @policy_options
    @click.option("--dry-run", is_flag=True, help="Show what would be cloned.")
    @click.option("--format", "fmt", type=FORMAT_CHOICE, default=None,
                  help="Manifest format (default: from extension, then config).")
    @click.option("--machine", default=None, help="Machine identity for system filters.")
    def restore(manifest, dest, home, force, skip_existing, dry_run, fmt, machine):
        """Clone every repository listed in MANIFEST under --dest."""
        config = load_config(home)
        policy = resolve_policy(force, skip_existing, config)
        engine = SyncEngine(
            machine_identity=machine or config.machine_identity,
            remote_name=config.remote_name,
            probe_timeout=config.probe_timeout,
        )

        try:
            records = load_manifest(manifest, fmt, config.manifest_format)
            outcomes = engine.restore(records, Path(dest), policy=policy, dry_run=dry_run)
        except SkReposError as exc:
            console.print(f"[bold red]Restore failed:[/] {exc}")
            sys.exit(1)

        console.print(
            f"\n  Restoring [bold]{len(records)}[/] record(s) into [cyan]{dest}[/]"
            + (" [yellow](dry run)[/]" if dry_run else "")
            + "\n"
        )
        print_outcomes(outcomes)
        console.print()

        if any(o.status == CloneStatus.FAILED for o in outcomes):
            sys.exit(1)
