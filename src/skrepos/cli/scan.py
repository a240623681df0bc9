"""Scan command: list the checkouts under a directory."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from ._common import FORMAT_CHOICE, console, home_option, records_table
from ..config import load_config
from ..engine import SyncEngine
from ..errors import SkReposError
from ..manifest import save_manifest


def register_scan_commands(main: click.Group) -> None:
    """Register the scan command."""

    @main.command("scan")
    @click.argument("root", type=click.Path(file_okay=False))
    @home_option
    @click.option("--skip-remote-check", is_flag=True, help="Do not probe remote URLs.")
    @click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
                  help="Also write the results as a manifest file.")
    @click.option("--format", "fmt", type=FORMAT_CHOICE, default=None,
                  help="Manifest format for --output (default: from extension).")
    def scan(root, home, skip_remote_check, output, fmt):
        """Find every git checkout under ROOT."""
        config = load_config(home)
        root_path = Path(root).expanduser()
        if not root_path.is_dir():
            console.print(f"[bold red]Not a directory:[/] {root_path}")
            sys.exit(1)

        check = config.check_remote_accessibility and not skip_remote_check
        engine = SyncEngine(
            machine_identity=config.machine_identity,
            remote_name=config.remote_name,
            probe_timeout=config.probe_timeout,
        )

        try:
            records = engine.scan(root_path, check_remote_accessibility=check)
        except SkReposError as exc:
            console.print(f"[bold red]Scan failed:[/] {exc}")
            sys.exit(1)

        console.print()
        if records:
            console.print(records_table(records, title=f"Checkouts under {root_path}"))
        console.print(f"\n  [bold]{len(records)}[/] checkout(s) found.")

        if output:
            try:
                written = save_manifest(records, output, fmt, config.manifest_format)
            except SkReposError as exc:
                console.print(f"[bold red]Export failed:[/] {exc}")
                sys.exit(1)
            console.print(f"  [green]Manifest written:[/] {written}")
        console.print()
