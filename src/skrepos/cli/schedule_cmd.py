"""Schedule commands: install, remove, status of the periodic sync timer."""

from __future__ import annotations

import shutil
import sys

import click
from rich.panel import Panel

from ._common import console
from ..schedule import (
    DEFAULT_INTERVAL,
    install_timer,
    remove_timer,
    systemd_available,
    timer_status,
)


def register_schedule_commands(main: click.Group) -> None:
    """Register the schedule command group."""

    @main.group()
    def schedule():
        """Run sync periodically via a systemd user timer."""

    @schedule.command("install")
    @click.option("--interval", default=DEFAULT_INTERVAL, show_default=True,
                  help="systemd time span between syncs (e.g. 30min, 6h).")
    @click.option("--no-start", is_flag=True, help="Write units but don't enable them.")
    @click.argument("sync_args", nargs=-1, type=click.UNPROCESSED)
    def schedule_install(interval, no_start, sync_args):
        """Install the timer. Extra SYNC_ARGS are passed to `skrepos sync`."""
        if not systemd_available():
            console.print("[red]systemd user session not available.[/]")
            sys.exit(1)

        executable = shutil.which("skrepos") or "skrepos"
        result = install_timer(
            interval=interval,
            executable=executable,
            sync_args=list(sync_args),
            start=not no_start,
        )
        if result["installed"]:
            console.print(f"  [green]Timer installed[/] (every {interval})")
        if result["started"]:
            console.print("  [green]Timer enabled and started[/]")
        elif not no_start:
            console.print("  [yellow]Timer installed but could not be started.[/]")

    @schedule.command("remove")
    def schedule_remove():
        """Stop and delete the timer."""
        remove_timer()
        console.print("  [green]Timer removed[/]")

    @schedule.command("status")
    def schedule_status():
        """Show whether the timer is armed and when it fires next."""
        st = timer_status()
        if not st.installed:
            console.print("  [dim]No sync timer installed.[/]")
            return
        console.print(
            Panel(
                f"Enabled: {'[green]yes[/]' if st.enabled else '[yellow]no[/]'}\n"
                f"Active: {'[green]yes[/]' if st.active else '[yellow]no[/]'}\n"
                f"Next run: {st.next_run or '[dim]unknown[/]'}\n"
                f"Last result: {st.last_result or '[dim]never run[/]'}",
                title="Sync Timer",
                border_style="cyan",
            )
        )
