"""Shared utilities for all CLI command modules.

Provides the Rich console instance, record/outcome tables,
and the option plumbing every command group needs.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import SKREPOS_HOME
from ..config import SkReposConfig
from ..manifest import ManifestFormat
from ..models import CloneOutcome, CloneStatus, ExistingPolicy, RepositoryRecord

console = Console()
logger = logging.getLogger("skrepos.cli")

FORMAT_CHOICE = click.Choice([f.value for f in ManifestFormat], case_sensitive=False)


def home_option(func):
    """Attach the --home option pointing at the settings directory."""
    return click.option(
        "--home", default=SKREPOS_HOME, type=click.Path(),
        help="Settings directory (holds config.yaml).",
    )(func)


def policy_options(func):
    """Attach the mutually exclusive --force / --skip-existing flags."""
    func = click.option(
        "--skip-existing", is_flag=True, default=False,
        help="Quietly skip targets that already exist.",
    )(func)
    func = click.option(
        "--force", is_flag=True, default=False,
        help="Delete existing targets and clone fresh.",
    )(func)
    return func


def resolve_policy(
    force: bool, skip_existing: bool, config: SkReposConfig
) -> ExistingPolicy:
    """Pick the existing-target policy from flags, falling back to config."""
    if force and skip_existing:
        raise click.UsageError("--force and --skip-existing are mutually exclusive.")
    if force:
        return ExistingPolicy.FORCE
    if skip_existing:
        return ExistingPolicy.SKIP
    return config.existing_policy


def status_icon(outcome: CloneOutcome) -> str:
    """Map a clone outcome to a Rich-formatted indicator."""
    return {
        CloneStatus.CLONED: "[bold green]CLONED[/]",
        CloneStatus.SKIPPED: "[yellow]SKIPPED[/]",
        CloneStatus.FAILED: "[bold red]FAILED[/]",
    }.get(outcome.status, "[dim]UNKNOWN[/]")


def _accessible(value: Optional[bool]) -> str:
    if value is None:
        return "[dim]?[/]"
    return "[green]yes[/]" if value else "[red]no[/]"


def records_table(records: Iterable[RepositoryRecord], title: str = "") -> Table:
    table = Table(
        show_header=True, header_style="bold", box=None, padding=(0, 2),
        title=title or None,
    )
    table.add_column("Path", style="bold cyan")
    table.add_column("Remote")
    table.add_column("Reachable", justify="center")
    table.add_column("Last Activity", style="dim", no_wrap=True)
    table.add_column("Filter", style="dim")

    for r in records:
        table.add_row(
            escape(r.relative_path),
            escape(r.remote_url) if r.remote_url else "[dim]none[/]",
            _accessible(r.is_remote_accessible),
            r.status_date.strftime("%Y-%m-%d %H:%M") if r.status_date else "",
            escape(r.system_filter or ""),
        )
    return table


def outcomes_table(outcomes: Iterable[CloneOutcome]) -> Table:
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Status")
    table.add_column("Path", style="cyan")
    table.add_column("Remote", style="dim")
    table.add_column("Detail")

    for o in outcomes:
        if o.status == CloneStatus.FAILED:
            detail = f"exit {o.exit_code}"
        elif o.reason is not None:
            detail = f"{o.reason.value}: {o.message}" if o.message else o.reason.value
        else:
            detail = o.target_path
        table.add_row(
            status_icon(o), escape(o.relative_path), escape(o.remote_url), escape(detail)
        )
    return table


def print_outcomes(outcomes: list[CloneOutcome]) -> None:
    if not outcomes:
        console.print("  [dim]Nothing to clone.[/]")
        return
    console.print(outcomes_table(outcomes))
    cloned = sum(1 for o in outcomes if o.status == CloneStatus.CLONED)
    failed = sum(1 for o in outcomes if o.status == CloneStatus.FAILED)
    skipped = len(outcomes) - cloned - failed
    console.print(
        f"\n  [green]{cloned} cloned[/]  [yellow]{skipped} skipped[/]  "
        f"[red]{failed} failed[/]"
    )
