"""
SKRepos CLI — keep your checkouts in step across machines.

This package organizes the CLI into modular command groups.
Each group lives in its own module for maintainability.
The main Click group is defined here and all subcommands
are registered via register functions.

Entry point: skrepos.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="skrepos")
@click.option("--verbose", "-v", count=True, help="More log output (-v info, -vv debug).")
def main(verbose):
    """SKRepos — repository inventory sync.

    Scan. Merge. Clone what's missing. Write it back.
    """
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(name)s: %(message)s")


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .scan import register_scan_commands
from .sync_cmd import register_sync_commands
from .restore import register_restore_commands
from .config_cmd import register_config_commands
from .schedule_cmd import register_schedule_commands

register_scan_commands(main)
register_sync_commands(main)
register_restore_commands(main)
register_config_commands(main)
register_schedule_commands(main)
