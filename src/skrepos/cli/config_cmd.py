"""Config commands: show, set."""

from __future__ import annotations

import sys

import click
import yaml

from ._common import console, home_option
from ..config import CONFIG_FILENAME, config_home, load_config, update_config


def register_config_commands(main: click.Group) -> None:
    """Register the config command group."""

    @main.group()
    def config():
        """Show or change stored settings."""

    @config.command("show")
    @home_option
    def config_show(home):
        """Print the effective settings."""
        cfg = load_config(home)
        console.print(f"\n  [dim]{config_home(home) / CONFIG_FILENAME}[/]\n")
        console.print(yaml.dump(cfg.model_dump(mode="json"), default_flow_style=False))

    @config.command("set")
    @click.argument("key")
    @click.argument("value")
    @home_option
    def config_set(key, value, home):
        """Set KEY to VALUE (use "none" to clear an optional setting)."""
        raw = None if value.lower() in ("none", "null", "") else value
        try:
            update_config(key, raw, home)
        except KeyError:
            console.print(f"[bold red]Unknown setting:[/] {key}")
            sys.exit(1)
        except ValueError as exc:
            console.print(f"[bold red]Invalid value for {key}:[/] {exc}")
            sys.exit(1)
        console.print(f"  [green]{key}[/] = {raw}")
