"""Helpers shared by CLI commands."""

from __future__ import annotations

import click
from rich.console import Console

from denyspam.config import ConfigError, DenySpamConfig

console = Console(stderr=True)


def load_config(ctx: click.Context) -> DenySpamConfig:
    """Load the config named on the command line, exiting on errors."""
    try:
        return DenySpamConfig.load(ctx.obj["config_path"])
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise SystemExit(1)
