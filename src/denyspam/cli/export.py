"""CLI command: denyspam export — dump saved host data as JSON."""

from __future__ import annotations

import json

import click

from denyspam.cli._common import load_config
from denyspam.hosts.models import sort_hosts
from denyspam.storage.snapshot import SnapshotStore


@click.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write to this file instead of stdout.",
)
@click.pass_context
def export(ctx: click.Context, output: str | None) -> None:
    """Export host data as JSON, sorted by address."""
    config = load_config(ctx)
    hosts = sort_hosts(SnapshotStore(config.snapshot_file).read_hosts())
    text = json.dumps([h.to_dict() for h in hosts], indent=2)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text + "\n")
    else:
        click.echo(text)
