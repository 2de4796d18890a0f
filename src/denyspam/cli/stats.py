"""CLI command: denyspam stats — show host statistics from saved host data."""

from __future__ import annotations

import time

import click
from rich.console import Console
from rich.table import Table

from denyspam.cli._common import load_config
from denyspam.hosts.models import SORT_KEYS, sort_hosts
from denyspam.storage.snapshot import SnapshotStore

# Shorthand column names accepted by --sort.
_SORT_ALIASES = {
    "host": "address",
    "ip": "address",
    "sessions": "times_seen",
    "seen": "last_seen",
    "lastseen": "last_seen",
    "blocked": "blocked_until",
    "blockeduntil": "blocked_until",
}


def _normalize_sort(value: str) -> str:
    key = value.lower().replace("-", "_").replace(" ", "_")
    key = _SORT_ALIASES.get(key.replace("_", ""), key)
    if key not in SORT_KEYS:
        raise click.BadParameter(
            f"must be one of {', '.join(SORT_KEYS)}", param_hint="--sort"
        )
    return key


def _fmt_time(ts: float | None) -> str:
    if ts is None:
        return ""
    return time.strftime("%b %d %H:%M %Z", time.localtime(ts))


@click.command()
@click.option(
    "--sort",
    "-s",
    "sort_by",
    default="address",
    help="Sort column: address, score, times_seen, last_seen, blocked_until.",
)
@click.option("--reverse", "-r", is_flag=True, help="Sort in descending order.")
@click.option("--address", "-a", default=None, help="Show only this address.")
@click.pass_context
def stats(
    ctx: click.Context,
    sort_by: str,
    reverse: bool,
    address: str | None,
) -> None:
    """Display host statistics from the saved host data."""
    sort_by = _normalize_sort(sort_by)
    config = load_config(ctx)
    hosts = SnapshotStore(config.snapshot_file).read_hosts()
    if address is not None:
        hosts = [h for h in hosts if h.address == address]
    hosts = sort_hosts(hosts, sort_by=sort_by, descending=reverse)

    console = Console()
    if not hosts:
        console.print("[dim]No host data.[/dim]")
        return

    table = Table(title=f"DenySpam hosts ({len(hosts)})")
    table.add_column("Host")
    table.add_column("Score", justify="right")
    table.add_column("Sessions", justify="right")
    table.add_column("Last seen")
    table.add_column("Blocked until")

    for host in hosts:
        score = f"[red]{host.score}[/red]" if host.spammer else str(host.score)
        table.add_row(
            host.address,
            score,
            str(host.times_seen),
            _fmt_time(host.last_seen),
            _fmt_time(host.blocked_until),
        )
    console.print(table)
