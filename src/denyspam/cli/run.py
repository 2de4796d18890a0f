"""CLI command: denyspam run — follow the mail log and block spammers."""

from __future__ import annotations

import signal

import click

from denyspam.cli._common import console, load_config
from denyspam.config import ConfigError
from denyspam.daemon import Daemon
from denyspam.firewall import LogFirewall


@click.command()
@click.option(
    "--dry-run",
    is_flag=True,
    help="Log blocks instead of touching the firewall.",
)
@click.pass_context
def run(ctx: click.Context, dry_run: bool) -> None:
    """Monitor the mail log in the foreground until interrupted."""
    config = load_config(ctx)

    try:
        daemon = Daemon(config, firewall=LogFirewall() if dry_run else None)
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise SystemExit(1)

    console.print(
        f"[bold]DenySpam[/bold] monitoring [cyan]{config.log_file}[/cyan]"
        + (" [yellow](dry run)[/yellow]" if dry_run else "")
    )
    console.print(
        f"  Rules: {len(daemon.engine.rules)}, "
        f"Block unit: {config.block_minutes} min/point"
    )
    console.print("  Press Ctrl+C to stop.\n")

    def _signal_handler(signum: int, frame: object) -> None:
        console.print("\n[dim]Stopping...[/dim]")
        daemon.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)
    if hasattr(signal, "SIGQUIT"):
        signal.signal(signal.SIGQUIT, _signal_handler)

    daemon.start()
    try:
        daemon.wait()
    except KeyboardInterrupt:
        daemon.stop()
    finally:
        daemon.shutdown()
