"""CLI command: denyspam server — read-only web API over saved host data."""

from __future__ import annotations

import click

from denyspam.cli._common import console, load_config


@click.command()
@click.option("--host", default="127.0.0.1", help="Address to bind.")
@click.option("--port", type=int, default=8471, help="Port to listen on.")
@click.pass_context
def server(ctx: click.Context, host: str, port: int) -> None:
    """Serve host statistics over HTTP."""
    try:
        import uvicorn
    except ImportError:
        console.print(
            "[red]Web dependencies not installed.[/red]\n"
            "Install with: pip install denyspam[web]"
        )
        raise SystemExit(1)

    config = load_config(ctx)

    from denyspam.web.app import create_app

    console.print(
        f"[bold]DenySpam[/bold] API starting on [cyan]http://{host}:{port}/api[/cyan]"
    )
    uvicorn.run(create_app(config), host=host, port=port, log_level="info")
