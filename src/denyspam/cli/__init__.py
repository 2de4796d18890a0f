"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging
import logging.handlers
import os

import click

from denyspam import __version__
from denyspam.config import default_config_file


def _syslog_handler() -> logging.Handler:
    address = "/dev/log" if os.path.exists("/dev/log") else ("localhost", 514)
    handler = logging.handlers.SysLogHandler(
        address=address,
        facility=logging.handlers.SysLogHandler.LOG_MAIL,
    )
    handler.setFormatter(logging.Formatter("denyspam[%(process)d]: %(message)s"))
    return handler


@click.group()
@click.version_option(version=__version__, prog_name="denyspam")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Path to the YAML config file (default: $DENYSPAM_CONF or "
    "/usr/local/etc/denyspam.yaml).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option("--syslog", is_flag=True, help="Also log to syslog (mail facility).")
@click.pass_context
def main(
    ctx: click.Context,
    config_path: str | None,
    verbose: bool,
    syslog: bool,
) -> None:
    """DenySpam — block mail servers that behave like spammers."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path or str(default_config_file())
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    if syslog:
        logging.getLogger().addHandler(_syslog_handler())


def _register_commands() -> None:
    from denyspam.cli.export import export  # noqa: F811
    from denyspam.cli.run import run  # noqa: F811
    from denyspam.cli.server import server  # noqa: F811
    from denyspam.cli.stats import stats  # noqa: F811

    main.add_command(run)
    main.add_command(stats)
    main.add_command(export)
    main.add_command(server)


_register_commands()
