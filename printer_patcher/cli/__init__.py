"""CLI interface for printer-patcher.

Modular CLI structure with commands split by functionality.
"""

import logging

import click
from dotenv import load_dotenv

from printer_patcher import __version__

# Load environment variables (GITHUB_TOKEN, PRINTER_PATCHER_*) from .env
load_dotenv(override=False)

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.option(
    "--version",
    is_flag=True,
    help="Show the printer-patcher version and exit.",
)
@click.pass_context
def main(ctx: click.Context, version: bool) -> None:
    """printer-patcher - run maintenance actions on a printer over SSH.

    \b
      printer-patcher actions                 List actions of the local catalog
      printer-patcher sources                 List local and remote sources
      printer-patcher run HOST ACTION         Run an action headless
      printer-patcher run HOST ACTION -s main Run using the main branch
      printer-patcher cache clear             Drop cached downloads
      printer-patcher escape 'V1.2 (beta)'    Build an expected pattern
    """
    if version:
        click.echo(__version__)
        ctx.exit()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def register_commands() -> None:
    """Register all commands with the main CLI."""
    from printer_patcher.cli.cache import cache
    from printer_patcher.cli.catalog import actions, sources
    from printer_patcher.cli.escape import escape
    from printer_patcher.cli.run import run

    main.add_command(run)
    main.add_command(actions)
    main.add_command(sources)
    main.add_command(cache)
    main.add_command(escape)


# Register commands at import time
register_commands()

__all__ = ["main"]
