"""Catalog commands - list actions of a source and the available sources."""

import click
from rich.console import Console
from rich.table import Table

from printer_patcher.cli.logging import configure_cli_logging
from printer_patcher.cli.utils import close_source, open_source
from printer_patcher.errors import PatcherError
from printer_patcher.github.cache import ContentCache
from printer_patcher.sources import SourceDiscovery

console = Console()


@click.command()
@click.option(
    "--source",
    "-s",
    default="local",
    show_default=True,
    help="Source to read the catalog from",
)
@click.option("--steps", is_flag=True, help="Also list the steps of each action")
@click.option("--verbose", "-v", is_flag=True, help="Show INFO logs on the console")
def actions(source: str, steps: bool, verbose: bool) -> None:
    """List the actions available in a source."""
    configure_cli_logging("actions", verbose=verbose)
    action_source = open_source(source, ContentCache())
    try:
        catalog = action_source.load_catalog()
    except PatcherError as e:
        raise click.ClickException(str(e)) from e
    finally:
        close_source(action_source)

    table = Table(title=f"Actions ({action_source.source_name()})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Action", style="cyan")
    table.add_column("Steps", justify="right")
    table.add_column("Description")
    for index, action in enumerate(catalog.actions, start=1):
        table.add_row(
            str(index), action.title, str(len(action.steps)), action.description
        )
    console.print(table)

    if steps:
        for action in catalog.actions:
            step_table = Table(title=action.title, title_justify="left")
            step_table.add_column("#", justify="right", style="dim")
            step_table.add_column("Step")
            step_table.add_column("Script", style="cyan")
            step_table.add_column("Expected", style="green")
            for index, step in enumerate(action.steps, start=1):
                step_table.add_row(
                    str(index), step.title, step.script, step.expected or "-"
                )
            console.print(step_table)


@click.command()
@click.option("--refresh", is_flag=True, help="Ignore the memoized source list")
@click.option("--verbose", "-v", is_flag=True, help="Show INFO logs on the console")
def sources(refresh: bool, verbose: bool) -> None:
    """List selectable sources: local plus branches and releases."""
    configure_cli_logging("sources", verbose=verbose)
    discovery = SourceDiscovery(ContentCache())
    for name in discovery.list_sources(refresh=refresh):
        console.print(name)
