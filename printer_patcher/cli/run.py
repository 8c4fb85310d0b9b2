"""Run command - headless execution of one action."""

import click
from rich.console import Console

from printer_patcher.cli.logging import configure_cli_logging
from printer_patcher.cli.utils import close_source, open_source
from printer_patcher.core.progress_monitor import ActionProgressMonitor
from printer_patcher.engine import ExecutionEngine
from printer_patcher.errors import PatcherError, SSHConnectionError
from printer_patcher.github.cache import ContentCache
from printer_patcher.remote.session import Credentials

console = Console()


@click.command()
@click.argument("host")
@click.argument("action_title", metavar="ACTION")
@click.option(
    "--source",
    "-s",
    default="local",
    show_default=True,
    help="local, a revision of the default repository, owner/name@revision "
    'or "[owner/name] revision"',
)
@click.option("--port", type=int, default=None, help="SSH port (default: 22)")
@click.option("--username", default=None, help="Override the catalog username")
@click.option("--password", default=None, help="Override the catalog password")
@click.option("--verbose", "-v", is_flag=True, help="Show INFO logs on the console")
@click.pass_context
def run(
    ctx: click.Context,
    host: str,
    action_title: str,
    source: str,
    port: int | None,
    username: str | None,
    password: str | None,
    verbose: bool,
) -> None:
    """Run ACTION against the printer at HOST.

    Exits 0 only when every step of the action validated successfully.
    """
    log_file = configure_cli_logging("run", host=host, verbose=verbose)
    action_source = open_source(source, ContentCache())

    try:
        console.print(f"Using source: [cyan]{action_source.source_name()}[/cyan]")
        try:
            catalog = action_source.load_catalog()
            action = catalog.find_action(action_title)
        except PatcherError as e:
            raise click.ClickException(str(e)) from e

        credentials = Credentials(
            username=username if username is not None else catalog.username,
            password=password if password is not None else catalog.password,
        )

        with ActionProgressMonitor(action.title, console=console) as monitor:
            engine = ExecutionEngine(action_source, port=port, on_event=monitor)
            report = engine.run(action, host, credentials)
    finally:
        close_source(action_source)

    monitor.print_summary(report)
    if isinstance(report.error, SSHConnectionError) and report.error.suggestion:
        console.print(f"[dim]Hint: {report.error.suggestion}[/dim]")
    if not report.succeeded:
        console.print(f"[dim]Log: {log_file}[/dim]")
        ctx.exit(1)
