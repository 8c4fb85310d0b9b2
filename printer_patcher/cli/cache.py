"""Cache commands - inspect and clear downloaded content."""

import click
from rich.console import Console

from printer_patcher.github.cache import ContentCache

console = Console()


def _format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.1f} TB"


@click.group()
def cache() -> None:
    """Manage the download cache.

    \b
      printer-patcher cache info    Show location and size
      printer-patcher cache clear   Remove all cached entries
    """
    pass


@cache.command("info")
def cache_info() -> None:
    """Show cache location, entry count and size."""
    stats = ContentCache().stats()
    console.print(f"Cache directory: [cyan]{stats.path}[/cyan]")
    console.print(f"Entries: {stats.entries}")
    console.print(f"Size: {_format_size(stats.total_bytes)}")


@cache.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def cache_clear(yes: bool) -> None:
    """Remove every cached entry."""
    content_cache = ContentCache()
    if not yes:
        click.confirm(f"Clear {content_cache.directory}?", abort=True)
    removed = content_cache.stats().entries
    try:
        content_cache.clear()
    except OSError as e:
        raise click.ClickException(f"Could not clear cache: {e}") from e
    console.print(f"[green]Removed {removed} cached entries[/green]")
