"""Shared helpers for CLI commands."""

import click

from printer_patcher.github.cache import ContentCache
from printer_patcher.sources import ActionSource, RemoteSource, parse_source_selector


def open_source(selector: str, cache: ContentCache) -> ActionSource:
    """Resolve a ``--source`` value, turning malformed selectors into usage errors."""
    try:
        return parse_source_selector(selector, cache)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="'--source'") from e


def close_source(source: ActionSource) -> None:
    """Release the HTTP client held by a remote source."""
    if isinstance(source, RemoteSource):
        source.client.close()
