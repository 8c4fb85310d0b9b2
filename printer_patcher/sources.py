"""Action sources: where the catalog and step scripts come from.

A source is either the bundled local resource set (``LocalSource``) or a
GitHub repository at a branch or release tag (``RemoteSource``). Both
expose the same three operations, described by ``ActionSource``.

Source identifiers:

- ``local``
- ``owner/name@revision``   (canonical form, returned by ``source_name()``)
- ``[owner/name] revision`` (accepted by ``parse_source_selector``)
- ``revision``              (default repository)

Switching sources means constructing a new instance. Catalogs are frozen,
so one obtained from a previous source stays valid for whoever holds it.
"""

import logging
import re
import threading
import time
from collections.abc import Callable, Sequence
from importlib.resources import files
from typing import Protocol, runtime_checkable

from printer_patcher.config.models import Catalog, parse_catalog
from printer_patcher.config.repositories import (
    RepositoryIdentity,
    default_repository,
    load_repositories,
)
from printer_patcher.errors import NotFoundError, UpstreamError
from printer_patcher.github.cache import ContentCache
from printer_patcher.github.client import (
    LOCAL_REVISION,
    SCRIPT_ROOT,
    RepositoryClient,
)
from printer_patcher.settings import get_cache_ttl

logger = logging.getLogger(__name__)

LOCAL_SOURCE = LOCAL_REVISION
LOCAL_PACKAGE = "printer_patcher.config"
CATALOG_RESOURCE = "actions.yaml"

_BRACKETED_SELECTOR = re.compile(r"^\[(?P<repo>[^\]\s]+)\]\s+(?P<revision>\S+)$")


@runtime_checkable
class ActionSource(Protocol):
    """Provider of an action catalog and its step scripts."""

    def load_catalog(self) -> Catalog: ...

    def load_step(self, script_ref: str) -> str: ...

    def source_name(self) -> str: ...


def format_source_name(repository: RepositoryIdentity, revision: str) -> str:
    return f"{repository.slug}@{revision}"


class LocalSource:
    """Catalog and scripts from the packaged ``printer_patcher.config`` resources."""

    def __init__(self, package: str = LOCAL_PACKAGE):
        self.package = package

    def _read(self, relative: str) -> str:
        resource = files(self.package)
        for part in relative.strip("/").split("/"):
            resource = resource.joinpath(part)
        if not resource.is_file():
            raise NotFoundError(f"Local resource not found: {relative}")
        return resource.read_text(encoding="utf-8")

    def load_catalog(self) -> Catalog:
        logger.debug("Loading catalog from local resources")
        catalog = parse_catalog(self._read(CATALOG_RESOURCE), origin="local")
        logger.info("Loaded %d actions from local source", len(catalog.actions))
        return catalog

    def load_step(self, script_ref: str) -> str:
        """Read a bundled step script.

        ``script_ref`` may carry the repository's ``config/`` prefix.

        Raises:
            NotFoundError: If the script is not bundled.
        """
        relative = script_ref.lstrip("/")
        if relative.startswith(f"{SCRIPT_ROOT}/"):
            relative = relative[len(SCRIPT_ROOT) + 1 :]
        logger.debug("Loading step script from local: %s", relative)
        return self._read(relative)

    def source_name(self) -> str:
        return LOCAL_SOURCE

    def __repr__(self) -> str:
        return "LocalSource()"


class RemoteSource:
    """Catalog and scripts from a GitHub repository at one revision."""

    def __init__(self, client: RepositoryClient, revision: str):
        self.client = client
        self.revision = revision

    @property
    def repository(self) -> RepositoryIdentity:
        return self.client.repository

    def load_catalog(self) -> Catalog:
        """Download and parse the catalog at this revision.

        Raises:
            UpstreamError: If the download fails.
            CatalogParseError: If the content is not a valid catalog.
        """
        name = self.source_name()
        data = self.client.fetch_config(self.revision)
        catalog = parse_catalog(data, origin=name)
        logger.info("Loaded %d actions from %s", len(catalog.actions), name)
        return catalog

    def load_step(self, script_ref: str) -> str:
        logger.debug("Loading step script %s from %s", script_ref, self.source_name())
        data = self.client.fetch_script(self.revision, script_ref)
        return data.decode("utf-8", errors="replace")

    def source_name(self) -> str:
        return format_source_name(self.repository, self.revision)

    def __repr__(self) -> str:
        return f"RemoteSource({self.source_name()!r})"


def parse_source_selector(
    selector: str,
    cache: ContentCache,
    repositories: Sequence[RepositoryIdentity] | None = None,
    client_factory: Callable[[RepositoryIdentity, ContentCache], RepositoryClient]
    | None = None,
) -> ActionSource:
    """Build the source named by ``selector``.

    Accepts ``local``, ``owner/name@revision``, ``[owner/name] revision`` or
    a bare revision of the default repository.

    Raises:
        ValueError: If the selector is empty or names a malformed repository.
    """
    selector = selector.strip()
    if not selector:
        raise ValueError("Empty source selector")
    if selector == LOCAL_SOURCE:
        return LocalSource()

    factory = client_factory or RepositoryClient
    if match := _BRACKETED_SELECTOR.match(selector):
        repository = RepositoryIdentity.from_slug(match["repo"])
        revision = match["revision"]
    elif "@" in selector:
        slug, _, revision = selector.rpartition("@")
        repository = RepositoryIdentity.from_slug(slug)
    else:
        repos = tuple(repositories) if repositories is not None else None
        repository = default_repository(repos)
        revision = selector

    if not revision:
        raise ValueError(f"Missing revision in source selector '{selector}'")

    logger.debug("Selected %s at %s", repository, revision)
    return RemoteSource(factory(repository, cache), revision)


class SourceListCache:
    """Process-wide memo of discovered source names with a fixed TTL."""

    def __init__(
        self, ttl: float | None = None, clock: Callable[[], float] = time.time
    ):
        self.ttl = ttl if ttl is not None else get_cache_ttl()
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[list[str], float]] = {}

    def get(self, key: str) -> list[str] | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            sources, stored_at = entry
            if self._clock() - stored_at > self.ttl:
                del self._entries[key]
                return None
            return list(sources)

    def put(self, key: str, sources: list[str]) -> None:
        with self._lock:
            self._entries[key] = (list(sources), self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class SourceDiscovery:
    """Enumerate selectable sources across all configured repositories.

    Repositories whose revision listing fails are logged and skipped, so
    one unreachable repository never hides the others or ``local``.
    """

    def __init__(
        self,
        cache: ContentCache,
        repositories: Sequence[RepositoryIdentity] | None = None,
        source_list_cache: SourceListCache | None = None,
        client_factory: Callable[[RepositoryIdentity, ContentCache], RepositoryClient]
        | None = None,
    ):
        self.cache = cache
        self.repositories = (
            tuple(repositories) if repositories is not None else load_repositories()
        )
        self.source_list_cache = source_list_cache or SourceListCache()
        self._client_factory = client_factory or RepositoryClient

    @property
    def _cache_key(self) -> str:
        return ",".join(repo.slug for repo in self.repositories)

    def fetch_sources(self) -> list[str]:
        sources = [LOCAL_SOURCE]
        for repository in self.repositories:
            client = self._client_factory(repository, self.cache)
            try:
                revisions = client.list_revisions()
            except UpstreamError as e:
                logger.warning("Error fetching revisions for %s: %s", repository, e)
                continue
            finally:
                client.close()
            sources.extend(
                format_source_name(repository, revision)
                for revision in revisions
                if revision != LOCAL_REVISION
            )
        logger.info("Available sources: %s", sources)
        return sources

    def list_sources(self, refresh: bool = False) -> list[str]:
        """Return ``["local", "owner/name@revision", ...]``, memoized."""
        if not refresh:
            cached = self.source_list_cache.get(self._cache_key)
            if cached is not None:
                logger.debug("Using cached sources")
                return cached
        sources = self.fetch_sources()
        self.source_list_cache.put(self._cache_key, sources)
        return sources
