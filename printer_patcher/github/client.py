"""GitHub client for one repository: revision discovery and raw file fetch.

Revisions are the ``main`` branch (when it exists) plus the tag of every
non-draft release, behind a synthetic ``local`` entry. Raw files are read
from ``raw.githubusercontent.com`` through the shared ``ContentCache``.
"""

import logging
from typing import Any

import httpx

from printer_patcher.config.repositories import RepositoryIdentity
from printer_patcher.errors import InvalidSourceError, UpstreamError
from printer_patcher.github.cache import ContentCache
from printer_patcher.settings import (
    get_github_api_url,
    get_github_token,
    get_http_timeout,
    get_raw_content_url,
    get_user_agent,
)

logger = logging.getLogger(__name__)

LOCAL_REVISION = "local"
MAIN_BRANCH = "main"

# Catalog and scripts live under this directory in the repository
SCRIPT_ROOT = "config"
CONFIG_PATH = f"{SCRIPT_ROOT}/actions.yaml"


def normalize_script_path(path: str) -> str:
    """Return ``path`` under ``SCRIPT_ROOT``, whether or not it was prefixed."""
    path = path.lstrip("/")
    prefix = f"{SCRIPT_ROOT}/"
    if path.startswith(prefix):
        path = path[len(prefix) :]
    return prefix + path


class RepositoryClient:
    """Revision listing and cached raw-content fetch for one repository.

    Args:
        repository: Repository to talk to.
        cache: Shared content cache (one per process).
        http_client: Optional pre-configured ``httpx.Client``; when omitted
            the client creates and owns one.
    """

    def __init__(
        self,
        repository: RepositoryIdentity,
        cache: ContentCache,
        http_client: httpx.Client | None = None,
    ):
        self.repository = repository
        self.cache = cache
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(
            timeout=get_http_timeout(),
            follow_redirects=True,
            headers={"User-Agent": get_user_agent()},
        )
        self.api_url = get_github_api_url()
        self.raw_url = get_raw_content_url()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "RepositoryClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Revision discovery
    # ------------------------------------------------------------------

    def _api_get(self, endpoint: str) -> list[dict[str, Any]]:
        url = f"{self.api_url}/repos/{self.repository.slug}/{endpoint}"
        headers = {"Accept": "application/vnd.github+json"}
        if token := get_github_token():
            headers["Authorization"] = f"Bearer {token}"

        logger.debug("Fetching %s", url)
        try:
            response = self._http.get(url, headers=headers, params={"per_page": 100})
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"GitHub API request failed: {url}: {e}", url=url
            ) from e

        if not response.is_success:
            raise UpstreamError(
                f"GitHub API error: {response.status_code} {response.reason_phrase} "
                f"- {response.text[:200]}",
                url=url,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON from {url}: {e}", url=url) from e
        if not isinstance(data, list):
            raise UpstreamError(f"Unexpected response shape from {url}", url=url)
        return data

    def get_branches(self) -> list[dict[str, Any]]:
        branches = self._api_get("branches")
        logger.debug("Found %d branches for %s", len(branches), self.repository)
        return branches

    def get_releases(self) -> list[dict[str, Any]]:
        releases = self._api_get("releases")
        logger.debug("Found %d releases for %s", len(releases), self.repository)
        return releases

    def list_revisions(self) -> list[str]:
        """Return ``["local", "main"?, <release tags>...]``.

        Draft releases are skipped; prereleases are kept.

        Raises:
            UpstreamError: If either the branch or the release listing fails.
        """
        branches = self.get_branches()
        releases = self.get_releases()

        revisions = [LOCAL_REVISION]
        if any(branch.get("name") == MAIN_BRANCH for branch in branches):
            revisions.append(MAIN_BRANCH)
        for release in releases:
            tag = release.get("tag_name")
            if tag and not release.get("draft", False):
                revisions.append(tag)

        logger.info("Available revisions for %s: %s", self.repository, revisions)
        return revisions

    # ------------------------------------------------------------------
    # Raw content
    # ------------------------------------------------------------------

    def content_url(self, revision: str, path: str) -> str:
        return f"{self.raw_url}/{self.repository.slug}/{revision}/{path.lstrip('/')}"

    def fetch_file(self, revision: str, path: str) -> bytes:
        """Fetch ``path`` at ``revision``, consulting the cache first.

        Cache read and write failures are logged and treated as a miss;
        the fetched content is still returned.

        Raises:
            InvalidSourceError: For the ``local`` revision.
            UpstreamError: On network failure or non-2xx status.
        """
        if revision == LOCAL_REVISION:
            raise InvalidSourceError("Cannot download files for the local source")

        url = self.content_url(revision, path)
        try:
            cached = self.cache.get(url)
        except OSError as e:
            logger.warning("Cache unreadable for %s, downloading: %s", url, e)
            cached = None
        if cached is not None:
            return cached

        logger.info("Downloading %s", url)
        try:
            response = self._http.get(url)
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Failed to download {path} at {revision}: {e}", url=url, path=path
            ) from e

        if not response.is_success:
            raise UpstreamError(
                f"Failed to download {path} at {revision}: HTTP {response.status_code}",
                url=url,
                path=path,
                status_code=response.status_code,
            )

        content = response.content
        try:
            self.cache.put(url, content)
        except OSError as e:
            logger.warning("Failed to cache %s: %s", url, e)

        logger.debug("Downloaded %s (%d bytes)", url, len(content))
        return content

    def fetch_config(self, revision: str) -> bytes:
        return self.fetch_file(revision, CONFIG_PATH)

    def fetch_script(self, revision: str, path: str) -> bytes:
        return self.fetch_file(revision, normalize_script_path(path))
