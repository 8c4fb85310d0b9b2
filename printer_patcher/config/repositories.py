"""Repository identities for remote action sources.

The ordered list comes from the bundled ``repo.yaml`` unless overridden by
settings (env var or pyproject). The first entry is the default
repository; an empty list falls back to ``DEFAULT_REPOSITORY``.
"""

import logging
from dataclasses import dataclass
from importlib.resources import files

import yaml

from printer_patcher.errors import CatalogParseError
from printer_patcher.settings import get_repository_slugs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepositoryIdentity:
    """GitHub repository (owner, name) pair."""

    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def from_slug(cls, slug: str) -> "RepositoryIdentity":
        """Parse ``"owner/name"``.

        Raises:
            ValueError: If the slug is not of the form owner/name.
        """
        owner, sep, name = slug.strip().partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ValueError(f"Invalid repository '{slug}', expected owner/name")
        return cls(owner=owner, name=name)

    def __str__(self) -> str:
        return self.slug


DEFAULT_REPOSITORY = RepositoryIdentity(owner="pijalu", name="printer-patcher")


def _load_bundled() -> list[dict]:
    content = files("printer_patcher.config").joinpath("repo.yaml").read_text()
    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise CatalogParseError(f"Invalid repo.yaml: {e}") from e
    return data.get("repositories") or []


def load_repositories() -> tuple[RepositoryIdentity, ...]:
    """Return the configured repositories, default first.

    Never empty: falls back to ``DEFAULT_REPOSITORY``.
    """
    slugs = get_repository_slugs()
    if slugs is not None:
        repos = [RepositoryIdentity.from_slug(slug) for slug in slugs]
    else:
        repos = [
            RepositoryIdentity(owner=str(entry["owner"]), name=str(entry["name"]))
            for entry in _load_bundled()
        ]

    if not repos:
        logger.debug("No repositories configured, using %s", DEFAULT_REPOSITORY)
        repos = [DEFAULT_REPOSITORY]
    return tuple(repos)


def default_repository(
    repositories: tuple[RepositoryIdentity, ...] | None = None,
) -> RepositoryIdentity:
    repos = repositories if repositories is not None else load_repositories()
    return repos[0] if repos else DEFAULT_REPOSITORY
