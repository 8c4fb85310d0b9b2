"""Tests for config/repositories.py - repository identities."""

import pytest

from printer_patcher.config.repositories import (
    DEFAULT_REPOSITORY,
    RepositoryIdentity,
    default_repository,
    load_repositories,
)


class TestRepositoryIdentity:
    def test_slug_round_trip(self):
        repo = RepositoryIdentity.from_slug("acme/patches")
        assert (repo.owner, repo.name) == ("acme", "patches")
        assert repo.slug == "acme/patches"
        assert str(repo) == "acme/patches"

    @pytest.mark.parametrize("slug", ["", "acme", "/patches", "acme/", "a/b/c"])
    def test_invalid_slug(self, slug):
        with pytest.raises(ValueError, match="expected owner/name"):
            RepositoryIdentity.from_slug(slug)


class TestLoadRepositories:
    """Tests for load_repositories and default_repository."""

    def test_bundled_list(self):
        """Without overrides the bundled repo.yaml is used."""
        assert load_repositories() == (DEFAULT_REPOSITORY,)

    def test_env_override_keeps_order(self, monkeypatch):
        monkeypatch.setenv("PRINTER_PATCHER_REPOSITORIES", "b/two,a/one")
        repos = load_repositories()
        assert [repo.slug for repo in repos] == ["b/two", "a/one"]
        assert default_repository(repos).slug == "b/two"

    def test_default_for_empty_list(self):
        assert default_repository(()) == DEFAULT_REPOSITORY
