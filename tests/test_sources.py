"""Tests for sources.py - local/remote sources, selectors and discovery."""

import httpx
import pytest
import yaml

from printer_patcher.config.repositories import RepositoryIdentity
from printer_patcher.errors import CatalogParseError, NotFoundError, UpstreamError
from printer_patcher.github.cache import ContentCache
from printer_patcher.github.client import RepositoryClient
from printer_patcher.sources import (
    ActionSource,
    LocalSource,
    RemoteSource,
    SourceDiscovery,
    SourceListCache,
    parse_source_selector,
)

REPO = RepositoryIdentity("acme", "patches")

REMOTE_CATALOG = b"""
username: admin
password: pw
actions:
  - title: Remote only
    steps:
      - title: Run
        script: scripts/remote.sh
        expected: done
"""


@pytest.fixture
def cache(tmp_path):
    return ContentCache(tmp_path / "cache", ttl=3600)


def remote_source(handler, cache, revision="v1.0") -> RemoteSource:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return RemoteSource(RepositoryClient(REPO, cache, http_client=http), revision)


def serve(content: bytes):
    return lambda request: httpx.Response(200, content=content)


class FakeClient:
    """Stands in for RepositoryClient in selector and discovery tests."""

    def __init__(self, repository, revisions=None, error=None):
        self.repository = repository
        self.revisions = revisions or ["local"]
        self.error = error
        self.closed = False

    def list_revisions(self):
        if self.error is not None:
            raise self.error
        return self.revisions

    def close(self):
        self.closed = True


class TestLocalSource:
    """Tests for the bundled local source."""

    def test_load_catalog(self):
        catalog = LocalSource().load_catalog()
        assert catalog.username == "root"
        assert "Check system" in catalog.action_titles

    def test_source_name(self):
        assert LocalSource().source_name() == "local"

    def test_implements_protocol(self):
        assert isinstance(LocalSource(), ActionSource)

    def test_load_step_with_and_without_prefix(self):
        """Scripts resolve whether or not the ref carries config/."""
        source = LocalSource()
        plain = source.load_step("scripts/check_space.sh")
        prefixed = source.load_step("config/scripts/check_space.sh")
        assert plain == prefixed
        assert plain.startswith("#!/bin/sh")

    def test_missing_step_raises(self):
        with pytest.raises(NotFoundError, match="missing.sh"):
            LocalSource().load_step("scripts/missing.sh")

    def test_every_bundled_script_resolves(self):
        """Each script file the bundled catalog references is shipped."""
        source = LocalSource()
        for action in source.load_catalog().actions:
            for ref in action.script_refs():
                assert source.load_step(ref)


class TestRemoteSource:
    """Tests for RemoteSource over a mocked GitHub."""

    def test_load_catalog(self, cache):
        source = remote_source(serve(REMOTE_CATALOG), cache)
        catalog = source.load_catalog()
        assert catalog.action_titles == ["Remote only"]
        assert catalog.username == "admin"

    def test_source_name(self, cache):
        source = remote_source(lambda r: httpx.Response(200), cache, revision="main")
        assert source.source_name() == "acme/patches@main"
        assert isinstance(source, ActionSource)

    def test_load_step_decodes_text(self, cache):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, content="echo café\n".encode())

        source = remote_source(handler, cache)
        assert source.load_step("scripts/remote.sh") == "echo café\n"
        assert paths == ["/acme/patches/v1.0/config/scripts/remote.sh"]

    def test_malformed_catalog(self, cache):
        source = remote_source(serve(b"[unclosed"), cache)
        with pytest.raises(CatalogParseError, match="acme/patches@v1.0"):
            source.load_catalog()

    def test_download_failure(self, cache):
        source = remote_source(lambda r: httpx.Response(503), cache)
        with pytest.raises(UpstreamError):
            source.load_catalog()

    def test_previous_catalog_unchanged_after_switch(self, cache):
        """Switching sources leaves an earlier catalog intact."""
        local_catalog = LocalSource().load_catalog()
        snapshot = local_catalog.model_dump()

        source = remote_source(serve(REMOTE_CATALOG), cache)
        remote_catalog = source.load_catalog()

        assert local_catalog.model_dump() == snapshot
        assert remote_catalog.action_titles == ["Remote only"]


class TestParseSourceSelector:
    """Tests for parse_source_selector."""

    @staticmethod
    def factory(repository, cache):
        return FakeClient(repository)

    def test_local(self, cache):
        assert isinstance(parse_source_selector("local", cache), LocalSource)

    def test_canonical_form(self, cache):
        source = parse_source_selector(
            "acme/patches@v2.0", cache, client_factory=self.factory
        )
        assert isinstance(source, RemoteSource)
        assert source.repository == REPO
        assert source.revision == "v2.0"
        assert source.source_name() == "acme/patches@v2.0"

    def test_bracketed_form(self, cache):
        source = parse_source_selector(
            "[acme/patches] main", cache, client_factory=self.factory
        )
        assert source.source_name() == "acme/patches@main"

    def test_bare_revision_uses_default_repository(self, cache):
        source = parse_source_selector(
            "v1.0",
            cache,
            repositories=[RepositoryIdentity("first", "repo"), REPO],
            client_factory=self.factory,
        )
        assert source.source_name() == "first/repo@v1.0"

    @pytest.mark.parametrize("selector", ["", "   ", "acme/patches@", "acme@v1"])
    def test_invalid(self, cache, selector):
        with pytest.raises(ValueError):
            parse_source_selector(selector, cache, client_factory=self.factory)


class TestSourceListCache:
    def test_expiry(self):
        now = [1000.0]
        memo = SourceListCache(ttl=10, clock=lambda: now[0])
        memo.put("k", ["local"])
        assert memo.get("k") == ["local"]
        now[0] += 11
        assert memo.get("k") is None

    def test_returns_copies(self):
        memo = SourceListCache(ttl=10)
        memo.put("k", ["local"])
        memo.get("k").append("x")
        assert memo.get("k") == ["local"]


class TestSourceDiscovery:
    """Tests for SourceDiscovery."""

    def make_discovery(self, cache, clients):
        created = []

        def factory(repository, _cache):
            client = clients[repository.slug]
            created.append(client)
            return client

        discovery = SourceDiscovery(
            cache,
            repositories=[RepositoryIdentity.from_slug(s) for s in clients],
            source_list_cache=SourceListCache(ttl=3600),
            client_factory=factory,
        )
        return discovery, created

    def test_lists_across_repositories(self, cache):
        clients = {
            "acme/patches": FakeClient(REPO, ["local", "main", "v1.0"]),
            "other/mods": FakeClient(
                RepositoryIdentity("other", "mods"), ["local", "v0.1"]
            ),
        }
        discovery, _ = self.make_discovery(cache, clients)
        assert discovery.list_sources() == [
            "local",
            "acme/patches@main",
            "acme/patches@v1.0",
            "other/mods@v0.1",
        ]

    def test_failing_repository_skipped(self, cache):
        """One unreachable repository never hides the others."""
        clients = {
            "broken/repo": FakeClient(
                RepositoryIdentity("broken", "repo"), error=UpstreamError("boom")
            ),
            "acme/patches": FakeClient(REPO, ["local", "main"]),
        }
        discovery, created = self.make_discovery(cache, clients)
        assert discovery.list_sources() == ["local", "acme/patches@main"]
        assert all(client.closed for client in created)

    def test_memoized_until_refresh(self, cache):
        clients = {"acme/patches": FakeClient(REPO, ["local", "main"])}
        discovery, created = self.make_discovery(cache, clients)

        discovery.list_sources()
        discovery.list_sources()
        assert len(created) == 1

        discovery.list_sources(refresh=True)
        assert len(created) == 2

    def test_bundled_repositories_by_default(self, cache):
        discovery = SourceDiscovery(cache)
        assert [repo.slug for repo in discovery.repositories] == [
            "pijalu/printer-patcher"
        ]


class TestBundledCatalogFile:
    def test_catalog_is_valid_yaml(self):
        """The packaged actions.yaml parses as plain YAML too."""
        from importlib.resources import files

        text = files("printer_patcher.config").joinpath("actions.yaml").read_text()
        assert isinstance(yaml.safe_load(text)["actions"], list)
