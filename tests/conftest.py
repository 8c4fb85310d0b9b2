"""Shared fixtures: isolated settings, fake sources and fake SSH sessions."""

import pytest

from printer_patcher import settings
from printer_patcher.errors import NotFoundError


class FakeSource:
    """In-memory action source recording every script load."""

    def __init__(self, scripts: dict[str, str] | None = None, name: str = "fake"):
        self.scripts = scripts or {}
        self.name = name
        self.loads: list[str] = []

    def load_catalog(self):
        raise NotImplementedError

    def load_step(self, script_ref: str) -> str:
        self.loads.append(script_ref)
        if script_ref not in self.scripts:
            raise NotFoundError(f"Local resource not found: {script_ref}")
        return self.scripts[script_ref]

    def source_name(self) -> str:
        return self.name


class FakeSession:
    """Session answering commands from a mapping, or in call order."""

    def __init__(self, responses=None, outputs=None):
        self.responses = responses or {}
        self.outputs = list(outputs or [])
        self.commands: list[str] = []
        self.closed = False
        self.on_run = None

    def run(self, command: str) -> tuple[str, str | None]:
        self.commands.append(command)
        if self.on_run is not None:
            self.on_run(command)
        if self.outputs:
            return self.outputs.pop(0)
        return self.responses.get(command, ("", None))

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep every test away from the user's cache, logs and env overrides."""
    for name in (
        "PRINTER_PATCHER_CACHE_TTL",
        "PRINTER_PATCHER_GITHUB_API_URL",
        "PRINTER_PATCHER_RAW_CONTENT_URL",
        "PRINTER_PATCHER_HTTP_TIMEOUT",
        "PRINTER_PATCHER_SSH_PORT",
        "PRINTER_PATCHER_SSH_TIMEOUT",
        "PRINTER_PATCHER_REPOSITORIES",
        "GITHUB_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PRINTER_PATCHER_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("PRINTER_PATCHER_RICH", "0")
    monkeypatch.setattr("printer_patcher.cli.logging.LOG_DIR", tmp_path / "logs")
    settings._load_pyproject_settings.cache_clear()
    yield
    settings._load_pyproject_settings.cache_clear()


@pytest.fixture
def fake_source():
    return FakeSource


@pytest.fixture
def fake_session():
    return FakeSession
