"""Project settings loaded from pyproject.toml [tool.printer-patcher] section.

Configuration is organized into subsections:
  [tool.printer-patcher]         : general settings (repositories)
  [tool.printer-patcher.cache]   : content cache directory and TTL
  [tool.printer-patcher.github]  : API / raw-content URLs, timeout, user agent
  [tool.printer-patcher.ssh]     : SSH port and connect timeout

All settings support environment variable overrides (PRINTER_PATCHER_* prefix,
plus GITHUB_TOKEN).
"""

import importlib.resources
import os
import tempfile
import tomllib
from functools import cache
from pathlib import Path


@cache
def _load_pyproject_settings() -> dict:
    """Load settings from pyproject.toml [tool.printer-patcher] section.

    Returns:
        Dictionary of settings from pyproject.toml, empty dict if not found.
    """
    try:
        files = importlib.resources.files("printer_patcher")
        pyproject_path = files.joinpath("..", "pyproject.toml")

        # Installed package has no pyproject alongside; walk up for development
        if not pyproject_path.is_file():  # type: ignore[union-attr]
            current = Path(__file__).resolve().parent
            while current != current.parent:
                candidate = current / "pyproject.toml"
                if candidate.exists():
                    pyproject_path = candidate
                    break
                current = current.parent
            else:
                return {}

        data = tomllib.loads(pyproject_path.read_text())  # type: ignore[union-attr]
        return data.get("tool", {}).get("printer-patcher", {})
    except (OSError, tomllib.TOMLDecodeError):
        return {}


def _get_section(section: str) -> dict:
    """Get a subsection from [tool.printer-patcher.{section}]."""
    return _load_pyproject_settings().get(section, {})


# ─── Cache settings ────────────────────────────────────────────────────────

DEFAULT_CACHE_TTL = 24 * 60 * 60


def get_cache_dir() -> Path:
    """Get the durable content cache directory.

    Priority: PRINTER_PATCHER_CACHE_DIR env → [cache].dir
              → <system temp>/printer-patcher-cache.
    """
    if env := os.getenv("PRINTER_PATCHER_CACHE_DIR"):
        return Path(env).expanduser()
    if configured := _get_section("cache").get("dir"):
        return Path(configured).expanduser()
    return Path(tempfile.gettempdir()) / "printer-patcher-cache"


def get_cache_ttl() -> float:
    """Get the cache entry lifetime in seconds.

    Priority: PRINTER_PATCHER_CACHE_TTL env → [cache].ttl → 86400 (24h).
    """
    if env := os.getenv("PRINTER_PATCHER_CACHE_TTL"):
        return float(env)
    ttl = _get_section("cache").get("ttl")
    return float(ttl) if ttl is not None else float(DEFAULT_CACHE_TTL)


# ─── GitHub settings ───────────────────────────────────────────────────────


def get_github_api_url() -> str:
    """GitHub REST API base URL."""
    if env := os.getenv("PRINTER_PATCHER_GITHUB_API_URL"):
        return env.rstrip("/")
    return _get_section("github").get("api-url", "https://api.github.com").rstrip("/")


def get_raw_content_url() -> str:
    """Base URL for raw file content at a revision."""
    if env := os.getenv("PRINTER_PATCHER_RAW_CONTENT_URL"):
        return env.rstrip("/")
    return (
        _get_section("github")
        .get("raw-url", "https://raw.githubusercontent.com")
        .rstrip("/")
    )


def get_http_timeout() -> float:
    """HTTP request timeout in seconds.

    Priority: PRINTER_PATCHER_HTTP_TIMEOUT env → [github].timeout → 30.
    """
    if env := os.getenv("PRINTER_PATCHER_HTTP_TIMEOUT"):
        return float(env)
    timeout = _get_section("github").get("timeout")
    return float(timeout) if timeout is not None else 30.0


def get_user_agent() -> str:
    return _get_section("github").get("user-agent", "printer-patcher-app")


def get_github_token() -> str | None:
    """Optional token for authenticated (higher rate limit) API calls."""
    return os.getenv("GITHUB_TOKEN") or None


# ─── SSH settings ──────────────────────────────────────────────────────────


def get_ssh_port() -> int:
    """Default SSH port of the target device.

    Priority: PRINTER_PATCHER_SSH_PORT env → [ssh].port → 22.
    """
    if env := os.getenv("PRINTER_PATCHER_SSH_PORT"):
        return int(env)
    port = _get_section("ssh").get("port")
    return int(port) if port is not None else 22


def get_ssh_connect_timeout() -> float:
    """SSH connect timeout in seconds.

    Priority: PRINTER_PATCHER_SSH_TIMEOUT env → [ssh].connect-timeout → 10.
    """
    if env := os.getenv("PRINTER_PATCHER_SSH_TIMEOUT"):
        return float(env)
    timeout = _get_section("ssh").get("connect-timeout")
    return float(timeout) if timeout is not None else 10.0


# ─── Repository settings ───────────────────────────────────────────────────


def get_repository_slugs() -> list[str] | None:
    """Configured repository slugs ("owner/name"), or None if not overridden.

    Priority: PRINTER_PATCHER_REPOSITORIES env (comma separated)
              → [tool.printer-patcher].repositories → None (bundled repo.yaml).
    """
    if env := os.getenv("PRINTER_PATCHER_REPOSITORIES"):
        return [slug.strip() for slug in env.split(",") if slug.strip()]
    configured = _load_pyproject_settings().get("repositories")
    if isinstance(configured, list):
        return [str(slug) for slug in configured]
    return None
