"""GitHub access: content cache and per-repository client."""

from printer_patcher.github.cache import CacheStats, ContentCache, cache_key
from printer_patcher.github.client import (
    CONFIG_PATH,
    LOCAL_REVISION,
    SCRIPT_ROOT,
    RepositoryClient,
    normalize_script_path,
)

__all__ = [
    "CONFIG_PATH",
    "CacheStats",
    "ContentCache",
    "LOCAL_REVISION",
    "RepositoryClient",
    "SCRIPT_ROOT",
    "cache_key",
    "normalize_script_path",
]
