"""Durable, TTL-based cache for raw content fetched from GitHub.

Entries are opaque blobs stored one file per URL under the cache
directory; the file name is the SHA-256 of the full URL and the file
modification time is the entry timestamp. An entry older than the TTL is
deleted the next time it is read.

The cache is a pure performance layer: losing the directory only costs
extra network fetches.

Usage::

    cache = ContentCache()
    content = cache.get(url)
    if content is None:
        content = download(url)
        cache.put(url, content)
"""

import hashlib
import logging
import os
import shutil
import tempfile
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from printer_patcher.settings import get_cache_dir, get_cache_ttl

logger = logging.getLogger(__name__)

# Suffix of in-flight writes; never returned by get()
_PARTIAL_SUFFIX = ".partial"


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of the cache directory."""

    path: Path
    entries: int
    total_bytes: int


def cache_key(url: str) -> str:
    """Stable content key for a source URL."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


class ContentCache:
    """File-backed byte cache keyed by URL with a single fixed TTL.

    Every read-modify-write (check expiry then delete, write then replace)
    runs under one lock, so concurrent foreground and background callers
    never lose updates to the entry set.
    """

    def __init__(
        self,
        directory: Path | None = None,
        ttl: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.directory = Path(directory) if directory is not None else get_cache_dir()
        self.ttl = ttl if ttl is not None else get_cache_ttl()
        self._clock = clock
        self._lock = threading.Lock()

    def _entry_path(self, url: str) -> Path:
        return self.directory / cache_key(url)

    def get(self, url: str) -> bytes | None:
        """Return cached content for ``url``, or None on miss or expiry."""
        path = self._entry_path(url)
        with self._lock:
            try:
                stored_at = path.stat().st_mtime
            except FileNotFoundError:
                logger.debug("Cache miss for: %s", url)
                return None

            if self._clock() - stored_at > self.ttl:
                logger.debug("Cache expired for: %s", url)
                path.unlink(missing_ok=True)
                return None

            try:
                content = path.read_bytes()
            except FileNotFoundError:
                # Removed by clear() or another process between stat and read
                return None

        logger.debug("Cache hit for: %s", url)
        return content

    def put(self, url: str, content: bytes) -> None:
        """Store ``content`` for ``url``, replacing any previous entry.

        The entry is written to a temporary file and moved into place, so
        readers see either the old entry or the complete new one.

        Raises:
            OSError: If the cache directory or entry cannot be written.
        """
        path = self._entry_path(url)
        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=path.name, suffix=_PARTIAL_SUFFIX
            )
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(content)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        logger.debug("Cached %d bytes for: %s", len(content), url)

    def clear(self) -> None:
        """Remove every entry.

        Raises:
            OSError: If the directory cannot be removed.
        """
        with self._lock:
            if self.directory.exists():
                shutil.rmtree(self.directory)
        logger.info("Cleared content cache at %s", self.directory)

    def stats(self) -> CacheStats:
        with self._lock:
            entries = 0
            total = 0
            if self.directory.exists():
                for entry in self.directory.iterdir():
                    if entry.is_file() and not entry.name.endswith(_PARTIAL_SUFFIX):
                        entries += 1
                        total += entry.stat().st_size
        return CacheStats(path=self.directory, entries=entries, total_bytes=total)
