"""
On-disk prefix cache for remote media.

Each remote URL maps to one file, ``cache_{key}.tmp``, in the cache
directory. A file that is missing or empty means "no cache". Entries are
created by background fetch tasks, never by callers directly, and at most
one task per key runs at any time.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable

import httpx

from ..config import StoryreelConfig
from ..models import CacheStats, SourceReference
from .fetcher import CacheFetchError, PrefixFetcher, build_client

logger = logging.getLogger("storyreel.cache")

FetchCallback = Callable[[str, bool], None]


def cache_key(url: str) -> str:
    """Deterministic, run-independent key for a URL.

    First 16 hex digits of the SHA-256 of the URL string. Collisions are
    possible in principle and are not detected.
    """
    return hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]


class ContentCache:
    """Prefix cache over a single directory.

    Features:
    - Hit/miss lookup by URL (file exists and is non-empty)
    - Background prefix fetch on a worker pool, deduplicated per key
    - Best-effort clear and directory statistics
    - Fetch-finished callbacks

    Usage:
        cache = ContentCache(StoryreelConfig(cache_dir=tmp_dir))
        if cache.lookup(ref) is None:
            cache.start_background_fetch(ref.location)
        print(cache.stats().summary())

    Args:
        config: Cache settings (directory, sizes, timeouts, pool size).
        client: Optional httpx client. When omitted one is built from the
            config timeouts and closed by :meth:`close`.
    """

    def __init__(
        self,
        config: StoryreelConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.config = config or StoryreelConfig()
        self.cache_dir = Path(self.config.cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        self._owns_client = client is None
        self._client = client or build_client(
            connect_timeout=self.config.connect_timeout,
            read_timeout=self.config.read_timeout,
        )
        self._fetcher = PrefixFetcher(
            self._client,
            preview_size=self.config.preview_size,
            chunk_size=self.config.chunk_size,
        )
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_fetch_workers,
            thread_name_prefix="storyreel-fetch",
        )

        # key -> running fetch
        self._in_flight: dict[str, Future] = {}
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._callbacks: list[FetchCallback] = []
        self._closed = False

        logger.debug(f"Cache directory: {self.cache_dir}")

    # ------------------------------------------------------------------
    # Keys and lookup
    # ------------------------------------------------------------------

    def key_for(self, url: str) -> str:
        return cache_key(url)

    def path_for(self, url: str) -> Path:
        """Cache file path for ``url`` (whether or not it exists)."""
        return self.cache_dir / f"cache_{self.key_for(url)}.tmp"

    def has_entry(self, url: str) -> bool:
        path = self.path_for(url)
        try:
            return path.stat().st_size > 0
        except FileNotFoundError:
            return False

    def lookup(self, source: SourceReference) -> Path | None:
        """Return the cache file for a remote reference, if one is usable.

        Local references always return ``None``: the reference itself is
        already the best source.
        """
        if not source.is_remote:
            return None
        if self.has_entry(source.location):
            path = self.path_for(source.location)
            logger.debug(f"Cache hit: {path.name} for {source.location}")
            return path
        logger.debug(f"Cache miss: {source.location}")
        return None

    def is_fetching(self, url: str) -> bool:
        with self._lock:
            return self.key_for(url) in self._in_flight

    # ------------------------------------------------------------------
    # Background fetch
    # ------------------------------------------------------------------

    def on_fetch_finished(self, callback: FetchCallback) -> None:
        """Register a callback invoked as ``callback(url, success)`` after each fetch."""
        self._callbacks.append(callback)

    def start_background_fetch(self, url: str) -> bool:
        """Schedule a prefix fetch for ``url`` unless it is cached or in flight.

        Never blocks on the network.

        Returns:
            True if a new fetch task was scheduled.
        """
        key = self.key_for(url)
        with self._lock:
            if self._closed or key in self._in_flight or self.has_entry(url):
                return False
            future = self._executor.submit(self._run_fetch, url)
            self._in_flight[key] = future

        future.add_done_callback(lambda f: self._finish(key, url, f))
        logger.info(f"Started caching: {url[:80]}")
        return True

    def _run_fetch(self, url: str) -> bool:
        destination = self.path_for(url)
        try:
            written = self._fetcher.fetch(url, destination)
        except CacheFetchError as e:
            logger.warning(f"Caching failed: {e}")
            destination.unlink(missing_ok=True)
            return False
        logger.info(f"Cached {written} bytes of {url[:80]} as {destination.name}")
        return True

    def _finish(self, key: str, url: str, future: Future) -> None:
        try:
            if future.cancelled():
                success = False
            elif future.exception() is not None:
                logger.error("Unexpected error in cache fetch", exc_info=future.exception())
                success = False
            else:
                success = bool(future.result())

            for callback in self._callbacks:
                try:
                    callback(url, success)
                except Exception:
                    logger.exception("Error in fetch-finished callback")
        finally:
            with self._idle:
                self._in_flight.pop(key, None)
                self._idle.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until all in-flight fetches and their callbacks finish.

        Returns:
            True if nothing is left running.
        """
        with self._idle:
            return self._idle.wait_for(lambda: not self._in_flight, timeout=timeout)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_all(self) -> int:
        """Delete every file in the cache directory.

        Best-effort: files that cannot be removed are skipped.

        Returns:
            Number of files removed.
        """
        removed = 0
        try:
            entries = list(self.cache_dir.iterdir())
        except OSError as e:
            logger.warning(f"Could not list cache directory {self.cache_dir}: {e}")
            return 0

        for entry in entries:
            if not entry.is_file():
                continue
            try:
                entry.unlink()
                removed += 1
            except OSError as e:
                logger.warning(f"Could not delete cache file {entry.name}: {e}")

        logger.info(f"Cleared cache ({removed} files)")
        return removed

    def stats(self) -> CacheStats:
        """Count files and bytes in the cache directory.

        Not synchronised with running fetches; sizes may lag behind.
        """
        file_count = 0
        total_bytes = 0
        try:
            entries = list(self.cache_dir.iterdir())
        except OSError:
            return CacheStats()

        for entry in entries:
            try:
                if entry.is_file():
                    total_bytes += entry.stat().st_size
                    file_count += 1
            except OSError:
                # Removed between listing and stat
                continue
        return CacheStats(file_count=file_count, total_bytes=total_bytes)

    def close(self, wait: bool = True) -> None:
        """Stop accepting fetches and shut the worker pool down."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=not wait)
        if self._owns_client:
            self._client.close()


__all__ = ["ContentCache", "cache_key"]
