"""
Range-request download of a media prefix.

Fetches the first ``preview_size`` bytes of a remote resource with a single
``Range: bytes=0-N`` request and writes them to disk. Servers must answer
with ``206 Partial Content``; a full ``200`` body is rejected rather than
downloaded.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import httpx

logger = logging.getLogger("storyreel.cache.fetcher")

PARTIAL_CONTENT = 206

# Log progress every 512 KB
PROGRESS_STEP = 512 * 1024


class CacheFetchError(Exception):
    """Raised when a prefix could not be fetched or stored.

    Only ever raised inside background fetch tasks; callers of the cache
    see a failed fetch as "no cache available".
    """


def build_client(connect_timeout: float = 10.0, read_timeout: float = 15.0) -> httpx.Client:
    """Create an HTTP client with separate connect and read timeouts."""
    timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
    return httpx.Client(timeout=timeout, follow_redirects=True)


class PrefixFetcher:
    """Downloads the leading bytes of remote media into a file.

    Args:
        client: httpx client used for requests (shared, thread-safe).
        preview_size: Maximum number of bytes to keep.
        chunk_size: Bytes per streamed read.
    """

    def __init__(
        self,
        client: httpx.Client,
        preview_size: int,
        chunk_size: int = 8192,
    ) -> None:
        self._client = client
        self.preview_size = preview_size
        self.chunk_size = chunk_size

    @property
    def range_header(self) -> str:
        return f"bytes=0-{self.preview_size - 1}"

    def fetch(self, url: str, destination: Path) -> int:
        """Fetch the prefix of ``url`` into ``destination``.

        The body is streamed into ``destination`` with a ``.part`` suffix and
        moved into place only once complete, so the destination never holds
        a truncated download. On failure the partial file is removed.

        Args:
            url: Remote resource to fetch.
            destination: Final cache file path.

        Returns:
            Number of bytes written (``min(preview_size, resource length)``).

        Raises:
            CacheFetchError: On network errors, a non-206 response, an empty
                body, or a filesystem error.
        """
        partial = destination.with_name(destination.name + ".part")
        try:
            written = self._download(url, partial)
            if written == 0:
                raise CacheFetchError(f"Empty response body from {url}")
            os.replace(partial, destination)
            return written
        except httpx.HTTPError as e:
            raise CacheFetchError(f"Request for {url} failed: {e}") from e
        except OSError as e:
            raise CacheFetchError(f"Could not write cache file {destination.name}: {e}") from e
        finally:
            partial.unlink(missing_ok=True)

    def _download(self, url: str, partial: Path) -> int:
        total = 0
        next_progress = PROGRESS_STEP
        headers = {"Range": self.range_header}
        with self._client.stream("GET", url, headers=headers) as response:
            if response.status_code != PARTIAL_CONTENT:
                raise CacheFetchError(
                    f"Expected HTTP {PARTIAL_CONTENT} for {url}, got {response.status_code}"
                )
            with partial.open("wb") as out:
                for chunk in response.iter_bytes(chunk_size=self.chunk_size):
                    remaining = self.preview_size - total
                    if len(chunk) > remaining:
                        chunk = chunk[:remaining]
                    out.write(chunk)
                    total += len(chunk)
                    if total >= next_progress:
                        logger.debug(f"Cached {total // 1024}KB of {url}")
                        next_progress += PROGRESS_STEP
                    if total >= self.preview_size:
                        break
        return total


__all__ = ["PrefixFetcher", "CacheFetchError", "build_client", "PARTIAL_CONTENT"]
