"""Tests for cache/fetcher.py: Range requests and partial-file handling."""

from pathlib import Path

import httpx
import pytest

from storyreel.cache.fetcher import CacheFetchError, PrefixFetcher, build_client

URL = "https://media.example.com/clip.mp4"


def make_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestPrefixFetcher:
    """Test Range downloads into cache files."""

    def test_range_header(self) -> None:
        """The Range header covers exactly the prefix."""
        fetcher = PrefixFetcher(make_client(lambda r: httpx.Response(206)), preview_size=2048)
        assert fetcher.range_header == "bytes=0-2047"

    def test_writes_prefix(self, tmp_path: Path) -> None:
        """The returned prefix is written to the destination."""
        body = b"0123456789" * 100
        client = make_client(lambda r: httpx.Response(206, content=body[:512]))
        fetcher = PrefixFetcher(client, preview_size=512, chunk_size=64)
        destination = tmp_path / "cache_x.tmp"

        written = fetcher.fetch(URL, destination)

        assert written == 512
        assert destination.read_bytes() == body[:512]

    def test_truncates_oversized_body(self, tmp_path: Path) -> None:
        """A server that ignores the range end still yields at most preview_size bytes."""
        client = make_client(lambda r: httpx.Response(206, content=b"a" * 5000))
        fetcher = PrefixFetcher(client, preview_size=1000, chunk_size=300)
        destination = tmp_path / "cache_x.tmp"

        assert fetcher.fetch(URL, destination) == 1000
        assert destination.stat().st_size == 1000

    def test_rejects_non_partial_response(self, tmp_path: Path) -> None:
        """Anything but 206 is rejected."""
        client = make_client(lambda r: httpx.Response(200, content=b"a" * 100))
        fetcher = PrefixFetcher(client, preview_size=1000)
        destination = tmp_path / "cache_x.tmp"

        with pytest.raises(CacheFetchError) as exc_info:
            fetcher.fetch(URL, destination)

        assert "206" in str(exc_info.value)
        assert not destination.exists()

    def test_network_error_is_wrapped(self, tmp_path: Path) -> None:
        """httpx errors surface as CacheFetchError."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        fetcher = PrefixFetcher(make_client(handler), preview_size=1000)

        with pytest.raises(CacheFetchError):
            fetcher.fetch(URL, tmp_path / "cache_x.tmp")
        assert list(tmp_path.iterdir()) == []

    def test_no_partial_file_left_behind(self, tmp_path: Path) -> None:
        """Failures remove the .part file."""
        client = make_client(lambda r: httpx.Response(206, content=b""))
        fetcher = PrefixFetcher(client, preview_size=1000)
        destination = tmp_path / "cache_x.tmp"

        with pytest.raises(CacheFetchError):
            fetcher.fetch(URL, destination)

        assert not destination.exists()
        assert not destination.with_name(destination.name + ".part").exists()


class TestBuildClient:
    """Test HTTP client construction."""

    def test_timeouts(self) -> None:
        """Connect and read timeouts are applied separately."""
        client = build_client(connect_timeout=3.0, read_timeout=7.0)
        try:
            assert client.timeout.connect == 3.0
            assert client.timeout.read == 7.0
        finally:
            client.close()
