"""
Pytest configuration and fixtures for storyreel tests.
"""

import sys
import threading
from pathlib import Path
from typing import Callable

import httpx
import pytest

# Add src directory to Python path to allow importing storyreel
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from storyreel.config import StoryreelConfig  # noqa: E402


class ManualTimer:
    """Timer double that only fires when the test says so."""

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        # Like threading.Timer: a cancelled timer never calls back
        if self.started and not self.cancelled:
            self.function()


class ManualTimerFactory:
    """Records every timer it creates."""

    def __init__(self) -> None:
        self.timers: list[ManualTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def last(self) -> ManualTimer:
        return self.timers[-1]

    @property
    def live(self) -> list[ManualTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]


class RangeServer:
    """httpx MockTransport handler serving byte ranges of in-memory bodies.

    Attributes:
        bodies: URL -> full resource body.
        requests: Every request received, in order.
        status_override: Optional URL -> status code to answer instead of 206.
        gate: When set, each request waits on this event before answering.
    """

    def __init__(self) -> None:
        self.bodies: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.status_override: dict[str, int] = {}
        self.gate: threading.Event | None = None
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if self.gate is not None:
            self.gate.wait(timeout=5)

        url = str(request.url)
        body = self.bodies.get(url)
        if body is None:
            return httpx.Response(404)
        if url in self.status_override:
            return httpx.Response(self.status_override[url], content=body)

        range_header = request.headers.get("range", "")
        start, end = range_header.removeprefix("bytes=").split("-")
        part = body[int(start): int(end) + 1]
        return httpx.Response(
            206,
            content=part,
            headers={"Content-Range": f"bytes {start}-{int(start) + len(part) - 1}/{len(body)}"},
        )

    def request_count(self, url: str) -> int:
        with self._lock:
            return sum(1 for r in self.requests if str(r.url) == url)


@pytest.fixture
def timers() -> ManualTimerFactory:
    return ManualTimerFactory()


@pytest.fixture
def range_server() -> RangeServer:
    return RangeServer()


@pytest.fixture
def http_client(range_server: RangeServer):
    client = httpx.Client(transport=httpx.MockTransport(range_server))
    yield client
    client.close()


@pytest.fixture
def config(tmp_path: Path) -> StoryreelConfig:
    """Config with a per-test cache dir and a small prefix size."""
    return StoryreelConfig(cache_dir=tmp_path / "video_cache", preview_size=64 * 1024, chunk_size=4096)
