"""
Contract between storyreel and the media playback engine.

Decoding and rendering are done by an external engine. storyreel only hands
it a resolved source, issues play/pause commands, and listens for the states
it reports.
"""

from __future__ import annotations

from typing import Protocol

from ..models import PlaybackStatus, SourceReference


class PlaybackListener(Protocol):
    """Receives signals from a playback engine."""

    def on_state_changed(self, status: PlaybackStatus) -> None:
        """Called whenever the engine's state changes."""
        ...

    def on_error(self, message: str) -> None:
        """Called when the engine fails to play the current source."""
        ...


class PlaybackEngine(Protocol):
    """Protocol for playback engines, enabling easy mocking in tests."""

    @property
    def status(self) -> PlaybackStatus:
        """Most recently reported status."""
        ...

    def set_source(self, source: SourceReference) -> None: ...

    def prepare(self) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def add_listener(self, listener: PlaybackListener) -> None: ...


__all__ = ["PlaybackEngine", "PlaybackListener"]
