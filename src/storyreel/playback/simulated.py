"""
In-process playback engine that only tracks state.

Used by the server entry point, where the real player runs on the client
and reports back what happened, and by tests. Every command synchronously
emits the state a real engine would report for it.

Listeners are called after the engine's lock is released, so a listener may
call back into the engine (or take its own locks) from any thread.
"""

from __future__ import annotations

import logging
import threading

from ..models import PlaybackState, PlaybackStatus, SourceReference
from .engine import PlaybackListener

logger = logging.getLogger("storyreel.playback")


class SimulatedPlaybackEngine:
    """State-only implementation of the PlaybackEngine protocol.

    Attributes:
        source: The source most recently passed to :meth:`set_source`.
        commands: Names of the commands received, in order.
    """

    def __init__(self) -> None:
        self.source: SourceReference | None = None
        self.commands: list[str] = []
        self._status = PlaybackStatus()
        self._listeners: list[PlaybackListener] = []
        self._lock = threading.Lock()

    @property
    def status(self) -> PlaybackStatus:
        return self._status

    @property
    def is_playing(self) -> bool:
        return self._status.is_playing

    def add_listener(self, listener: PlaybackListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    # Commands

    def set_source(self, source: SourceReference) -> None:
        with self._lock:
            self.commands.append("set_source")
            self.source = source
        self._emit(PlaybackStatus(PlaybackState.IDLE))

    def prepare(self) -> None:
        with self._lock:
            self.commands.append("prepare")
            has_source = self.source is not None
        if not has_source:
            self.fail("No media source set")
            return
        self._emit(PlaybackStatus(PlaybackState.BUFFERING))
        self._emit(PlaybackStatus(PlaybackState.READY), allowed_from=(PlaybackState.BUFFERING,))

    def play(self) -> None:
        with self._lock:
            self.commands.append("play")
        self._emit(
            PlaybackStatus(PlaybackState.PLAYING),
            allowed_from=(PlaybackState.READY, PlaybackState.PAUSED),
        )

    def pause(self) -> None:
        with self._lock:
            self.commands.append("pause")
        self._emit(PlaybackStatus(PlaybackState.PAUSED), allowed_from=(PlaybackState.PLAYING,))

    # Signals a real engine would raise on its own

    def report(self, state: PlaybackState, message: str = "") -> None:
        """Inject a state reported by the client-side player."""
        if state is PlaybackState.ERROR:
            self.fail(message)
            return
        self._emit(PlaybackStatus(state))

    def finish(self) -> None:
        """Simulate the end of the current media."""
        self.report(PlaybackState.ENDED)

    def fail(self, message: str) -> None:
        status = PlaybackStatus.error(message)
        with self._lock:
            self._status = status
            listeners = list(self._listeners)
        logger.error(f"Playback error: {status.message}")
        for listener in listeners:
            listener.on_error(status.message)

    def _emit(
        self,
        status: PlaybackStatus,
        allowed_from: tuple[PlaybackState, ...] | None = None,
    ) -> bool:
        # Check and set atomically, notify outside the lock
        with self._lock:
            if status == self._status:
                return False
            if allowed_from is not None and self._status.state not in allowed_from:
                return False
            self._status = status
            listeners = list(self._listeners)

        logger.debug(f"Playback state: {status.state.value}")
        for listener in listeners:
            listener.on_state_changed(status)
        return True


__all__ = ["SimulatedPlaybackEngine"]
