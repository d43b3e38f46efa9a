"""
Core value types for storyreel.

Everything here is immutable. State changes anywhere in the system produce
a new value (via ``dataclasses.replace``) instead of mutating a shared one,
so consumers holding an older snapshot never observe it changing underneath
them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


REMOTE_SCHEMES = ("http://", "https://")


class SourceKind(str, Enum):
    """Where a piece of media lives."""
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class SourceReference:
    """Locator for playable media, either a local path or a remote URL.

    Local references are always treated as fully available and are never
    fetched over the network.

    Attributes:
        kind: LOCAL or REMOTE.
        location: Filesystem path / resource identifier, or the URL.
        origin: For a local reference produced from the prefix cache, the
            remote URL it was cached from.
    """
    kind: SourceKind
    location: str
    origin: str | None = None

    @classmethod
    def local(cls, path: str | Path, origin: str | None = None) -> SourceReference:
        return cls(kind=SourceKind.LOCAL, location=str(path), origin=origin)

    @classmethod
    def remote(cls, url: str) -> SourceReference:
        return cls(kind=SourceKind.REMOTE, location=url)

    @classmethod
    def parse(cls, text: str) -> SourceReference:
        """Build a reference from a raw string.

        ``http://`` and ``https://`` URLs are remote; everything else
        (plain paths, ``file://`` or bundled ``resource://`` identifiers)
        is local.
        """
        text = text.strip()
        if text.lower().startswith(REMOTE_SCHEMES):
            return cls.remote(text)
        return cls.local(text)

    @property
    def is_remote(self) -> bool:
        return self.kind is SourceKind.REMOTE

    @property
    def is_cached_copy(self) -> bool:
        """True for local references that point at a prefix-cache file."""
        return self.kind is SourceKind.LOCAL and self.origin is not None

    def __str__(self) -> str:
        return self.location


class PlaybackState(str, Enum):
    """Closed set of states a playback engine can report."""
    IDLE = "idle"
    BUFFERING = "buffering"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"
    ERROR = "error"


@dataclass(frozen=True)
class PlaybackStatus:
    """Latest state reported by the playback engine.

    ``message`` is only meaningful for ``ERROR``.
    """
    state: PlaybackState = PlaybackState.IDLE
    message: str = ""

    @classmethod
    def error(cls, message: str) -> PlaybackStatus:
        return cls(state=PlaybackState.ERROR, message=message or "Unknown error")

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    @property
    def is_terminal(self) -> bool:
        return self.state in (PlaybackState.ENDED, PlaybackState.ERROR)

    @property
    def label(self) -> str:
        """Short human-readable description of the state."""
        labels = {
            PlaybackState.IDLE: "Ready",
            PlaybackState.BUFFERING: "Buffering...",
            PlaybackState.READY: "Loaded",
            PlaybackState.PLAYING: "Playing",
            PlaybackState.PAUSED: "Paused",
            PlaybackState.ENDED: "Playback finished",
            PlaybackState.ERROR: f"Playback error: {self.message}",
        }
        return labels[self.state]


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time view of the cache directory.

    Attributes:
        file_count: Number of files in the cache directory.
        total_bytes: Sum of their sizes.
    """
    file_count: int = 0
    total_bytes: int = 0

    @property
    def total_kb(self) -> int:
        return self.total_bytes // 1024

    def summary(self) -> str:
        if self.file_count == 0:
            return "No cached media"
        return f"Cached files: {self.file_count}, total size: {self.total_kb}KB"


class NarrativePhase(str, Enum):
    """Phases of an interactive story session."""
    INACTIVE = "inactive"
    PLAYING_NODE = "playing_node"
    AWAITING_DECISION = "awaiting_decision"
    ENDED = "ended"


@dataclass(frozen=True)
class Choice:
    """One branch offered at a decision point.

    Attributes:
        label: Key the caller passes back to choose this branch.
        target: Id of the node to play next, or the end sentinel.
        prompt: Text to show the user. Falls back to the label.
    """
    label: str
    target: str
    prompt: str = ""

    @property
    def display_text(self) -> str:
        return self.prompt or self.label


@dataclass(frozen=True)
class NarrativeState:
    """Snapshot of a narrative session as seen from outside the engine."""
    phase: NarrativePhase = NarrativePhase.INACTIVE
    node_id: str | None = None
    session_id: str | None = None
    pending_choices: tuple[Choice, ...] = ()

    @property
    def is_active(self) -> bool:
        return self.phase in (NarrativePhase.PLAYING_NODE, NarrativePhase.AWAITING_DECISION)

    @property
    def awaiting_decision(self) -> bool:
        return self.phase is NarrativePhase.AWAITING_DECISION


@dataclass(frozen=True)
class StatusSnapshot:
    """Everything a display needs, in one immutable value.

    Attributes:
        status_text: One-line status message.
        progress_percent: Playback progress, 0-100.
        player_state: Latest playback status.
        cache_summary: Human-readable cache statistics.
        narrative: Latest narrative state.
        is_loading: True while media is being resolved/prepared.
        current_title: Title of the media currently loaded, if any.
    """
    status_text: str = "Ready"
    progress_percent: int = 0
    player_state: PlaybackStatus = field(default_factory=PlaybackStatus)
    cache_summary: str = ""
    narrative: NarrativeState = field(default_factory=NarrativeState)
    is_loading: bool = False
    current_title: str | None = None


__all__ = [
    "SourceKind",
    "SourceReference",
    "PlaybackState",
    "PlaybackStatus",
    "CacheStats",
    "NarrativePhase",
    "Choice",
    "NarrativeState",
    "StatusSnapshot",
]
