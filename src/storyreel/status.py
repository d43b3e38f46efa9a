"""
Aggregation of playback, cache and narrative signals into one snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .models import (
    CacheStats,
    NarrativePhase,
    NarrativeState,
    PlaybackState,
    PlaybackStatus,
    StatusSnapshot,
)


@dataclass(frozen=True)
class StatusInputs:
    """Latest value of every signal the projector listens to."""
    playback: PlaybackStatus = PlaybackStatus()
    cache: CacheStats = CacheStats()
    narrative: NarrativeState = NarrativeState()
    progress_percent: int = 0
    headline: str | None = None
    title: str | None = None
    is_loading: bool = False


def status_text(inputs: StatusInputs) -> str:
    """Pick the one-line status message for a set of inputs.

    Precedence: playback errors, then the narrative, then the latest
    headline set by an action, then the plain playback state.
    """
    playback = inputs.playback
    narrative = inputs.narrative

    if playback.state is PlaybackState.ERROR:
        return playback.label
    if narrative.phase is NarrativePhase.AWAITING_DECISION:
        options = " / ".join(c.display_text for c in narrative.pending_choices)
        return f"Make a choice: {options}" if options else "Make a choice..."
    if narrative.phase is NarrativePhase.ENDED:
        return "Story complete"
    if inputs.is_loading:
        return f"Loading {inputs.title}..." if inputs.title else "Loading..."
    if playback.state is PlaybackState.PAUSED:
        return playback.label
    if inputs.headline:
        return inputs.headline
    return playback.label


def project(inputs: StatusInputs) -> StatusSnapshot:
    """Build the snapshot for ``inputs``. Pure; no I/O."""
    return StatusSnapshot(
        status_text=status_text(inputs),
        progress_percent=inputs.progress_percent,
        player_state=inputs.playback,
        cache_summary=inputs.cache.summary(),
        narrative=inputs.narrative,
        is_loading=inputs.is_loading,
        current_title=inputs.title,
    )


class StatusProjector:
    """Keeps the latest inputs and recomputes the snapshot on every change.

    Each ``update_*`` call replaces the stored inputs with a new value and
    returns the freshly projected snapshot. Previously returned snapshots
    are never modified.
    """

    def __init__(self, inputs: StatusInputs | None = None) -> None:
        self._inputs = inputs or StatusInputs()
        self._snapshot = project(self._inputs)

    @property
    def inputs(self) -> StatusInputs:
        return self._inputs

    @property
    def snapshot(self) -> StatusSnapshot:
        return self._snapshot

    def update_playback(self, status: PlaybackStatus) -> StatusSnapshot:
        changes: dict = {"playback": status}
        if status.state in (PlaybackState.READY, PlaybackState.PLAYING) or status.is_terminal:
            changes["is_loading"] = False
        if status.state is PlaybackState.ENDED:
            changes["progress_percent"] = 100
        return self._apply(**changes)

    def update_cache(self, stats: CacheStats) -> StatusSnapshot:
        return self._apply(cache=stats)

    def update_narrative(self, state: NarrativeState) -> StatusSnapshot:
        return self._apply(narrative=state)

    def update_progress(self, percent: int) -> StatusSnapshot:
        return self._apply(progress_percent=max(0, min(100, int(percent))))

    def set_headline(self, text: str | None) -> StatusSnapshot:
        return self._apply(headline=text)

    def begin_loading(self, title: str | None) -> StatusSnapshot:
        return self._apply(is_loading=True, title=title, headline=title, progress_percent=0)

    def now_showing(self, title: str | None) -> StatusSnapshot:
        """Record the media that is now on screen without a loading phase."""
        return self._apply(title=title, headline=title)

    def _apply(self, **changes) -> StatusSnapshot:
        self._inputs = replace(self._inputs, **changes)
        self._snapshot = project(self._inputs)
        return self._snapshot


__all__ = ["StatusProjector", "StatusInputs", "project", "status_text"]
