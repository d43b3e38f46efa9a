"""
Composition root and caller-facing API.

The PlayerController builds one of each core component and wires them
together: the cache is created here and handed to the resolver, the
narrative engine is given the same resolver and the playback engine, and
every signal is folded into a StatusProjector whose snapshots are pushed to
subscribers. UI code talks only to the controller.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .cache import ContentCache, ContentResolver
from .catalog import MediaCatalog, MediaItem
from .config import StoryreelConfig
from .models import CacheStats, NarrativeState, PlaybackStatus, SourceReference, StatusSnapshot
from .narrative import Countdown, NarrativeEngine, Story, default_story, load_story
from .playback import PlaybackEngine, SimulatedPlaybackEngine
from .status import StatusProjector

logger = logging.getLogger("storyreel.controller")

Subscriber = Callable[[StatusSnapshot], None]


class PlayerController:
    """Single entry point for a player UI.

    Args:
        config: Settings; defaults are used when omitted.
        playback: The playback engine. A SimulatedPlaybackEngine is used
            when omitted.
        story: Story for narrative mode. Loaded from ``config.story_path``
            or the bundled story when omitted.
        catalog: Known media items.
        cache: Prefix cache; built from ``config`` when omitted.
        countdown: Countdown for narrative decision windows.

    Usage:
        controller = PlayerController(config, playback=engine)
        controller.subscribe(render)
        controller.play_item("1")
        controller.start_narrative()
        controller.choose_narrative("left")
    """

    def __init__(
        self,
        config: StoryreelConfig | None = None,
        playback: PlaybackEngine | None = None,
        story: Story | None = None,
        catalog: MediaCatalog | None = None,
        cache: ContentCache | None = None,
        countdown: Countdown | None = None,
    ) -> None:
        self.config = config or StoryreelConfig()
        self.cache = cache or ContentCache(self.config)
        self.resolver = ContentResolver(self.cache)
        self.playback = playback or SimulatedPlaybackEngine()
        self.catalog = catalog or MediaCatalog(local_media=self.config.local_media)

        if story is None:
            story = load_story(self.config.story_path) if self.config.story_path else default_story()
        self.narrative = NarrativeEngine(story, self.resolver, self.playback, countdown)

        self._projector = StatusProjector()
        self._lock = threading.RLock()
        self._subscribers: list[Subscriber] = []

        self.playback.add_listener(self)
        self.narrative.on_state_change(self._on_narrative_changed)
        self.cache.on_fetch_finished(self._on_fetch_finished)
        self._refresh_cache_stats()

        logger.info("PlayerController initialized")

    # ------------------------------------------------------------------
    # Status stream
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> StatusSnapshot:
        return self._projector.snapshot

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Receive a snapshot on every status change.

        The callback is invoked immediately with the current snapshot.
        Callbacks run on whichever thread produced the change and should
        return quickly.

        Returns:
            A function that removes the subscription.
        """
        with self._lock:
            self._subscribers.append(callback)
            self._deliver(callback, self._projector.snapshot)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _update(self, apply: Callable[[StatusProjector], StatusSnapshot]) -> StatusSnapshot:
        with self._lock:
            snapshot = apply(self._projector)
            for callback in list(self._subscribers):
                self._deliver(callback, snapshot)
            return snapshot

    def _deliver(self, callback: Subscriber, snapshot: StatusSnapshot) -> None:
        try:
            callback(snapshot)
        except Exception:
            logger.exception("Error in status subscriber")

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def resolve(self, source: SourceReference | str) -> SourceReference:
        """Best playable reference for ``source``; see ContentResolver."""
        if isinstance(source, str):
            source = SourceReference.parse(source)
        return self.resolver.resolve(source)

    def play(self, source: SourceReference | str, title: str | None = None) -> SourceReference:
        """Play arbitrary media. Leaves narrative mode if it is active.

        Returns:
            The reference handed to the playback engine.
        """
        if isinstance(source, str):
            source = SourceReference.parse(source)
        title = title or source.location

        if self.narrative.cancel():
            logger.info("Left story mode to play other media")

        self._update(lambda p: p.begin_loading(title))
        playable = self.resolve(source)
        logger.info(f"Playing {title} from {'cache' if playable.is_cached_copy else playable.kind.value}")

        self.playback.set_source(playable)
        self.playback.prepare()
        self.playback.play()
        return playable

    def play_item(self, item_id: str) -> SourceReference | None:
        item = self.catalog.get_by_id(item_id)
        if item is None:
            logger.warning(f"Unknown media item: {item_id}")
            self._update(lambda p: p.set_headline(f"Unknown media item: {item_id}"))
            return None
        return self._play_item(item)

    def play_local(self) -> SourceReference | None:
        item = self.catalog.local_item()
        if item is None:
            logger.warning("No local media configured")
            self._update(lambda p: p.set_headline("No local media configured"))
            return None
        return self._play_item(item)

    def _play_item(self, item: MediaItem) -> SourceReference:
        return self.play(item.source, item.title)

    def toggle_play_pause(self) -> bool:
        """Pause if playing, otherwise resume.

        The narrative engine sees the resulting PAUSED/PLAYING signal and
        stops or restarts its decision window, the same way it does for
        states reported by a client-side player.

        Returns:
            True if playback is now running.
        """
        if self.playback.status.is_playing:
            self.playback.pause()
            logger.debug("Playback paused")
            return False

        self.playback.play()
        self._update(lambda p: p.set_headline("Resumed"))
        logger.debug("Playback resumed")
        return self.playback.status.is_playing

    def update_progress(self, percent: int) -> StatusSnapshot:
        return self._update(lambda p: p.update_progress(percent))

    # ------------------------------------------------------------------
    # Narrative
    # ------------------------------------------------------------------

    def start_narrative(self) -> bool:
        started = self.narrative.start()
        if started:
            self._show_current_node()
        else:
            self._update(lambda p: p.set_headline("A story is already running"))
        return started

    def choose_narrative(self, label: str) -> bool:
        chosen = self.narrative.choose(label)
        if chosen:
            self._show_current_node()
        return chosen

    def _show_current_node(self) -> None:
        node = self.narrative.current_node
        if node is not None and self.narrative.state.is_active:
            self._update(lambda p: p.now_showing(node.display_title))

    def cancel_narrative(self) -> bool:
        cancelled = self.narrative.cancel()
        if cancelled:
            self._update(lambda p: p.set_headline("Exited story mode"))
        return cancelled

    @property
    def narrative_state(self) -> NarrativeState:
        return self.narrative.state

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def cache_stats(self) -> CacheStats:
        return self._refresh_cache_stats()

    def clear_cache(self) -> CacheStats:
        removed = self.cache.clear_all()
        logger.info(f"Cache cleared ({removed} files)")
        stats = self._refresh_cache_stats()
        self._update(lambda p: p.set_headline("Cache cleared"))
        return stats

    def _refresh_cache_stats(self) -> CacheStats:
        stats = self.cache.stats()
        self._update(lambda p: p.update_cache(stats))
        return stats

    # ------------------------------------------------------------------
    # Signal fan-out
    # ------------------------------------------------------------------

    def on_state_changed(self, status: PlaybackStatus) -> None:
        self._update(lambda p: p.update_playback(status))
        self.narrative.on_state_changed(status)

    def on_error(self, message: str) -> None:
        self._update(lambda p: p.update_playback(PlaybackStatus.error(message)))
        self.narrative.on_error(message)

    def _on_narrative_changed(self, state: NarrativeState) -> None:
        self._update(lambda p: p.update_narrative(state))

    def _on_fetch_finished(self, url: str, success: bool) -> None:
        self._refresh_cache_stats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop the story countdown and the fetch workers."""
        self.narrative.cancel()
        self.cache.close(wait=False)
        logger.info("PlayerController closed")

    def __enter__(self) -> PlayerController:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


__all__ = ["PlayerController"]
