"""
Tests for PlayerController.

Tests cover:
- Status subscription and delivery
- Playing catalog items, URLs and local media through the cache
- Play/pause toggling, including during a story
- Pause/resume reported by a client-side player
- Driving a story end to end through the controller
- Cache statistics and clearing
- A real countdown thread racing a user pause
"""

from __future__ import annotations

import threading
import time

import httpx
import pytest

from storyreel.cache import ContentCache
from storyreel.catalog import MediaCatalog
from storyreel.config import StoryreelConfig
from storyreel.controller import PlayerController
from storyreel.models import NarrativePhase, PlaybackState, StatusSnapshot
from storyreel.narrative import Countdown, Story, default_story
from storyreel.playback import SimulatedPlaybackEngine

BUNNY_URL = "https://commondatastorage.googleapis.com/gtv-videos-bucket/sample/BigBuckBunny.mp4"


@pytest.fixture
def playback() -> SimulatedPlaybackEngine:
    return SimulatedPlaybackEngine()


@pytest.fixture
def controller(config: StoryreelConfig, http_client: httpx.Client, playback, timers):
    controller = PlayerController(
        config,
        playback=playback,
        story=default_story(),
        catalog=MediaCatalog(local_media="/videos/local.mp4"),
        cache=ContentCache(config, client=http_client),
        countdown=Countdown(timers),
    )
    yield controller
    controller.cache.wait_idle(timeout=5)
    controller.close()


class TestSubscribe:
    """Test the status stream."""

    def test_receives_current_snapshot_immediately(self, controller: PlayerController) -> None:
        """Subscribing delivers the current snapshot right away."""
        received: list[StatusSnapshot] = []
        controller.subscribe(received.append)
        assert received == [controller.snapshot]

    def test_receives_updates(self, controller: PlayerController) -> None:
        """Every change is pushed to subscribers."""
        received: list[StatusSnapshot] = []
        controller.subscribe(received.append)

        controller.update_progress(30)

        assert received[-1].progress_percent == 30

    def test_unsubscribe(self, controller: PlayerController) -> None:
        """Unsubscribing stops delivery and can be repeated."""
        received: list[StatusSnapshot] = []
        unsubscribe = controller.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        controller.update_progress(30)

        assert len(received) == 1

    def test_failing_subscriber_does_not_break_others(self, controller: PlayerController) -> None:
        """A subscriber raising does not stop delivery to the rest."""
        received: list[StatusSnapshot] = []

        def broken(snapshot: StatusSnapshot) -> None:
            raise RuntimeError("render failed")

        controller.subscribe(broken)
        controller.subscribe(received.append)
        controller.update_progress(10)

        assert received[-1].progress_percent == 10


class TestPlay:
    """Test playing media through the cache."""

    def test_play_item_uncached(self, controller: PlayerController, playback, range_server) -> None:
        """An uncached item plays from the network straight away."""
        range_server.bodies[BUNNY_URL] = b"v" * 1000

        playable = controller.play_item("1")

        assert playable.is_remote
        assert playable.location == BUNNY_URL
        assert playback.source == playable
        assert playback.status.state is PlaybackState.PLAYING
        snapshot = controller.snapshot
        assert not snapshot.is_loading
        assert snapshot.current_title == "Big Buck Bunny"
        assert snapshot.status_text == "Big Buck Bunny"

    def test_second_play_uses_cache(self, controller: PlayerController, range_server) -> None:
        """Once the prefix is cached, the next play uses the local copy."""
        range_server.bodies[BUNNY_URL] = b"v" * 1000
        controller.play_item("1")
        controller.cache.wait_idle(timeout=5)

        playable = controller.play_item("1")

        assert playable.is_cached_copy
        assert playable.origin == BUNNY_URL
        assert controller.snapshot.cache_summary == "Cached files: 1, total size: 0KB"

    def test_play_url(self, controller: PlayerController, playback) -> None:
        """Arbitrary local paths play directly."""
        playable = controller.play("/videos/other.mp4", title="Other")
        assert not playable.is_remote
        assert playback.source.location == "/videos/other.mp4"
        assert controller.snapshot.current_title == "Other"

    def test_play_local(self, controller: PlayerController, playback) -> None:
        """The configured local video plays."""
        playable = controller.play_local()
        assert playable.location == "/videos/local.mp4"
        assert controller.snapshot.current_title == "Local video"

    def test_play_local_not_configured(self, config, http_client, playback) -> None:
        """Without local media, play_local reports it and plays nothing."""
        with PlayerController(
            config,
            playback=playback,
            catalog=MediaCatalog(),
            cache=ContentCache(config, client=http_client),
        ) as controller:
            assert controller.play_local() is None
            assert controller.snapshot.status_text == "No local media configured"

    def test_unknown_item(self, controller: PlayerController, playback) -> None:
        """Unknown catalog ids are reported without commanding playback."""
        assert controller.play_item("42") is None
        assert playback.commands == []
        assert controller.snapshot.status_text == "Unknown media item: 42"

    def test_playback_error_shown(self, controller: PlayerController, playback) -> None:
        """Playback errors take over the status line."""
        controller.play("/videos/broken.mp4")
        playback.fail("format not supported")

        assert controller.snapshot.status_text == "Playback error: format not supported"

    def test_progress_and_end(self, controller: PlayerController, playback) -> None:
        """Progress is tracked and jumps to 100 when playback ends."""
        controller.play("/videos/a.mp4")
        controller.update_progress(50)
        assert controller.snapshot.progress_percent == 50

        playback.finish()
        assert controller.snapshot.progress_percent == 100
        assert controller.snapshot.status_text == "/videos/a.mp4"


class TestToggle:
    """Test play/pause toggling."""

    def test_toggle(self, controller: PlayerController, playback) -> None:
        """Toggling alternates between paused and playing."""
        controller.play("/videos/a.mp4")

        assert controller.toggle_play_pause() is False
        assert playback.status.state is PlaybackState.PAUSED
        assert controller.snapshot.status_text == "Paused"

        assert controller.toggle_play_pause() is True
        assert playback.status.state is PlaybackState.PLAYING
        assert controller.snapshot.status_text == "Resumed"

    def test_toggle_during_story_restarts_window(self, controller: PlayerController, timers) -> None:
        """Pausing a story drops the countdown and resuming restarts it in full."""
        controller.start_narrative()
        first = timers.last

        controller.toggle_play_pause()
        assert first.cancelled
        assert not controller.narrative.countdown_armed

        controller.toggle_play_pause()
        assert len(timers.timers) == 2
        assert timers.last.interval == 10.0
        assert controller.narrative.countdown_armed


class TestReportedPlayback:
    """Test states reported by a client-side player during a story."""

    def test_reported_pause_and_resume_restart_window(
        self, controller: PlayerController, playback, timers
    ) -> None:
        """A reported pause cancels the window and a reported resume restarts it."""
        controller.start_narrative()
        first = timers.last

        playback.report(PlaybackState.PAUSED)
        assert first.cancelled

        playback.report(PlaybackState.PLAYING)
        assert timers.last is not first
        assert timers.last.interval == 10.0

        # The original deadline no longer applies
        first.function()
        assert controller.narrative_state.phase is NarrativePhase.PLAYING_NODE

        timers.last.fire()
        assert controller.narrative_state.phase is NarrativePhase.AWAITING_DECISION

    def test_reported_pause_suppresses_decision(
        self, controller: PlayerController, playback, timers
    ) -> None:
        """No decision opens while the client reports the video paused."""
        controller.start_narrative()
        playback.report(PlaybackState.PAUSED)

        timers.last.function()

        assert controller.narrative_state.phase is NarrativePhase.PLAYING_NODE
        assert controller.snapshot.status_text == "Paused"


class TestNarrative:
    """Test story mode through the controller."""

    def test_full_story(self, controller: PlayerController, playback, timers) -> None:
        """Start, decide, choose and finish the bundled story."""
        decisions = []
        controller.narrative.on_decision(lambda node_id, choices: decisions.append(node_id))

        assert controller.start_narrative() is True
        snapshot = controller.snapshot
        assert snapshot.narrative.phase is NarrativePhase.PLAYING_NODE
        assert snapshot.status_text == "The adventure begins"
        assert not snapshot.is_loading

        timers.last.fire()
        assert decisions == ["start"]
        assert controller.snapshot.status_text == (
            "Make a choice: Go left, explore the forest / Go right, head for the castle"
        )

        assert controller.choose_narrative("right") is True
        assert controller.snapshot.status_text == "Castle ending"
        assert controller.narrative_state.node_id == "castle"

        playback.finish()
        assert controller.snapshot.status_text == "Story complete"
        assert controller.narrative_state.phase is NarrativePhase.ENDED

    def test_start_twice(self, controller: PlayerController) -> None:
        """Starting while a story runs is refused."""
        controller.start_narrative()
        assert controller.start_narrative() is False
        assert controller.snapshot.status_text == "A story is already running"

    def test_invalid_choice(self, controller: PlayerController, timers) -> None:
        """Unknown choices leave the decision pending."""
        controller.start_narrative()
        timers.last.fire()

        assert controller.choose_narrative("up") is False
        assert controller.narrative_state.awaiting_decision

    def test_cancel(self, controller: PlayerController) -> None:
        """Cancelling leaves story mode once."""
        controller.start_narrative()

        assert controller.cancel_narrative() is True
        assert controller.cancel_narrative() is False
        assert controller.narrative_state.phase is NarrativePhase.INACTIVE
        assert controller.snapshot.status_text == "Exited story mode"

    def test_playing_other_media_leaves_story(self, controller: PlayerController, timers) -> None:
        """Playing other media cancels the running story."""
        controller.start_narrative()

        controller.play("/videos/a.mp4")

        assert controller.narrative_state.phase is NarrativePhase.INACTIVE
        assert timers.last.cancelled


class TestCache:
    """Test cache statistics and clearing."""

    def test_initial_stats_published(self, controller: PlayerController) -> None:
        """The first snapshot already carries cache statistics."""
        assert controller.snapshot.cache_summary == "No cached media"

    def test_clear_cache(self, controller: PlayerController, range_server) -> None:
        """Clearing empties the cache and updates the status."""
        range_server.bodies[BUNNY_URL] = b"v" * 4096
        controller.play_item("1")
        controller.cache.wait_idle(timeout=5)
        assert controller.cache_stats().file_count == 1

        stats = controller.clear_cache()

        assert stats.file_count == 0
        assert controller.snapshot.cache_summary == "No cached media"
        assert controller.snapshot.status_text == "Cache cleared"


class TestConcurrency:
    """Test a real countdown thread racing caller-thread commands."""

    def test_deadline_during_slow_pause_render(
        self, config: StoryreelConfig, http_client: httpx.Client
    ) -> None:
        """A deadline firing while a pause is still being rendered does not deadlock."""
        story = Story.from_dict({
            "start": "start",
            "nodes": {
                "start": {
                    "media": "/videos/a.mp4",
                    "decision_window_ms": 100,
                    "choices": [{"label": "go", "target": "next"}],
                },
                "next": {"media": "/videos/b.mp4"},
            },
        })
        playback = SimulatedPlaybackEngine()
        controller = PlayerController(
            config,
            playback=playback,
            story=story,
            cache=ContentCache(config, client=http_client),
        )
        rendered_pause = threading.Event()

        def slow_render(snapshot: StatusSnapshot) -> None:
            if snapshot.player_state.state is PlaybackState.PAUSED and not rendered_pause.is_set():
                rendered_pause.set()
                time.sleep(0.3)

        try:
            controller.subscribe(slow_render)
            controller.start_narrative()

            toggled = threading.Event()

            def user_toggle() -> None:
                time.sleep(0.05)
                controller.toggle_play_pause()
                toggled.set()

            threading.Thread(target=user_toggle, daemon=True).start()
            assert toggled.wait(timeout=3), "toggle_play_pause never returned"

            cancelled = threading.Event()
            threading.Thread(
                target=lambda: (controller.cancel_narrative(), cancelled.set()),
                daemon=True,
            ).start()
            assert cancelled.wait(timeout=3), "narrative never became available again"
            assert playback.status.state is PlaybackState.PAUSED
        finally:
            controller.close()
