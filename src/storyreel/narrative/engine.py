"""
State machine driving an interactive story on top of a playback engine.

Phases::

    INACTIVE --start--> PLAYING_NODE(start)
    PLAYING_NODE(n) --countdown fires while playing--> AWAITING_DECISION(n)
    AWAITING_DECISION(n) --choose(label)--> PLAYING_NODE(target) | ENDED
    PLAYING_NODE(leaf) --playback ended--> ENDED
    any --cancel--> INACTIVE

The countdown's preconditions are checked when it fires, not when it is
armed: the user may have paused, or the session may have moved on, while it
was waiting. Intents that do not apply to the current phase are ignored.

Locking: ``_lock`` guards the session state and is never held while the
playback engine is commanded, because the engine reports back through
:meth:`NarrativeEngine.on_state_changed` on the commanding thread.
``_command_lock`` serialises the intents that command playback (start,
choose and the deadline) and is always taken before ``_lock``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Callable

from shortuuid import random

from ..cache.resolver import ContentResolver
from ..models import Choice, NarrativePhase, NarrativeState, PlaybackState, PlaybackStatus
from ..playback.engine import PlaybackEngine
from .countdown import Countdown
from .story import END_NODE, NarrativeNode, Story

logger = logging.getLogger("storyreel.narrative")

StateCallback = Callable[[NarrativeState], None]
DecisionCallback = Callable[[str, tuple[Choice, ...]], None]


class NarrativeEngine:
    """Plays a Story node by node and forks on decisions.

    The engine is also a playback listener: register it with the playback
    engine (directly or through a fan-out) so it sees ``ENDED`` and knows
    whether playback is running when a countdown fires. A reported
    PLAYING -> PAUSED while a node plays counts as a user pause, and
    PAUSED -> PLAYING as a resume.

    Args:
        story: The story to play.
        resolver: Resolves node media into playable references.
        playback: Engine that plays the resolved media.
        countdown: Countdown used for decision windows. A thread-timer
            based one is created when omitted.
    """

    def __init__(
        self,
        story: Story,
        resolver: ContentResolver,
        playback: PlaybackEngine,
        countdown: Countdown | None = None,
    ) -> None:
        self.story = story
        self._resolver = resolver
        self._playback = playback
        self._countdown = countdown or Countdown()
        self._lock = threading.RLock()
        self._command_lock = threading.RLock()
        self._state = NarrativeState()
        self._playback_status = PlaybackStatus()
        self._state_callbacks: list[StateCallback] = []
        self._decision_callbacks: list[DecisionCallback] = []

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> NarrativeState:
        return self._state

    @property
    def current_node(self) -> NarrativeNode | None:
        node_id = self._state.node_id
        return self.story.node(node_id) if node_id else None

    @property
    def countdown_armed(self) -> bool:
        return self._countdown.is_armed

    def on_state_change(self, callback: StateCallback) -> None:
        """Register a callback receiving every new NarrativeState."""
        self._state_callbacks.append(callback)

    def on_decision(self, callback: DecisionCallback) -> None:
        """Register a callback receiving ``(node_id, choices)`` at each decision point."""
        self._decision_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Begin a new session at the story's start node.

        Allowed when inactive or after a previous session ended.
        """
        with self._command_lock:
            with self._lock:
                if self._state.is_active:
                    logger.debug("start ignored: a story session is already active")
                    return False

                session_id = random(length=8)
                node = self.story.start_node
                logger.info(f"Starting story '{self.story.title}' (session {session_id})")
                self._enter_node(node, session_id)

            self._play_node(node, session_id)
            return True

    def choose(self, label: str) -> bool:
        """Take the branch labelled ``label`` at a pending decision."""
        with self._command_lock:
            with self._lock:
                if self._state.phase is not NarrativePhase.AWAITING_DECISION:
                    logger.debug(f"choose('{label}') ignored in phase {self._state.phase.value}")
                    return False

                node = self.current_node
                choice = node.choice_for(label) if node else None
                if choice is None:
                    logger.warning(f"Unknown choice '{label}' at node '{self._state.node_id}'")
                    return False

                logger.info(f"Choice '{label}' at '{node.id}' -> '{choice.target}'")
                self._countdown.cancel()

                if choice.target == END_NODE:
                    self._end()
                    return True

                target = self.story.nodes[choice.target]
                session_id = self._state.session_id
                self._enter_node(target, session_id)

            self._play_node(target, session_id)
            return True

    def cancel(self) -> bool:
        """Leave the story and discard its state. Safe to call repeatedly.

        Returns:
            True if there was a session to discard.
        """
        with self._lock:
            self._countdown.cancel()
            if self._state.phase is NarrativePhase.INACTIVE and self._state.node_id is None:
                return False
            logger.info("Story mode cancelled")
            self._set_state(NarrativeState())
            return True

    def pause(self) -> bool:
        """User paused playback: drop the live countdown."""
        with self._lock:
            if self._state.phase is not NarrativePhase.PLAYING_NODE:
                return False
            self._stop_window()
            return True

    def resume(self) -> bool:
        """User resumed playback: restart a full-length countdown.

        The window restarts from zero; time played before the pause is not
        credited.
        """
        with self._lock:
            if self._state.phase is not NarrativePhase.PLAYING_NODE:
                return False
            self._restart_window()
            return True

    # ------------------------------------------------------------------
    # Playback signals
    # ------------------------------------------------------------------

    def on_state_changed(self, status: PlaybackStatus) -> None:
        decision: NarrativeNode | None = None
        with self._lock:
            previous = self._playback_status.state
            self._playback_status = status

            if status.state is PlaybackState.ENDED:
                decision = self._on_media_ended()
            elif self._state.phase is not NarrativePhase.PLAYING_NODE:
                # The pause issued at a decision point lands here too
                pass
            elif previous is PlaybackState.PLAYING and status.state is PlaybackState.PAUSED:
                self._stop_window()
            elif previous is PlaybackState.PAUSED and status.state is PlaybackState.PLAYING:
                self._restart_window()

        if decision is not None:
            self._notify_decision(decision)

    def on_error(self, message: str) -> None:
        with self._lock:
            self._playback_status = PlaybackStatus.error(message)

    def _on_media_ended(self) -> NarrativeNode | None:
        """Handle the end of the node's media; returns the node if a decision opened."""
        phase = self._state.phase
        if phase is NarrativePhase.AWAITING_DECISION:
            # A pending decision takes precedence over the end of the media
            logger.debug("Playback ended while awaiting a decision; ignored")
            return None
        if phase is not NarrativePhase.PLAYING_NODE:
            return None

        node = self.current_node
        if node is None or node.is_leaf:
            logger.info("Story finished")
            self._countdown.cancel()
            self._end()
            return None

        # Media ran out before the window elapsed: ask now
        logger.info(f"Media for '{node.id}' ended before its decision window; asking now")
        self._countdown.cancel()
        self._open_decision(node)
        return node

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enter_node(self, node: NarrativeNode, session_id: str | None) -> None:
        self._set_state(replace(
            self._state,
            phase=NarrativePhase.PLAYING_NODE,
            node_id=node.id,
            session_id=session_id,
            pending_choices=(),
        ))

    def _is_current(self, session_id: str | None, node_id: str, phase: NarrativePhase) -> bool:
        state = self._state
        return state.phase is phase and state.session_id == session_id and state.node_id == node_id

    def _play_node(self, node: NarrativeNode, session_id: str | None) -> None:
        # Called with _command_lock held and _lock released
        playable = self._resolver.resolve(node.source)
        with self._lock:
            if not self._is_current(session_id, node.id, NarrativePhase.PLAYING_NODE):
                logger.debug(f"Node '{node.id}' left before playback started")
                return
        logger.info(f"Playing node '{node.id}': {node.display_title}")

        self._playback.set_source(playable)
        self._playback.prepare()
        self._playback.play()

        with self._lock:
            if node.has_decision and self._is_current(session_id, node.id, NarrativePhase.PLAYING_NODE):
                self._arm(node)

    def _arm(self, node: NarrativeNode) -> None:
        session_id = self._state.session_id
        self._countdown.arm(
            node.decision_window_ms,
            lambda: self._on_deadline(session_id, node.id),
        )

    def _stop_window(self) -> None:
        if self._countdown.cancel():
            logger.debug(f"Countdown for '{self._state.node_id}' cancelled by pause")

    def _restart_window(self) -> None:
        node = self.current_node
        if node is not None and node.has_decision:
            logger.debug(f"Countdown for '{node.id}' restarted on resume")
            self._arm(node)

    def _on_deadline(self, session_id: str | None, node_id: str) -> None:
        with self._command_lock:
            with self._lock:
                if not self._is_current(session_id, node_id, NarrativePhase.PLAYING_NODE):
                    logger.debug(f"Decision point for '{node_id}' no longer relevant")
                    return
                if not self._playback_status.is_playing:
                    logger.info(
                        f"Decision point for '{node_id}' suppressed: playback is "
                        f"{self._playback_status.state.value}"
                    )
                    return

                node = self.current_node
                if node is None or not node.choices:
                    return
                self._open_decision(node)

            with self._lock:
                still_pending = self._is_current(session_id, node_id, NarrativePhase.AWAITING_DECISION)
            if still_pending:
                self._playback.pause()
            self._notify_decision(node)

    def _open_decision(self, node: NarrativeNode) -> None:
        logger.info(f"Decision point at '{node.id}'")
        self._set_state(replace(
            self._state,
            phase=NarrativePhase.AWAITING_DECISION,
            pending_choices=node.choices,
        ))

    def _notify_decision(self, node: NarrativeNode) -> None:
        # Runs without _lock held; callbacks may answer with choose()
        for callback in self._decision_callbacks:
            try:
                callback(node.id, node.choices)
            except Exception as e:
                logger.error(f"Error in decision callback: {e}", exc_info=True)

    def _end(self) -> None:
        self._set_state(replace(
            self._state,
            phase=NarrativePhase.ENDED,
            pending_choices=(),
        ))

    def _set_state(self, state: NarrativeState) -> None:
        self._state = state
        for callback in self._state_callbacks:
            try:
                callback(state)
            except Exception as e:
                logger.error(f"Error in narrative state callback: {e}", exc_info=True)


__all__ = ["NarrativeEngine"]
