"""
Cancellable one-shot countdown.

Wraps a timer so that cancelling and firing cannot both win. Each
:meth:`Countdown.arm` creates a new generation; a timer callback only runs
if its generation is still current when it starts. Cancelling after the
callback has started has no effect on that callback, which runs to
completion. Each arm fires at most once.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol

logger = logging.getLogger("storyreel.narrative.countdown")


class TimerHandle(Protocol):
    """The subset of ``threading.Timer`` the countdown uses."""

    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(interval: float, function: Callable[[], None]) -> TimerHandle:
    return threading.Timer(interval, function)


class Countdown:
    """A single re-armable countdown; at most one is live at a time.

    Args:
        timer_factory: Builds a timer from ``(seconds, callback)``.
            Defaults to ``threading.Timer``.
    """

    def __init__(self, timer_factory: TimerFactory | None = None) -> None:
        self._timer_factory = timer_factory or thread_timer
        self._lock = threading.Lock()
        self._generation = 0
        self._timer: TimerHandle | None = None

    @property
    def is_armed(self) -> bool:
        with self._lock:
            return self._timer is not None

    def arm(self, duration_ms: int, callback: Callable[[], None]) -> int:
        """Start a countdown, cancelling any live one.

        Returns:
            The generation number identifying this countdown.
        """
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(
                duration_ms / 1000.0,
                lambda: self._fire(generation, callback),
            )
            timer.daemon = True
            self._timer = timer
            timer.start()

        logger.debug(f"Countdown {generation} armed for {duration_ms}ms")
        return generation

    def cancel(self) -> bool:
        """Cancel the live countdown, if any.

        Returns:
            True if a countdown was cancelled before it started firing.
        """
        with self._lock:
            return self._cancel_locked()

    def _cancel_locked(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        self._generation += 1
        return True

    def _fire(self, generation: int, callback: Callable[[], None]) -> None:
        with self._lock:
            if generation != self._generation or self._timer is None:
                return
            # From here on the callback owns this generation
            self._timer = None

        logger.debug(f"Countdown {generation} fired")
        try:
            callback()
        except Exception:
            logger.exception("Error in countdown callback")


__all__ = ["Countdown", "TimerFactory", "TimerHandle", "thread_timer"]
