"""Countdown timer: a single-interval state machine driven by an event loop.

The timer knows nothing about plans or sections.  It counts whole seconds
down on a periodic schedule and reports lifecycle events through plain
callbacks.  Calls made in the wrong state are ignored and logged rather
than raised, since they usually come from a stray button press.
"""

from __future__ import annotations

import asyncio
import math
from enum import Enum
from typing import Any, Callable, Optional

from playtime.logging import get_logger

logger = get_logger(__name__)


class TimerState(Enum):
    """Possible states of the timer."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED = "stopped"
    ADVANCED = "advanced"


_ACTIVE_STATES = frozenset({TimerState.RUNNING, TimerState.PAUSED})

DEFAULT_INTERVAL = 1.0


def _noop(*_args: Any) -> None:
    return None


def minutes_to_seconds(duration_minutes: Any) -> int:
    """Convert *duration_minutes* to whole seconds, halves rounding up; anything non-numeric is 0."""
    if isinstance(duration_minutes, bool):
        return 0
    try:
        minutes = float(duration_minutes)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(minutes):
        return 0
    return math.floor(minutes * 60 + 0.5)


def format_remaining(seconds: int) -> str:
    """Format *seconds* as ``MM:SS``."""
    total = max(int(seconds), 0)
    return f"{total // 60:02d}:{total % 60:02d}"


class CountdownTimer:
    """Counts a duration down in whole seconds.

    ``on_tick`` receives the remaining seconds after each decrement,
    ``on_pause_toggle`` the new paused flag.  ``on_complete``,
    ``on_manual_advance`` and ``on_exit`` take no arguments.

    The schedule comes from *loop* (anything with ``call_later`` and
    ``call_soon``); when omitted, the running asyncio loop is picked up at
    :meth:`start`.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None] = _noop,
        on_complete: Callable[[], None] = _noop,
        on_pause_toggle: Callable[[bool], None] = _noop,
        on_manual_advance: Callable[[], None] = _noop,
        on_exit: Callable[[], None] = _noop,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        self.on_tick = on_tick
        self.on_complete = on_complete
        self.on_pause_toggle = on_pause_toggle
        self.on_manual_advance = on_manual_advance
        self.on_exit = on_exit
        self._loop = loop
        self._interval = interval
        self._handle: Optional[asyncio.Handle] = None
        self._state: TimerState = TimerState.IDLE
        self._paused: bool = False
        self._target_minutes: Any = 0
        self._duration_seconds: int = 0
        self._remaining_seconds: int = 0

    # -- public interface ----------------------------------------------------

    def start(self, duration_minutes: Any) -> None:
        """Start counting down *duration_minutes* (rounded to whole seconds).

        Restarting cancels the current countdown.  A duration of zero or
        less completes on the next turn of the loop, never synchronously.
        """
        self._cancel_schedule()
        loop = self._resolve_loop()

        self._target_minutes = duration_minutes
        self._duration_seconds = minutes_to_seconds(duration_minutes)
        self._remaining_seconds = self._duration_seconds
        self._paused = False
        self._state = TimerState.RUNNING

        logger.info(
            "Timer started",
            target_minutes=duration_minutes,
            remaining_seconds=self._remaining_seconds,
        )

        if self._remaining_seconds <= 0:
            logger.info("Timer started with no time left, completing on next turn")
            self._handle = loop.call_soon(self._complete)
            return

        self._handle = loop.call_later(self._interval, self._tick)

    def toggle_pause(self) -> bool:
        """Pause or resume.  Returns ``False`` when the timer is not active."""
        if not self._require_active("toggle_pause"):
            return False

        self._paused = not self._paused
        self._state = TimerState.PAUSED if self._paused else TimerState.RUNNING
        logger.debug("Timer pause toggled", is_paused=self._paused)
        self.on_pause_toggle(self._paused)
        return True

    def manual_advance(self) -> bool:
        """Finish early on request.  Returns ``False`` when not active."""
        if not self._require_active("manual_advance"):
            return False

        self._cancel_schedule()
        self._state = TimerState.ADVANCED
        logger.info("Timer manually advanced", remaining_seconds=self._remaining_seconds)
        self.on_manual_advance()
        return True

    def stop(self) -> None:
        """Abort the countdown from any state and report the exit."""
        self._cancel_schedule()
        self._state = TimerState.STOPPED
        logger.info("Timer stopped", remaining_seconds=self._remaining_seconds)
        self.on_exit()

    def destroy(self) -> None:
        """Release the schedule without emitting anything.  Idempotent."""
        self._cancel_schedule()
        if self._state in _ACTIVE_STATES:
            self._state = TimerState.STOPPED

    # -- read-only views -----------------------------------------------------

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in _ACTIVE_STATES

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def remaining_seconds(self) -> int:
        return self._remaining_seconds

    @property
    def duration_seconds(self) -> int:
        return self._duration_seconds

    @property
    def elapsed_seconds(self) -> int:
        return max(self._duration_seconds - max(self._remaining_seconds, 0), 0)

    @property
    def target_minutes(self) -> Any:
        return self._target_minutes

    # -- private helpers -----------------------------------------------------

    def _tick(self) -> None:
        if self._state not in _ACTIVE_STATES:
            self._handle = None
            return

        # Re-arm first so a failing callback cannot stall the countdown.
        self._handle = self._resolve_loop().call_later(self._interval, self._tick)
        if self._paused:
            return

        self._remaining_seconds -= 1
        if self._remaining_seconds <= 0:
            self._complete()
            return

        logger.debug("Timer tick", remaining_seconds=self._remaining_seconds)
        self.on_tick(self._remaining_seconds)

    def _complete(self) -> None:
        self._cancel_schedule()
        self._remaining_seconds = 0
        self._paused = False
        self._state = TimerState.COMPLETED
        logger.info("Timer completed")
        self.on_complete()

    def _cancel_schedule(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _require_active(self, method: str) -> bool:
        """Log and return ``False`` if the timer is not running or paused."""
        if self._state not in _ACTIVE_STATES:
            logger.debug("Timer call ignored", method=method, state=self._state.value)
            return False
        return True
