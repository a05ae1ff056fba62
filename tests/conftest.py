"""Shared fixtures: a hand-cranked event loop and quiet logging."""

from __future__ import annotations

import itertools
from typing import Any, Callable

import pytest

from playtime.logging import configure_logging


class FakeHandle:
    """Mimics ``asyncio.TimerHandle`` closely enough for the timer."""

    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: tuple) -> None:
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """An event loop whose clock only moves when a test says so."""

    def __init__(self) -> None:
        self._now = 0.0
        self._handles: list[FakeHandle] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self._now

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> FakeHandle:
        return self.call_later(0, callback, *args)

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeHandle:
        handle = FakeHandle(self._now + delay, next(self._seq), callback, args)
        self._handles.append(handle)
        return handle

    def run_ready(self) -> None:
        """Run callbacks scheduled for the current instant."""
        self.advance(0)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due callbacks in order."""
        target = self._now + seconds
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self._now = max(self._now, handle.when)
            handle.callback(*handle.args)
        self._now = target

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)


@pytest.fixture()
def loop() -> FakeLoop:
    return FakeLoop()


@pytest.fixture(autouse=True, scope="session")
def _quiet_logging() -> None:
    configure_logging("WARNING", include_timestamp=False)
