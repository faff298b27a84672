"""
Clock and frame timer abstractions for the detection loop.

The scheduler asks a Clock for the time and a FrameTimer to call it back on
the next display tick. Production uses the monotonic clock and the asyncio
loop; tests substitute manual implementations.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, Optional, Protocol


class Clock(Protocol):
    def now(self) -> float:
        """Seconds from an arbitrary, monotonic origin."""
        ...


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class FrameTimer(Protocol):
    def schedule(self, callback: Callable[[], Any]) -> TimerHandle:
        """Call `callback` once on the next display tick."""
        ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic()


class AsyncioFrameTimer:
    """
    Display-refresh style timer on an asyncio loop.

    Each schedule() fires once, one refresh interval later; the scheduler
    re-arms it from inside the callback, like a requestAnimationFrame chain.
    """

    def __init__(self, refresh_hz: float = 60.0, loop: Optional[asyncio.AbstractEventLoop] = None):
        if refresh_hz <= 0:
            raise ValueError(f"refresh_hz must be positive, got {refresh_hz}")
        self.interval = 1.0 / refresh_hz
        self._loop = loop

    def schedule(self, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(self.interval, callback)
