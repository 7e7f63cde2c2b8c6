"""
Scheduler - Cancellable delayed callbacks owned by the engine.

The engine never sleeps. The handshake delay and the PvE "thinking" pause
are timers created through a Scheduler, so tests can drive them with a
virtual clock and the API server can drive them with asyncio.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable
import asyncio
import heapq
import itertools


class TimerHandle(ABC):
    """Handle to a scheduled callback."""

    @abstractmethod
    def cancel(self):
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class Scheduler(ABC):
    """Abstract clock."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run `callback` after `delay` seconds."""
        pass


# =============================================================================
# Virtual time
# =============================================================================

@dataclass(order=True)
class _VirtualTimer(TimerHandle):
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    _cancelled: bool = field(default=False, compare=False)

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class VirtualScheduler(Scheduler):
    """
    Deterministic clock for tests and offline simulation.

    Nothing runs until advance() or run_all() is called.
    """

    def __init__(self):
        self.now = 0.0
        self._queue: list[_VirtualTimer] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = _VirtualTimer(due=self.now + max(0.0, delay), seq=next(self._seq), callback=callback)
        heapq.heappush(self._queue, timer)
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing every timer that falls due.

        Timers scheduled by callbacks fire too if they are due within the
        window. Returns the number of callbacks run.
        """
        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0].due <= target:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now = timer.due
            timer.callback()
            fired += 1
        self.now = target
        return fired

    def run_all(self, limit: int = 10_000) -> int:
        """Fire timers in order until none remain (or `limit` is hit)."""
        fired = 0
        while self._queue and fired < limit:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now = max(self.now, timer.due)
            timer.callback()
            fired += 1
        return fired


# =============================================================================
# asyncio
# =============================================================================

class _AsyncioTimer(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self):
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """
    Timers on an asyncio event loop.

    Must be used from the loop's thread; the running loop is picked up
    lazily unless one is given.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return _AsyncioTimer(loop.call_later(delay, callback))
