"""
Timer scheduling for the group batcher.

The batcher never touches the event loop directly; it asks a Scheduler to
run a callback later and keeps the returned handle so it can cancel it.
Production code uses the asyncio loop, tests drive a VirtualScheduler by
hand.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable, Protocol


class CancelHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> CancelHandle: ...


class AsyncioScheduler:
    """Runs callbacks via loop.call_later on the running event loop"""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000.0, callback)


class _VirtualTimer:
    __slots__ = ("due", "callback", "cancelled")

    def __init__(self, due: int, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """
    Manually advanced clock.

    Usage:
        scheduler = VirtualScheduler()
        batcher = GroupBatcher(on_flush, scheduler)
        batcher.enqueue(msg, adapter, 5000)
        scheduler.advance(5000)   # fires the flush
    """

    def __init__(self) -> None:
        self.now_ms = 0
        self._seq = itertools.count()
        self._queue: list[tuple[int, int, _VirtualTimer]] = []

    def schedule(self, delay_ms: int, callback: Callable[[], None]) -> _VirtualTimer:
        timer = _VirtualTimer(self.now_ms + max(0, int(delay_ms)), callback)
        heapq.heappush(self._queue, (timer.due, next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of live (not cancelled, not fired) timers"""
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    def advance(self, ms: int) -> None:
        """Move the clock forward, firing due timers in order"""
        target = self.now_ms + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            self.now_ms = due
            if not timer.cancelled:
                timer.cancelled = True
                timer.callback()
        self.now_ms = target
