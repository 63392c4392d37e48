# src/coalescer/scheduling.py
"""Scheduler abstraction for the buffer's one-shot flush timer.

The buffer never waits on its own. It asks a Scheduler to call a thunk
once after a delay, and ignores the returned handle: staleness is decided
by the buffer's own state, so no implementation needs to support cancel.

Production code uses ThreadingScheduler or AsyncioScheduler (picked by
default_scheduler()). Tests inject ManualScheduler to fire timers without
sleeping.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol


class Scheduler(Protocol):
    """Single-shot delayed execution primitive.

    Implementations:
    - ThreadingScheduler: threading.Timer per call
    - AsyncioScheduler: loop.call_later on an event loop
    - ManualScheduler: fires only when the test advances time
    """

    def schedule_once(self, delay_ms: float, callback: Callable[[], None]) -> object:
        """Call ``callback`` once, no sooner than ``delay_ms`` from now.

        Must never call ``callback`` synchronously, even for a zero delay.

        Args:
            delay_ms: Delay in milliseconds (non-negative).
            callback: Zero-argument thunk to run.

        Returns:
            Opaque handle. Callers are not required to keep it.
        """
        ...


class ThreadingScheduler:
    """Fires each callback on its own daemon timer thread.

    Exceptions raised by the callback reach threading.excepthook, like any
    other uncaught error in a thread.
    """

    def __init__(self, thread_name: str = "coalescer-timer") -> None:
        self._thread_name = thread_name

    def schedule_once(self, delay_ms: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay_ms / 1000.0, callback)
        timer.name = self._thread_name
        timer.daemon = True
        timer.start()
        return timer


class AsyncioScheduler:
    """Fires callbacks on an asyncio event loop via ``call_later``.

    Without an explicit loop, the loop running at scheduling time is used,
    so schedule_once() must then be called from inside that loop. A zero
    delay runs the callback on the loop's next iteration.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def schedule_once(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop if self._loop is not None else asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000.0, callback)


@dataclass(order=True)
class _ManualTimer:
    due_ms: float
    seq: int
    callback: Callable[[], None] = field(compare=False)


class ManualScheduler:
    """Controllable scheduler for deterministic testing.

    Time only moves when the test says so. Timers scheduled while others are
    firing take part in the same advance() if they fall due within it.

    Example:
        scheduler = ManualScheduler()
        buffer = CoalescingBuffer(scheduler=scheduler)

        buffer.register_unkeyed(refresh)
        scheduler.advance(99)   # nothing yet
        scheduler.advance(1)    # default 100ms delay elapsed -> refresh() runs
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now_ms = start_ms
        self._timers: list[_ManualTimer] = []
        self._seq = 0

    @property
    def now(self) -> float:
        """Current mock time in milliseconds."""
        return self._now_ms

    @property
    def pending(self) -> int:
        """Number of timers scheduled but not yet fired."""
        return len(self._timers)

    def schedule_once(self, delay_ms: float, callback: Callable[[], None]) -> _ManualTimer:
        timer = _ManualTimer(self._now_ms + delay_ms, self._seq, callback)
        self._seq += 1
        self._timers.append(timer)
        self._timers.sort()
        return timer

    def advance(self, ms: float) -> int:
        """Advance mock time, firing every timer that comes due.

        Args:
            ms: Amount to advance (must be non-negative).

        Returns:
            Number of timers fired.

        Raises:
            ValueError: If ms is negative.
        """
        if ms < 0:
            raise ValueError(f"Cannot advance time by negative amount: {ms}")
        target = self._now_ms + ms
        fired = 0
        while self._timers and self._timers[0].due_ms <= target:
            timer = self._timers.pop(0)
            self._now_ms = timer.due_ms
            timer.callback()
            fired += 1
        self._now_ms = target
        return fired

    def run_next(self) -> bool:
        """Jump to the earliest pending timer and fire it.

        Returns:
            False if nothing was pending.
        """
        if not self._timers:
            return False
        timer = self._timers.pop(0)
        self._now_ms = max(self._now_ms, timer.due_ms)
        timer.callback()
        return True

    def run_all(self, max_fires: int = 1000) -> int:
        """Fire pending timers in due order until none are left.

        Timers scheduled while firing are run too, so a chain of timers that
        keeps rescheduling itself is stopped by max_fires.

        Args:
            max_fires: Upper bound on timers fired in this call.

        Returns:
            Number of timers fired.

        Raises:
            RuntimeError: If timers are still pending after max_fires.
        """
        fired = 0
        while self._timers:
            if fired >= max_fires:
                raise RuntimeError(f"Timers still pending after firing {fired}")
            self.run_next()
            fired += 1
        return fired


_THREADING_SCHEDULER = ThreadingScheduler()


def default_scheduler() -> Scheduler:
    """Pick a scheduler for the calling context.

    Inside a running event loop the buffer must flush on that loop, so an
    AsyncioScheduler bound to it is returned. Anywhere else timers run on
    daemon threads.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return _THREADING_SCHEDULER
    return AsyncioScheduler(loop)
