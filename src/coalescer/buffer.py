# src/coalescer/buffer.py
"""CoalescingBuffer: batch callbacks made within a short window into one flush.

Callbacks go into one of three containers:

- keyed slots: one pending callback per key, a later registration under the
  same key replaces the earlier one (collapses repeated redraws, reindexes...)
- unkeyed queue: FIFO, every registration runs
- trailing queue: FIFO, runs after everything else in the same flush

The first registration of a cycle arms a one-shot timer. When it fires (or
when the owner calls flush() directly) the containers are drained in that
phase order: keyed, unkeyed, trailing.

Every phase drains live: it removes one entry, invokes it, and looks at the
container again. A callback that registers into the phase currently draining
is therefore run in the same flush; one that registers into an earlier phase
arms a new cycle and runs in the next flush.
"""

from __future__ import annotations

import math
import threading
from collections import deque
from collections.abc import Callable
from numbers import Real
from typing import TYPE_CHECKING

from coalescer.core.logging import get_logger
from coalescer.errors import InvalidConfiguration
from coalescer.scheduling import default_scheduler

if TYPE_CHECKING:
    from coalescer.core.config import BufferSettings
    from coalescer.scheduling import Scheduler

logger = get_logger(__name__)

DEFAULT_DELAY_MS = 100

# finish_all() stops after this many flushes even if callbacks keep re-registering
MAX_FINISH_ROUNDS = 10

Callback = Callable[[], object]


def _validated_delay(delay_ms: object) -> float:
    # bool is an int subclass but never a meaningful duration
    if isinstance(delay_ms, bool) or not isinstance(delay_ms, Real):
        raise InvalidConfiguration(f"Buffer delay must be a number of milliseconds, got {delay_ms!r}")
    if not math.isfinite(delay_ms) or delay_ms < 0:
        raise InvalidConfiguration(f"Buffer delay must be finite and non-negative, got {delay_ms!r}")
    return delay_ms  # type: ignore[return-value]


def _check_callback(callback: object) -> None:
    if callback is not None and not callable(callback):
        raise TypeError(f"Buffer callbacks must be callable or None, got {type(callback).__name__}")


class CoalescingBuffer:
    """Accumulates callbacks and runs them together once the delay elapses.

    Example:
        buffer = CoalescingBuffer(delay_ms=50)

        # Three change notifications, one redraw
        buffer.register_keyed("redraw", lambda: view.redraw(1))
        buffer.register_keyed("redraw", lambda: view.redraw(2))
        buffer.register_keyed("redraw", lambda: view.redraw(3))

        buffer.register_unkeyed(save)
        buffer.register_trailing(notify_done)
        # ~50ms later: redraw(3), save(), notify_done()

    Exceptions raised by callbacks are not caught. They abort the flush and
    propagate to whoever triggered it: the caller of flush()/finish_all(),
    or the scheduler's timer context. Callbacks not yet reached stay queued
    and the buffer re-arms, so they run in the next cycle.

    Internal state is guarded by a lock so that timer-thread flushes and
    registrations from the owning thread do not interleave mid-update. The
    lock is never held while a callback runs.
    """

    def __init__(
        self,
        delay_ms: float = DEFAULT_DELAY_MS,
        *,
        scheduler: Scheduler | None = None,
    ) -> None:
        """Create an empty, unarmed buffer.

        Args:
            delay_ms: Milliseconds between the first registration of a cycle
                and its flush.
            scheduler: Timer primitive. When omitted, default_scheduler() is
                consulted each time the buffer arms.

        Raises:
            InvalidConfiguration: If delay_ms is not a finite, non-negative number.
        """
        self._delay_ms = _validated_delay(delay_ms)
        self._scheduler = scheduler
        self._armed = False
        self._cycle = 0
        # Only pending slots are kept; a slot is removed when drained or withdrawn
        self._keyed: dict[str, Callback] = {}
        self._unkeyed: deque[Callback | None] = deque()
        self._trailing: deque[Callback | None] = deque()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: BufferSettings,
        *,
        scheduler: Scheduler | None = None,
    ) -> CoalescingBuffer:
        """Build a buffer from validated settings.

        An explicit scheduler wins over the one named in settings.
        """
        if scheduler is None:
            scheduler = settings.build_scheduler()
        return cls(settings.delay_ms, scheduler=scheduler)

    @property
    def armed(self) -> bool:
        """True while a flush timer is pending for the current cycle."""
        return self._armed

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def get_delay(self) -> float:
        """Current delay in milliseconds."""
        return self._delay_ms

    def set_delay(self, delay_ms: float) -> None:
        """Set the delay used by the next arming.

        A timer that is already pending keeps the delay it was armed with.

        Raises:
            InvalidConfiguration: If delay_ms is not a finite, non-negative
                number. The previous delay is kept.
        """
        validated = _validated_delay(delay_ms)
        with self._lock:
            self._delay_ms = validated

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_unkeyed(self, callback: Callback | None) -> None:
        """Queue a callback for the unkeyed phase of the next flush."""
        _check_callback(callback)
        with self._lock:
            self._arm()
            self._unkeyed.append(callback)

    def register_keyed(self, key: str, callback: Callback | None) -> None:
        """Set the pending callback for ``key``, replacing any earlier one.

        Only the most recent callback registered under a key before the
        flush runs. Registering None withdraws the pending callback.
        """
        if not isinstance(key, str):
            raise TypeError(f"Buffer keys must be str, got {type(key).__name__}")
        _check_callback(callback)
        with self._lock:
            self._arm()
            if callback is None:
                self._keyed.pop(key, None)
            else:
                self._keyed[key] = callback

    def register_trailing(self, callback: Callback | None) -> None:
        """Queue a callback to run after all keyed and unkeyed callbacks."""
        _check_callback(callback)
        with self._lock:
            self._arm()
            self._trailing.append(callback)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def has_keyed(self, key: str) -> bool:
        """True if a callback is currently pending under ``key``."""
        with self._lock:
            return key in self._keyed

    def is_empty(self) -> bool:
        """True if no callback of any kind is pending.

        Whether the buffer is armed is not considered.
        """
        with self._lock:
            return self._is_empty_locked()

    def _is_empty_locked(self) -> bool:
        return not self._keyed and not self._unkeyed and not self._trailing

    # -------------------------------------------------------------------------
    # Timer
    # -------------------------------------------------------------------------

    def _arm(self) -> None:
        """Schedule the flush timer unless one is already pending.

        Caller must hold self._lock.
        """
        if self._armed:
            return
        cycle = self._cycle + 1
        scheduler = self._scheduler if self._scheduler is not None else default_scheduler()
        # State changes only once a timer exists, so a scheduling failure
        # leaves the buffer disarmed and the next registration tries again.
        scheduler.schedule_once(self._delay_ms, lambda: self._flush(cycle))
        self._armed = True
        self._cycle = cycle
        logger.debug("Buffer armed", delay_ms=self._delay_ms, cycle=cycle)

    # -------------------------------------------------------------------------
    # Flushing
    # -------------------------------------------------------------------------

    def flush(self) -> None:
        """Drain and invoke every pending callback now.

        Phases run in order keyed, unkeyed, trailing. Any timer still pending
        for the flushed cycle becomes a no-op when it fires.
        """
        self._flush(None)

    def _flush(self, timer_cycle: int | None) -> None:
        with self._lock:
            # A timer only flushes the cycle that armed it. After a manual
            # flush the buffer is either disarmed or armed for a newer cycle.
            if timer_cycle is not None and not (self._armed and timer_cycle == self._cycle):
                logger.debug("Ignoring stale flush timer", cycle=timer_cycle, current_cycle=self._cycle)
                return
            self._armed = False

        try:
            keyed = self._drain_keyed()
            unkeyed = self._drain_queue(self._unkeyed)
            trailing = self._drain_queue(self._trailing)
        except Exception:
            with self._lock:
                rearm = not self._is_empty_locked()
                if rearm:
                    self._arm()
            logger.warning("Flush aborted by callback exception", rearmed=rearm)
            raise

        logger.debug("Buffer flushed", keyed=keyed, unkeyed=unkeyed, trailing=trailing)

    def _drain_keyed(self) -> int:
        invoked = 0
        while True:
            with self._lock:
                callback = self._take_next_keyed()
            if callback is None:
                return invoked
            callback()
            invoked += 1

    def _take_next_keyed(self) -> Callback | None:
        # Slot is removed before its callback runs so the callback can
        # register a fresh one under the same key.
        if not self._keyed:
            return None
        return self._keyed.pop(next(iter(self._keyed)))

    def _drain_queue(self, queue: deque[Callback | None]) -> int:
        invoked = 0
        while True:
            with self._lock:
                if not queue:
                    return invoked
                callback = queue.popleft()
            if callback is not None:
                callback()
                invoked += 1

    def finish_all(self) -> int:
        """Flush repeatedly until nothing is pending, at most MAX_FINISH_ROUNDS times.

        Callbacks that register more work into an earlier phase need extra
        rounds. The cap keeps such a callback that always re-registers from
        looping forever. It does not bound a callback that re-registers into
        the phase currently draining: the live drain picks that up inside a
        single flush(), which then never returns.

        Returns:
            Number of flushes performed (0 for an empty buffer).
        """
        rounds = 0
        while rounds < MAX_FINISH_ROUNDS and not self.is_empty():
            self.flush()
            rounds += 1

        if rounds == MAX_FINISH_ROUNDS and not self.is_empty():
            logger.warning("finish_all stopped with callbacks still pending", rounds=rounds)
        return rounds
