"""
Coalescer: batch callbacks made within a short window into a single flush.

Repeated triggers registered under the same key collapse into one call;
plain and trailing callbacks run in registration order.
"""

from coalescer.buffer import DEFAULT_DELAY_MS, MAX_FINISH_ROUNDS, CoalescingBuffer
from coalescer.errors import InvalidConfiguration
from coalescer.scheduling import (
    AsyncioScheduler,
    ManualScheduler,
    Scheduler,
    ThreadingScheduler,
    default_scheduler,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_DELAY_MS",
    "MAX_FINISH_ROUNDS",
    "AsyncioScheduler",
    "CoalescingBuffer",
    "InvalidConfiguration",
    "ManualScheduler",
    "Scheduler",
    "ThreadingScheduler",
    "default_scheduler",
]
