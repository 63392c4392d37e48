# tests/conftest.py
"""Shared test fixtures.

Buffer tests run against ManualScheduler so timers fire only when a test
advances time; no test in this suite depends on wall-clock timing except
the ones that exercise the real schedulers.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os

import pytest
from hypothesis import Phase, Verbosity, settings

from coalescer import CoalescingBuffer, ManualScheduler

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Scheduler whose timers fire only on advance()."""
    return ManualScheduler()


@pytest.fixture
def buffer(scheduler: ManualScheduler) -> CoalescingBuffer:
    """Buffer with the default 100ms delay driven by the manual scheduler."""
    return CoalescingBuffer(scheduler=scheduler)
