# src/coalescer/core/__init__.py
"""Core infrastructure: Configuration, Logging."""

from coalescer.core.config import (
    BufferSettings,
    load_settings,
)
from coalescer.core.logging import (
    configure_logging,
    get_logger,
)

__all__ = [
    "BufferSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
