# src/coalescer/core/config.py
"""
Configuration schema and loading for coalescing buffers.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from coalescer.scheduling import AsyncioScheduler, Scheduler, ThreadingScheduler

SchedulerKind = Literal["auto", "thread", "asyncio"]


class BufferSettings(BaseModel):
    """Configuration for a CoalescingBuffer.

    Example YAML:
        delay_ms: 250
        scheduler: thread

    scheduler values:
    - auto: asyncio when armed inside a running event loop, threads otherwise
    - thread: always fire on a daemon timer thread
    - asyncio: always fire on the event loop running when the buffer arms
    """

    model_config = {"frozen": True}

    delay_ms: float = Field(
        default=100,
        ge=0,
        allow_inf_nan=False,
        description="Milliseconds a batch waits after its first registration before flushing",
    )
    scheduler: SchedulerKind = Field(
        default="auto",
        description="Timer implementation used to fire the flush",
    )

    def build_scheduler(self) -> Scheduler | None:
        """Create the configured scheduler.

        Returns:
            A scheduler instance, or None for "auto" so the buffer resolves
            one each time it arms.
        """
        if self.scheduler == "thread":
            return ThreadingScheduler()
        if self.scheduler == "asyncio":
            return AsyncioScheduler()
        return None


def load_settings(config_path: Path) -> BufferSettings:
    """Load buffer settings from a YAML file with environment overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (COALESCER_*) - highest priority
    2. Config file
    3. Defaults from the Pydantic schema - lowest priority

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated BufferSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="COALESCER",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
    )

    # Dynaconf returns uppercase keys and mixes in its own settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    return BufferSettings(**raw_config)
