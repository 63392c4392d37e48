# tests/core/test_config.py
"""Tests for buffer configuration schema and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from coalescer.core.config import BufferSettings, load_settings
from coalescer.scheduling import AsyncioScheduler, ThreadingScheduler


class TestBufferSettings:
    """Tests for the BufferSettings model."""

    def test_defaults(self) -> None:
        settings = BufferSettings()

        assert settings.delay_ms == 100
        assert settings.scheduler == "auto"

    def test_frozen(self) -> None:
        settings = BufferSettings()

        with pytest.raises(ValidationError):
            settings.delay_ms = 5  # type: ignore[misc]

    @pytest.mark.parametrize("delay_ms", [-1, float("nan"), float("inf"), "soon"])
    def test_invalid_delay_rejected(self, delay_ms: object) -> None:
        with pytest.raises(ValidationError):
            BufferSettings(delay_ms=delay_ms)  # type: ignore[arg-type]

    def test_zero_delay_allowed(self) -> None:
        assert BufferSettings(delay_ms=0).delay_ms == 0

    def test_unknown_scheduler_rejected(self) -> None:
        with pytest.raises(ValidationError):
            BufferSettings(scheduler="cron")  # type: ignore[arg-type]

    def test_build_scheduler(self) -> None:
        assert BufferSettings(scheduler="auto").build_scheduler() is None
        assert isinstance(BufferSettings(scheduler="thread").build_scheduler(), ThreadingScheduler)
        assert isinstance(BufferSettings(scheduler="asyncio").build_scheduler(), AsyncioScheduler)


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_loads_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "buffer.yaml"
        config_file.write_text("delay_ms: 250\nscheduler: thread\n")

        settings = load_settings(config_file)

        assert settings.delay_ms == 250
        assert settings.scheduler == "thread"

    def test_missing_keys_use_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "buffer.yaml"
        config_file.write_text("scheduler: asyncio\n")

        settings = load_settings(config_file)

        assert settings.delay_ms == 100

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_value_raises_validation_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "buffer.yaml"
        config_file.write_text("delay_ms: -5\n")

        with pytest.raises(ValidationError):
            load_settings(config_file)

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "buffer.yaml"
        config_file.write_text("delay_ms: 250\n")
        monkeypatch.setenv("COALESCER_DELAY_MS", "40")

        settings = load_settings(config_file)

        assert settings.delay_ms == 40
