"""Tests for configuration loading and models."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from cadence.config.loader import get_default_config, load_config
from cadence.config.models import (
    CadenceConfig,
    ConfigError,
    LoggingConfig,
    SchedulerConfig,
)
from cadence.scheduling import DEFAULT_LOCK_TTL_MS


class TestSchedulerConfig:
    """Tests for SchedulerConfig model."""

    def test_defaults(self):
        config = SchedulerConfig()
        assert config.enabled is True
        assert config.poll_interval == 30.0
        assert config.lock_ttl_ms == DEFAULT_LOCK_TTL_MS
        assert config.timezone is None

    def test_valid_timezone(self):
        assert SchedulerConfig(timezone="Europe/London").timezone == "Europe/London"

    def test_invalid_timezone(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(timezone="Atlantis/Capital")

    @pytest.mark.parametrize("field", ["poll_interval", "lock_ttl_ms"])
    def test_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            SchedulerConfig(**{field: 0})


class TestLoggingConfig:
    """Tests for LoggingConfig model."""

    def test_defaults(self):
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.log_to_file is False

    def test_invalid_level(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")


class TestCadenceConfig:
    """Tests for the root model."""

    def test_root_defaults_to_home(self, isolated_home):
        assert get_default_config().root == isolated_home.resolve()

    def test_root_expands_tilde(self):
        config = CadenceConfig(root="~/projects/demo")
        assert config.root == Path.home() / "projects" / "demo"


class TestLoadConfig:
    """Tests for load_config()."""

    def test_loads_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            f"""
root = "{tmp_path / "data"}"

[scheduler]
poll_interval = 5
lock_ttl_ms = 120000
timezone = "UTC"

[logging]
level = "DEBUG"
"""
        )
        config = load_config(path)
        assert config.root == tmp_path / "data"
        assert config.scheduler.poll_interval == 5.0
        assert config.scheduler.lock_ttl_ms == 120_000
        assert config.scheduler.timezone == "UTC"
        assert config.logging.level == "DEBUG"

    def test_missing_explicit_path(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.toml")

    def test_defaults_when_no_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_config()
        assert config.scheduler.poll_interval == 30.0

    def test_finds_file_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / "cadence.toml").write_text("[scheduler]\npoll_interval = 2\n")
        monkeypatch.chdir(tmp_path)
        assert load_config().scheduler.poll_interval == 2.0

    def test_finds_file_in_home(self, tmp_path, monkeypatch, isolated_home):
        isolated_home.mkdir(parents=True)
        (isolated_home / "config.toml").write_text("[scheduler]\nenabled = false\n")
        monkeypatch.chdir(tmp_path)
        assert load_config().scheduler.enabled is False

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[scheduler\npoll_interval = ")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[scheduler]\npoll_interval = -1\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text("[scheduler]\npoll_interval = 5\n")
        monkeypatch.setenv("CADENCE_POLL_INTERVAL", "0.5")
        monkeypatch.setenv("CADENCE_LOCK_TTL_MS", "3000")
        monkeypatch.setenv("CADENCE_TIMEZONE", "Asia/Tokyo")
        monkeypatch.setenv("CADENCE_LOG_LEVEL", "warning")

        config = load_config(path)
        assert config.scheduler.poll_interval == 0.5
        assert config.scheduler.lock_ttl_ms == 3000
        assert config.scheduler.timezone == "Asia/Tokyo"
        assert config.logging.level == "WARNING"

    def test_invalid_env_override(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CADENCE_TIMEZONE", "Not/AZone")
        with pytest.raises(ConfigError):
            load_config()
