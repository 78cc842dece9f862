"""Tests for cycle_config.yaml loading and validation, and app settings."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from src.config import Settings, configure_logging, get_settings
from src.cycle_engine import config_loader
from src.cycle_engine.config_loader import (
    ConfigValidationError,
    CycleConfig,
    _validate_and_build,
    get_cycle_config,
    load_cycle_config,
    reload_cycle_config,
)


@pytest.fixture
def restore_singleton():
    """Put the global config back after a test swaps it."""
    saved = config_loader._config
    yield
    config_loader._config = saved


class TestConfigLoading:
    """Tests for loading the bundled cycle_config.yaml."""

    def test_load_default_config(self, cycle_config: CycleConfig) -> None:
        """The bundled cycle_config.yaml loads without errors."""
        assert cycle_config.version == "1.0"
        assert cycle_config.defaults.average_cycle_length == 28
        assert cycle_config.defaults.average_period_length == 5

    def test_correlation_windows(self, cycle_config: CycleConfig) -> None:
        """Window sizes: 7 days before, 7 + 7 days after the period."""
        cc = cycle_config.correlation
        assert cc.pre_period_days == 7
        assert (cc.post_period_days, cc.fertile_days) == (7, 7)
        assert cc.recent_days == 7
        assert cc.trend_window == 3

    def test_forecast_confidence(self, cycle_config: CycleConfig) -> None:
        fc = cycle_config.forecast
        assert fc.fertile_lead_days == 5
        assert (fc.confidence_low, fc.confidence_high) == (0.5, 0.75)
        assert fc.confidence_min_periods == 3
        assert fc.ovulation_confidence == 0.6

    def test_history_and_reminders(self, cycle_config: CycleConfig) -> None:
        assert cycle_config.history.min_cycle_days == 21
        assert cycle_config.history.max_cycle_days == 45
        assert cycle_config.reminders.min_interval_hours == 3
        assert cycle_config.timeline.window_days == 7

    def test_mood_vocabularies(self, cycle_config: CycleConfig) -> None:
        """Positive and negative mood lists are disjoint and lower-case."""
        assert "happy" in cycle_config.moods.positive
        assert "anxious" in cycle_config.moods.negative
        assert not set(cycle_config.moods.positive) & set(cycle_config.moods.negative)

    def test_singleton_is_cached(self) -> None:
        assert get_cycle_config() is get_cycle_config()


class TestConfigValidation:
    """Tests for config validation logic."""

    def test_empty_config_uses_defaults(self) -> None:
        """Missing sections fall back to the built-in defaults."""
        config = _validate_and_build({})
        assert config.version == "1.0"
        assert config.correlation.pre_period_days == 7
        assert config.moods.positive == []

    def test_non_numeric_value_raises(self) -> None:
        raw = {"forecast": {"fertile_lead_days": "five"}}
        with pytest.raises(ConfigValidationError, match="must be an integer"):
            _validate_and_build(raw)

    def test_out_of_range_confidence_raises(self) -> None:
        raw = {"forecast": {"confidence_high": 1.5}}
        with pytest.raises(ConfigValidationError, match="out of range"):
            _validate_and_build(raw)

    def test_inverted_confidence_raises(self) -> None:
        raw = {"forecast": {"confidence_high": 0.4, "confidence_low": 0.6}}
        with pytest.raises(ConfigValidationError, match="confidence_low"):
            _validate_and_build(raw)

    def test_zero_cycle_length_default_raises(self) -> None:
        raw = {"defaults": {"average_cycle_length": 0}}
        with pytest.raises(ConfigValidationError, match="below the minimum"):
            _validate_and_build(raw)

    def test_overlapping_moods_raise(self) -> None:
        raw = {"moods": {"positive": ["calm"], "negative": ["Calm"]}}
        with pytest.raises(ConfigValidationError, match="both positive and negative"):
            _validate_and_build(raw)

    def test_section_must_be_mapping(self) -> None:
        with pytest.raises(ConfigValidationError, match="'history' must be a mapping"):
            _validate_and_build({"history": [21, 45]})

    def test_errors_are_collected(self) -> None:
        """Every problem is reported in one exception."""
        raw = {
            "forecast": {"fertile_lead_days": "x"},
            "history": {"min_cycle_days": 50, "max_cycle_days": 40},
        }
        with pytest.raises(ConfigValidationError, match="2 validation error"):
            _validate_and_build(raw)

    def test_hot_reload(self, tmp_path: Path, restore_singleton) -> None:
        """reload_cycle_config() should replace the global singleton."""
        config_file = tmp_path / "cycle_config.yaml"
        config_file.write_text(
            'version: "2.0-test"\n'
            "defaults:\n"
            "  average_cycle_length: 30\n"
            "correlation:\n"
            "  pre_period_days: 5\n"
        )
        new_config = reload_cycle_config(path=config_file)
        assert new_config.version == "2.0-test"
        assert get_cycle_config() is new_config
        assert get_cycle_config().correlation.pre_period_days == 5

    def test_failed_reload_keeps_old_config(self, tmp_path: Path, restore_singleton) -> None:
        current = get_cycle_config()
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("defaults:\n  average_cycle_length: nope\n")
        with pytest.raises(ConfigValidationError):
            reload_cycle_config(path=config_file)
        assert get_cycle_config() is current

    def test_malformed_yaml_raises(self, tmp_path: Path) -> None:
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("defaults: [unclosed\n")
        with pytest.raises(ConfigValidationError, match="YAML parse error"):
            load_cycle_config(path=config_file)

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigValidationError, match="mapping at the top level"):
            load_cycle_config(path=config_file)

    def test_load_nonexistent_file_raises(self) -> None:
        """Loading a nonexistent file should raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_cycle_config(path=Path("/nonexistent/path/config.yaml"))


class TestSettings:
    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.delenv("CYCLE_CONFIG_PATH", raising=False)
        settings = Settings(_env_file=None)
        assert settings.app_name == "Cyclecast"
        assert settings.cycle_config_path is None

    def test_env_override(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("CYCLE_CONFIG_PATH", "/etc/cyclecast/cycle.yaml")
        settings = Settings(_env_file=None)
        assert settings.log_level == "debug"
        assert settings.cycle_config_path == "/etc/cyclecast/cycle.yaml"

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_configure_logging(self) -> None:
        logger = configure_logging(Settings(_env_file=None, log_level="warning"))
        assert logger.name == "cyclecast"
        assert logger.level == logging.WARNING
        assert logging.getLogger("cyclecast.engine.forecast").getEffectiveLevel() == logging.WARNING
