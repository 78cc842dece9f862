"""Load, validate, and hot-reload the Cyclecast engine configuration.

The config lives in ``cycle_config.yaml`` alongside this module (or at
``CYCLE_CONFIG_PATH`` when set).  At startup it is loaded once and cached.
Call ``reload_cycle_config()`` to re-read from disk after an admin update,
no restart required.

Usage::

    from src.cycle_engine.config_loader import get_cycle_config

    config = get_cycle_config()
    config.correlation.pre_period_days    # 7
    config.forecast.fertile_lead_days     # 5
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.config import get_settings

logger = logging.getLogger("cyclecast.engine.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "cycle_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class DefaultsConfig:
    """Fallback settings when the user has none."""

    average_cycle_length: int = 28
    average_period_length: int = 5


@dataclass
class ForecastConfig:
    """Forecast and static prediction settings."""

    fertile_lead_days: int = 5
    confidence_min_periods: int = 3
    confidence_high: float = 0.75
    confidence_low: float = 0.5
    ovulation_confidence: float = 0.6


@dataclass
class CorrelationConfig:
    """Symptom / mood correlation settings."""

    pre_period_days: int = 7
    post_period_days: int = 7
    fertile_days: int = 7
    trend_window: int = 3
    recent_days: int = 7
    min_insight_entries: int = 3


@dataclass
class HistoryConfig:
    """Cycle history statistics settings."""

    min_cycle_days: int = 21
    max_cycle_days: int = 45
    irregular_std_days: float = 7.0


@dataclass
class TimelineConfig:
    window_days: int = 7


@dataclass
class ReminderConfig:
    """Reminder scheduler settings."""

    min_interval_hours: float = 3
    max_concurrent: int = 5


@dataclass
class MoodConfig:
    """Mood vocabularies used for the valence summary."""

    positive: list[str] = field(default_factory=list)
    negative: list[str] = field(default_factory=list)


@dataclass
class CycleConfig:
    """Complete, validated engine configuration.

    This is the single in-memory representation of cycle_config.yaml.
    The engine facade, correlator and reminder scheduler read from it.
    """

    version: str
    defaults: DefaultsConfig
    forecast: ForecastConfig
    correlation: CorrelationConfig
    history: HistoryConfig
    timeline: TimelineConfig
    reminders: ReminderConfig
    moods: MoodConfig
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when cycle_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    try:
        import yaml  # pyyaml
    except ImportError as exc:
        raise ImportError(
            "pyyaml is required for config loading. Install with: pip install pyyaml"
        ) from exc

    if not path.exists():
        raise FileNotFoundError(f"Cycle config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at the top level")
    return data


def _validate_and_build(raw: dict) -> CycleConfig:
    """Validate the raw YAML dict and construct a CycleConfig.

    Missing sections and keys fall back to defaults; every type or range
    problem is collected and reported together.

    Raises:
        ConfigValidationError: If any value is invalid.
    """
    errors: list[str] = []

    def _section(name: str) -> dict:
        value = raw.get(name) or {}
        if not isinstance(value, dict):
            errors.append(f"'{name}' must be a mapping")
            return {}
        return value

    def _int(section: dict, name: str, key: str, default: int, minimum: int = 0) -> int:
        value = section.get(key, default)
        try:
            number = int(value)
        except (TypeError, ValueError):
            errors.append(f"{name}.{key} must be an integer, got {value!r}")
            return default
        if number < minimum:
            errors.append(f"{name}.{key} = {number} is below the minimum of {minimum}")
        return number

    def _float(section: dict, name: str, key: str, default: float,
               low: float = 0.0, high: float | None = None) -> float:
        value = section.get(key, default)
        try:
            number = float(value)
        except (TypeError, ValueError):
            errors.append(f"{name}.{key} must be a number, got {value!r}")
            return default
        if number < low or (high is not None and number > high):
            errors.append(f"{name}.{key} = {number} is out of range [{low}, {high}]")
        return number

    version = str(raw.get("version", "1.0"))

    # ── Defaults ──
    d_raw = _section("defaults")
    defaults = DefaultsConfig(
        average_cycle_length=_int(d_raw, "defaults", "average_cycle_length", 28, minimum=1),
        average_period_length=_int(d_raw, "defaults", "average_period_length", 5, minimum=1),
    )

    # ── Forecast ──
    f_raw = _section("forecast")
    forecast = ForecastConfig(
        fertile_lead_days=_int(f_raw, "forecast", "fertile_lead_days", 5),
        confidence_min_periods=_int(f_raw, "forecast", "confidence_min_periods", 3, minimum=1),
        confidence_high=_float(f_raw, "forecast", "confidence_high", 0.75, high=1.0),
        confidence_low=_float(f_raw, "forecast", "confidence_low", 0.5, high=1.0),
        ovulation_confidence=_float(f_raw, "forecast", "ovulation_confidence", 0.6, high=1.0),
    )
    if forecast.confidence_low > forecast.confidence_high:
        errors.append("forecast.confidence_low must not exceed forecast.confidence_high")

    # ── Correlation ──
    c_raw = _section("correlation")
    correlation = CorrelationConfig(
        pre_period_days=_int(c_raw, "correlation", "pre_period_days", 7),
        post_period_days=_int(c_raw, "correlation", "post_period_days", 7),
        fertile_days=_int(c_raw, "correlation", "fertile_days", 7),
        trend_window=_int(c_raw, "correlation", "trend_window", 3, minimum=1),
        recent_days=_int(c_raw, "correlation", "recent_days", 7, minimum=1),
        min_insight_entries=_int(c_raw, "correlation", "min_insight_entries", 3, minimum=1),
    )

    # ── History ──
    h_raw = _section("history")
    history = HistoryConfig(
        min_cycle_days=_int(h_raw, "history", "min_cycle_days", 21, minimum=1),
        max_cycle_days=_int(h_raw, "history", "max_cycle_days", 45, minimum=1),
        irregular_std_days=_float(h_raw, "history", "irregular_std_days", 7.0),
    )
    if history.min_cycle_days > history.max_cycle_days:
        errors.append("history.min_cycle_days must not exceed history.max_cycle_days")

    # ── Timeline ──
    t_raw = _section("timeline")
    timeline = TimelineConfig(
        window_days=_int(t_raw, "timeline", "window_days", 7, minimum=1),
    )

    # ── Reminders ──
    r_raw = _section("reminders")
    reminders = ReminderConfig(
        min_interval_hours=_float(r_raw, "reminders", "min_interval_hours", 3),
        max_concurrent=_int(r_raw, "reminders", "max_concurrent", 5, minimum=1),
    )

    # ── Moods ──
    m_raw = _section("moods")
    mood_lists: dict[str, list[str]] = {}
    for key in ("positive", "negative"):
        values: Any = m_raw.get(key, [])
        if not isinstance(values, list):
            errors.append(f"moods.{key} must be a list of mood labels")
            values = []
        mood_lists[key] = [str(v).strip().lower() for v in values]
    overlap = set(mood_lists["positive"]) & set(mood_lists["negative"])
    if overlap:
        errors.append(f"moods listed as both positive and negative: {sorted(overlap)}")
    moods = MoodConfig(**mood_lists)

    if errors:
        raise ConfigValidationError(
            f"cycle_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return CycleConfig(
        version=version,
        defaults=defaults,
        forecast=forecast,
        correlation=correlation,
        history=history,
        timeline=timeline,
        reminders=reminders,
        moods=moods,
        _raw=raw,
    )


def _default_path() -> Path:
    override = get_settings().cycle_config_path
    return Path(override) if override else _CONFIG_PATH


def load_cycle_config(path: Path | None = None) -> CycleConfig:
    """Load and validate the engine config from disk.

    Args:
        path: Override path to YAML. Uses CYCLE_CONFIG_PATH or the bundled
              cycle_config.yaml by default.
    """
    target = path or _default_path()
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded cycle config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: CycleConfig | None = None
_config_lock = threading.Lock()


def get_cycle_config() -> CycleConfig:
    """Return the global CycleConfig singleton, loading it on first call.

    Thread-safe.  Use ``reload_cycle_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_cycle_config()
    return _config


def reload_cycle_config(path: Path | None = None) -> CycleConfig:
    """Reload the config from disk and replace the global singleton.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_cycle_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info(
        "Reloaded cycle config: %s → %s",
        old_version,
        new_config.version,
    )
    return new_config
