"""Shared fixtures for cycle engine tests."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from src.cycle_engine.base import CycleSettings
from src.cycle_engine.config_loader import CycleConfig, load_cycle_config
from src.cycle_engine.local_day import day_number_to_instant, local_day_number

# Fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Canonical reference day: 2026-03-01 (UTC calendar)
DAY0 = local_day_number("2026-03-01T00:00:00Z")


def iso(day_number: int, offset_minutes: int = 0) -> str:
    """ISO timestamp of local midnight for ``day_number``, as the app stores it."""
    instant = day_number_to_instant(day_number, offset_minutes)
    return instant.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def period(start_day: int, end_day: int | None = None, offset_minutes: int = 0, **extra) -> dict:
    """A period record in the app's camelCase storage shape."""
    record = {"startDate": iso(start_day, offset_minutes)}
    if end_day is not None:
        record["endDate"] = iso(end_day, offset_minutes)
    record.update(extra)
    return record


def at(day_number: int, hours: int = 12, offset_minutes: int = 0) -> datetime:
    """An instant ``hours`` into local day ``day_number``."""
    return day_number_to_instant(day_number, offset_minutes) + timedelta(hours=hours)


class FixedClock:
    """Callable clock that can be moved by tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cycle_config() -> CycleConfig:
    """Load the real cycle config for tests."""
    return load_cycle_config()


@pytest.fixture
def default_settings() -> CycleSettings:
    return CycleSettings()


# ---------------------------------------------------------------------------
# Period history fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def single_period() -> list[dict]:
    """One logged period starting on DAY0 with no end date."""
    return [period(DAY0)]


@pytest.fixture
def regular_history() -> list[dict]:
    """Four periods 28 days apart, oldest first, each lasting 5 days."""
    return [period(DAY0 - 28 * n, DAY0 - 28 * n + 4) for n in (3, 2, 1, 0)]


@pytest.fixture
def history_payload() -> dict:
    return json.loads((FIXTURES_DIR / "cycle_history.json").read_text())


@pytest.fixture
def clock() -> FixedClock:
    """Clock fixed at noon UTC on DAY0 + 10."""
    return FixedClock(at(DAY0 + 10))


@pytest.fixture
def utc() -> timezone:
    return timezone.utc
