"""Forecast generator: next period, ovulation day and fertile window.

All estimates are anchored on the reference (most recent) period and the
user's settings:

    next period    = start + avg_cycle_length
    ovulation      = start + ovulation_day_in_cycle - 1
    fertile window = [start + max(1, ovulation_day - 5) - 1, ovulation]

These are point estimates.  ``build_static_prediction`` wraps them in the
heuristic confidence payload served when no AI prediction is available.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from src.cycle_engine.base import CycleForecast, CycleSettings
from src.cycle_engine.cycle_state import ovulation_day_in_cycle, sort_periods
from src.cycle_engine.local_day import (
    day_number_to_date,
    day_number_to_instant,
    normalize_offset,
)

logger = logging.getLogger("cyclecast.engine.forecast")

DEFAULT_FERTILE_LEAD_DAYS = 5


def generate_forecast(
    periods: Iterable[Any] | None,
    settings: Any,
    offset_minutes: Any = 0,
    fertile_lead_days: int = DEFAULT_FERTILE_LEAD_DAYS,
) -> CycleForecast | None:
    """Derive the forecast from the most recent period.

    Args:
        periods:           Period records in any order.
        settings:          CycleSettings, a settings mapping, or None.
        offset_minutes:    UTC offset for day bucketing and output instants.
        fertile_lead_days: Days before ovulation included in the fertile window.

    Returns:
        CycleForecast, or None without a usable reference period.
    """
    ordered = sort_periods(periods, offset_minutes)
    if not ordered:
        return None
    cycle_settings = CycleSettings.coerce(settings)
    offset = normalize_offset(offset_minutes)

    start = ordered[0].start_day_number
    cycle_length = cycle_settings.average_cycle_length
    period_length = cycle_settings.average_period_length

    ovulation_day = ovulation_day_in_cycle(period_length, cycle_length)
    fertile_start_in_cycle = max(1, ovulation_day - max(0, fertile_lead_days))

    next_period = start + cycle_length
    ovulation = start + ovulation_day - 1
    fertile_start = start + fertile_start_in_cycle - 1

    return CycleForecast(
        period_start_day_number=start,
        next_period_day_number=next_period,
        ovulation_day_number=ovulation,
        fertile_window_start_day_number=fertile_start,
        fertile_window_end_day_number=ovulation,
        ovulation_day_in_cycle=ovulation_day,
        next_period_date=day_number_to_instant(next_period, offset),
        ovulation_date=day_number_to_instant(ovulation, offset),
        fertile_window_start=day_number_to_instant(fertile_start, offset),
        fertile_window_end=day_number_to_instant(ovulation, offset),
        avg_cycle_length=cycle_length,
        avg_period_length=period_length,
        timezone_offset_minutes=offset,
    )


# ---------------------------------------------------------------------------
# Static prediction payload
# ---------------------------------------------------------------------------


@dataclass
class NextPeriodEstimate:
    start_date: str
    expected_duration: int
    confidence: float


@dataclass
class OvulationEstimate:
    date: str
    confidence: float


@dataclass
class StaticPrediction:
    """Heuristic prediction served when no model-based prediction exists.

    Attributes:
        next_periods: Zero or one upcoming period estimate.
        ovulation:    Ovulation estimate for the current cycle, or None.
        method:       Always 'static'.
    """

    next_periods: list[NextPeriodEstimate] = field(default_factory=list)
    ovulation: OvulationEstimate | None = None
    method: str = "static"


def build_static_prediction(
    periods: Iterable[Any] | None,
    settings: Any,
    offset_minutes: Any = 0,
    *,
    fertile_lead_days: int = DEFAULT_FERTILE_LEAD_DAYS,
    confidence_min_periods: int = 3,
    confidence_high: float = 0.75,
    confidence_low: float = 0.5,
    ovulation_confidence: float = 0.6,
) -> StaticPrediction:
    """Wrap the canonical forecast in the static prediction payload.

    Confidence is ``confidence_high`` once at least ``confidence_min_periods``
    periods are logged, ``confidence_low`` otherwise.  Dates are ISO
    calendar dates in the caller's local calendar.
    """
    period_list = list(periods) if periods is not None else []
    forecast = generate_forecast(period_list, settings, offset_minutes, fertile_lead_days)
    if forecast is None:
        return StaticPrediction()

    usable = len(sort_periods(period_list, offset_minutes))
    confidence = confidence_high if usable >= confidence_min_periods else confidence_low
    logger.debug(
        "Static prediction from %d periods (offset %s): confidence %.2f",
        usable, forecast.timezone_offset_minutes, confidence,
    )
    return StaticPrediction(
        next_periods=[
            NextPeriodEstimate(
                start_date=day_number_to_date(forecast.next_period_day_number).isoformat(),
                expected_duration=forecast.avg_period_length,
                confidence=confidence,
            )
        ],
        ovulation=OvulationEstimate(
            date=day_number_to_date(forecast.ovulation_day_number).isoformat(),
            confidence=ovulation_confidence,
        ),
    )
