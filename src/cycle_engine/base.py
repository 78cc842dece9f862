"""Canonical records and result types for the Cyclecast engine.

Every engine module consumes the input records defined here (PeriodRecord,
CycleSettings, ObservationEntry) and returns the result dataclasses below.
These types are the single source of truth shared by the calculator,
forecast, timeline, correlation and reminder code and by the JSON schemas
in ``src.models.cycle``.

Input records are deliberately lenient: date fields hold whatever the
persistence layer handed over and are parsed lazily by ``local_day``, so a
malformed record degrades to "insufficient data" instead of raising.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger("cyclecast.engine")

DEFAULT_CYCLE_LENGTH = 28
DEFAULT_PERIOD_LENGTH = 5


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class CyclePhase(str, Enum):
    menstrual = "Menstrual"
    follicular = "Follicular"
    ovulation = "Ovulation"
    luteal = "Luteal"


class CorrelationWindow(str, Enum):
    """Period-relative buckets used only for symptom/mood correlation."""

    pre_period = "PMS/Pre-period"
    period = "Period"
    post_period = "Post-period"
    fertile = "Fertile/Ovulation"
    luteal = "Luteal"


class Trend(str, Enum):
    increasing = "increasing"
    decreasing = "decreasing"
    stable = "stable"
    unknown = "unknown"


def _first_present(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


# ---------------------------------------------------------------------------
# Input records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PeriodRecord:
    """A logged period, as handed over by the persistence layer.

    Attributes:
        start_date: First day of bleeding (instant, ISO string, date or epoch ms).
        end_date:   Last day of bleeding; None means ongoing / use the
                    estimated period length.
        flow_level: Descriptive flow label, never used in calculations.
    """

    start_date: Any
    end_date: Any = None
    flow_level: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PeriodRecord:
        return cls(
            start_date=_first_present(data, "start_date", "startDate"),
            end_date=_first_present(data, "end_date", "endDate"),
            flow_level=_first_present(data, "flow_level", "flowLevel"),
        )

    @classmethod
    def coerce(cls, value: Any) -> PeriodRecord:
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        return cls(
            start_date=getattr(value, "start_date", None),
            end_date=getattr(value, "end_date", None),
            flow_level=getattr(value, "flow_level", None),
        )


@dataclass(frozen=True)
class ObservationEntry:
    """A single logged symptom or mood.

    Attributes:
        date:     When it was logged (any parseable timestamp).
        type:     Category label, e.g. 'cramps' or 'anxious'.
        severity: Ordinal 1–5, None for moods or unrated symptoms.
    """

    date: Any
    type: str
    severity: float | None = None

    @classmethod
    def coerce(cls, value: Any) -> ObservationEntry:
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            raw_date = value.get("date")
            raw_type = value.get("type")
            raw_severity = value.get("severity")
        else:
            raw_date = getattr(value, "date", None)
            raw_type = getattr(value, "type", None)
            raw_severity = getattr(value, "severity", None)
        return cls(
            date=raw_date,
            type=str(raw_type).strip() if raw_type is not None else "",
            severity=_coerce_severity(raw_severity),
        )


def _coerce_severity(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        severity = float(value)
    except (TypeError, ValueError):
        return None
    return severity if math.isfinite(severity) else None


class CycleSettings(BaseModel):
    """Per-computation cycle settings.

    Accepts both snake_case and the camelCase keys stored by the app.
    ``periodDuration`` takes precedence over ``averagePeriodLength``.
    Non-numeric values fall back to the defaults and anything below one
    day is clamped to one.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    average_cycle_length: int = Field(
        default=DEFAULT_CYCLE_LENGTH,
        validation_alias=AliasChoices("average_cycle_length", "averageCycleLength"),
    )
    average_period_length: int = Field(
        default=DEFAULT_PERIOD_LENGTH,
        validation_alias=AliasChoices(
            "period_duration",
            "periodDuration",
            "average_period_length",
            "averagePeriodLength",
        ),
    )

    @field_validator("average_cycle_length", mode="before")
    @classmethod
    def _clamp_cycle_length(cls, value: Any) -> int:
        return _clamp_days(value, DEFAULT_CYCLE_LENGTH)

    @field_validator("average_period_length", mode="before")
    @classmethod
    def _clamp_period_length(cls, value: Any) -> int:
        return _clamp_days(value, DEFAULT_PERIOD_LENGTH)

    @classmethod
    def coerce(cls, value: Any, defaults: CycleSettings | None = None) -> CycleSettings:
        """Build settings from None, a mapping, a model or any attribute bag.

        Keys missing from ``value`` take their value from ``defaults`` (or the
        built-in 28/5 defaults).
        """
        if isinstance(value, cls):
            return value
        # Defaults sit under the lowest-precedence alias so any user key wins.
        data: dict[str, Any] = {}
        if defaults is not None:
            data["averageCycleLength"] = defaults.average_cycle_length
            data["averagePeriodLength"] = defaults.average_period_length
        if value is None:
            return cls.model_validate(data)
        if isinstance(value, Mapping):
            data.update({k: v for k, v in value.items() if v is not None})
            return cls.model_validate(data)
        for name in ("average_cycle_length", "period_duration", "average_period_length"):
            attr = getattr(value, name, None)
            if attr is not None:
                data[name] = attr
        return cls.model_validate(data)


def _clamp_days(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        days = float(value)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-numeric cycle setting %r", value)
        return default
    if not math.isfinite(days):
        return default
    return max(1, math.floor(days + 0.5))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class CycleState:
    """The user's position in their cycle on one local day.

    Attributes:
        cycle_day:              1-indexed day within the current cycle.
        phase:                  Canonical four-phase classification.
        phase_description:      Human-readable summary for presentation.
        is_on_period:           True while inside the reference period.
        today_day_number:       Local day the state was computed for.
        period_start_day_number: Start of the reference period.
        period_end_day_number:  Logged or estimated end of the reference period.
        next_period_day_number: Reference start + average cycle length.
        next_period_date:       UTC instant of local midnight on that day.
        avg_cycle_length:       Cycle length used (after clamping).
        avg_period_length:      Period length used (after clamping).
        timezone_offset_minutes: Offset the day numbers were computed with.
    """

    cycle_day: int
    phase: CyclePhase
    phase_description: str
    is_on_period: bool
    today_day_number: int
    period_start_day_number: int
    period_end_day_number: int
    next_period_day_number: int
    next_period_date: datetime | None
    avg_cycle_length: int
    avg_period_length: int
    timezone_offset_minutes: float = 0

    @property
    def days_until_next_period(self) -> int:
        return max(self.next_period_day_number - self.today_day_number, 0)


@dataclass
class CycleForecast:
    """Point estimates derived from the reference period. No confidence interval."""

    period_start_day_number: int
    next_period_day_number: int
    ovulation_day_number: int
    fertile_window_start_day_number: int
    fertile_window_end_day_number: int
    ovulation_day_in_cycle: int
    next_period_date: datetime | None
    ovulation_date: datetime | None
    fertile_window_start: datetime | None
    fertile_window_end: datetime | None
    avg_cycle_length: int
    avg_period_length: int
    timezone_offset_minutes: float = 0

    def days_until_next_period(self, today_day_number: int) -> int:
        return self.next_period_day_number - today_day_number

    def in_fertile_window(self, day_number: int) -> bool:
        return (
            self.fertile_window_start_day_number
            <= day_number
            <= self.fertile_window_end_day_number
        )


@dataclass
class TimelineEntry:
    """One day of a replayed phase history; phase is None when unknown."""

    day_number: int
    date: datetime | None
    phase: CyclePhase | None = None
    cycle_day: int | None = None
    is_on_period: bool = False

    @property
    def is_unknown(self) -> bool:
        return self.phase is None


@dataclass
class PhaseSegment:
    """A run of consecutive timeline days sharing one phase (None = unknown)."""

    phase: CyclePhase | None
    start_day_number: int
    end_day_number: int

    @property
    def length(self) -> int:
        return self.end_day_number - self.start_day_number + 1


@dataclass
class PeriodSpan:
    """A logged period resolved to local day numbers."""

    start_day_number: int
    end_day_number: int
    estimated: bool = False
    flow_level: str | None = None

    @property
    def length(self) -> int:
        return self.end_day_number - self.start_day_number + 1


@dataclass
class CycleHistory:
    """Statistics over the whole logged period history.

    Attributes:
        period_count:       Number of periods with a parseable start.
        cycle_lengths:      Days between consecutive period starts, oldest first.
        period_lengths:     Logged period lengths (records with an end date).
        avg_cycle_length:   Rounded mean of cycle_lengths, None with < 2 periods.
        avg_period_length:  Rounded mean of period_lengths, None if none logged.
        std_cycle_length:   Sample standard deviation of cycle_lengths.
        is_irregular:       True if cycle lengths vary by more than the threshold.
        warnings:           Short / long cycle flags.
    """

    period_count: int = 0
    cycle_lengths: list[int] = field(default_factory=list)
    period_lengths: list[int] = field(default_factory=list)
    avg_cycle_length: int | None = None
    avg_period_length: int | None = None
    std_cycle_length: float | None = None
    is_irregular: bool = False
    warnings: list[str] = field(default_factory=list)
