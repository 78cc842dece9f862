"""Pydantic schemas for cycle records and engine output.

Create schemas validate what a client submits; Read schemas are built
``from_attributes`` from the engine result dataclasses and dump to
JSON-ready dicts with camelCase keys, ISO-8601 dates and enum values.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field, model_validator

from src.cycle_engine.base import CorrelationWindow, CyclePhase, Trend
from src.models.base import CyclecastBase


# ---------- Periods ----------

class PeriodBase(CyclecastBase):
    start_date: datetime
    end_date: datetime | None = None
    flow_level: str | None = None


class PeriodCreate(PeriodBase):
    @model_validator(mode="after")
    def _end_not_before_start(self) -> PeriodCreate:
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class PeriodSpanRead(CyclecastBase):
    start_day_number: int
    end_day_number: int
    estimated: bool = False
    flow_level: str | None = None
    length: int


# ---------- Symptoms & moods ----------

class SymptomCreate(CyclecastBase):
    date: datetime
    type: str = Field(min_length=1)
    severity: int = Field(ge=1, le=5)


class MoodCreate(CyclecastBase):
    date: datetime
    type: str = Field(min_length=1)


# ---------- Cycle settings ----------

class CycleSettingsUpdate(CyclecastBase):
    average_cycle_length: int | None = Field(default=None, ge=1)
    period_duration: int | None = Field(default=None, ge=1)


# ---------- Cycle state & forecast ----------

class CycleStateRead(CyclecastBase):
    cycle_day: int
    phase: CyclePhase
    phase_description: str
    is_on_period: bool
    today_day_number: int
    period_start_day_number: int
    period_end_day_number: int
    next_period_day_number: int
    next_period_date: datetime | None = None
    days_until_next_period: int
    avg_cycle_length: int
    avg_period_length: int
    timezone_offset_minutes: int | float = 0


class ForecastRead(CyclecastBase):
    period_start_day_number: int
    next_period_day_number: int
    ovulation_day_number: int
    fertile_window_start_day_number: int
    fertile_window_end_day_number: int
    ovulation_day_in_cycle: int
    next_period_date: datetime | None = None
    ovulation_date: datetime | None = None
    fertile_window_start: datetime | None = None
    fertile_window_end: datetime | None = None
    avg_cycle_length: int
    avg_period_length: int
    timezone_offset_minutes: int | float = 0


class NextPeriodEstimateRead(CyclecastBase):
    start_date: str
    expected_duration: int
    confidence: float


class OvulationEstimateRead(CyclecastBase):
    date: str
    confidence: float


class StaticPredictionRead(CyclecastBase):
    next_periods: list[NextPeriodEstimateRead] = Field(default_factory=list)
    ovulation: OvulationEstimateRead | None = None
    method: str = "static"


# ---------- Timeline & history ----------

class TimelineEntryRead(CyclecastBase):
    day_number: int
    date: datetime | None = None
    phase: CyclePhase | None = None
    cycle_day: int | None = None
    is_on_period: bool = False
    is_unknown: bool


class PhaseSegmentRead(CyclecastBase):
    phase: CyclePhase | None = None
    start_day_number: int
    end_day_number: int
    length: int


class CycleHistoryRead(CyclecastBase):
    period_count: int = 0
    cycle_lengths: list[int] = Field(default_factory=list)
    period_lengths: list[int] = Field(default_factory=list)
    avg_cycle_length: int | None = None
    avg_period_length: int | None = None
    std_cycle_length: float | None = None
    is_irregular: bool = False
    warnings: list[str] = Field(default_factory=list)


# ---------- Correlation ----------

class DailyBucketRead(CyclecastBase):
    day_number: int
    date: datetime | None = None
    types: list[str] = Field(default_factory=list)
    avg_severity: float | None = None
    window: CorrelationWindow | None = None
    phase: CyclePhase | None = None
    cycle_day: int | None = None


class TypeSummaryRead(CyclecastBase):
    type: str
    count: int
    avg_severity: float | None = None
    min_severity: float | None = None
    max_severity: float | None = None
    first_occurrence: datetime | None = None
    last_occurrence: datetime | None = None
    trend: Trend = Trend.unknown
    window_counts: dict[str, int] = Field(default_factory=dict)
    top_window: CorrelationWindow | None = None
    phase_counts: dict[str, int] = Field(default_factory=dict)
    top_phase: CyclePhase | None = None


class SymptomInsightRead(CyclecastBase):
    insight_id: str
    category: str
    title: str
    body: str
    metric_a: str
    metric_b: str = ""
    data_points: int = 0
    confidence: float = 0.0


class CorrelationReportRead(CyclecastBase):
    kind: str
    total_entries: int = 0
    skipped_entries: int = 0
    unclassified_count: int = 0
    days: list[DailyBucketRead] = Field(default_factory=list)
    summaries: list[TypeSummaryRead] = Field(default_factory=list)
    insights: list[SymptomInsightRead] = Field(default_factory=list)


class MoodValenceRead(CyclecastBase):
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0
    positive_ratio: float | None = None


class CoOccurrenceRead(CyclecastBase):
    day_number: int
    date: datetime | None = None
    symptom_types: list[str] = Field(default_factory=list)
    mood_types: list[str] = Field(default_factory=list)
    avg_severity: float | None = None


# ---------- Full report ----------

class CycleReportRead(CyclecastBase):
    offset_minutes: int | float
    offset_source: str
    generated_at: datetime
    today_day_number: int
    state: CycleStateRead | None = None
    forecast: ForecastRead | None = None
    static_prediction: StaticPredictionRead
    timeline: list[TimelineEntryRead] = Field(default_factory=list)
    segments: list[PhaseSegmentRead] = Field(default_factory=list)
    history: CycleHistoryRead
    periods: list[PeriodSpanRead] = Field(default_factory=list)
    symptom_report: CorrelationReportRead | None = None
    mood_report: CorrelationReportRead | None = None
    mood_valence: MoodValenceRead | None = None
    co_occurrences: list[CoOccurrenceRead] = Field(default_factory=list)
    recent_symptom_days: list[DailyBucketRead] = Field(default_factory=list)
    recent_mood_days: list[DailyBucketRead] = Field(default_factory=list)


def serialize_report(report: Any) -> dict[str, Any]:
    """Dump an engine CycleReport as a JSON-ready dict with camelCase keys."""
    return CycleReportRead.model_validate(report).model_dump(mode="json", by_alias=True)
