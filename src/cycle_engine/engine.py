"""Cycle engine facade.

One object that resolves the caller's offset and clock, applies the
configured defaults, and runs the calculator, forecast, timeline, history
and correlation modules for a single user's snapshot of records.  It holds
no per-user state, so one instance can serve any number of callers.

Usage::

    engine = CycleEngine()
    report = engine.report(periods, settings, symptoms=symptoms, moods=moods,
                           offset_minutes=request_offset)
    report.state.phase_description   # "Day 16 of 28-day cycle (Luteal Phase)"
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.cycle_engine.base import (
    CycleForecast,
    CycleHistory,
    CycleSettings,
    CycleState,
    PeriodSpan,
    PhaseSegment,
    TimelineEntry,
)
from src.cycle_engine.config_loader import CycleConfig, get_cycle_config
from src.cycle_engine.cycle_state import compute_cycle_state
from src.cycle_engine.forecast import StaticPrediction, build_static_prediction, generate_forecast
from src.cycle_engine.history import period_spans, summarize_history
from src.cycle_engine.local_day import local_day_number
from src.cycle_engine.symptom_correlator import (
    CoOccurrence,
    CorrelationReport,
    DailyBucket,
    MoodValence,
    SymptomCorrelator,
    co_occurrence,
    mood_valence,
    recent_days,
)
from src.cycle_engine.timeline import build_timeline, phase_segments
from src.cycle_engine.timezone import resolve_offset

logger = logging.getLogger("cyclecast.engine.facade")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CycleReport:
    """Everything the engine knows about one user at one instant.

    Attributes:
        offset_minutes:   Offset every day number was computed with.
        offset_source:    'explicit' or 'inferred'.
        generated_at:     The clock reading the report was built for.
        today_day_number: Local day number of ``generated_at``.
        state:            Current cycle state, None without usable history.
        forecast:         Next period / ovulation / fertile window, or None.
        static_prediction: Confidence-scored prediction payload.
        timeline:         Trailing phase history, ascending.
        segments:         The timeline collapsed into phase runs.
        history:          Cycle length statistics.
        periods:          Logged periods as day spans, most recent first.
        symptom_report:   Symptom correlation with insights.
        mood_report:      Mood correlation with insights.
        mood_valence:     Positive / negative mood balance.
        co_occurrences:   Days with both symptoms and moods logged.
        recent_symptom_days: Symptom days of the trailing week, newest first.
        recent_mood_days: Mood days of the trailing week, newest first.
    """

    offset_minutes: int | float
    offset_source: str
    generated_at: datetime
    today_day_number: int
    state: CycleState | None = None
    forecast: CycleForecast | None = None
    static_prediction: StaticPrediction = field(default_factory=StaticPrediction)
    timeline: list[TimelineEntry] = field(default_factory=list)
    segments: list[PhaseSegment] = field(default_factory=list)
    history: CycleHistory = field(default_factory=CycleHistory)
    periods: list[PeriodSpan] = field(default_factory=list)
    symptom_report: CorrelationReport | None = None
    mood_report: CorrelationReport | None = None
    mood_valence: MoodValence | None = None
    co_occurrences: list[CoOccurrence] = field(default_factory=list)
    recent_symptom_days: list[DailyBucket] = field(default_factory=list)
    recent_mood_days: list[DailyBucket] = field(default_factory=list)


class CycleEngine:
    """Facade over the cycle modules.

    Args:
        config: Engine configuration; the global ``get_cycle_config()``
                singleton is used when omitted.
        clock:  Zero-argument callable returning the current instant.
    """

    def __init__(
        self,
        config: CycleConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._clock = clock or _utc_now

    @property
    def config(self) -> CycleConfig:
        if self._config is None:
            self._config = get_cycle_config()
        return self._config

    # ── Inputs ──

    def now(self) -> datetime:
        return self._clock()

    def today_day_number(self, offset_minutes: Any = 0) -> int:
        return local_day_number(self.now(), offset_minutes)

    def settings_for(self, settings: Any) -> CycleSettings:
        """User settings with any missing field filled from the configured defaults."""
        defaults = CycleSettings(
            average_cycle_length=self.config.defaults.average_cycle_length,
            average_period_length=self.config.defaults.average_period_length,
        )
        return CycleSettings.coerce(settings, defaults)

    def resolve_offset(
        self, *candidates: Any, periods: Iterable[Any] | None = None
    ) -> tuple[int | float, str]:
        return resolve_offset(*candidates, periods=periods)

    def _offset(self, offset_minutes: Any, periods: list[Any]) -> int | float:
        offset, _ = resolve_offset(offset_minutes, periods=periods)
        return offset

    # ── Single computations ──

    def state(
        self,
        periods: Iterable[Any] | None,
        settings: Any = None,
        offset_minutes: Any = None,
        today_day_number: int | None = None,
    ) -> CycleState | None:
        """Cycle state for today (or ``today_day_number``)."""
        period_list = list(periods or [])
        offset = self._offset(offset_minutes, period_list)
        today = today_day_number if today_day_number is not None else self.today_day_number(offset)
        return compute_cycle_state(period_list, self.settings_for(settings), today, offset)

    def forecast(
        self,
        periods: Iterable[Any] | None,
        settings: Any = None,
        offset_minutes: Any = None,
    ) -> CycleForecast | None:
        period_list = list(periods or [])
        return generate_forecast(
            period_list,
            self.settings_for(settings),
            self._offset(offset_minutes, period_list),
            self.config.forecast.fertile_lead_days,
        )

    def static_prediction(
        self,
        periods: Iterable[Any] | None,
        settings: Any = None,
        offset_minutes: Any = None,
    ) -> StaticPrediction:
        period_list = list(periods or [])
        fc = self.config.forecast
        return build_static_prediction(
            period_list,
            self.settings_for(settings),
            self._offset(offset_minutes, period_list),
            fertile_lead_days=fc.fertile_lead_days,
            confidence_min_periods=fc.confidence_min_periods,
            confidence_high=fc.confidence_high,
            confidence_low=fc.confidence_low,
            ovulation_confidence=fc.ovulation_confidence,
        )

    def timeline(
        self,
        periods: Iterable[Any] | None,
        settings: Any = None,
        offset_minutes: Any = None,
        window_days: int | None = None,
        end_day_number: int | None = None,
    ) -> list[TimelineEntry]:
        """Phase history for the trailing window ending today (or ``end_day_number``)."""
        period_list = list(periods or [])
        offset = self._offset(offset_minutes, period_list)
        end = end_day_number if end_day_number is not None else self.today_day_number(offset)
        days = window_days if window_days is not None else self.config.timeline.window_days
        return build_timeline(period_list, self.settings_for(settings), days, end, offset)

    def history(self, periods: Iterable[Any] | None, offset_minutes: Any = None) -> CycleHistory:
        period_list = list(periods or [])
        hc = self.config.history
        return summarize_history(
            period_list,
            self._offset(offset_minutes, period_list),
            min_cycle_days=hc.min_cycle_days,
            max_cycle_days=hc.max_cycle_days,
            irregular_std_days=hc.irregular_std_days,
        )

    def correlate(
        self,
        entries: Iterable[Any] | None,
        periods: Iterable[Any] | None,
        settings: Any = None,
        offset_minutes: Any = None,
        kind: str = "symptom",
    ) -> CorrelationReport:
        """Correlation report for one entry list, with insights attached."""
        period_list = list(periods or [])
        correlator = SymptomCorrelator(self.config.correlation)
        report = correlator.analyze(
            entries,
            period_list,
            self.settings_for(settings),
            self._offset(offset_minutes, period_list),
            kind=kind,
        )
        correlator.generate_insights(report)
        return report

    # ── Full report ──

    def report(
        self,
        periods: Iterable[Any] | None,
        settings: Any = None,
        symptoms: Iterable[Any] | None = None,
        moods: Iterable[Any] | None = None,
        offset_minutes: Any = None,
    ) -> CycleReport:
        """Run every module for one snapshot, all at the same offset and instant."""
        period_list = list(periods or [])
        offset, source = resolve_offset(offset_minutes, periods=period_list)
        cycle_settings = self.settings_for(settings)
        generated_at = self.now()
        today = local_day_number(generated_at, offset)

        result = CycleReport(
            offset_minutes=offset,
            offset_source=source,
            generated_at=generated_at,
            today_day_number=today,
            state=compute_cycle_state(period_list, cycle_settings, today, offset),
            forecast=self.forecast(period_list, cycle_settings, offset),
            static_prediction=self.static_prediction(period_list, cycle_settings, offset),
            timeline=self.timeline(period_list, cycle_settings, offset, end_day_number=today),
            history=self.history(period_list, offset),
            periods=period_spans(period_list, cycle_settings, offset),
        )
        result.segments = phase_segments(result.timeline)
        window = self.config.correlation.recent_days

        if symptoms is not None:
            result.symptom_report = self.correlate(
                symptoms, period_list, cycle_settings, offset, kind="symptom"
            )
            result.recent_symptom_days = recent_days(result.symptom_report, today, window)
        if moods is not None:
            result.mood_report = self.correlate(
                moods, period_list, cycle_settings, offset, kind="mood"
            )
            result.recent_mood_days = recent_days(result.mood_report, today, window)
            result.mood_valence = mood_valence(
                result.mood_report,
                self.config.moods.positive,
                self.config.moods.negative,
            )
        if result.symptom_report is not None and result.mood_report is not None:
            result.co_occurrences = co_occurrence(result.symptom_report, result.mood_report)

        logger.debug(
            "Report for day %d (offset %s, %s): %d periods, state=%s",
            today, offset, source, len(period_list),
            result.state.phase.value if result.state else "none",
        )
        return result
