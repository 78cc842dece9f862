"""Symptom and mood correlation against the menstrual cycle.

Logged entries are bucketed by local day, then each day is placed in a
period-relative *correlation window*:

    offset from period start < 0            → PMS/Pre-period
    [0, L)                                  → Period
    [L, L + 7)                              → Post-period
    [L + 7, L + 14)                         → Fertile/Ovulation
    otherwise (up to L + 14)                → Luteal

using the most recent period whose ``[start - 7, start + L + 14]`` window
contains the day.  The windows are a coarse reading aid only.  Every day
also carries the canonical four-phase ``phase`` from the cycle state
calculator, and summaries report both, so "Fertile/Ovulation" is never
confused with the single Ovulation day.

Surfaces patterns like:
- "Cramps are most common in the PMS/Pre-period window"
- "Headache severity has been increasing lately"
"""

from __future__ import annotations

import logging
import math
import statistics
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.cycle_engine.base import (
    CorrelationWindow,
    CyclePhase,
    CycleSettings,
    ObservationEntry,
    Trend,
)
from src.cycle_engine.config_loader import CorrelationConfig
from src.cycle_engine.cycle_state import (
    ResolvedPeriod,
    cycle_state_as_of,
    round_half_up,
    sort_periods,
)
from src.cycle_engine.local_day import (
    day_number_to_instant,
    local_day_number,
    normalize_offset,
    parse_timestamp,
)

logger = logging.getLogger("cyclecast.engine.symptom_correlator")


@dataclass
class DailyBucket:
    """All entries logged on one local day.

    Attributes:
        day_number: Local day number of the bucket.
        date:       UTC instant of local midnight for that day.
        entries:    Entries of the day in logging order.
        window:     Correlation window, None when no period is close enough.
        phase:      Canonical cycle phase on that day, None when unknown.
        cycle_day:  Cycle day on that day, None when unknown.
    """

    day_number: int
    date: datetime | None
    entries: list[ObservationEntry] = field(default_factory=list)
    window: CorrelationWindow | None = None
    phase: CyclePhase | None = None
    cycle_day: int | None = None

    @property
    def types(self) -> list[str]:
        return [entry.type for entry in self.entries]

    @property
    def avg_severity(self) -> float | None:
        severities = [e.severity for e in self.entries if e.severity is not None]
        return round(statistics.mean(severities), 1) if severities else None


@dataclass
class TypeSummary:
    """Aggregated statistics for one symptom or mood type.

    Attributes:
        type:             Category label.
        count:            Number of entries.
        avg_severity:     Mean severity rounded to one decimal, None if unrated.
        min_severity:     Lowest severity logged.
        max_severity:     Highest severity logged.
        first_occurrence: Earliest entry instant.
        last_occurrence:  Latest entry instant.
        trend:            Recent severity against the all-time mean.
        window_counts:    Entries per correlation window.
        top_window:       Most frequent correlation window.
        phase_counts:     Entries per canonical cycle phase.
        top_phase:        Most frequent canonical cycle phase.
    """

    type: str
    count: int
    avg_severity: float | None = None
    min_severity: float | None = None
    max_severity: float | None = None
    first_occurrence: datetime | None = None
    last_occurrence: datetime | None = None
    trend: Trend = Trend.unknown
    window_counts: dict[str, int] = field(default_factory=dict)
    top_window: CorrelationWindow | None = None
    phase_counts: dict[str, int] = field(default_factory=dict)
    top_phase: CyclePhase | None = None


@dataclass
class SymptomInsight:
    """A single generated insight from correlation analysis.

    Attributes:
        insight_id:  Stable identifier, e.g. 'window_cramps'.
        category:    'window_pattern', 'phase_pattern' or 'severity_trend'.
        title:       Short insight title for display.
        body:        Full insight description.
        metric_a:    Symptom or mood type.
        metric_b:    Window, phase or trend value.
        data_points: Number of observations used.
        confidence:  Share of observations supporting the insight.
    """

    insight_id: str
    category: str
    title: str
    body: str
    metric_a: str
    metric_b: str = ""
    data_points: int = 0
    confidence: float = 0.0


@dataclass
class CorrelationReport:
    """Result of one ``SymptomCorrelator.analyze`` run.

    Attributes:
        kind:              'symptom' or 'mood'.
        total_entries:     Entries handed in.
        skipped_entries:   Entries dropped for an unparseable date or empty type.
        days:              Daily buckets in ascending day order.
        summaries:         Per-type statistics, most frequent first.
        unclassified_count: Usable entries outside every correlation window.
        insights:          Filled by ``generate_insights``.
    """

    kind: str
    total_entries: int = 0
    skipped_entries: int = 0
    days: list[DailyBucket] = field(default_factory=list)
    summaries: list[TypeSummary] = field(default_factory=list)
    unclassified_count: int = 0
    insights: list[SymptomInsight] = field(default_factory=list)

    def summary_for(self, type_: str) -> TypeSummary | None:
        for summary in self.summaries:
            if summary.type == type_:
                return summary
        return None


@dataclass
class MoodValence:
    positive_count: int = 0
    negative_count: int = 0
    neutral_count: int = 0
    positive_ratio: float | None = None


@dataclass
class CoOccurrence:
    """A day on which both symptoms and moods were logged."""

    day_number: int
    date: datetime | None
    symptom_types: list[str]
    mood_types: list[str]
    avg_severity: float | None = None


# ---------------------------------------------------------------------------
# Bucketing and window classification
# ---------------------------------------------------------------------------


def _usable_entries(
    entries: Iterable[Any] | None, offset: int | float
) -> list[tuple[datetime, int, ObservationEntry]]:
    usable = []
    for raw in entries or []:
        entry = ObservationEntry.coerce(raw)
        instant = parse_timestamp(entry.date)
        if instant is None or not entry.type:
            logger.debug("Skipping observation %r", raw)
            continue
        usable.append((instant, local_day_number(instant, offset), entry))
    # Stable: entries logged at the same instant keep their input order.
    usable.sort(key=lambda item: item[0])
    return usable


def bucket_by_day(entries: Iterable[Any] | None, offset_minutes: Any = 0) -> list[DailyBucket]:
    """Group entries by local day number, ascending.

    Two entries stored at different clock times on the same local day land
    in the same bucket.  Entries with an unparseable date or no type are
    dropped.
    """
    offset = normalize_offset(offset_minutes)
    buckets: dict[int, DailyBucket] = {}
    for _, day, entry in _usable_entries(entries, offset):
        bucket = buckets.get(day)
        if bucket is None:
            bucket = buckets[day] = DailyBucket(
                day_number=day, date=day_number_to_instant(day, offset)
            )
        bucket.entries.append(entry)
    return [buckets[day] for day in sorted(buckets)]


def classify_window(
    offset_days: int,
    period_length: int,
    pre_period_days: int = 7,
    post_period_days: int = 7,
    fertile_days: int = 7,
) -> CorrelationWindow | None:
    """Classify a day by its offset from a period start.

    Returns None when the offset falls outside
    ``[-pre_period_days, period_length + post_period_days + fertile_days]``.
    """
    if offset_days < -pre_period_days:
        return None
    if offset_days > period_length + post_period_days + fertile_days:
        return None
    if offset_days < 0:
        return CorrelationWindow.pre_period
    if offset_days < period_length:
        return CorrelationWindow.period
    if offset_days < period_length + post_period_days:
        return CorrelationWindow.post_period
    if offset_days < period_length + post_period_days + fertile_days:
        return CorrelationWindow.fertile
    return CorrelationWindow.luteal


def find_window(
    day_number: int,
    ordered_periods: Sequence[ResolvedPeriod],
    period_length: int,
    config: CorrelationConfig | None = None,
) -> CorrelationWindow | None:
    """Return the window of the first (most recent) period that covers the day."""
    cfg = config or CorrelationConfig()
    for period in ordered_periods:
        window = classify_window(
            day_number - period.start_day_number,
            period_length,
            cfg.pre_period_days,
            cfg.post_period_days,
            cfg.fertile_days,
        )
        if window is not None:
            return window
    return None


def severity_trend(severities: Sequence[float], window: int = 3) -> Trend:
    """Compare the mean of the last ``window`` severities with the all-time mean."""
    if window <= 0 or len(severities) < window:
        return Trend.unknown
    overall = statistics.mean(severities)
    recent = statistics.mean(severities[-window:])
    if math.isclose(recent, overall, rel_tol=1e-9, abs_tol=1e-9):
        return Trend.stable
    return Trend.increasing if recent > overall else Trend.decreasing


def _most_common(counts: Counter) -> Any:
    # max() keeps the first maximal key, i.e. the earliest seen on a tie.
    return max(counts, key=lambda key: counts[key]) if counts else None


# ---------------------------------------------------------------------------
# Correlator
# ---------------------------------------------------------------------------


class SymptomCorrelator:
    """Correlate symptom or mood entries with the logged period history.

    Usage::

        correlator = SymptomCorrelator()
        report = correlator.analyze(symptoms, periods, settings, offset)
        for insight in correlator.generate_insights(report):
            print(insight.title, insight.body)
    """

    def __init__(self, config: CorrelationConfig | None = None) -> None:
        self._config = config or CorrelationConfig()

    @property
    def config(self) -> CorrelationConfig:
        return self._config

    def analyze(
        self,
        entries: Iterable[Any] | None,
        periods: Iterable[Any] | None,
        settings: Any,
        offset_minutes: Any = 0,
        kind: str = "symptom",
    ) -> CorrelationReport:
        """Bucket, classify and aggregate one list of entries.

        Args:
            entries:        Symptom or mood entries (records, mappings or objects).
            periods:        Period records in any order.
            settings:       CycleSettings, a settings mapping, or None.
            offset_minutes: UTC offset used for day bucketing.
            kind:           Label carried into the report.

        Returns:
            CorrelationReport; empty summaries when nothing is usable.
        """
        entry_list = list(entries) if entries is not None else []
        offset = normalize_offset(offset_minutes)
        cycle_settings = CycleSettings.coerce(settings)
        ordered = sort_periods(periods, offset)
        period_length = cycle_settings.average_period_length

        report = CorrelationReport(kind=kind, total_entries=len(entry_list))
        usable = _usable_entries(entry_list, offset)
        report.skipped_entries = len(entry_list) - len(usable)

        buckets: dict[int, DailyBucket] = {}
        for _, day, entry in usable:
            bucket = buckets.get(day)
            if bucket is None:
                state = cycle_state_as_of(ordered, cycle_settings, day, offset)
                bucket = buckets[day] = DailyBucket(
                    day_number=day,
                    date=day_number_to_instant(day, offset),
                    window=find_window(day, ordered, period_length, self._config),
                    phase=state.phase if state else None,
                    cycle_day=state.cycle_day if state else None,
                )
            bucket.entries.append(entry)
        report.days = [buckets[day] for day in sorted(buckets)]

        grouped: dict[str, list[tuple[datetime, DailyBucket, ObservationEntry]]] = {}
        for instant, day, entry in usable:
            grouped.setdefault(entry.type, []).append((instant, buckets[day], entry))
            if buckets[day].window is None:
                report.unclassified_count += 1

        summaries = [self._summarize(type_, items) for type_, items in grouped.items()]
        summaries.sort(key=lambda s: s.count, reverse=True)
        report.summaries = summaries

        if report.skipped_entries:
            logger.debug(
                "Skipped %d of %d %s entries", report.skipped_entries, report.total_entries, kind,
            )
        return report

    def _summarize(
        self,
        type_: str,
        items: list[tuple[datetime, DailyBucket, ObservationEntry]],
    ) -> TypeSummary:
        severities = [entry.severity for _, _, entry in items if entry.severity is not None]
        windows: Counter = Counter()
        phases: Counter = Counter()
        for _, bucket, _ in items:
            if bucket.window is not None:
                windows[bucket.window] += 1
            if bucket.phase is not None:
                phases[bucket.phase] += 1

        summary = TypeSummary(
            type=type_,
            count=len(items),
            first_occurrence=items[0][0],
            last_occurrence=items[-1][0],
            trend=severity_trend(severities, self._config.trend_window),
            window_counts={w.value: n for w, n in windows.items()},
            top_window=_most_common(windows),
            phase_counts={p.value: n for p, n in phases.items()},
            top_phase=_most_common(phases),
        )
        if severities:
            summary.avg_severity = round_half_up(statistics.mean(severities) * 10) / 10
            summary.min_severity = min(severities)
            summary.max_severity = max(severities)
        return summary

    def generate_insights(
        self, report: CorrelationReport, min_entries: int | None = None
    ) -> list[SymptomInsight]:
        """Generate insights from a report and store them on it.

        Only types with at least ``min_entries`` observations are considered.

        Returns:
            List of SymptomInsight ordered by confidence (highest first).
        """
        threshold = self._config.min_insight_entries if min_entries is None else min_entries
        insights: list[SymptomInsight] = []

        for summary in report.summaries:
            if summary.count < threshold:
                continue
            label = summary.type.replace("_", " ")

            if summary.top_window is not None:
                hits = summary.window_counts[summary.top_window.value]
                insights.append(
                    SymptomInsight(
                        insight_id=f"window_{summary.type}",
                        category="window_pattern",
                        title=f"{label.title()} is most common in the {summary.top_window.value} window",
                        body=(
                            f"{hits} of your {summary.count} {label} entries were logged "
                            f"in the {summary.top_window.value} window."
                        ),
                        metric_a=summary.type,
                        metric_b=summary.top_window.value,
                        data_points=summary.count,
                        confidence=round(hits / summary.count, 2),
                    )
                )

            if summary.top_phase is not None:
                hits = summary.phase_counts[summary.top_phase.value]
                insights.append(
                    SymptomInsight(
                        insight_id=f"phase_{summary.type}",
                        category="phase_pattern",
                        title=f"{label.title()} peaks in the {summary.top_phase.value} phase",
                        body=(
                            f"{hits} of your {summary.count} {label} entries fell in the "
                            f"{summary.top_phase.value} phase."
                        ),
                        metric_a=summary.type,
                        metric_b=summary.top_phase.value,
                        data_points=summary.count,
                        confidence=round(hits / summary.count, 2),
                    )
                )

            if summary.trend in (Trend.increasing, Trend.decreasing):
                insights.append(
                    SymptomInsight(
                        insight_id=f"trend_{summary.type}",
                        category="severity_trend",
                        title=f"{label.title()} severity is {summary.trend.value}",
                        body=(
                            f"Your last {self._config.trend_window} {label} entries are "
                            f"{'above' if summary.trend == Trend.increasing else 'below'} "
                            f"your average severity of {summary.avg_severity}/5."
                        ),
                        metric_a=summary.type,
                        metric_b=summary.trend.value,
                        data_points=summary.count,
                        confidence=0.5,
                    )
                )

        insights.sort(key=lambda i: i.confidence, reverse=True)
        report.insights = insights
        return insights


# ---------------------------------------------------------------------------
# Report helpers
# ---------------------------------------------------------------------------


def mood_valence(
    report: CorrelationReport,
    positive: Iterable[str],
    negative: Iterable[str],
) -> MoodValence:
    """Count positive / negative / other moods (case-insensitive)."""
    positive_set = {m.lower() for m in positive}
    negative_set = {m.lower() for m in negative}
    valence = MoodValence()
    for summary in report.summaries:
        key = summary.type.lower()
        if key in positive_set:
            valence.positive_count += summary.count
        elif key in negative_set:
            valence.negative_count += summary.count
        else:
            valence.neutral_count += summary.count
    rated = valence.positive_count + valence.negative_count
    if rated:
        valence.positive_ratio = round(valence.positive_count / rated, 2)
    return valence


def recent_days(
    report: CorrelationReport, today_day_number: int, days: int = 7
) -> list[DailyBucket]:
    """Daily buckets from ``today - days`` through today, most recent first."""
    return [
        bucket
        for bucket in reversed(report.days)
        if today_day_number - days <= bucket.day_number <= today_day_number
    ]


def co_occurrence(
    symptom_report: CorrelationReport, mood_report: CorrelationReport
) -> list[CoOccurrence]:
    """Days on which both symptoms and moods were logged, ascending."""
    moods_by_day = {bucket.day_number: bucket for bucket in mood_report.days}
    matches = []
    for bucket in symptom_report.days:
        mood_bucket = moods_by_day.get(bucket.day_number)
        if mood_bucket is None:
            continue
        matches.append(
            CoOccurrence(
                day_number=bucket.day_number,
                date=bucket.date,
                symptom_types=bucket.types,
                mood_types=mood_bucket.types,
                avg_severity=bucket.avg_severity,
            )
        )
    return matches
