"""Tests for symptom / mood correlation against the cycle."""

from __future__ import annotations

import pytest

from src.cycle_engine.base import CorrelationWindow, CyclePhase, Trend
from src.cycle_engine.config_loader import CorrelationConfig, CycleConfig
from src.cycle_engine.cycle_state import sort_periods
from src.cycle_engine.symptom_correlator import (
    SymptomCorrelator,
    bucket_by_day,
    classify_window,
    co_occurrence,
    find_window,
    mood_valence,
    recent_days,
    severity_trend,
)
from src.cycle_engine.tests.conftest import DAY0, at, period


@pytest.fixture
def symptom_report(history_payload):
    return SymptomCorrelator().analyze(
        history_payload["symptoms"], history_payload["periods"], history_payload["settings"], 0
    )


@pytest.fixture
def mood_report(history_payload):
    return SymptomCorrelator().analyze(
        history_payload["moods"],
        history_payload["periods"],
        history_payload["settings"],
        0,
        kind="mood",
    )


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


class TestClassifyWindow:
    @pytest.mark.parametrize(
        "offset, expected",
        [
            (-8, None),
            (-7, CorrelationWindow.pre_period),
            (-1, CorrelationWindow.pre_period),
            (0, CorrelationWindow.period),
            (4, CorrelationWindow.period),
            (5, CorrelationWindow.post_period),
            (11, CorrelationWindow.post_period),
            (12, CorrelationWindow.fertile),
            (18, CorrelationWindow.fertile),
            (19, CorrelationWindow.luteal),
            (20, None),
        ],
    )
    def test_five_windows(self, offset, expected):
        assert classify_window(offset, 5) == expected

    def test_most_recent_matching_period_wins(self):
        ordered = sort_periods([period(DAY0 - 20), period(DAY0)])
        # DAY0 - 3 is Pre-period for DAY0 and Post-period for DAY0 - 20.
        assert find_window(DAY0 - 3, ordered, 5) == CorrelationWindow.pre_period

    def test_falls_back_to_older_period(self):
        ordered = sort_periods([period(DAY0 - 28), period(DAY0)])
        assert find_window(DAY0 - 14, ordered, 5) == CorrelationWindow.fertile

    def test_no_matching_period(self):
        ordered = sort_periods([period(DAY0)])
        assert find_window(DAY0 - 30, ordered, 5) is None
        assert find_window(DAY0, [], 5) is None

    def test_custom_window_sizes(self):
        cfg = CorrelationConfig(pre_period_days=3, post_period_days=2, fertile_days=2)
        ordered = sort_periods([period(DAY0)])
        assert find_window(DAY0 - 4, ordered, 5, cfg) is None
        assert find_window(DAY0 + 7, ordered, 5, cfg) == CorrelationWindow.fertile
        assert find_window(DAY0 + 9, ordered, 5, cfg) == CorrelationWindow.luteal


class TestSeverityTrend:
    def test_increasing(self):
        assert severity_trend([1, 2, 3, 4, 5]) == Trend.increasing

    def test_decreasing(self):
        assert severity_trend([5, 4, 3, 2, 1]) == Trend.decreasing

    def test_stable(self):
        assert severity_trend([2, 4, 3]) == Trend.stable
        assert severity_trend([0.1, 0.2, 0.3, 0.2, 0.2, 0.2]) == Trend.stable

    def test_too_few(self):
        assert severity_trend([3, 3]) == Trend.unknown
        assert severity_trend([]) == Trend.unknown


class TestBucketByDay:
    def test_same_local_day_merges(self):
        entries = [
            {"date": "2026-03-01T23:30:00Z", "type": "cramps", "severity": 2},
            {"date": "2026-03-02T00:30:00Z", "type": "cramps", "severity": 4},
        ]
        assert len(bucket_by_day(entries, -60)) == 1
        assert len(bucket_by_day(entries, 0)) == 2

    def test_ascending_and_skips_malformed(self):
        entries = [
            {"date": at(DAY0 + 2), "type": "headache"},
            {"date": "nope", "type": "headache"},
            {"date": at(DAY0), "type": ""},
            {"date": at(DAY0), "type": "acne", "severity": "bad"},
        ]
        buckets = bucket_by_day(entries)
        assert [b.day_number for b in buckets] == [DAY0, DAY0 + 2]
        assert buckets[0].types == ["acne"]
        assert buckets[0].avg_severity is None


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


class TestAnalyze:
    def test_counts(self, symptom_report):
        assert symptom_report.kind == "symptom"
        assert symptom_report.total_entries == 6
        assert symptom_report.skipped_entries == 1
        assert symptom_report.unclassified_count == 0
        assert [d.day_number for d in symptom_report.days] == [DAY0 - 14, DAY0 - 1, DAY0, DAY0 + 1]

    def test_same_day_entries_share_a_bucket(self, symptom_report):
        bucket = symptom_report.days[2]
        assert bucket.types == ["cramps", "bloating"]
        assert bucket.avg_severity == 3.0

    def test_summary_order_and_stats(self, symptom_report):
        assert [s.type for s in symptom_report.summaries] == ["cramps", "headache", "bloating"]
        cramps = symptom_report.summary_for("cramps")
        assert cramps.count == 3
        assert cramps.avg_severity == 4.0
        assert (cramps.min_severity, cramps.max_severity) == (3, 5)
        assert cramps.trend == Trend.stable
        assert cramps.first_occurrence.isoformat() == "2026-02-28T20:00:00+00:00"
        assert cramps.last_occurrence.isoformat() == "2026-03-02T09:00:00+00:00"

    def test_window_and_phase_counts(self, symptom_report):
        cramps = symptom_report.summary_for("cramps")
        assert cramps.window_counts == {"PMS/Pre-period": 1, "Period": 2}
        assert cramps.top_window == CorrelationWindow.period
        assert cramps.phase_counts == {"Luteal": 1, "Menstrual": 2}
        assert cramps.top_phase == CyclePhase.menstrual

    def test_window_and_phase_are_reported_separately(self, symptom_report):
        headache = symptom_report.summary_for("headache")
        assert headache.top_window == CorrelationWindow.fertile
        assert headache.top_phase == CyclePhase.luteal
        day = symptom_report.days[0]
        assert day.cycle_day == 16

    def test_mood_without_severity(self, mood_report):
        anxious = mood_report.summary_for("anxious")
        assert anxious.count == 2
        assert anxious.avg_severity is None
        assert anxious.trend == Trend.unknown

    def test_window_tie_goes_to_earliest(self, mood_report):
        anxious = mood_report.summary_for("anxious")
        assert anxious.window_counts == {"PMS/Pre-period": 1, "Period": 1}
        assert anxious.top_window == CorrelationWindow.pre_period

    def test_post_period_window(self, mood_report):
        assert mood_report.summary_for("happy").top_window == CorrelationWindow.post_period

    def test_unclassified_without_periods(self, history_payload):
        report = SymptomCorrelator().analyze(history_payload["symptoms"], [], None)
        assert report.unclassified_count == 5
        assert all(s.top_window is None and s.top_phase is None for s in report.summaries)
        assert report.summary_for("cramps").window_counts == {}

    def test_empty(self):
        report = SymptomCorrelator().analyze(None, None, None)
        assert report.total_entries == 0
        assert report.summaries == []
        assert report.days == []

    def test_offset_changes_bucketing(self):
        entries = [{"date": "2026-03-01T20:00:00Z", "type": "cramps", "severity": 3}]
        report = SymptomCorrelator().analyze(entries, [period(DAY0)], None, 330)
        assert report.days[0].day_number == DAY0 + 1

    def test_does_not_mutate_inputs(self, history_payload):
        symptoms = list(history_payload["symptoms"])
        periods = list(history_payload["periods"])
        SymptomCorrelator().analyze(symptoms, periods, None)
        assert symptoms == history_payload["symptoms"]
        assert periods == history_payload["periods"]


# ---------------------------------------------------------------------------
# Insights and helpers
# ---------------------------------------------------------------------------


class TestInsights:
    def test_generates_window_and_phase_insights(self, symptom_report):
        insights = SymptomCorrelator().generate_insights(symptom_report)
        assert [i.insight_id for i in insights] == ["window_cramps", "phase_cramps"]
        assert insights[0].confidence == 0.67
        assert insights[0].metric_b == "Period"
        assert insights[1].metric_b == "Menstrual"
        assert symptom_report.insights == insights

    def test_trend_insight(self):
        entries = [
            {"date": at(DAY0 + k), "type": "headache", "severity": sev}
            for k, sev in enumerate([1, 1, 1, 4, 5, 5])
        ]
        correlator = SymptomCorrelator()
        report = correlator.analyze(entries, [period(DAY0)], None)
        insights = correlator.generate_insights(report)
        trend = [i for i in insights if i.category == "severity_trend"]
        assert len(trend) == 1
        assert trend[0].metric_b == "increasing"

    def test_threshold(self, symptom_report):
        insights = SymptomCorrelator().generate_insights(symptom_report, min_entries=1)
        assert {i.metric_a for i in insights} == {"cramps", "headache", "bloating"}
        assert SymptomCorrelator().generate_insights(symptom_report, min_entries=10) == []


class TestReportHelpers:
    def test_mood_valence(self, mood_report, cycle_config: CycleConfig):
        valence = mood_valence(mood_report, cycle_config.moods.positive, cycle_config.moods.negative)
        assert valence.positive_count == 2
        assert valence.negative_count == 2
        assert valence.neutral_count == 0
        assert valence.positive_ratio == 0.5

    def test_mood_valence_is_case_insensitive(self):
        report = SymptomCorrelator().analyze(
            [{"date": at(DAY0), "type": "Happy"}, {"date": at(DAY0), "type": "bored"}], [], None
        )
        valence = mood_valence(report, ["happy"], ["sad"])
        assert (valence.positive_count, valence.negative_count, valence.neutral_count) == (1, 0, 1)
        assert valence.positive_ratio == 1.0

    def test_recent_days(self, symptom_report):
        recent = recent_days(symptom_report, DAY0 + 1, 7)
        assert [b.day_number for b in recent] == [DAY0 + 1, DAY0, DAY0 - 1]

    def test_co_occurrence(self, symptom_report, mood_report):
        days = co_occurrence(symptom_report, mood_report)
        assert [d.day_number for d in days] == [DAY0, DAY0 + 1]
        assert days[0].symptom_types == ["cramps", "bloating"]
        assert days[0].mood_types == ["anxious"]
        assert days[0].avg_severity == 3.0
