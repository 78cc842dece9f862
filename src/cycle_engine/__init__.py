"""Cyclecast cycle phase inference and forecasting engine.

This package turns a sparse log of period dates into the user's current
cycle day and phase, forecasts the next period, ovulation and fertile
window, replays the phase history, and correlates symptom and mood logs
with the cycle.  Every computation is a pure function over in-memory
records; nothing here touches a database or network.

Subpackages:
    reminders/ — Reminder eligibility scheduler

Core modules:
    base               — Canonical records, settings and result types
    config_loader      — Load/validate/hot-reload cycle_config.yaml
    local_day          — Timestamp parsing and local day numbers
    timezone           — UTC offset inference from stored timestamps
    cycle_state        — Cycle day and phase for one day
    forecast           — Next period, ovulation and fertile window
    timeline           — Day-by-day phase history
    history            — Cycle length statistics and period spans
    symptom_correlator — Symptom / mood correlation against the cycle
    engine             — Facade running all of the above for one snapshot
"""

from src.cycle_engine.base import (
    CorrelationWindow,
    CycleForecast,
    CyclePhase,
    CycleSettings,
    CycleState,
    ObservationEntry,
    PeriodRecord,
    TimelineEntry,
    Trend,
)
from src.cycle_engine.config_loader import CycleConfig, get_cycle_config
from src.cycle_engine.cycle_state import compute_cycle_state
from src.cycle_engine.engine import CycleEngine, CycleReport
from src.cycle_engine.forecast import generate_forecast
from src.cycle_engine.local_day import day_number_to_instant, local_day_number
from src.cycle_engine.symptom_correlator import SymptomCorrelator, SymptomInsight
from src.cycle_engine.timeline import build_timeline
from src.cycle_engine.timezone import infer_offset

__all__ = [
    "PeriodRecord",
    "ObservationEntry",
    "CycleSettings",
    "CyclePhase",
    "CorrelationWindow",
    "Trend",
    "CycleState",
    "CycleForecast",
    "TimelineEntry",
    "CycleConfig",
    "get_cycle_config",
    "local_day_number",
    "day_number_to_instant",
    "infer_offset",
    "compute_cycle_state",
    "generate_forecast",
    "build_timeline",
    "SymptomCorrelator",
    "SymptomInsight",
    "CycleEngine",
    "CycleReport",
]
