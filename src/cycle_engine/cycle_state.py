"""Cycle state calculator: cycle day and phase for one local day.

The most recently started period is the reference.  Inside it the user is
Menstrual; after it the cycle day is ``days_since_end + 1 + period_length``
(the first day after the period is cycle day ``period_length + 2``) and is
classified against a single-day ovulation estimate:

    ovulation_day = max(period_length + 1, round(cycle_length / 2))

    cycle_day <= period_length   → Menstrual
    cycle_day <  ovulation_day   → Follicular
    cycle_day == ovulation_day   → Ovulation
    otherwise                    → Luteal

Without a newer period the Luteal phase simply continues; the engine does
not wrap into a new cycle until one is logged.

Every other module (forecast, timeline, correlation, reminders) goes
through these functions rather than re-deriving phase math.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from src.cycle_engine.base import (
    CyclePhase,
    CycleSettings,
    CycleState,
    PeriodRecord,
)
from src.cycle_engine.local_day import (
    day_number_to_instant,
    local_day_number,
    normalize_offset,
    parse_timestamp,
)

logger = logging.getLogger("cyclecast.engine.cycle_state")


@dataclass(frozen=True)
class ResolvedPeriod:
    """A period record with its start/end resolved to local day numbers."""

    record: PeriodRecord
    start_day_number: int
    end_day_number: int
    end_estimated: bool


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives (14.5 → 15)."""
    return math.floor(value + 0.5)


def ovulation_day_in_cycle(period_length: int, cycle_length: int) -> int:
    """Return the 1-indexed cycle day of the estimated ovulation."""
    return max(period_length + 1, round_half_up(cycle_length / 2))


def classify_phase(cycle_day: int, period_length: int, cycle_length: int) -> CyclePhase:
    """Classify a cycle day.  Depends on nothing but its three arguments."""
    ovulation_day = ovulation_day_in_cycle(period_length, cycle_length)
    if cycle_day <= period_length:
        return CyclePhase.menstrual
    if cycle_day < ovulation_day:
        return CyclePhase.follicular
    if cycle_day == ovulation_day:
        return CyclePhase.ovulation
    return CyclePhase.luteal


def describe_phase(phase: CyclePhase, cycle_day: int, cycle_length: int, on_period: bool) -> str:
    if on_period:
        return f"Day {cycle_day} of period"
    return f"Day {cycle_day} of {cycle_length}-day cycle ({phase.value} Phase)"


def sort_periods(periods: Iterable[Any] | None, offset_minutes: Any = 0) -> list[ResolvedPeriod]:
    """Resolve and sort periods by start, most recent first.

    Records whose start cannot be parsed are skipped.  An end date that is
    missing or unparseable is estimated later from the period length; an
    end before the start is clamped to the start.  The caller's collection
    is never modified.
    """
    if not periods:
        return []
    offset = normalize_offset(offset_minutes)
    resolved: list[tuple[float, ResolvedPeriod]] = []
    for raw in periods:
        record = PeriodRecord.coerce(raw)
        start_instant = parse_timestamp(record.start_date)
        # An unparseable start drops the record; the next valid period becomes the reference.
        if start_instant is None:
            logger.debug("Skipping period with unparseable start %r", record.start_date)
            continue
        start_day = local_day_number(start_instant, offset)
        end_day = local_day_number(record.end_date, offset)
        resolved.append(
            (
                start_instant.timestamp(),
                ResolvedPeriod(
                    record=record,
                    start_day_number=start_day,
                    end_day_number=max(end_day, start_day) if end_day is not None else start_day,
                    end_estimated=end_day is None,
                ),
            )
        )
    resolved.sort(key=lambda item: item[0], reverse=True)
    return [period for _, period in resolved]


def _period_end(period: ResolvedPeriod, period_length: int) -> int:
    if period.end_estimated:
        return period.start_day_number + period_length - 1
    return period.end_day_number


def state_from_reference(
    reference: ResolvedPeriod,
    settings: CycleSettings,
    today_day_number: int,
    offset_minutes: Any = 0,
) -> CycleState | None:
    """Compute the state for ``today_day_number`` against one reference period.

    Returns None when today precedes the reference period.
    """
    offset = normalize_offset(offset_minutes)
    period_length = settings.average_period_length
    cycle_length = settings.average_cycle_length

    period_start = reference.start_day_number
    period_end = _period_end(reference, period_length)
    next_period = period_start + cycle_length

    if period_start <= today_day_number <= period_end:
        cycle_day = today_day_number - period_start + 1
        phase = CyclePhase.menstrual
        on_period = True
    else:
        days_since_end = today_day_number - period_end
        if days_since_end < 0:
            return None
        cycle_day = days_since_end + 1 + period_length
        phase = classify_phase(cycle_day, period_length, cycle_length)
        on_period = False

    return CycleState(
        cycle_day=cycle_day,
        phase=phase,
        phase_description=describe_phase(phase, cycle_day, cycle_length, on_period),
        is_on_period=on_period,
        today_day_number=today_day_number,
        period_start_day_number=period_start,
        period_end_day_number=period_end,
        next_period_day_number=next_period,
        next_period_date=day_number_to_instant(next_period, offset),
        avg_cycle_length=cycle_length,
        avg_period_length=period_length,
        timezone_offset_minutes=offset,
    )


def compute_cycle_state(
    periods: Iterable[Any] | None,
    settings: Any,
    today_day_number: int | None,
    offset_minutes: Any = 0,
) -> CycleState | None:
    """Return the cycle state for ``today_day_number``, or None without data.

    Args:
        periods:          Period records (any order, records or mappings).
        settings:         CycleSettings, a settings mapping, or None for defaults.
        today_day_number: Local day number of "now".
        offset_minutes:   UTC offset the day numbers are computed with.

    Returns:
        CycleState, or None when there are no usable periods or today
        precedes the most recent one.
    """
    if today_day_number is None:
        return None
    ordered = sort_periods(periods, offset_minutes)
    if not ordered:
        return None
    return state_from_reference(
        ordered[0], CycleSettings.coerce(settings), today_day_number, offset_minutes
    )


def cycle_state_as_of(
    ordered_periods: Sequence[ResolvedPeriod],
    settings: CycleSettings,
    day_number: int,
    offset_minutes: Any = 0,
) -> CycleState | None:
    """State of a past day measured against the period current at the time.

    Only periods that had started by that day are considered.  This is the
    attribution used for logged observations; ``compute_cycle_state`` and the
    timeline always measure against the most recent period instead.

    Args:
        ordered_periods: Output of ``sort_periods`` (most recent first).
    """
    for period in ordered_periods:
        if period.start_day_number <= day_number:
            return state_from_reference(period, settings, day_number, offset_minutes)
    return None
