"""Phase timeline builder: a day-by-day replay of the cycle state.

For every day in ``[end - window + 1, end]`` the calculator is re-run as
if that day were today, always against the most recent period.  Days
before that period have no state, exactly as ``compute_cycle_state`` would
report for them.  Days without a computable state are kept as
explicit unknown entries, so the result always has ``window_days`` items.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from src.cycle_engine.base import CycleSettings, PhaseSegment, TimelineEntry
from src.cycle_engine.cycle_state import sort_periods, state_from_reference
from src.cycle_engine.local_day import day_number_to_instant, normalize_offset

logger = logging.getLogger("cyclecast.engine.timeline")


def build_timeline(
    periods: Iterable[Any] | None,
    settings: Any,
    window_days: int,
    end_day_number: int,
    offset_minutes: Any = 0,
) -> list[TimelineEntry]:
    """Return the phase history for the trailing ``window_days`` days.

    Args:
        periods:        Period records in any order.
        settings:       CycleSettings, a settings mapping, or None.
        window_days:    Number of days to replay (≤ 0 yields an empty list).
        end_day_number: Last (most recent) local day of the window.
        offset_minutes: UTC offset used for day bucketing.

    Returns:
        Entries in ascending day order, one per day of the window.
    """
    if window_days <= 0:
        return []
    offset = normalize_offset(offset_minutes)
    ordered = sort_periods(periods, offset)
    cycle_settings = CycleSettings.coerce(settings)

    reference = ordered[0] if ordered else None

    timeline: list[TimelineEntry] = []
    for day in range(end_day_number - window_days + 1, end_day_number + 1):
        state = (
            state_from_reference(reference, cycle_settings, day, offset)
            if reference is not None
            else None
        )
        if state is None:
            timeline.append(TimelineEntry(day_number=day, date=day_number_to_instant(day, offset)))
            continue
        timeline.append(
            TimelineEntry(
                day_number=day,
                date=day_number_to_instant(day, offset),
                phase=state.phase,
                cycle_day=state.cycle_day,
                is_on_period=state.is_on_period,
            )
        )

    unknown = sum(1 for entry in timeline if entry.is_unknown)
    if unknown:
        logger.debug("Timeline ending %d has %d unknown day(s)", end_day_number, unknown)
    return timeline


def phase_segments(timeline: Iterable[TimelineEntry]) -> list[PhaseSegment]:
    """Collapse consecutive days of the same phase (or unknown) into segments."""
    segments: list[PhaseSegment] = []
    for entry in timeline:
        last = segments[-1] if segments else None
        if (
            last is not None
            and last.phase == entry.phase
            and last.end_day_number + 1 == entry.day_number
        ):
            last.end_day_number = entry.day_number
        else:
            segments.append(
                PhaseSegment(
                    phase=entry.phase,
                    start_day_number=entry.day_number,
                    end_day_number=entry.day_number,
                )
            )
    return segments
