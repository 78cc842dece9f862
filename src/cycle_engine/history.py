"""Cycle history statistics and the resolved period list.

Does NOT replace the user's settings: the calculator always uses
CycleSettings.  These numbers describe what was actually logged, for
display next to the settings and for irregularity warnings.
"""

from __future__ import annotations

import logging
import statistics
from collections.abc import Iterable
from typing import Any

from src.cycle_engine.base import CycleHistory, CycleSettings, PeriodSpan
from src.cycle_engine.cycle_state import round_half_up, sort_periods

logger = logging.getLogger("cyclecast.engine.history")


def summarize_history(
    periods: Iterable[Any] | None,
    offset_minutes: Any = 0,
    min_cycle_days: int = 21,
    max_cycle_days: int = 45,
    irregular_std_days: float = 7.0,
) -> CycleHistory:
    """Compute cycle and period length statistics from the logged history.

    Args:
        periods:            Period records in any order.
        offset_minutes:     UTC offset used for day bucketing.
        min_cycle_days:     Cycles shorter than this raise a warning.
        max_cycle_days:     Cycles longer than this raise a warning.
        irregular_std_days: Standard deviation above which cycles are irregular.

    Returns:
        CycleHistory; empty statistics when fewer than two periods exist.
    """
    ordered = sort_periods(periods, offset_minutes)
    history = CycleHistory(period_count=len(ordered))
    if not ordered:
        return history

    chronological = list(reversed(ordered))
    history.cycle_lengths = [
        later.start_day_number - earlier.start_day_number
        for earlier, later in zip(chronological, chronological[1:])
    ]
    history.period_lengths = [
        p.end_day_number - p.start_day_number + 1
        for p in chronological
        if not p.end_estimated
    ]

    if history.period_lengths:
        history.avg_period_length = round_half_up(statistics.mean(history.period_lengths))

    lengths = history.cycle_lengths
    if not lengths:
        return history

    history.avg_cycle_length = round_half_up(statistics.mean(lengths))
    history.std_cycle_length = round(statistics.stdev(lengths), 1) if len(lengths) > 1 else 0.0
    history.is_irregular = history.std_cycle_length > irregular_std_days

    # Flag abnormal lengths
    for length in lengths:
        if length < min_cycle_days:
            history.warnings.append(
                f"Short cycle detected: {length} days (below {min_cycle_days} day minimum)"
            )
            break
    for length in lengths:
        if length > max_cycle_days:
            history.warnings.append(
                f"Long cycle detected: {length} days (above {max_cycle_days} day maximum)"
            )
            break

    if history.is_irregular:
        logger.debug(
            "Irregular history: %d cycles, stdev %.1f days",
            len(lengths), history.std_cycle_length,
        )
    return history


def period_spans(
    periods: Iterable[Any] | None,
    settings: Any,
    offset_minutes: Any = 0,
    limit: int | None = None,
) -> list[PeriodSpan]:
    """Return logged periods as local day spans, most recent first.

    Periods without a usable end date get an estimated end from the
    configured period length and are flagged ``estimated``.
    """
    cycle_settings = CycleSettings.coerce(settings)
    ordered = sort_periods(periods, offset_minutes)
    if limit is not None:
        ordered = ordered[: max(0, limit)]
    spans = []
    for period in ordered:
        if period.end_estimated:
            end = period.start_day_number + cycle_settings.average_period_length - 1
        else:
            end = period.end_day_number
        spans.append(
            PeriodSpan(
                start_day_number=period.start_day_number,
                end_day_number=end,
                estimated=period.end_estimated,
                flow_level=period.record.flow_level,
            )
        )
    return spans
