"""Timezone offset inference for callers that cannot send an explicit offset.

Period starts are logged as "midnight of the day my period started" in
the user's local time, so the clock time stored alongside the date leaks
the offset the client used.  The heuristic reads that clock time as
minutes-of-day ``m`` and splits the day at noon:

    m == 0     →  0
    m <= 720   →  +m   (east of UTC)
    m >  720   →  m - 1440  (west of UTC)

It assumes the real logging time was close to local midnight.  An explicit
caller-supplied offset always wins over the inferred one.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from src.cycle_engine.base import PeriodRecord
from src.cycle_engine.local_day import normalize_offset, parse_timestamp

logger = logging.getLogger("cyclecast.engine.timezone")

_CLOCK_TIME = re.compile(r"T(\d{2}):(\d{2})")

MINUTES_PER_DAY = 24 * 60
HALF_DAY_MINUTES = 12 * 60


def _clock_minutes(value: Any) -> int | None:
    """Return the minutes-of-day embedded in a stored start timestamp."""
    if isinstance(value, str):
        match = _CLOCK_TIME.search(value)
        if not match:
            return None
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours > 23 or minutes > 59:
            return None
        return hours * 60 + minutes
    if isinstance(value, datetime):
        instant = parse_timestamp(value)
        return instant.hour * 60 + instant.minute
    if isinstance(value, date):
        # A bare date carries no clock time.
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        instant = parse_timestamp(value)
        return instant.hour * 60 + instant.minute if instant else None
    return None


def infer_offset(periods: Iterable[Any] | None) -> int:
    """Estimate the UTC offset (minutes) the periods were logged in.

    Records are scanned in the order given; the first one whose start
    carries a clock time decides.  Returns 0 when none does.
    """
    if not periods:
        return 0
    for raw in periods:
        record = PeriodRecord.coerce(raw)
        if record.start_date is None:
            continue
        total = _clock_minutes(record.start_date)
        if total is None:
            continue
        if total == 0:
            return 0
        if total <= HALF_DAY_MINUTES:
            return total
        return total - MINUTES_PER_DAY
    return 0


def resolve_offset(*candidates: Any, periods: Iterable[Any] | None = None) -> tuple[int | float, str]:
    """Pick the offset to compute with.

    The first candidate that is not None wins (e.g. a request header, then
    a body field), normalized with ``normalize_offset``.  Without one the
    offset is inferred from ``periods``.

    Returns:
        ``(offset_minutes, source)`` where source is 'explicit' or 'inferred'.
    """
    for candidate in candidates:
        if candidate is not None:
            return normalize_offset(candidate), "explicit"
    inferred = infer_offset(list(periods) if periods is not None else None)
    logger.debug("No explicit offset supplied; inferred %d minutes", inferred)
    return inferred, "inferred"
