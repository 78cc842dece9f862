"""Local day numbers: the engine's unit of comparison.

A local day number is the count of whole days since the Unix epoch in the
observer's local calendar, for a fixed UTC offset in minutes::

    floor((timestamp_ms + offset_minutes * 60000) / 86400000)

All phase logic works on differences between day numbers, never on raw
timestamps, so the time of day a record was stored at cannot shift it
into a neighbouring day.  Nothing in this module raises on bad input;
unparseable values come back as None.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any

logger = logging.getLogger("cyclecast.engine.local_day")

MS_PER_DAY = 24 * 60 * 60 * 1000
MS_PER_MINUTE = 60 * 1000
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

MONTH_LABELS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def normalize_offset(offset: Any) -> int | float:
    """Coerce a caller-supplied UTC offset (minutes) to a finite number.

    Numeric strings parse to their leading integer ("330", "-300 min"),
    finite numbers pass through, anything else becomes 0.
    """
    if isinstance(offset, bool):
        return 0
    if isinstance(offset, str):
        match = _LEADING_INT.match(offset)
        return int(match.group(1)) if match else 0
    if isinstance(offset, (int, float)) and math.isfinite(offset):
        return offset
    return 0


def parse_timestamp(value: Any) -> datetime | None:
    """Parse any supported timestamp into an aware UTC datetime.

    Supported inputs:
        - ``datetime``: naive values are taken as UTC.
        - ``date``: UTC midnight of that date.
        - ``str``: ISO-8601, with or without a trailing ``Z``; date-only
          strings are UTC midnight.
        - ``int`` / ``float``: milliseconds since the Unix epoch.

    Returns:
        The instant in UTC, or None if the value cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return EPOCH + timedelta(milliseconds=value)
        except OverflowError:
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable timestamp %r", value)
            return None
        return parse_timestamp(parsed)
    return None


def _epoch_ms(instant: datetime) -> int:
    delta = instant - EPOCH
    return delta.days * MS_PER_DAY + delta.seconds * 1000 + delta.microseconds // 1000


def local_day_number(timestamp: Any, offset_minutes: Any = 0) -> int | None:
    """Return the local day number of ``timestamp`` at ``offset_minutes``.

    Args:
        timestamp:      Anything ``parse_timestamp`` accepts.
        offset_minutes: Minutes east of UTC; normalized with ``normalize_offset``.

    Returns:
        Integer day number, or None when the timestamp is missing or malformed.
    """
    instant = parse_timestamp(timestamp)
    if instant is None:
        return None
    offset = normalize_offset(offset_minutes)
    return int((_epoch_ms(instant) + offset * MS_PER_MINUTE) // MS_PER_DAY)


def day_number_to_instant(day_number: Any, offset_minutes: Any = 0) -> datetime | None:
    """Return the UTC instant of local midnight for ``day_number``.

    Inverse of ``local_day_number``:
    ``local_day_number(day_number_to_instant(d, o), o) == d``.
    """
    if isinstance(day_number, bool) or not isinstance(day_number, (int, float)):
        return None
    if not math.isfinite(day_number):
        return None
    offset = normalize_offset(offset_minutes)
    utc_ms = int(day_number) * MS_PER_DAY - offset * MS_PER_MINUTE
    try:
        return EPOCH + timedelta(milliseconds=utc_ms)
    except OverflowError:
        return None


def day_number_to_date(day_number: int) -> date:
    """Return the local calendar date a day number stands for."""
    return date(1970, 1, 1) + timedelta(days=day_number)


def format_display_date(value: Any, offset_minutes: Any = 0) -> str:
    """Return a short label like ``"Oct 5"`` for a day number or timestamp.

    Integers are taken as day numbers; everything else is parsed as a
    timestamp and bucketed at ``offset_minutes``.  Returns ``"unknown"``
    when no day can be derived.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        day_number: int | None = value
    else:
        day_number = local_day_number(value, offset_minutes)
    if day_number is None:
        return "unknown"
    try:
        local = day_number_to_date(day_number)
    except OverflowError:
        return "unknown"
    return f"{MONTH_LABELS[local.month - 1]} {local.day}"
