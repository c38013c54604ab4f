"""Timestamp normalisation and calendar-day bounds.

All interval and bucket arithmetic operates on naive UTC datetimes.
Timezone-aware inputs are converted to UTC before use so that intervals
from different sources compare correctly and DST transitions never
produce duplicate or missing buckets.
"""

from __future__ import annotations

import datetime as dt
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


def to_naive_utc(ts: datetime) -> datetime:
    """Return *ts* as a naive UTC datetime.

    Naive inputs are assumed to already be UTC and are returned as-is.
    """
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def resolve_tz(tz: str | dt.tzinfo | None) -> dt.tzinfo:
    """Turn an IANA name, tzinfo, or ``None`` (UTC) into a tzinfo."""
    if tz is None:
        return timezone.utc
    if isinstance(tz, str):
        return ZoneInfo(tz)
    return tz


def day_bounds(
    day: dt.date,
    tz: str | dt.tzinfo | None = None,
) -> tuple[datetime, datetime]:
    """Return the naive-UTC ``[start, end)`` of calendar *day* in *tz*.

    The end is the start of the following calendar day, so a DST day is
    23 or 25 hours long.

    Args:
        day: Calendar date.
        tz: IANA zone name or tzinfo the day is interpreted in.
            ``None`` means UTC.

    Returns:
        ``(start, end)`` as naive UTC datetimes.
    """
    zone = resolve_tz(tz)
    start = datetime.combine(day, dt.time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), dt.time.min, tzinfo=zone)
    return to_naive_utc(start), to_naive_utc(end)
