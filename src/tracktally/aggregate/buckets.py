"""Bucket construction and interval-to-bucket distribution.

An interval ``[start, end)`` is credited to every bucket it overlaps with
exactly the overlapping seconds, so time that crosses a boundary is
split rather than attributed wholly to the bucket it started in.  For a
contiguous, gapless bucket set the per-bucket seconds of one interval
sum to the interval's duration clamped to the set's span.
"""

from __future__ import annotations

import bisect
import datetime as dt
from datetime import datetime, timedelta
from typing import Sequence

from tracktally.core.defaults import (
    DEFAULT_TIMELINE_MINUTES,
    DEFAULT_TIMELINE_SLOT_MINUTES,
    HOURS_PER_DAY,
)
from tracktally.core.time import day_bounds, to_naive_utc, utc_now
from tracktally.core.types import ActivityInterval, TimeBucket


def hourly_buckets(
    day: dt.date,
    tz: str | dt.tzinfo | None = None,
) -> list[TimeBucket]:
    """Build the 24 hour-of-day buckets for *day*.

    Bucket ``h`` covers ``[midnight + h hours, midnight + h+1 hours)``
    where midnight is the start of *day* in *tz*.  The 24 buckets are
    always contiguous and one hour wide, including on DST transition
    days.

    Args:
        day: Calendar date.
        tz: IANA zone name or tzinfo; ``None`` means UTC.

    Returns:
        24 buckets with indices 0-23 (naive UTC spans).
    """
    start, _ = day_bounds(day, tz)
    hour = timedelta(hours=1)
    return [
        TimeBucket(index=h, start=start + h * hour, end=start + (h + 1) * hour)
        for h in range(HOURS_PER_DAY)
    ]


def timeline_buckets(
    end: datetime,
    window_minutes: int = DEFAULT_TIMELINE_MINUTES,
    slot_minutes: int = DEFAULT_TIMELINE_SLOT_MINUTES,
) -> list[TimeBucket]:
    """Build contiguous slots covering the trailing window ``[end - window, end)``.

    When *window_minutes* is not a multiple of *slot_minutes* the final
    slot is shorter so that the window is covered exactly.

    Raises:
        ValueError: If either width is not positive.
    """
    if window_minutes <= 0:
        raise ValueError(f"window_minutes must be > 0, got {window_minutes}")
    if slot_minutes <= 0:
        raise ValueError(f"slot_minutes must be > 0, got {slot_minutes}")

    end = to_naive_utc(end)
    cur = end - timedelta(minutes=window_minutes)
    step = timedelta(minutes=slot_minutes)

    buckets: list[TimeBucket] = []
    while cur < end:
        nxt = min(cur + step, end)
        buckets.append(TimeBucket(index=len(buckets), start=cur, end=nxt))
        cur = nxt
    return buckets


def range_bucket(start: datetime, end: datetime, index: int = 0) -> TimeBucket:
    """A single bucket spanning an arbitrary query range."""
    return TimeBucket(index=index, start=start, end=end)


def check_bucket_order(buckets: Sequence[TimeBucket]) -> None:
    """Ensure *buckets* have unique indices, are sorted by start and do not overlap.

    Raises:
        ValueError: On a repeated index, or on the first out-of-order or
            overlapping pair.
    """
    seen: set[int] = set()
    for bucket in buckets:
        if bucket.index in seen:
            raise ValueError(f"Duplicate bucket index {bucket.index}")
        seen.add(bucket.index)
    for prev, cur in zip(buckets, buckets[1:]):
        if cur.start < prev.end:
            raise ValueError(
                f"Buckets must be ordered and non-overlapping: bucket {cur.index} "
                f"starts at {cur.start} before bucket {prev.index} ends at {prev.end}"
            )


def distribute(
    start: datetime,
    end: datetime,
    buckets: Sequence[TimeBucket],
    bucket_starts: Sequence[datetime],
) -> dict[int, float]:
    """Split ``[start, end)`` across ordered *buckets*.

    *bucket_starts* must be ``[b.start for b in buckets]``; callers that
    distribute many intervals over the same buckets compute it once.

    Returns:
        Bucket index -> overlapping seconds, for buckets with a
        positive overlap only.
    """
    if end <= start or not buckets:
        return {}

    out: dict[int, float] = {}
    i = max(bisect.bisect_right(bucket_starts, start) - 1, 0)
    while i < len(buckets) and buckets[i].start < end:
        bucket = buckets[i]
        overlap = (min(end, bucket.end) - max(start, bucket.start)).total_seconds()
        if overlap > 0:
            out[bucket.index] = out.get(bucket.index, 0.0) + overlap
        i += 1
    return out


def bucketize(
    interval: ActivityInterval,
    buckets: Sequence[TimeBucket],
    *,
    now: datetime | None = None,
) -> dict[int, float]:
    """Distribute one interval's duration over *buckets*.

    An ongoing interval is treated as ending at *now* (current UTC time
    when omitted); re-run to get a later snapshot.  Malformed,
    zero-length, and out-of-range intervals contribute nothing.

    Args:
        interval: The activity to distribute.
        buckets: Buckets ordered by start, non-overlapping.
        now: Stand-in end for an ongoing interval.

    Returns:
        Bucket index -> seconds of *interval* inside that bucket.

    Raises:
        ValueError: If *buckets* are out of order or overlap.
    """
    check_bucket_order(buckets)
    if interval.is_malformed:
        return {}
    now = to_naive_utc(now) if now is not None else utc_now()
    return distribute(
        interval.start,
        interval.effective_end(now),
        buckets,
        [b.start for b in buckets],
    )
