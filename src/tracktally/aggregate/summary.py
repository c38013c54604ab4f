"""Aggregation of classified, bucketed activity into display summaries.

:func:`aggregate` is the single fold: every interval is classified once,
distributed over the requested buckets once, and the bucketed seconds
are summed per bucket, per category, and per application.  Because all
three views are folded from the same bucketed seconds, they always
partition the same ``total_seconds``.

The ``build_*`` helpers wrap :func:`aggregate` with the bucket sets the
presentation layer asks for: 24 hourly buckets for a day, N slots for a
trailing timeline window, and one bucket per summary range.
"""

from __future__ import annotations

import datetime as dt
import logging
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from pydantic import BaseModel, Field

from tracktally.aggregate.buckets import (
    check_bucket_order,
    distribute,
    hourly_buckets,
    range_bucket,
    timeline_buckets,
)
from tracktally.classify.classifier import Classifier, MatchStage
from tracktally.core.defaults import DEFAULT_TIMELINE_MINUTES, DEFAULT_TIMELINE_SLOT_MINUTES
from tracktally.core.time import day_bounds, to_naive_utc, utc_now
from tracktally.core.types import ActivityInterval, CategoryRef, TimeBucket
from tracktally.registry.snapshot import Registry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------


class BucketActivity(BaseModel, frozen=True):
    """One interval's contribution to one bucket."""

    activity: ActivityInterval
    category: CategoryRef
    stage: MatchStage
    seconds: float = Field(ge=0, description="Seconds of the activity inside this bucket.")

    @property
    def category_id(self) -> str:
        return self.category.category_id


class BucketTotal(BaseModel, frozen=True):
    """Total active seconds in one bucket plus the intervals that contributed."""

    index: int
    start: datetime
    end: datetime
    activity_seconds: float = Field(ge=0)
    activities: list[BucketActivity] = Field(default_factory=list)


class CategorySummary(BaseModel, frozen=True):
    category_id: str
    duration_seconds: float = Field(ge=0)
    percentage: float = Field(ge=0, description="Share of total active time (0-100).")


class AppSummary(BaseModel, frozen=True):
    app_name: str
    duration_seconds: float = Field(ge=0)
    percentage: float = Field(ge=0, description="Share of total active time (0-100).")


class Aggregation(BaseModel, frozen=True):
    """Everything :func:`aggregate` computes for one request.

    ``skipped_intervals`` counts malformed intervals (end before start)
    that were excluded; ``ambiguous_intervals`` counts contributing
    intervals whose fuzzy app match could have chosen another category.
    """

    per_bucket: list[BucketTotal]
    per_category: list[CategorySummary]
    per_app: list[AppSummary]
    total_seconds: float = Field(ge=0)
    skipped_intervals: int = Field(default=0, ge=0)
    ambiguous_intervals: int = Field(default=0, ge=0)


class HourlyEntry(BaseModel, frozen=True):
    hour: int = Field(ge=0, le=23)
    start: datetime
    end: datetime
    activity_seconds: float = Field(ge=0)
    activities: list[BucketActivity] = Field(default_factory=list)


class TimelineEntry(BaseModel, frozen=True):
    index: int = Field(ge=0)
    start: datetime
    end: datetime
    activity_seconds: float = Field(ge=0)
    activities: list[BucketActivity] = Field(default_factory=list)


class TimelineData(BaseModel, frozen=True):
    """Slots covering a trailing window ``[start, end)``."""

    start: datetime
    end: datetime
    slots: list[TimelineEntry]

    @property
    def total_seconds(self) -> float:
        return sum(s.activity_seconds for s in self.slots)


class ActivitySummary(BaseModel, frozen=True):
    """Per-category and per-app breakdown of a query range."""

    start: datetime
    end: datetime
    date: str | None = Field(default=None, description="Calendar date (YYYY-MM-DD) for daily summaries.")
    total_active_seconds: float = Field(ge=0)
    categories: list[CategorySummary]
    top_apps: list[AppSummary]
    skipped_intervals: int = Field(default=0, ge=0)
    ambiguous_intervals: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def _percentage(duration: float, total: float) -> float:
    return 100.0 * duration / total if total > 0 else 0.0


def _ranked(totals: dict[str, float]) -> list[tuple[str, float]]:
    # sorted() is stable, so ties keep first-seen (insertion) order
    return sorted(totals.items(), key=lambda kv: -kv[1])


def aggregate(
    intervals: Iterable[ActivityInterval],
    registry: Registry,
    buckets: Sequence[TimeBucket],
    *,
    now: datetime | None = None,
) -> Aggregation:
    """Classify, bucketize, and fold *intervals* over *buckets*.

    Args:
        intervals: Activity intervals; any order.
        registry: Snapshot used for classification.
        buckets: Buckets ordered by start, non-overlapping.
        now: Stand-in end for ongoing intervals (current UTC time when
            omitted).

    Returns:
        An :class:`Aggregation`.  Category and app summaries are sorted
        by descending duration with ties in first-seen order;
        percentages are 0 when nothing was active.

    Raises:
        ValueError: If *buckets* are out of order or overlap.
    """
    check_bucket_order(buckets)
    now = to_naive_utc(now) if now is not None else utc_now()
    classifier = Classifier(registry)
    starts = [b.start for b in buckets]

    bucket_seconds: dict[int, float] = {b.index: 0.0 for b in buckets}
    bucket_activities: dict[int, list[BucketActivity]] = {b.index: [] for b in buckets}
    category_totals: dict[str, float] = {}
    app_totals: dict[str, float] = {}
    skipped = 0
    ambiguous = 0

    for interval in intervals:
        if interval.is_malformed:
            skipped += 1
            logger.debug(
                "Skipping malformed interval %s: end %s before start %s",
                interval.id, interval.end, interval.start,
            )
            continue

        shares = distribute(interval.start, interval.effective_end(now), buckets, starts)
        if not shares:
            continue

        result = classifier.resolve(interval)
        if result.is_ambiguous:
            ambiguous += 1

        credited = 0.0
        for index, seconds in shares.items():
            bucket_seconds[index] += seconds
            bucket_activities[index].append(BucketActivity(
                activity=interval,
                category=result.category,
                stage=result.stage,
                seconds=seconds,
            ))
            credited += seconds

        cid = result.category_id
        category_totals[cid] = category_totals.get(cid, 0.0) + credited
        app_totals[interval.app_name] = app_totals.get(interval.app_name, 0.0) + credited

    if skipped:
        logger.info("Excluded %d malformed interval(s) from aggregation", skipped)

    total = sum(category_totals.values())

    return Aggregation(
        per_bucket=[
            BucketTotal(
                index=b.index,
                start=b.start,
                end=b.end,
                activity_seconds=bucket_seconds[b.index],
                activities=bucket_activities[b.index],
            )
            for b in buckets
        ],
        per_category=[
            CategorySummary(category_id=cid, duration_seconds=d, percentage=_percentage(d, total))
            for cid, d in _ranked(category_totals)
        ],
        per_app=[
            AppSummary(app_name=name, duration_seconds=d, percentage=_percentage(d, total))
            for name, d in _ranked(app_totals)
        ],
        total_seconds=total,
        skipped_intervals=skipped,
        ambiguous_intervals=ambiguous,
    )


# ---------------------------------------------------------------------------
# Presentation-shaped builders
# ---------------------------------------------------------------------------


def build_hourly(
    intervals: Iterable[ActivityInterval],
    registry: Registry,
    day: dt.date,
    *,
    tz: str | dt.tzinfo | None = None,
    now: datetime | None = None,
) -> list[HourlyEntry]:
    """24 hour-of-day entries for *day* (see :func:`hourly_buckets`)."""
    agg = aggregate(intervals, registry, hourly_buckets(day, tz), now=now)
    return [
        HourlyEntry(
            hour=b.index,
            start=b.start,
            end=b.end,
            activity_seconds=b.activity_seconds,
            activities=b.activities,
        )
        for b in agg.per_bucket
    ]


def build_timeline(
    intervals: Iterable[ActivityInterval],
    registry: Registry,
    *,
    end: datetime | None = None,
    window_minutes: int = DEFAULT_TIMELINE_MINUTES,
    slot_minutes: int = DEFAULT_TIMELINE_SLOT_MINUTES,
    now: datetime | None = None,
) -> TimelineData:
    """Slots for the trailing window ending at *end* (defaults to *now*)."""
    now = to_naive_utc(now) if now is not None else utc_now()
    end = to_naive_utc(end) if end is not None else now
    buckets = timeline_buckets(end, window_minutes, slot_minutes)
    agg = aggregate(intervals, registry, buckets, now=now)
    return TimelineData(
        start=end - timedelta(minutes=window_minutes),
        end=end,
        slots=[
            TimelineEntry(
                index=b.index,
                start=b.start,
                end=b.end,
                activity_seconds=b.activity_seconds,
                activities=b.activities,
            )
            for b in agg.per_bucket
        ],
    )


def build_summary(
    intervals: Iterable[ActivityInterval],
    registry: Registry,
    start: datetime,
    end: datetime,
    *,
    now: datetime | None = None,
    top_n: int | None = None,
    date: str | None = None,
) -> ActivitySummary:
    """Category and app breakdown of ``[start, end)``.

    Args:
        top_n: Keep only the *top_n* longest apps.  Truncation means
            ``top_apps`` no longer sums to the total; leave as ``None``
            when that matters.
    """
    agg = aggregate(intervals, registry, [range_bucket(start, end)], now=now)
    apps = agg.per_app if top_n is None else agg.per_app[:top_n]
    return ActivitySummary(
        start=to_naive_utc(start),
        end=to_naive_utc(end),
        date=date,
        total_active_seconds=agg.total_seconds,
        categories=agg.per_category,
        top_apps=apps,
        skipped_intervals=agg.skipped_intervals,
        ambiguous_intervals=agg.ambiguous_intervals,
    )


def build_daily_summaries(
    intervals: Iterable[ActivityInterval],
    registry: Registry,
    date_from: dt.date,
    date_to: dt.date,
    *,
    tz: str | dt.tzinfo | None = None,
    now: datetime | None = None,
) -> list[ActivitySummary]:
    """One :class:`ActivitySummary` per calendar day, inclusive of both ends.

    Raises:
        ValueError: If *date_to* is before *date_from*.
    """
    if date_to < date_from:
        raise ValueError(f"date_to ({date_to}) must not be before date_from ({date_from})")

    items = list(intervals)
    summaries: list[ActivitySummary] = []
    current = date_from
    while current <= date_to:
        start, end = day_bounds(current, tz)
        summaries.append(
            build_summary(items, registry, start, end, now=now, date=current.isoformat())
        )
        current += timedelta(days=1)
    return summaries


def format_duration(seconds: float) -> str:
    """Render seconds as ``"2h 5m"``, ``"42m"``, or ``"30s"``."""
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return f"{secs}s"
