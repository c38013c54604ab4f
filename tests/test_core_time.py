"""Tests for tracktally.core.time."""

from __future__ import annotations

import datetime as dt

from tracktally.core.time import day_bounds, resolve_tz, to_naive_utc, utc_now


class TestToNaiveUtc:
    def test_naive_passthrough(self) -> None:
        ts = dt.datetime(2025, 6, 15, 10, 30)
        assert to_naive_utc(ts) is ts

    def test_aware_converted(self) -> None:
        ts = dt.datetime(2025, 6, 15, 10, 30, tzinfo=dt.timezone(dt.timedelta(hours=-5)))
        assert to_naive_utc(ts) == dt.datetime(2025, 6, 15, 15, 30)

    def test_utc_now_is_naive(self) -> None:
        assert utc_now().tzinfo is None


class TestDayBounds:
    def test_utc_default(self) -> None:
        start, end = day_bounds(dt.date(2025, 6, 15))
        assert start == dt.datetime(2025, 6, 15)
        assert end == dt.datetime(2025, 6, 16)

    def test_named_zone(self) -> None:
        start, end = day_bounds(dt.date(2025, 6, 15), "Europe/Berlin")
        assert start == dt.datetime(2025, 6, 14, 22)
        assert end == dt.datetime(2025, 6, 15, 22)

    def test_dst_day_is_23_hours(self) -> None:
        start, end = day_bounds(dt.date(2025, 3, 30), "Europe/Berlin")
        assert (end - start) == dt.timedelta(hours=23)

    def test_resolve_tz_none_is_utc(self) -> None:
        assert resolve_tz(None) is dt.timezone.utc
