"""Tests for the ActivityWatch export adapter.

Covers:
- AW export JSON parsing (client.parse_aw_export)
- Event-to-interval conversion (timestamp + duration, ids, optional url)
- Classifying parsed intervals against a registry
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from tracktally.adapters.activitywatch.client import _raw_event_to_interval, parse_aw_export
from tracktally.classify.classifier import classify
from tracktally.registry.snapshot import Registry


def _export() -> dict:
    return {
        "buckets": {
            "aw-watcher-window_testhost": {
                "id": "aw-watcher-window_testhost",
                "type": "currentwindow",
                "client": "aw-watcher-window",
                "hostname": "testhost",
                "events": [
                    {"id": 12, "timestamp": "2026-02-23T10:01:00Z", "duration": 45.0,
                     "data": {"app": "Code", "title": "main.py"}},
                    {"id": 11, "timestamp": "2026-02-23T10:00:00+00:00", "duration": 30.0,
                     "data": {"app": "Firefox", "title": "GitHub", "url": "https://github.com/org"}},
                ],
            },
            "aw-watcher-afk_testhost": {
                "id": "aw-watcher-afk_testhost",
                "type": "afkstatus",
                "events": [
                    {"timestamp": "2026-02-23T10:00:00Z", "duration": 600.0, "data": {"status": "not-afk"}},
                ],
            },
        }
    }


@pytest.fixture()
def aw_export_file(tmp_path: Path) -> Path:
    f = tmp_path / "aw-export.json"
    f.write_text(json.dumps(_export()))
    return f


class TestParseAwExport:
    def test_only_window_buckets(self, aw_export_file: Path) -> None:
        intervals = parse_aw_export(aw_export_file)
        assert [iv.app_name for iv in intervals] == ["Firefox", "Code"]

    def test_end_is_timestamp_plus_duration(self, aw_export_file: Path) -> None:
        firefox, code = parse_aw_export(aw_export_file)
        assert firefox.start == datetime(2026, 2, 23, 10, 0)
        assert firefox.end == datetime(2026, 2, 23, 10, 0, 30)
        assert code.end == datetime(2026, 2, 23, 10, 1, 45)

    def test_url_and_title_carried(self, aw_export_file: Path) -> None:
        firefox, code = parse_aw_export(aw_export_file)
        assert firefox.url == "https://github.com/org"
        assert firefox.window_title == "GitHub"
        assert code.url is None

    def test_flat_bucket_mapping(self, tmp_path: Path) -> None:
        f = tmp_path / "flat.json"
        f.write_text(json.dumps(_export()["buckets"]))
        assert len(parse_aw_export(f)) == 2

    def test_not_an_object(self, tmp_path: Path) -> None:
        f = tmp_path / "bad.json"
        f.write_text("[]")
        with pytest.raises(ValueError, match="JSON object"):
            parse_aw_export(f)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            parse_aw_export(tmp_path / "nope.json")

    def test_parsed_intervals_classify(self, aw_export_file: Path, registry: Registry) -> None:
        assert [classify(iv, registry) for iv in parse_aw_export(aw_export_file)] == [
            "development",
            "development",
        ]


class TestRawEvent:
    def test_missing_id_uses_bucket_position(self) -> None:
        iv = _raw_event_to_interval(
            {"timestamp": "2026-02-23T10:00:00Z", "duration": 5, "data": {"app": "Slack"}},
            "bucket-x",
            3,
        )
        assert iv.id == "bucket-x:3"

    def test_negative_duration_clamped(self) -> None:
        iv = _raw_event_to_interval(
            {"timestamp": "2026-02-23T10:00:00Z", "duration": -5, "data": {"app": "Slack"}},
            "b",
            0,
        )
        assert iv.end == iv.start

    def test_missing_app_is_blank(self) -> None:
        iv = _raw_event_to_interval({"timestamp": "2026-02-23T10:00:00Z", "data": {}}, "b", 0)
        assert iv.app_name == ""
