"""Tests for activity I/O: JSON, CSV, and Parquet readers plus the atomic parquet writer."""

from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

import pandas as pd
import pytest

from tracktally.core.store import read_activities, write_activities_parquet
from tracktally.core.types import ActivityInterval


def _intervals() -> list[ActivityInterval]:
    return [
        ActivityInterval(
            id="2",
            start=dt.datetime(2025, 6, 15, 11),
            end=None,
            app_name="Slack",
        ),
        ActivityInterval(
            id="1",
            start=dt.datetime(2025, 6, 15, 10),
            end=dt.datetime(2025, 6, 15, 10, 30),
            app_name="Firefox",
            url="https://github.com",
            window_title="PR review",
        ),
    ]


class TestReadJson:
    def test_list_of_records(self, tmp_path: Path) -> None:
        path = tmp_path / "a.json"
        path.write_text(json.dumps([
            {"id": 7, "start_time": "2025-06-15T10:00:00Z", "end_time": "2025-06-15T10:05:00Z", "app_name": "Code"},
        ]))
        (iv,) = read_activities(path)
        assert iv.id == "7"
        assert iv.end == dt.datetime(2025, 6, 15, 10, 5)

    def test_wrapped_records_sorted(self, tmp_path: Path) -> None:
        path = tmp_path / "a.json"
        path.write_text(json.dumps({"activities": [
            {"id": "b", "start": "2025-06-15T11:00:00", "app_name": "Slack"},
            {"id": "a", "start": "2025-06-15T10:00:00", "end": "2025-06-15T10:01:00", "app_name": "Code"},
        ]}))
        assert [iv.id for iv in read_activities(path)] == ["a", "b"]

    def test_invalid_record(self, tmp_path: Path) -> None:
        path = tmp_path / "a.json"
        path.write_text(json.dumps([{"id": "x", "app_name": "Code"}]))
        with pytest.raises(ValueError, match="Invalid activity record"):
            read_activities(path)

    def test_object_without_activities_key(self, tmp_path: Path) -> None:
        path = tmp_path / "aw.json"
        path.write_text(json.dumps({"buckets": {}}))
        with pytest.raises(ValueError, match="no \"activities\" key"):
            read_activities(path)


class TestReadCsv:
    def test_blank_cells_become_missing(self, tmp_path: Path) -> None:
        path = tmp_path / "a.csv"
        path.write_text(
            "id,start,end,app_name,url,window_title\n"
            "1,2025-06-15T10:00:00,2025-06-15T10:30:00,Firefox,https://github.com,PR\n"
            "2,2025-06-15T11:00:00,,Slack,,\n"
        )
        first, second = read_activities(path)
        assert first.url == "https://github.com"
        assert second.end is None
        assert second.url is None
        assert second.window_title == ""


class TestParquet:
    def test_round_trip(self, tmp_path: Path) -> None:
        path = write_activities_parquet(_intervals(), tmp_path / "out" / "activities.parquet")
        loaded = read_activities(path)
        assert [iv.id for iv in loaded] == ["1", "2"]
        assert loaded[0].window_title == "PR review"
        assert loaded[1].ongoing

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        write_activities_parquet(_intervals(), tmp_path / "activities.parquet")
        assert [p.name for p in tmp_path.iterdir()] == ["activities.parquet"]

    def test_columns(self, tmp_path: Path) -> None:
        path = write_activities_parquet(_intervals(), tmp_path / "activities.parquet")
        df = pd.read_parquet(path)
        assert list(df.columns) == ["id", "start", "end", "app_name", "url", "window_title"]


class TestErrors:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            read_activities(tmp_path / "none.json")

    def test_unsupported_suffix(self, tmp_path: Path) -> None:
        path = tmp_path / "a.txt"
        path.write_text("")
        with pytest.raises(ValueError, match="Unsupported"):
            read_activities(path)
