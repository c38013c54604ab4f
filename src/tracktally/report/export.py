"""Report export utilities: JSON, CSV, and Parquet output."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

from tracktally.aggregate.summary import ActivitySummary, HourlyEntry

_SENSITIVE_KEYS = frozenset({
    "url",
    "window_title",
})

_SUMMARY_FIELDS = ["date", "start", "end", "kind", "label", "seconds", "minutes", "percentage"]
_HOURLY_FIELDS = ["hour", "start", "end", "activity_seconds", "minutes", "activities"]


def _check_no_sensitive_fields(data: Any) -> None:
    """Recursively check *data* for forbidden keys."""
    if isinstance(data, dict):
        for key, value in data.items():
            if key in _SENSITIVE_KEYS:
                raise ValueError(f"Sensitive field {key!r} must not appear in report output")
            _check_no_sensitive_fields(value)
    elif isinstance(data, list):
        for item in data:
            _check_no_sensitive_fields(item)


def _as_list(summaries: ActivitySummary | Sequence[ActivitySummary]) -> list[ActivitySummary]:
    if isinstance(summaries, ActivitySummary):
        return [summaries]
    return list(summaries)


def export_summary_json(
    summaries: ActivitySummary | Sequence[ActivitySummary],
    path: Path,
) -> Path:
    """Write one summary (as an object) or several (as a list) to JSON.

    Raises:
        ValueError: If the serialized output contains any key from
            the sensitive-fields blocklist.
    """
    items = [s.model_dump(mode="json", exclude_none=True) for s in _as_list(summaries)]
    data: Any = items[0] if isinstance(summaries, ActivitySummary) else items
    _check_no_sensitive_fields(data)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def _summary_to_rows(summaries: Sequence[ActivitySummary]) -> list[dict[str, object]]:
    """Flatten category and app breakdowns into tabular rows."""
    rows: list[dict[str, object]] = []
    for summary in summaries:
        base = {
            "date": summary.date or "",
            "start": summary.start.isoformat(),
            "end": summary.end.isoformat(),
        }
        for cat in summary.categories:
            rows.append({
                **base,
                "kind": "category",
                "label": cat.category_id,
                "seconds": round(cat.duration_seconds, 2),
                "minutes": round(cat.duration_seconds / 60, 2),
                "percentage": round(cat.percentage, 2),
            })
        for app in summary.top_apps:
            rows.append({
                **base,
                "kind": "app",
                "label": app.app_name,
                "seconds": round(app.duration_seconds, 2),
                "minutes": round(app.duration_seconds / 60, 2),
                "percentage": round(app.percentage, 2),
            })
    return rows


def export_summary_csv(
    summaries: ActivitySummary | Sequence[ActivitySummary],
    path: Path,
) -> Path:
    """Write summaries as a flat CSV with one row per category or app.

    Columns: ``date``, ``start``, ``end``, ``kind`` (``category`` or
    ``app``), ``label``, ``seconds``, ``minutes``, ``percentage``.
    """
    rows = _summary_to_rows(_as_list(summaries))
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_SUMMARY_FIELDS)
        writer.writeheader()
        writer.writerows(rows)
    return path


def export_summary_parquet(
    summaries: ActivitySummary | Sequence[ActivitySummary],
    path: Path,
) -> Path:
    """Write summaries as Parquet; schema matches :func:`export_summary_csv`."""
    rows = _summary_to_rows(_as_list(summaries))
    df = pd.DataFrame(rows, columns=_SUMMARY_FIELDS)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(path, engine="pyarrow", index=False)
    return path


def export_hourly_csv(entries: Sequence[HourlyEntry], path: Path) -> Path:
    """Write one row per hour: span, active seconds, and contributing interval count.

    Interval details (URLs, window titles) are not exported.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_HOURLY_FIELDS)
        writer.writeheader()
        for entry in entries:
            writer.writerow({
                "hour": entry.hour,
                "start": entry.start.isoformat(),
                "end": entry.end.isoformat(),
                "activity_seconds": round(entry.activity_seconds, 2),
                "minutes": round(entry.activity_seconds / 60, 2),
                "activities": len(entry.activities),
            })
    return path
