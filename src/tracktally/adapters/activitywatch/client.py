"""ActivityWatch JSON export parsing.

:func:`parse_aw_export` reads an AW JSON export (the format produced by
*Export all buckets as JSON* in the AW web UI or ``GET /api/0/export``)
and turns window-watcher events into :class:`ActivityInterval` records.
Browser-watcher buckets are not merged; a window event only carries a
URL when the watcher recorded one in its ``data``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from tracktally.core.time import to_naive_utc
from tracktally.core.types import ActivityInterval

logger = logging.getLogger(__name__)

_CURRENTWINDOW_TYPE = "currentwindow"


def _parse_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp from AW into a naive-UTC datetime."""
    return to_naive_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))


def _raw_event_to_interval(raw: dict[str, Any], bucket_id: str, position: int) -> ActivityInterval:
    data = raw.get("data", {})
    start = _parse_timestamp(raw["timestamp"])
    duration = float(raw.get("duration", 0))
    event_id = raw.get("id")
    return ActivityInterval(
        id=str(event_id) if event_id is not None else f"{bucket_id}:{position}",
        start=start,
        end=start + timedelta(seconds=max(duration, 0.0)),
        app_name=data.get("app", "") or "",
        url=data.get("url"),
        window_title=data.get("title", "") or "",
    )


def parse_aw_export(path: Path) -> list[ActivityInterval]:
    """Parse an ActivityWatch JSON export file into activity intervals.

    Only buckets of type ``currentwindow`` (``aw-watcher-window`` data)
    are read.  Each event's end is ``timestamp + duration``.

    Args:
        path: Path to the AW export JSON file.

    Returns:
        Intervals sorted by start time.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not valid JSON or has no bucket mapping.
        KeyError: If an event is missing its ``timestamp``.
    """
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"ActivityWatch export {path} must be a JSON object")

    buckets: dict[str, Any] = raw.get("buckets", raw)

    intervals: list[ActivityInterval] = []
    for bucket_id, bucket in buckets.items():
        if not isinstance(bucket, dict):
            continue
        bucket_type = bucket.get("type", "")
        if bucket_type != _CURRENTWINDOW_TYPE:
            logger.debug("Skipping bucket %s (type=%s)", bucket_id, bucket_type)
            continue

        events = bucket.get("events", [])
        logger.info("Processing bucket %s (%d events)", bucket_id, len(events))
        for position, raw_event in enumerate(events):
            intervals.append(_raw_event_to_interval(raw_event, bucket_id, position))

    intervals.sort(key=lambda a: a.start)
    return intervals
