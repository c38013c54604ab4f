"""Activity I/O: read interval tables from JSON, CSV, or Parquet."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Final, Sequence

import pandas as pd
from pydantic import TypeAdapter, ValidationError

from tracktally.core.types import ActivityInterval

logger = logging.getLogger(__name__)

ACTIVITY_COLUMNS: Final[tuple[str, ...]] = ("id", "start", "end", "app_name", "url", "window_title")

_INTERVALS: Final = TypeAdapter(list[ActivityInterval])


def _records_from_frame(df: pd.DataFrame) -> list[dict[str, Any]]:
    # NaN/NaT -> None so optional columns validate as missing
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def read_activities(path: Path) -> list[ActivityInterval]:
    """Load activity intervals from *path*.

    Supported formats, chosen by suffix:

    * ``.json`` -- a list of interval objects, or ``{"activities": [...]}``.
    * ``.csv`` -- one row per interval, columns as in :data:`ACTIVITY_COLUMNS`
      (``start_time``/``end_time`` are accepted as well).
    * ``.parquet`` -- same columns as CSV.

    Args:
        path: File to read.

    Returns:
        Intervals sorted by start time.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the suffix is unsupported or a record is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Activity file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".json":
        raw = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            if "activities" not in raw:
                raise ValueError(f"Activity file {path} has no \"activities\" key")
            records = raw["activities"]
        else:
            records = raw
    elif suffix == ".csv":
        df = pd.read_csv(path, dtype={"id": str, "app_name": str, "url": str, "window_title": str})
        records = _records_from_frame(df)
    elif suffix == ".parquet":
        records = _records_from_frame(pd.read_parquet(path, engine="pyarrow"))
    else:
        raise ValueError(f"Unsupported activity file type {suffix!r} (expected .json, .csv or .parquet)")

    if not isinstance(records, list):
        raise ValueError(f"Activity file {path} must contain a list of intervals")

    for record in records:
        if isinstance(record, dict) and record.get("window_title") is None:
            record.pop("window_title", None)

    try:
        intervals = _INTERVALS.validate_python(records)
    except ValidationError as exc:
        raise ValueError(f"Invalid activity record in {path}: {exc}") from exc

    intervals.sort(key=lambda a: a.start)
    logger.info("Read %d activity intervals from %s", len(intervals), path)
    return intervals


def activities_to_frame(intervals: Sequence[ActivityInterval]) -> pd.DataFrame:
    """Tabulate *intervals* with the :data:`ACTIVITY_COLUMNS` schema."""
    rows = [a.model_dump(include=set(ACTIVITY_COLUMNS)) for a in intervals]
    return pd.DataFrame(rows, columns=list(ACTIVITY_COLUMNS))


def write_activities_parquet(intervals: Sequence[ActivityInterval], path: Path) -> Path:
    """Write *intervals* to a parquet file at *path* atomically.

    Writes to a temporary file in the same directory first, then
    replaces the target via :func:`os.replace`, so readers never see a
    partially-written file.

    Returns:
        The *path* that was written.
    """
    df = activities_to_frame(intervals)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".parquet.tmp")
    try:
        os.close(fd)
        df.to_parquet(tmp, engine="pyarrow", index=False)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise
    return path
