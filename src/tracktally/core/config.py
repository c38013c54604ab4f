"""User-level configuration persistence.

Stores per-install settings as a JSON file inside the data directory.
Missing keys fall back to the defaults in :mod:`tracktally.core.defaults`.

Typical location::

    data/config.json

Usage::

    from tracktally.core.config import TallyConfig

    cfg = TallyConfig(data_dir)
    cfg.registry_path          # data_dir / "registry.yaml" unless configured
    cfg.timezone = "Europe/Berlin"   # persists immediately
    cfg.as_dict()
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Final
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tracktally.core.defaults import (
    DEFAULT_DATA_DIR,
    DEFAULT_REGISTRY_FILE,
    DEFAULT_REGISTRY_LOAD_TIMEOUT_SECONDS,
    DEFAULT_TIMELINE_MINUTES,
    DEFAULT_TIMELINE_SLOT_MINUTES,
)

logger = logging.getLogger(__name__)

_CONFIG_FILENAME = "config.json"

_DEFAULTS: Final[dict[str, Any]] = {
    "registry_path": DEFAULT_REGISTRY_FILE,
    "timezone": None,
    "timeline_minutes": DEFAULT_TIMELINE_MINUTES,
    "timeline_slot_minutes": DEFAULT_TIMELINE_SLOT_MINUTES,
    "registry_load_timeout_seconds": DEFAULT_REGISTRY_LOAD_TIMEOUT_SECONDS,
}


def _positive_int(key: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer, got {value!r}") from None
    if number <= 0:
        raise ValueError(f"{key} must be > 0, got {number}")
    return number


def _coerce(key: str, value: Any) -> Any:
    """Validate and normalise a single known setting."""
    if key == "registry_path":
        value = str(value).strip()
        if not value:
            raise ValueError("registry_path must not be empty")
        return value
    if key == "timezone":
        if value is None or str(value).strip() == "":
            return None
        try:
            ZoneInfo(str(value))
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone {value!r}") from None
        return str(value)
    if key in ("timeline_minutes", "timeline_slot_minutes"):
        return _positive_int(key, value)
    if key == "registry_load_timeout_seconds":
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{key} must be a number, got {value!r}") from None
        if seconds <= 0:
            raise ValueError(f"{key} must be > 0, got {seconds}")
        return seconds
    return value


class TallyConfig:
    """Read/write access to ``config.json`` in a data directory.

    All mutations are persisted immediately.  The file is plain JSON so
    it can be hand-edited when the CLI is not available; unknown keys are
    preserved untouched.
    """

    def __init__(self, data_dir: Path | str = DEFAULT_DATA_DIR) -> None:
        self._data_dir = Path(data_dir)
        self._path = self._data_dir / _CONFIG_FILENAME
        self._data: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if self._path.exists():
            try:
                data = json.loads(self._path.read_text("utf-8"))
            except (json.JSONDecodeError, OSError):
                logger.warning("Corrupt config at %s; using defaults", self._path)
                return {}
            if isinstance(data, dict):
                return data
            logger.warning("Config at %s is not a JSON object; using defaults", self._path)
        return {}

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._data, indent=2) + "\n", "utf-8")

    def _get(self, key: str) -> Any:
        if key in self._data:
            try:
                return _coerce(key, self._data[key])
            except ValueError:
                logger.warning("Ignoring invalid %s in %s", key, self._path)
        return _DEFAULTS[key]

    # -- typed accessors -------------------------------------------------------

    @property
    def registry_path(self) -> Path:
        """Registry file; relative paths are taken relative to the data directory."""
        path = Path(self._get("registry_path"))
        return path if path.is_absolute() else self._data_dir / path

    @property
    def timezone(self) -> str | None:
        return self._get("timezone")

    @timezone.setter
    def timezone(self, value: str | None) -> None:
        self.update({"timezone": value})

    @property
    def timeline_minutes(self) -> int:
        return self._get("timeline_minutes")

    @property
    def timeline_slot_minutes(self) -> int:
        return self._get("timeline_slot_minutes")

    @property
    def registry_load_timeout_seconds(self) -> float:
        return self._get("registry_load_timeout_seconds")

    # -- generic helpers -------------------------------------------------------

    def as_dict(self) -> dict[str, Any]:
        resolved = {key: self._get(key) for key in _DEFAULTS}
        return {
            **resolved,
            **{k: v for k, v in self._data.items() if k not in _DEFAULTS},
        }

    def update(self, patch: dict[str, Any]) -> dict[str, Any]:
        """Validate and merge *patch* into the config, then persist.

        Known settings are validated before anything is written, so a
        bad value leaves the file untouched.

        Returns:
            The full resolved config.

        Raises:
            ValueError: If a known setting has an invalid value.
        """
        cleaned = {key: _coerce(key, val) for key, val in patch.items()}
        self._data.update(cleaned)
        self._persist()
        return self.as_dict()
