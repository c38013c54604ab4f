"""Centralised default constants for tracktally.

Every project-wide magic number / string lives here.
Import these instead of hard-coding values in function signatures or CLI options.
"""

from __future__ import annotations

from typing import Final

# ── Categories ──
UNKNOWN_CATEGORY_ID: Final[str] = "unknown"
UNKNOWN_CATEGORY_NAME: Final[str] = "Unknown"
UNKNOWN_CATEGORY_COLOR: Final[str] = "#6b7280"
ALIAS_DELIMITER: Final[str] = "|"

# (id, name, color, description, icon)
BUILTIN_CATEGORIES: Final[tuple[tuple[str, str, str, str, str], ...]] = (
    ("development", "Development", "#3b82f6", "Code editors, IDEs, and development tools", "code"),
    ("productive", "Productive", "#10b981", "Office applications and productivity tools", "briefcase"),
    ("communication", "Communication", "#f59e0b", "Email, messaging, and communication tools", "message-circle"),
    ("social", "Social", "#ef4444", "Social media and networking applications", "users"),
    ("entertainment", "Entertainment", "#8b5cf6", "Media players, games, and entertainment apps", "play"),
    (UNKNOWN_CATEGORY_ID, UNKNOWN_CATEGORY_NAME, UNKNOWN_CATEGORY_COLOR, "Uncategorized applications", "help-circle"),
)

# ── Registry loading ──
DEFAULT_REGISTRY_LOAD_TIMEOUT_SECONDS: Final[float] = 5.0

# ── Timing / buckets ──
HOURS_PER_DAY: Final[int] = 24
DEFAULT_TIMELINE_MINUTES: Final[int] = 30
DEFAULT_TIMELINE_SLOT_MINUTES: Final[int] = 5
TIMELINE_WINDOW_CHOICES: Final[tuple[int, ...]] = (30, 60, 120)

# ── Paths ──
DEFAULT_DATA_DIR: Final[str] = "data"
DEFAULT_OUT_DIR: Final[str] = "artifacts"
DEFAULT_REGISTRY_FILE: Final[str] = "registry.yaml"
