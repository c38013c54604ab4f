"""Shared fixtures for the tracktally test suite."""

from __future__ import annotations

import datetime as dt
from typing import Any

import pytest

from tracktally.registry.snapshot import Registry


@pytest.fixture()
def sample_date() -> dt.date:
    return dt.date(2025, 6, 15)


@pytest.fixture()
def registry_data() -> dict[str, Any]:
    """Raw registry contents covering every classification stage."""
    return {
        "categories": [
            {"id": "development", "name": "Development", "color": "#3b82f6"},
            {"id": "productive", "name": "Productive", "color": "#10b981"},
            {"id": "communication", "name": "Communication", "color": "#f59e0b"},
            {"id": "social", "name": "Social", "color": "#ef4444"},
            {"id": "entertainment", "name": "Entertainment", "color": "#8b5cf6"},
            {"id": "unknown", "name": "Unknown", "color": "#6b7280"},
        ],
        "app_mappings": [
            {"category_id": "development", "patterns": ["Visual Studio Code|VS Code|Code", "Terminal"]},
            {"category_id": "communication", "patterns": ["Slack", "Zoom|zoom.us"]},
            {"category_id": "productive", "patterns": ["Notion"]},
            {"category_id": "entertainment", "patterns": ["Spotify"]},
        ],
        "url_mappings": [
            {"category_id": "development", "patterns": ["github.com", "stackoverflow.com"]},
            {"category_id": "social", "patterns": ["twitter.com", "reddit.com"]},
            {"category_id": "entertainment", "patterns": ["youtube.com"]},
        ],
    }


@pytest.fixture()
def registry(registry_data: dict[str, Any]) -> Registry:
    return Registry.build(
        registry_data["categories"],
        registry_data["app_mappings"],
        registry_data["url_mappings"],
    )
