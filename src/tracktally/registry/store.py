"""Registry file I/O: YAML or JSON documents holding categories and mappings.

File layout (YAML shown; JSON uses the same keys)::

    categories:
      - {id: development, name: Development, color: "#3b82f6"}
    app_mappings:
      - category_id: development
        patterns: ["Visual Studio Code|VS Code|Code", "Terminal"]
    url_mappings:
      - category_id: development
        patterns: [github.com, stackoverflow.com]
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Final

import yaml
from pydantic import ValidationError

from tracktally.core.defaults import BUILTIN_CATEGORIES
from tracktally.core.types import AppMapping, Category, UrlMapping
from tracktally.registry.snapshot import Registry, RegistryLoadError, RegistryPayload

logger = logging.getLogger(__name__)

_YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})

_EXAMPLE_APPS: Final[dict[str, list[str]]] = {
    "development": [
        "Visual Studio Code|VS Code|Code",
        "Cursor",
        "Xcode",
        "IntelliJ IDEA|idea",
        "PyCharm",
        "Terminal",
        "iTerm2|iTerm",
        "Alacritty",
        "kitty",
        "Ghostty",
    ],
    "productive": ["Notion", "Obsidian", "Notes", "Linear", "Figma", "Preview"],
    "communication": ["Slack", "Discord", "Microsoft Teams|Teams", "Zoom|zoom.us", "Mail", "Thunderbird", "Outlook"],
    "entertainment": ["Spotify", "VLC", "Music"],
}

_EXAMPLE_URLS: Final[dict[str, list[str]]] = {
    "development": ["github.com", "gitlab.com", "stackoverflow.com", "docs.python.org", "developer.mozilla.org"],
    "productive": ["docs.google.com", "notion.so", "linear.app", "figma.com", "trello.com"],
    "communication": ["mail.google.com", "slack.com", "teams.microsoft.com", "web.whatsapp.com"],
    "social": ["twitter.com", "x.com", "facebook.com", "instagram.com", "linkedin.com", "reddit.com"],
    "entertainment": ["youtube.com", "netflix.com", "twitch.tv"],
}


def _is_yaml(path: Path) -> bool:
    return path.suffix.lower() in _YAML_SUFFIXES


def load_registry_payload(path: Path) -> RegistryPayload:
    """Read and validate a registry document.

    Args:
        path: A ``.yaml``/``.yml`` or ``.json`` file.

    Returns:
        Validated :class:`RegistryPayload`.

    Raises:
        RegistryLoadError: If the file is missing, unparsable, or fails
            validation.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RegistryLoadError(f"Cannot read registry file {path}: {exc}") from exc

    try:
        raw: Any = yaml.safe_load(text) if _is_yaml(path) else json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise RegistryLoadError(f"Cannot parse registry file {path}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise RegistryLoadError(f"Registry file {path} must contain a mapping at top level")

    try:
        return RegistryPayload.model_validate(raw)
    except ValidationError as exc:
        raise RegistryLoadError(f"Invalid registry file {path}: {exc}") from exc


def load_registry_file(path: Path) -> Registry:
    """Read *path* and build a strict :class:`Registry` snapshot.

    Raises:
        RegistryLoadError: On any read, parse, or validation failure.
    """
    payload = load_registry_payload(path)
    registry = Registry.build(payload.categories, payload.app_mappings, payload.url_mappings)
    logger.info(
        "Loaded registry from %s: %d categories, %d app aliases, %d url patterns",
        path, len(registry), len(registry.aliases), len(registry.url_patterns),
    )
    return registry


def save_registry_file(registry: Registry, path: Path) -> Path:
    """Serialize *registry* to YAML or JSON depending on *path*'s suffix.

    Returns:
        The *path* that was written.
    """
    data = registry.to_payload().model_dump(mode="json", exclude_none=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    if _is_yaml(path):
        path.write_text(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


def example_registry() -> Registry:
    """Built-in categories plus a starter set of common app and URL mappings.

    Used by ``tracktally registry init`` as a starting point for user
    customisation.
    """
    categories = [
        Category(id=cid, name=name, color=color, description=desc, icon=icon)
        for cid, name, color, desc, icon in BUILTIN_CATEGORIES
    ]
    apps = [AppMapping(category_id=cid, patterns=pats) for cid, pats in _EXAMPLE_APPS.items()]
    urls = [UrlMapping(category_id=cid, patterns=pats) for cid, pats in _EXAMPLE_URLS.items()]
    return Registry(categories, apps, urls)
