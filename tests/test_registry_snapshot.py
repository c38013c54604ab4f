"""Tests for the immutable registry snapshot: invariants, lookup tables, edits, degradation."""

from __future__ import annotations

from typing import Any

import pytest

from tracktally.core.types import AppMapping, Category
from tracktally.registry.snapshot import (
    Registry,
    RegistryError,
    RegistryLoadError,
    default_registry,
    load,
)


def _cat(cid: str, parent: str | None = None) -> Category:
    return Category(id=cid, name=cid.title(), color="#123456", parent_id=parent)


class TestInvariants:
    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(RegistryError, match="Duplicate"):
            Registry([_cat("work"), _cat("Work")])

    def test_missing_parent_rejected(self) -> None:
        with pytest.raises(RegistryError, match="unknown parent"):
            Registry([_cat("coding", parent="work")])

    def test_two_level_nesting_rejected(self) -> None:
        with pytest.raises(RegistryError, match="one level"):
            Registry([_cat("work"), _cat("coding", parent="work"), _cat("python", parent="coding")])

    def test_single_level_nesting_allowed(self) -> None:
        reg = Registry([_cat("work"), _cat("coding", parent="work")])
        assert [c.id for c in reg.children_of("work")] == ["coding"]


class TestLookupTables:
    def test_exact_and_lower_tables(self, registry: Registry) -> None:
        assert registry.exact_aliases["VS Code"] == "development"
        assert registry.lower_aliases["vs code"] == "development"
        assert "vs code" not in registry.exact_aliases

    def test_aliases_keep_insertion_order(self, registry: Registry) -> None:
        assert [a for a, _ in registry.aliases][:4] == ["visual studio code", "vs code", "code", "terminal"]

    def test_url_patterns_lowercased(self) -> None:
        reg = Registry.build(
            [{"id": "dev", "name": "Dev", "color": "#000000"}],
            url_mappings=[{"category_id": "dev", "patterns": ["GitHub.com"]}],
        )
        assert reg.url_patterns == (("github.com", "dev"),)

    def test_first_registration_wins(self) -> None:
        reg = Registry(
            [_cat("a"), _cat("b")],
            [AppMapping(category_id="a", patterns=["Code"]), AppMapping(category_id="b", patterns=["code"])],
        )
        assert reg.exact_aliases["Code"] == "a"
        assert reg.exact_aliases["code"] == "b"
        assert reg.lower_aliases["code"] == "a"

    def test_mapping_by_display_name(self) -> None:
        reg = Registry.build(
            [{"id": "deep-work", "name": "Deep Work", "color": "#000000"}],
            [{"category": "Deep Work", "apps": ["Obsidian"]}],
        )
        assert reg.exact_aliases["Obsidian"] == "deep-work"

    def test_mapping_for_unregistered_category_dropped(self, caplog: pytest.LogCaptureFixture) -> None:
        reg = Registry.build(
            [{"id": "dev", "name": "Dev", "color": "#000000"}],
            [{"category_id": "ghost", "patterns": ["Phantom"]}],
        )
        assert reg.app_mappings == ()
        assert "unregistered category 'ghost'" in caplog.text

    def test_color_and_name_fall_back_to_unknown(self, registry: Registry) -> None:
        assert registry.color_for("development") == "#3b82f6"
        assert registry.color_for("nope") == "#6b7280"
        assert registry.name_for("nope") == "Unknown"


class TestBuild:
    def test_validation_error_wrapped(self) -> None:
        with pytest.raises(RegistryLoadError, match="Malformed"):
            Registry.build([{"id": "x", "name": "X", "color": "red"}])

    def test_invariant_error_wrapped(self) -> None:
        with pytest.raises(RegistryLoadError, match="Duplicate"):
            Registry.build([
                {"id": "x", "name": "X", "color": "#000000"},
                {"id": "x", "name": "Y", "color": "#000000"},
            ])

    def test_payload_round_trip(self, registry: Registry) -> None:
        rebuilt = Registry.from_payload(registry.to_payload())
        assert rebuilt.aliases == registry.aliases
        assert rebuilt.url_patterns == registry.url_patterns


class TestDegradation:
    def test_load_never_raises(self, caplog: pytest.LogCaptureFixture) -> None:
        reg = load([{"id": "x"}])
        assert [c.id for c in reg.categories()] == [c.id for c in default_registry().categories()]
        assert "using built-in default" in caplog.text

    def test_default_registry_has_unknown(self) -> None:
        reg = default_registry()
        unknown = reg.unknown_category()
        assert unknown.id == "unknown"
        assert unknown.name == "Unknown"
        assert unknown.color == "#6b7280"
        assert reg.aliases == ()

    def test_unknown_category_without_registered_unknown(self) -> None:
        assert Registry([_cat("work")]).unknown_category().color == "#6b7280"


class TestEdits:
    def test_with_app_pattern_does_not_mutate(self, registry: Registry) -> None:
        edited = registry.with_app_pattern("productive", "Obsidian")
        assert "Obsidian" in edited.exact_aliases
        assert "Obsidian" not in registry.exact_aliases

    def test_with_app_pattern_creates_mapping(self) -> None:
        reg = Registry([_cat("work")]).with_app_pattern("work", "Excel|xl")
        assert reg.lower_aliases == {"excel": "work", "xl": "work"}

    def test_without_app_pattern(self, registry: Registry) -> None:
        edited = registry.without_app_pattern("development", "Terminal")
        assert "Terminal" not in edited.exact_aliases
        assert "Code" in edited.exact_aliases

    def test_url_pattern_edits(self, registry: Registry) -> None:
        edited = registry.with_url_pattern("social", "mastodon.social")
        assert ("mastodon.social", "social") in edited.url_patterns
        assert ("mastodon.social", "social") not in edited.without_url_pattern("social", "mastodon.social").url_patterns

    def test_empty_pattern_rejected(self, registry: Registry) -> None:
        with pytest.raises(RegistryError, match="empty"):
            registry.with_app_pattern("development", " | ")

    def test_unknown_category_rejected(self, registry: Registry) -> None:
        with pytest.raises(RegistryError, match="Unknown category"):
            registry.with_url_pattern("ghost", "ghost.io")

    def test_without_category_drops_mappings(self, registry: Registry) -> None:
        edited = registry.without_category("entertainment")
        assert edited.lookup_by_id("entertainment") is None
        assert all(cid != "entertainment" for _, cid in edited.aliases)
        assert all(cid != "entertainment" for _, cid in edited.url_patterns)

    def test_without_category_refuses_with_children(self) -> None:
        reg = Registry([_cat("work"), _cat("coding", parent="work")])
        with pytest.raises(RegistryError, match="sub-categories"):
            reg.without_category("work")

    def test_with_category_replaces_in_place(self, registry: Registry) -> None:
        updated = registry.with_category(Category(id="social", name="Social", color="#000000"))
        assert updated.color_for("social") == "#000000"
        assert [c.id for c in updated.categories()] == [c.id for c in registry.categories()]


def test_registry_data_fixture_is_valid(registry_data: dict[str, Any]) -> None:
    reg = Registry.build(**registry_data)
    assert len(reg) == 6
