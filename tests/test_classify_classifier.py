"""Tests for the staged rule-based classifier."""

from __future__ import annotations

import datetime as dt
import logging

import pytest

from tracktally.classify.classifier import Classifier, MatchStage, classify
from tracktally.core.logging import install_sanitizing_filter
from tracktally.core.types import ActivityInterval, AppMapping, Category, UnknownCategory
from tracktally.registry.snapshot import Registry, default_registry


def _activity(app_name: str, url: str | None = None) -> ActivityInterval:
    return ActivityInterval(
        id="a1",
        start=dt.datetime(2025, 6, 15, 10, 0),
        end=dt.datetime(2025, 6, 15, 10, 5),
        app_name=app_name,
        url=url,
    )


class TestStages:
    def test_exact(self, registry: Registry) -> None:
        result = Classifier(registry).resolve(_activity("Slack"))
        assert result.category_id == "communication"
        assert result.stage is MatchStage.APP_EXACT

    def test_case_insensitive(self, registry: Registry) -> None:
        result = Classifier(registry).resolve(_activity("SLACK"))
        assert result.category_id == "communication"
        assert result.stage is MatchStage.APP_CASE_INSENSITIVE

    def test_fuzzy_contains_alias(self, registry: Registry) -> None:
        result = Classifier(registry).resolve(_activity("Spotify Premium"))
        assert result.category_id == "entertainment"
        assert result.stage is MatchStage.APP_FUZZY
        assert result.matched_pattern == "spotify"

    def test_fuzzy_contained_in_alias(self, registry: Registry) -> None:
        result = Classifier(registry).resolve(_activity("Notio"))
        assert result.category_id == "productive"
        assert result.stage is MatchStage.APP_FUZZY

    def test_code_resolves_exactly_before_fuzzy(self, registry: Registry) -> None:
        result = Classifier(registry).resolve(_activity("Code"))
        assert result.category_id == "development"
        assert result.stage is MatchStage.APP_EXACT

    def test_code_fuzzy_matches_editor_alias_list(self) -> None:
        reg = Registry(
            [Category(id="development", name="Development", color="#3b82f6")],
            [AppMapping(category_id="development", patterns=["Visual Studio Code|VS Code"])],
        )
        result = Classifier(reg).resolve(_activity("Code"))
        assert result.category_id == "development"
        assert result.stage is MatchStage.APP_FUZZY
        assert result.matched_pattern == "visual studio code"

    def test_url_beats_app(self, registry: Registry) -> None:
        result = Classifier(registry).resolve(
            _activity("Google Chrome", url="https://www.youtube.com/watch?v=abc")
        )
        assert result.category_id == "entertainment"
        assert result.stage is MatchStage.URL
        assert result.matched_pattern == "youtube.com"

    def test_url_match_is_case_insensitive(self, registry: Registry) -> None:
        assert classify(_activity("Firefox", url="https://GitHub.com/org/repo"), registry) == "development"

    def test_url_contained_in_pattern(self) -> None:
        reg = Registry.build(
            [{"id": "docs", "name": "Docs", "color": "#000000"}],
            url_mappings=[{"category_id": "docs", "patterns": ["https://docs.example.com/guide"]}],
        )
        assert classify(_activity("Safari", url="docs.example.com"), reg) == "docs"

    def test_url_match_log_is_redacted(self, registry: Registry, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("tracktally.classify.classifier")
        filt = install_sanitizing_filter(logger)
        try:
            with caplog.at_level(logging.DEBUG, logger=logger.name):
                Classifier(registry).resolve(_activity("Firefox", url="https://github.com/acme/private-repo"))
            assert "URL match" in caplog.text
            assert "private-repo" not in caplog.text
            assert "url=[REDACTED]" in caplog.text
        finally:
            logger.removeFilter(filt)

    def test_unmatched_url_falls_through_to_app(self, registry: Registry) -> None:
        result = Classifier(registry).resolve(_activity("Slack", url="https://example.org"))
        assert result.stage is MatchStage.APP_EXACT

    def test_nothing_matches(self, registry: Registry) -> None:
        result = Classifier(registry).resolve(_activity("Blender"))
        assert result.category == UnknownCategory()
        assert result.stage is MatchStage.FALLBACK
        assert classify(_activity("Blender"), registry) == "unknown"

    @pytest.mark.parametrize("app_name", ["", "   "])
    def test_blank_app_name_is_unknown(self, registry: Registry, app_name: str) -> None:
        assert Classifier(registry).resolve(_activity(app_name)).stage is MatchStage.FALLBACK

    def test_default_registry_classifies_everything_unknown(self) -> None:
        assert classify(_activity("Code", url="https://github.com"), default_registry()) == "unknown"


class TestAmbiguity:
    @pytest.fixture()
    def overlapping(self) -> Registry:
        return Registry(
            [
                Category(id="development", name="Development", color="#3b82f6"),
                Category(id="productive", name="Productive", color="#10b981"),
            ],
            [
                AppMapping(category_id="development", patterns=["Code"]),
                AppMapping(category_id="productive", patterns=["QR Code Reader"]),
            ],
        )

    def test_first_registered_alias_wins(self, overlapping: Registry) -> None:
        result = Classifier(overlapping).resolve(_activity("QR Code Reader Pro"))
        assert result.category_id == "development"
        assert result.ambiguous_with == ("productive",)
        assert result.is_ambiguous

    def test_exact_match_is_never_ambiguous(self, overlapping: Registry) -> None:
        result = Classifier(overlapping).resolve(_activity("QR Code Reader"))
        assert result.category_id == "productive"
        assert not result.is_ambiguous

    def test_same_category_matches_are_not_ambiguous(self, registry: Registry) -> None:
        result = Classifier(registry).resolve(_activity("Visual Studio Code - Insiders"))
        assert result.category_id == "development"
        assert not result.is_ambiguous


class TestDeterminism:
    def test_repeated_calls_agree(self, registry: Registry) -> None:
        clf = Classifier(registry)
        activity = _activity("zoom.us meeting")
        assert {clf.classify(activity) for _ in range(10)} == {"communication"}

    def test_replaced_snapshot_changes_result(self, registry: Registry) -> None:
        edited = registry.with_app_pattern("productive", "Blender")
        assert classify(_activity("Blender"), registry) == "unknown"
        assert classify(_activity("Blender"), edited) == "productive"
