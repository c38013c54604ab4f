"""Rule-based activity classification against a registry snapshot.

Matching runs in strict priority order and stops at the first hit:

1. **URL** -- case-insensitive substring match in either direction
   between the activity URL and each URL pattern, so a domain pattern
   such as ``"github.com"`` covers every path under it.
2. **App exact** -- case-sensitive alias lookup.
3. **App case-insensitive** -- lower-cased alias lookup.
4. **App fuzzy** -- the first alias (registry insertion order) that
   contains, or is contained in, the lower-cased app name.  Tolerates
   version suffixes and localized names without explicit aliases.
5. **Fallback** -- ``"unknown"``.

Exact stages run before the fuzzy one so that ``"Code"`` resolves via
its own alias before substring collisions with names such as
``"QR Code Reader"`` are considered.

Classification is a pure function of ``(activity, registry)``.
"""

from __future__ import annotations

import logging
from enum import StrEnum

from pydantic import BaseModel, Field

from tracktally.core.types import (
    ActivityInterval,
    CategoryRef,
    UnknownCategory,
    category_ref,
)
from tracktally.registry.snapshot import Registry

logger = logging.getLogger(__name__)


class MatchStage(StrEnum):
    """Which rule produced a classification."""

    URL = "url"
    APP_EXACT = "app_exact"
    APP_CASE_INSENSITIVE = "app_case_insensitive"
    APP_FUZZY = "app_fuzzy"
    FALLBACK = "fallback"


class Classification(BaseModel, frozen=True):
    """Outcome of classifying one activity.

    ``ambiguous_with`` is only populated by the fuzzy stage: it lists
    the ids of *other* categories whose aliases also matched.  The
    first-registered alias still wins; callers decide whether to surface
    the ambiguity.
    """

    category: CategoryRef
    stage: MatchStage
    matched_pattern: str | None = Field(default=None, description="Alias or URL pattern that matched.")
    ambiguous_with: tuple[str, ...] = Field(default=(), description="Other category ids a fuzzy match could have chosen.")

    @property
    def category_id(self) -> str:
        return self.category.category_id

    @property
    def is_ambiguous(self) -> bool:
        return bool(self.ambiguous_with)


_FALLBACK = Classification(category=UnknownCategory(), stage=MatchStage.FALLBACK)


class Classifier:
    """Classifies activities against one immutable registry snapshot.

    Args:
        registry: The snapshot to match against.  Build a new classifier
            (or call :func:`classify`) to pick up a replaced snapshot.
    """

    def __init__(self, registry: Registry) -> None:
        self._registry = registry

    @property
    def registry(self) -> Registry:
        return self._registry

    def classify(self, activity: ActivityInterval) -> str:
        """Return the category id for *activity* (``"unknown"`` when nothing matches)."""
        return self.resolve(activity).category_id

    def resolve(self, activity: ActivityInterval) -> Classification:
        """Classify *activity* and report which rule decided it."""
        if activity.url:
            hit = self._match_url(activity.url)
            if hit is not None:
                return hit
        return self.resolve_app(activity.app_name)

    def resolve_app(self, app_name: str) -> Classification:
        """Run the app-name stages (2-5) for a bare application name."""
        if not app_name or not app_name.strip():
            return _FALLBACK

        reg = self._registry

        cid = reg.exact_aliases.get(app_name)
        if cid is not None:
            return Classification(
                category=category_ref(cid), stage=MatchStage.APP_EXACT, matched_pattern=app_name,
            )

        lowered = app_name.lower()
        cid = reg.lower_aliases.get(lowered)
        if cid is not None:
            return Classification(
                category=category_ref(cid),
                stage=MatchStage.APP_CASE_INSENSITIVE,
                matched_pattern=lowered,
            )

        return self._match_fuzzy(lowered)

    def _match_url(self, url: str) -> Classification | None:
        needle = url.strip().lower()
        if not needle:
            return None
        for pattern, cid in self._registry.url_patterns:
            if pattern in needle or needle in pattern:
                logger.debug("URL match url=%s pattern=%r category=%s", url, pattern, cid)
                return Classification(
                    category=category_ref(cid), stage=MatchStage.URL, matched_pattern=pattern,
                )
        return None

    def _match_fuzzy(self, lowered: str) -> Classification:
        winner: tuple[str, str] | None = None
        others: list[str] = []
        for alias, cid in self._registry.aliases:
            if alias not in lowered and lowered not in alias:
                continue
            if winner is None:
                winner = (alias, cid)
            elif cid != winner[1] and cid not in others:
                others.append(cid)

        if winner is None:
            return _FALLBACK

        if others:
            logger.debug(
                "Ambiguous fuzzy match for app %r: chose %s via %r, also matched %s",
                lowered, winner[1], winner[0], others,
            )
        return Classification(
            category=category_ref(winner[1]),
            stage=MatchStage.APP_FUZZY,
            matched_pattern=winner[0],
            ambiguous_with=tuple(others),
        )


def classify(activity: ActivityInterval, registry: Registry) -> str:
    """Return the category id for *activity* under *registry*."""
    return Classifier(registry).classify(activity)
