"""Immutable category registry snapshots.

A :class:`Registry` holds the category list plus the app-name and URL
mapping tables, and precomputes the alias lookup tables the classifier
needs.  It is never mutated: every edit (``with_*`` / ``without_*``)
returns a new snapshot, so an aggregation pass that holds a reference is
unaffected by concurrent edits.

Typical flow::

    registry = load(categories, app_mappings, url_mappings)
    registry.lookup_by_id("development")
    edited = registry.with_app_pattern("development", "Zed")
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any, Final

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from tracktally.core.defaults import (
    ALIAS_DELIMITER,
    BUILTIN_CATEGORIES,
    UNKNOWN_CATEGORY_COLOR,
    UNKNOWN_CATEGORY_ID,
    UNKNOWN_CATEGORY_NAME,
)
from tracktally.core.types import AppMapping, Category, UrlMapping, normalize_category_id

logger = logging.getLogger(__name__)

BUILTIN_UNKNOWN: Final[Category] = Category(
    id=UNKNOWN_CATEGORY_ID,
    name=UNKNOWN_CATEGORY_NAME,
    color=UNKNOWN_CATEGORY_COLOR,
    description="Uncategorized application",
    icon="help-circle",
)


class RegistryError(ValueError):
    """A registry snapshot would violate one of its invariants."""


class RegistryLoadError(RegistryError):
    """Registry data could not be fetched, parsed, or validated."""


class RegistryPayload(BaseModel):
    """Raw registry contents as exchanged with files and sources.

    Accepts the persistence layer's shapes: ``mappings`` is an alias of
    ``app_mappings`` and each mapping may use ``category`` / ``apps`` /
    ``urls`` keys (see :class:`~tracktally.core.types.AppMapping`).
    """

    categories: list[Category] = Field(default_factory=list)
    app_mappings: list[AppMapping] = Field(
        default_factory=list,
        validation_alias=AliasChoices("app_mappings", "mappings"),
    )
    url_mappings: list[UrlMapping] = Field(default_factory=list)


def _check_invariants(categories: Sequence[Category]) -> dict[str, Category]:
    by_id: dict[str, Category] = {}
    for cat in categories:
        if cat.id in by_id:
            raise RegistryError(f"Duplicate category id {cat.id!r}")
        by_id[cat.id] = cat

    for cat in categories:
        if cat.parent_id is None:
            continue
        parent = by_id.get(cat.parent_id)
        if parent is None:
            raise RegistryError(
                f"Category {cat.id!r} refers to unknown parent {cat.parent_id!r}"
            )
        if parent.parent_id is not None:
            raise RegistryError(
                f"Category {cat.id!r} is nested under {parent.id!r}, which is "
                f"itself a sub-category; only one level of nesting is allowed"
            )
    return by_id


class Registry:
    """Read-only snapshot of categories and mapping tables.

    Construction validates the category invariants (unique ids, parents
    exist and are top-level) and raises :class:`RegistryError` when they
    do not hold.  Mapping entries that point at an unregistered category
    are resolved by display name where possible and otherwise dropped
    with a warning.

    Lookup tables, built once here:

    * exact alias -> category id (first registration wins)
    * lower-cased alias -> category id (first registration wins)
    * every alias in insertion order, for substring matching
    * every URL pattern in insertion order
    """

    def __init__(
        self,
        categories: Iterable[Category],
        app_mappings: Iterable[AppMapping] = (),
        url_mappings: Iterable[UrlMapping] = (),
    ) -> None:
        self._categories: tuple[Category, ...] = tuple(categories)
        self._by_id = _check_invariants(self._categories)
        self._name_to_id: dict[str, str] = {}
        for cat in self._categories:
            self._name_to_id.setdefault(cat.name.strip().lower(), cat.id)

        self._app_mappings: tuple[AppMapping, ...] = tuple(
            m for m in (self._attach(m, "app") for m in app_mappings) if m is not None
        )
        self._url_mappings: tuple[UrlMapping, ...] = tuple(
            m for m in (self._attach(m, "url") for m in url_mappings) if m is not None
        )

        self._exact: dict[str, str] = {}
        self._lower: dict[str, str] = {}
        aliases: list[tuple[str, str]] = []
        for mapping in self._app_mappings:
            for alias in mapping.aliases():
                lowered = alias.lower()
                self._exact.setdefault(alias, mapping.category_id)
                self._lower.setdefault(lowered, mapping.category_id)
                aliases.append((lowered, mapping.category_id))
        self._aliases: tuple[tuple[str, str], ...] = tuple(aliases)

        self._url_patterns: tuple[tuple[str, str], ...] = tuple(
            (pattern.lower(), mapping.category_id)
            for mapping in self._url_mappings
            for pattern in mapping.patterns
        )

    def _attach(self, mapping: Any, kind: str) -> Any:
        """Resolve *mapping*'s category against this registry, or drop it."""
        cid = mapping.category_id
        if cid in self._by_id:
            return mapping
        if cid in self._name_to_id:
            return mapping.model_copy(update={"category_id": self._name_to_id[cid]})
        logger.warning(
            "Dropping %s mapping for unregistered category %r (%d patterns)",
            kind, cid, len(mapping.patterns),
        )
        return None

    # -- construction ----------------------------------------------------------

    @classmethod
    def build(
        cls,
        categories: Iterable[Any],
        app_mappings: Iterable[Any] = (),
        url_mappings: Iterable[Any] = (),
    ) -> Registry:
        """Validate raw dicts (or models) and build a snapshot.

        Raises:
            RegistryLoadError: If any entry fails validation or the
                categories break a registry invariant.
        """
        try:
            payload = RegistryPayload.model_validate({
                "categories": list(categories),
                "app_mappings": list(app_mappings),
                "url_mappings": list(url_mappings),
            })
            return cls.from_payload(payload)
        except (ValidationError, TypeError) as exc:
            raise RegistryLoadError(f"Malformed registry data: {exc}") from exc
        except RegistryLoadError:
            raise
        except RegistryError as exc:
            raise RegistryLoadError(str(exc)) from exc

    @classmethod
    def from_payload(cls, payload: RegistryPayload) -> Registry:
        return cls(payload.categories, payload.app_mappings, payload.url_mappings)

    def to_payload(self) -> RegistryPayload:
        return RegistryPayload(
            categories=list(self._categories),
            app_mappings=list(self._app_mappings),
            url_mappings=list(self._url_mappings),
        )

    # -- lookups ---------------------------------------------------------------

    def categories(self) -> list[Category]:
        """Categories in registration order."""
        return list(self._categories)

    def lookup_by_id(self, category_id: str) -> Category | None:
        return self._by_id.get(normalize_category_id(category_id))

    def unknown_category(self) -> Category:
        """The registered ``unknown`` category, or the built-in one."""
        return self._by_id.get(UNKNOWN_CATEGORY_ID, BUILTIN_UNKNOWN)

    def color_for(self, category_id: str) -> str:
        cat = self.lookup_by_id(category_id)
        return cat.color if cat is not None else UNKNOWN_CATEGORY_COLOR

    def name_for(self, category_id: str) -> str:
        cat = self.lookup_by_id(category_id)
        return cat.name if cat is not None else UNKNOWN_CATEGORY_NAME

    def children_of(self, category_id: str) -> list[Category]:
        key = normalize_category_id(category_id)
        return [c for c in self._categories if c.parent_id == key]

    @property
    def name_to_id(self) -> dict[str, str]:
        """Lower-cased display name -> category id."""
        return dict(self._name_to_id)

    @property
    def app_mappings(self) -> tuple[AppMapping, ...]:
        return self._app_mappings

    @property
    def url_mappings(self) -> tuple[UrlMapping, ...]:
        return self._url_mappings

    @property
    def exact_aliases(self) -> dict[str, str]:
        return self._exact

    @property
    def lower_aliases(self) -> dict[str, str]:
        return self._lower

    @property
    def aliases(self) -> tuple[tuple[str, str], ...]:
        """``(lower-cased alias, category id)`` pairs in insertion order."""
        return self._aliases

    @property
    def url_patterns(self) -> tuple[tuple[str, str], ...]:
        """``(lower-cased pattern, category id)`` pairs in insertion order."""
        return self._url_patterns

    def __len__(self) -> int:
        return len(self._categories)

    def __repr__(self) -> str:
        return (
            f"Registry(categories={len(self._categories)}, "
            f"app_aliases={len(self._aliases)}, url_patterns={len(self._url_patterns)})"
        )

    # -- snapshot edits --------------------------------------------------------

    def _require(self, category_id: str) -> str:
        key = normalize_category_id(category_id)
        if key not in self._by_id:
            raise RegistryError(f"Unknown category {category_id!r}")
        return key

    def with_category(self, category: Category) -> Registry:
        """Return a snapshot with *category* added, or replaced if its id exists."""
        if category.id in self._by_id:
            cats = [category if c.id == category.id else c for c in self._categories]
        else:
            cats = [*self._categories, category]
        return Registry(cats, self._app_mappings, self._url_mappings)

    def without_category(self, category_id: str) -> Registry:
        """Return a snapshot without *category_id* and without its mappings.

        Raises:
            RegistryError: If the category is unknown or still has
                sub-categories.
        """
        key = self._require(category_id)
        children = self.children_of(key)
        if children:
            raise RegistryError(
                f"Category {key!r} still has sub-categories: "
                f"{[c.id for c in children]}"
            )
        return Registry(
            [c for c in self._categories if c.id != key],
            [m for m in self._app_mappings if m.category_id != key],
            [m for m in self._url_mappings if m.category_id != key],
        )

    def with_app_pattern(self, category_id: str, pattern: str) -> Registry:
        """Return a snapshot with *pattern* appended to *category_id*'s app mapping."""
        key = self._require(category_id)
        mappings = _append_pattern(self._app_mappings, AppMapping, key, pattern)
        return Registry(self._categories, mappings, self._url_mappings)

    def without_app_pattern(self, category_id: str, pattern: str) -> Registry:
        key = self._require(category_id)
        mappings = _remove_pattern(self._app_mappings, key, pattern)
        return Registry(self._categories, mappings, self._url_mappings)

    def with_url_pattern(self, category_id: str, pattern: str) -> Registry:
        """Return a snapshot with *pattern* appended to *category_id*'s URL mapping.

        Uniqueness of URL patterns across categories is the mapping
        editor's job and is not checked here.
        """
        key = self._require(category_id)
        mappings = _append_pattern(self._url_mappings, UrlMapping, key, pattern)
        return Registry(self._categories, self._app_mappings, mappings)

    def without_url_pattern(self, category_id: str, pattern: str) -> Registry:
        key = self._require(category_id)
        mappings = _remove_pattern(self._url_mappings, key, pattern)
        return Registry(self._categories, self._app_mappings, mappings)


def _append_pattern(mappings: Sequence[Any], model: type, category_id: str, pattern: str) -> list[Any]:
    pattern = pattern.strip()
    if not pattern or not pattern.replace(ALIAS_DELIMITER, "").strip():
        raise RegistryError("Pattern must not be empty")
    out = list(mappings)
    for i, mapping in enumerate(out):
        if mapping.category_id == category_id:
            if pattern not in mapping.patterns:
                out[i] = mapping.model_copy(update={"patterns": [*mapping.patterns, pattern]})
            return out
    out.append(model(category_id=category_id, patterns=[pattern]))
    return out


def _remove_pattern(mappings: Sequence[Any], category_id: str, pattern: str) -> list[Any]:
    pattern = pattern.strip()
    out: list[Any] = []
    for mapping in mappings:
        if mapping.category_id == category_id and pattern in mapping.patterns:
            remaining = [p for p in mapping.patterns if p != pattern]
            if not remaining:
                continue
            mapping = mapping.model_copy(update={"patterns": remaining})
        out.append(mapping)
    return out


def default_registry() -> Registry:
    """The built-in fallback: six fixed categories and empty mapping tables."""
    return Registry([
        Category(id=cid, name=name, color=color, description=desc, icon=icon)
        for cid, name, color, desc, icon in BUILTIN_CATEGORIES
    ])


def load(
    categories: Iterable[Any],
    app_mappings: Iterable[Any] = (),
    url_mappings: Iterable[Any] = (),
) -> Registry:
    """Build a registry from raw data, degrading to :func:`default_registry`.

    Never raises: malformed input is logged and replaced by the built-in
    default so downstream code never has to special-case "no registry".
    """
    try:
        return Registry.build(categories, app_mappings, url_mappings)
    except RegistryLoadError as exc:
        logger.warning("Registry load failed (%s); using built-in default registry", exc)
        return default_registry()
