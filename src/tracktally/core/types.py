"""Core data contracts: categories, mappings, activity intervals, and buckets."""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from datetime import datetime
from typing import Annotated, Any, Final, Literal, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, Field, TypeAdapter, field_validator, model_validator

from tracktally.core.defaults import ALIAS_DELIMITER, UNKNOWN_CATEGORY_ID
from tracktally.core.time import to_naive_utc

_HEX_COLOR_RE: Final[re.Pattern[str]] = re.compile(r"^#[0-9A-Fa-f]{6}$")
_CUSTOM_VARIANT_KEYS: Final[frozenset[str]] = frozenset({"Custom", "custom"})


def normalize_category_id(value: str) -> str:
    """Strip and lower-case a category id."""
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Category reference (tagged value)
# ---------------------------------------------------------------------------


class KnownCategory(BaseModel, frozen=True):
    """A classification result pointing at a registered category."""

    kind: Literal["known"] = "known"
    id: str = Field(min_length=1)

    @property
    def category_id(self) -> str:
        return self.id


class UnknownCategory(BaseModel, frozen=True):
    """The terminal "no mapping matched" classification result."""

    kind: Literal["unknown"] = "unknown"

    @property
    def category_id(self) -> str:
        return UNKNOWN_CATEGORY_ID


CategoryRef = Annotated[Union[KnownCategory, UnknownCategory], Field(discriminator="kind")]

_CATEGORY_REF_ADAPTER: Final[TypeAdapter[CategoryRef]] = TypeAdapter(CategoryRef)


def category_ref(category_id: str) -> KnownCategory | UnknownCategory:
    """Build a :data:`CategoryRef` for *category_id*.

    ``"unknown"`` (in any case) always yields :class:`UnknownCategory`.
    """
    key = normalize_category_id(category_id)
    if not key or key == UNKNOWN_CATEGORY_ID:
        return UnknownCategory()
    return KnownCategory(id=key)


def resolve_category_ref(
    raw: Any,
    name_to_id: Mapping[str, str] | None = None,
) -> KnownCategory | UnknownCategory:
    """Convert a raw category value from persistence into a :data:`CategoryRef`.

    Stored activity rows and mapping tables carry categories in several
    shapes: a plain id, a display name, a single-key object acting as an
    enum variant (``{"Development": ...}`` or ``{"Custom": "deep-work"}``),
    or an already-tagged ``{"kind": ...}`` dict.  This is the one place
    those shapes are inspected.

    Args:
        raw: The raw value.
        name_to_id: Optional lower-cased display name -> id table used to
            resolve names such as ``"Development"`` to their id.

    Returns:
        :class:`KnownCategory` or :class:`UnknownCategory`.

    Raises:
        ValueError: If *raw* has none of the recognised shapes.
    """
    if raw is None:
        return UnknownCategory()
    if isinstance(raw, (KnownCategory, UnknownCategory)):
        return raw
    if isinstance(raw, str):
        key = normalize_category_id(raw)
        if name_to_id and key in name_to_id:
            key = name_to_id[key]
        return category_ref(key)
    if isinstance(raw, Mapping):
        if "kind" in raw:
            return _CATEGORY_REF_ADAPTER.validate_python(dict(raw))
        if "id" in raw:
            return resolve_category_ref(str(raw["id"]), name_to_id)
        if len(raw) == 1:
            ((variant, payload),) = raw.items()
            if variant in _CUSTOM_VARIANT_KEYS and isinstance(payload, str):
                return resolve_category_ref(payload, name_to_id)
            return resolve_category_ref(str(variant), name_to_id)
    raise ValueError(f"Unrecognised category value {raw!r}")


# ---------------------------------------------------------------------------
# Categories and mappings
# ---------------------------------------------------------------------------


class Category(BaseModel, frozen=True):
    """A user-defined productivity grouping.

    ``id`` is normalised to lower case.  ``parent_id`` allows a single
    level of sub-categorisation; the registry checks that it refers to
    an existing top-level category.
    """

    id: str = Field(min_length=1, description="Unique, lower-cased category id.")
    name: str = Field(min_length=1, description="Display name.")
    color: str = Field(description="Hex color for display (#RRGGBB).")
    description: str = Field(default="", description="Human-readable description.")
    icon: str | None = Field(default=None, description="Icon name used by the UI.")
    parent_id: str | None = Field(default=None, description="Parent category id (one level only).")

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> Any:
        return normalize_category_id(value) if isinstance(value, str) else value

    @field_validator("parent_id", mode="before")
    @classmethod
    def _normalize_parent(cls, value: Any) -> Any:
        if isinstance(value, str):
            return normalize_category_id(value) or None
        return value

    @model_validator(mode="after")
    def _validate(self) -> Category:
        if not _HEX_COLOR_RE.match(self.color):
            raise ValueError(
                f"Invalid hex color {self.color!r} for category {self.id!r}; "
                f"expected format #RRGGBB"
            )
        if self.parent_id == self.id:
            raise ValueError(f"Category {self.id!r} cannot be its own parent")
        return self


def _category_id_before(value: Any) -> Any:
    if isinstance(value, str):
        return normalize_category_id(value)
    return resolve_category_ref(value).category_id


def _clean_patterns(value: Any) -> Any:
    if isinstance(value, str):
        value = [value]
    if isinstance(value, (list, tuple)):
        return [str(p).strip() for p in value if str(p).strip()]
    return value


CategoryIdStr = Annotated[str, BeforeValidator(_category_id_before)]
PatternList = Annotated[list[str], BeforeValidator(_clean_patterns)]


class AppMapping(BaseModel, frozen=True):
    """Application-name patterns assigned to one category.

    Each pattern may hold alternative names separated by ``|``
    (``"Visual Studio Code|VS Code"``); the first alternative is the
    canonical display name.
    """

    category_id: CategoryIdStr = Field(
        min_length=1,
        validation_alias=AliasChoices("category_id", "category"),
    )
    patterns: PatternList = Field(
        default_factory=list,
        validation_alias=AliasChoices("patterns", "apps"),
    )

    def aliases(self) -> Iterator[str]:
        """Yield every individual alias, in pattern order."""
        for pattern in self.patterns:
            for alias in pattern.split(ALIAS_DELIMITER):
                alias = alias.strip()
                if alias:
                    yield alias

    def display_names(self) -> list[str]:
        """Canonical (first-alternative) name of each pattern."""
        names: list[str] = []
        for pattern in self.patterns:
            head = pattern.split(ALIAS_DELIMITER, 1)[0].strip()
            if head:
                names.append(head)
        return names


class UrlMapping(BaseModel, frozen=True):
    """Domain, subdomain, or full-URL patterns assigned to one category."""

    category_id: CategoryIdStr = Field(
        min_length=1,
        validation_alias=AliasChoices("category_id", "category"),
    )
    patterns: PatternList = Field(
        default_factory=list,
        validation_alias=AliasChoices("patterns", "urls"),
    )


# ---------------------------------------------------------------------------
# Activity input
# ---------------------------------------------------------------------------


class ActivityInterval(BaseModel, frozen=True):
    """A contiguous span of time spent in one application / window / URL.

    ``end`` is ``None`` while the activity is still ongoing; consumers
    treat it as ending at "now" and must re-evaluate it on every call.

    ``end < start`` is accepted here so that one bad record never aborts
    a whole batch; aggregation excludes such intervals and counts them
    (see :attr:`is_malformed`).
    """

    id: str = Field(description="Stable identifier of the activity record.")
    start: datetime = Field(
        validation_alias=AliasChoices("start", "start_time"),
        description="Interval start (UTC, inclusive).",
    )
    end: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("end", "end_time"),
        description="Interval end (UTC, exclusive); None while ongoing.",
    )
    app_name: str = Field(description="Application name as captured.")
    url: str | None = Field(default=None, description="Browser URL, when known.")
    window_title: str = Field(default="", description="Window title, display only.")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return value if isinstance(value, str) else str(value)

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return to_naive_utc(value) if value is not None else None

    @field_validator("url", mode="before")
    @classmethod
    def _blank_url(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def ongoing(self) -> bool:
        return self.end is None

    @property
    def is_malformed(self) -> bool:
        """True when a closed interval ends before it starts."""
        return self.end is not None and self.end < self.start

    def effective_end(self, now: datetime) -> datetime:
        """End of the interval, with *now* standing in for an open end."""
        return self.end if self.end is not None else now

    def duration_seconds(self, now: datetime) -> float:
        """Non-negative length of the interval in seconds."""
        return max(0.0, (self.effective_end(now) - self.start).total_seconds())


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------


class TimeBucket(BaseModel, frozen=True):
    """A fixed ``[start, end)`` span used to aggregate overlapping intervals."""

    index: int = Field(ge=0, description="Hour of day, or slot offset within a window.")
    start: datetime = Field(description="Bucket start (naive UTC, inclusive).")
    end: datetime = Field(description="Bucket end (naive UTC, exclusive).")

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode="after")
    def _check_span(self) -> TimeBucket:
        if self.end <= self.start:
            raise ValueError(
                f"Bucket {self.index}: end ({self.end}) must be strictly "
                f"after start ({self.start})"
            )
        return self

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()
