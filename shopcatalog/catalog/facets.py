"""Search facets and the predicate tree they compile to.

A product search takes any combination of optional facets. Parsing is
lenient: a value of the wrong shape is dropped as if it had not been
supplied. Compilation turns the parsed facets, together with the ids
resolved from lookups (categories, tags, colour options), into a typed
predicate tree.

The tree has two parts. The store part is handed to the repository,
which interprets it as SQL. The post part only holds bounds on the
effective price and is evaluated in memory once prices are resolved.
"""

import calendar
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Union

import structlog

logger = structlog.get_logger()


# ============================================================================
# Orders and status classes
# ============================================================================


class SortOrder(str, Enum):
    """Requested result ordering."""

    NEWEST = "newest"
    DATE_ADDED_DESC = "date-added-desc"
    DATE_UPDATED_ASC = "date-updated-asc"
    DATE_UPDATED_DESC = "date-updated-desc"
    TOP_RATED = "toprated"
    POPULAR = "popular"
    LOWEST = "lowest"
    HIGHEST = "highest"
    DEFAULT = "default"

    @classmethod
    def parse(cls, value: str | None) -> "SortOrder":
        """Parse an order value; absent means newest, unknown means default."""
        if not value:
            return cls.NEWEST
        try:
            return cls(value)
        except ValueError:
            return cls.DEFAULT

    @property
    def price_ranked(self) -> bool:
        """Whether this order ranks by resolved effective price."""
        return self in (SortOrder.LOWEST, SortOrder.HIGHEST)


class StatusClass(str, Enum):
    """Coarse product state used as a single facet."""

    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"
    SELLING = "selling"
    OUT_OF_STOCK = "out-of-stock"

    @classmethod
    def parse(cls, value: str | None) -> "StatusClass | None":
        """Parse a status class, accepting the ``status-`` prefixed spellings."""
        if not value:
            return None
        normalized = value.strip().lower()
        if normalized.startswith("status-"):
            normalized = normalized[len("status-"):]
        try:
            return cls(normalized)
        except ValueError:
            logger.debug("Ignoring unknown status facet", value=value)
            return None


# ============================================================================
# Raw value coercion
# ============================================================================


def parse_number(value: Any, facet: str) -> Decimal | None:
    """Parse a numeric facet; malformed values are treated as absent."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.debug("Ignoring malformed numeric facet", facet=facet, value=value)
        return None
    if not number.is_finite():
        logger.debug("Ignoring non-finite numeric facet", facet=facet, value=value)
        return None
    return number


def parse_date(value: Any, facet: str) -> date | None:
    """Parse a date facet from an ISO date or datetime string."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except ValueError:
        logger.debug("Ignoring malformed date facet", facet=facet, value=value)
        return None


def parse_list(value: Any) -> list[str]:
    """Parse a list facet given as a list or a comma-separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    else:
        items = value
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def parse_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class SearchFacets:
    """Parsed search facets. Every field is optional.

    Attributes:
        name: Free text matched against title, descriptions and raw name.
        category: A single category id.
        categories: Explicit category ids.
        brands: Brand names, matched case-insensitively.
        colors: Colour option names.
        tag: Tag slug.
        vendor: Vendor id, exact match.
        user: Owner id, exact match.
        featured: Floor on the numeric featured flag.
        promotional: Floor on the numeric promotional flag.
        min_price: Lower price bound.
        max_price: Upper price bound.
        rating: Floor on rating.
        start_date: First creation day, inclusive.
        end_date: Last creation day, inclusive.
        status: Status class.
        locale: Locale used for localized text matching.
    """

    name: str | None = None
    category: str | None = None
    categories: list[str] = field(default_factory=list)
    brands: list[str] = field(default_factory=list)
    colors: list[str] = field(default_factory=list)
    tag: str | None = None
    vendor: str | None = None
    user: str | None = None
    featured: Decimal | None = None
    promotional: Decimal | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    rating: Decimal | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: StatusClass | None = None
    locale: str = "en"

    @classmethod
    def from_raw(
        cls,
        *,
        name: Any = None,
        category: Any = None,
        categories: Any = None,
        brands: Any = None,
        colors: Any = None,
        tag: Any = None,
        vendor: Any = None,
        user: Any = None,
        featured: Any = None,
        promotional: Any = None,
        min: Any = None,
        max: Any = None,
        rating: Any = None,
        start_date: Any = None,
        end_date: Any = None,
        status: Any = None,
        locale: str = "en",
    ) -> "SearchFacets":
        """Build facets from untrusted raw values.

        Never raises on bad input: each malformed value is dropped.
        """
        return cls(
            name=parse_text(name),
            category=parse_text(category),
            categories=parse_list(categories),
            brands=parse_list(brands),
            colors=parse_list(colors),
            tag=parse_text(tag),
            vendor=parse_text(vendor),
            user=parse_text(user),
            featured=parse_number(featured, "featured"),
            promotional=parse_number(promotional, "promotional"),
            min_price=parse_number(min, "min"),
            max_price=parse_number(max, "max"),
            rating=parse_number(rating, "rating"),
            start_date=parse_date(start_date, "start_date"),
            end_date=parse_date(end_date, "end_date"),
            status=StatusClass.parse(parse_text(status)),
            locale=parse_text(locale) or "en",
        )


@dataclass
class ResolvedFacets:
    """Ids resolved from store lookups before compilation.

    Attributes:
        category_ids: Result of looking up the ``category`` facet.
        text_category_ids: Categories whose name matches the text facet.
        tag_ids: Result of looking up the ``tag`` slug.
        text_tag_ids: Tags whose name matches the text facet.
        color_options: Attribute id -> option ids matching requested colours.
    """

    category_ids: list[str] = field(default_factory=list)
    text_category_ids: list[str] = field(default_factory=list)
    tag_ids: list[str] = field(default_factory=list)
    text_tag_ids: list[str] = field(default_factory=list)
    color_options: dict[str, list[str]] = field(default_factory=dict)


# ============================================================================
# Predicate tree
# ============================================================================


@dataclass(frozen=True)
class Everything:
    """Matches every product."""


@dataclass(frozen=True)
class Nothing:
    """Matches no product."""


@dataclass(frozen=True)
class AllOf:
    parts: tuple["Predicate", ...]


@dataclass(frozen=True)
class AnyOf:
    parts: tuple["Predicate", ...]


@dataclass(frozen=True)
class TextMatch:
    """Case-insensitive substring in localized text fields or the raw name."""

    text: str
    locale: str


@dataclass(frozen=True)
class FieldEquals:
    field: str
    value: Any


@dataclass(frozen=True)
class FieldCompare:
    """``field <op> value`` with op one of ``>=``, ``<=``, ``>``, ``<``."""

    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class FieldContains:
    """Case-insensitive substring of a text field, or of one locale of it."""

    field: str
    text: str
    locale: str | None = None


@dataclass(frozen=True)
class BrandIn:
    brands: tuple[str, ...]


@dataclass(frozen=True)
class InCategories:
    category_ids: tuple[str, ...]


@dataclass(frozen=True)
class HasTags:
    tag_ids: tuple[str, ...]


@dataclass(frozen=True)
class VariantSelects:
    """Some variant fragment selects one of the options on its axis."""

    options: tuple[tuple[str, tuple[str, ...]], ...]


@dataclass(frozen=True)
class VariantFieldAbove:
    """Some variant fragment holds a number in ``field`` above ``value``."""

    field: str
    value: Any


@dataclass(frozen=True)
class CreatedBetween:
    start: datetime | None
    end: datetime | None


@dataclass(frozen=True)
class EffectivePriceBetween:
    """Bounds on the resolved effective price; evaluated after resolution."""

    low: Decimal | None
    high: Decimal | None


Predicate = Union[
    Everything,
    Nothing,
    AllOf,
    AnyOf,
    TextMatch,
    FieldEquals,
    FieldCompare,
    FieldContains,
    BrandIn,
    InCategories,
    HasTags,
    VariantSelects,
    VariantFieldAbove,
    CreatedBetween,
    EffectivePriceBetween,
]

COMPARISONS = (">=", "<=", ">", "<")


def all_of(*parts: Predicate) -> Predicate:
    """Conjunction with the trivial cases folded away."""
    kept: list[Predicate] = []
    for part in parts:
        if isinstance(part, Nothing):
            return Nothing()
        if isinstance(part, Everything):
            continue
        if isinstance(part, AllOf):
            kept.extend(part.parts)
        else:
            kept.append(part)
    if not kept:
        return Everything()
    if len(kept) == 1:
        return kept[0]
    return AllOf(tuple(kept))


@dataclass(frozen=True)
class CompiledQuery:
    """A compiled search predicate.

    Attributes:
        store: Evaluated by the store before any price is resolved.
        post: Evaluated in memory against the resolved effective price.
    """

    store: Predicate
    post: Predicate = Everything()

    @property
    def matches_nothing(self) -> bool:
        return isinstance(self.store, Nothing) or isinstance(self.post, Nothing)


# ============================================================================
# Compilation
# ============================================================================


def day_bounds(
    start: date | None, end: date | None, tz: tzinfo = timezone.utc
) -> tuple[datetime | None, datetime | None]:
    """Inclusive creation-time bounds: start of the first day, end of the last."""
    low = datetime.combine(start, time.min, tzinfo=tz) if start else None
    high = datetime.combine(end, time(23, 59, 59, 999000), tzinfo=tz) if end else None
    return low, high


def _category_predicate(facets: SearchFacets, resolved: ResolvedFacets) -> Predicate:
    ids = _union(resolved.category_ids, resolved.text_category_ids, facets.categories)
    if ids:
        return InCategories(ids)
    if facets.category or facets.categories:
        # a category was asked for and none resolved
        return Nothing()
    return Everything()


def _tag_predicate(facets: SearchFacets, resolved: ResolvedFacets) -> Predicate:
    ids = _union(resolved.tag_ids, resolved.text_tag_ids)
    if ids:
        return HasTags(ids)
    if facets.tag:
        return Nothing()
    return Everything()


def _color_predicate(facets: SearchFacets, resolved: ResolvedFacets) -> Predicate:
    if not facets.colors:
        return Everything()
    options = tuple(
        (attribute_id, tuple(option_ids))
        for attribute_id, option_ids in resolved.color_options.items()
        if option_ids
    )
    if not options:
        return Nothing()
    return VariantSelects(options)


def _status_predicate(status: StatusClass | None) -> Predicate:
    if status is StatusClass.PUBLISHED:
        return FieldEquals("status", "show")
    if status is StatusClass.UNPUBLISHED:
        return FieldEquals("status", "hide")
    if status is StatusClass.SELLING:
        return FieldCompare("current_stock", ">", 0)
    if status is StatusClass.OUT_OF_STOCK:
        return FieldCompare("current_stock", "<", 1)
    return Everything()


def _price_bounds(facets: SearchFacets) -> tuple[Decimal | None, Decimal | None]:
    # zero means "no bound"
    low = facets.min_price if facets.min_price else None
    high = facets.max_price if facets.max_price and facets.max_price > 0 else None
    return low, high


def _union(*groups: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return tuple(seen)


def compile_facets(
    facets: SearchFacets,
    resolved: ResolvedFacets | None = None,
    price_ranked: bool = False,
    tz: tzinfo = timezone.utc,
) -> CompiledQuery:
    """Compile facets into a predicate tree.

    Present facets are ANDed, set-valued facets are ORed within. Absent
    facets add no constraint. A set facet that was supplied but resolved
    to no ids compiles to ``Nothing`` rather than being ignored.

    Args:
        facets: Parsed facets.
        resolved: Ids resolved from lookups.
        price_ranked: Whether price bounds apply to the effective price.
        tz: Timezone of the creation-date day bounds.

    Returns:
        Compiled query with store and post parts.
    """
    resolved = resolved or ResolvedFacets()
    parts: list[Predicate] = []

    if facets.vendor:
        parts.append(FieldEquals("vendor", facets.vendor))
    if facets.name:
        parts.append(TextMatch(facets.name, facets.locale))
    if facets.featured:
        parts.append(FieldCompare("featured", ">=", facets.featured))
    if facets.promotional:
        parts.append(FieldCompare("promotional", ">=", facets.promotional))

    low, high = _price_bounds(facets)
    post: Predicate = Everything()
    if low is not None or high is not None:
        if price_ranked:
            post = EffectivePriceBetween(low, high)
        else:
            if low is not None:
                parts.append(FieldCompare("original_price", ">=", low))
            if high is not None:
                parts.append(FieldCompare("original_price", "<=", high))

    if facets.rating:
        parts.append(FieldCompare("rating", ">=", facets.rating))

    parts.append(_category_predicate(facets, resolved))

    if facets.brands:
        parts.append(BrandIn(tuple(b.lower() for b in facets.brands)))

    parts.append(_color_predicate(facets, resolved))
    parts.append(_tag_predicate(facets, resolved))

    if facets.user:
        parts.append(FieldEquals("user_id", facets.user))

    if facets.start_date or facets.end_date:
        start, end = day_bounds(facets.start_date, facets.end_date, tz)
        parts.append(CreatedBetween(start, end))

    parts.append(_status_predicate(facets.status))

    return CompiledQuery(store=all_of(*parts), post=post)


# ============================================================================
# Storefront views
# ============================================================================


SHOWING: Predicate = FieldEquals("status", "show")


def month_bounds(today: date, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
    """Start of the first day and end of the last day of ``today``'s month."""
    first = today.replace(day=1)
    last = first.replace(day=calendar.monthrange(first.year, first.month)[1])
    low, high = day_bounds(first, last, tz)
    return low, high


def best_sellers_view(today: date, tz: tzinfo = timezone.utc) -> Predicate:
    """Products that sold and were updated during the current month."""
    start, end = month_bounds(today, tz)
    return all_of(
        FieldCompare("updated_at", ">=", start),
        FieldCompare("updated_at", "<=", end),
        FieldCompare("sales_count", ">", 0),
    )


def discounted_view() -> Predicate:
    """Visible products carrying a discount.

    Simple products are discounted through their own price triple,
    combination products through any of their variant fragments.
    """
    return all_of(
        SHOWING,
        AnyOf(
            (
                all_of(
                    FieldEquals("is_combination", True),
                    VariantFieldAbove("discount", 0),
                ),
                all_of(
                    FieldEquals("is_combination", False),
                    FieldCompare("discount", ">", 0),
                ),
            )
        ),
    )


def store_view(
    category: str | None = None,
    title: str | None = None,
    slug: str | None = None,
    locales: Iterable[str] = ("en",),
) -> Predicate:
    """Visible products narrowed by category, title and slug.

    The title matches in any of ``locales``; the slug is a substring match.
    """
    parts: list[Predicate] = [SHOWING]
    if category:
        parts.append(InCategories((category,)))
    if title:
        parts.append(AnyOf(tuple(FieldContains("title", title, locale) for locale in locales)))
    if slug:
        parts.append(FieldContains("slug", slug))
    return all_of(*parts)


# ============================================================================
# In-memory evaluation of the post part
# ============================================================================


def matches_price(predicate: Predicate, price: Decimal) -> bool:
    """Evaluate a post predicate against a resolved effective price.

    Raises:
        TypeError: If the predicate holds a node that needs the store.
    """
    if isinstance(predicate, Everything):
        return True
    if isinstance(predicate, Nothing):
        return False
    if isinstance(predicate, AllOf):
        return all(matches_price(part, price) for part in predicate.parts)
    if isinstance(predicate, AnyOf):
        return any(matches_price(part, price) for part in predicate.parts)
    if isinstance(predicate, EffectivePriceBetween):
        if predicate.low is not None and price < predicate.low:
            return False
        if predicate.high is not None and price > predicate.high:
            return False
        return True
    raise TypeError(f"{type(predicate).__name__} cannot be evaluated on a price")
