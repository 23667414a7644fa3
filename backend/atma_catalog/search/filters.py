"""
Filter parser: raw query-string values -> validated FilterSet.

Malformed input never fails the request. A value that does not parse drops
its filter, and paired keys (dateStart/dateEnd, guestMin/guestMax,
priceMin/priceMax, lat/lng) are dropped together when either side is bad.
Unknown keys are ignored.
"""

from datetime import date
from typing import Dict, FrozenSet, Mapping, Optional, Tuple
import logging
import math

from atma_catalog.core.config import settings
from atma_catalog.core.security import PUBLIC_VIEWER, ViewerContext
from atma_catalog.search.countries import CONTINENTS
from atma_catalog.search.geo import DEFAULT_RADIUS_MILES, MAX_RADIUS_MILES
from atma_catalog.search.models import (
    CategorySet,
    DateRange,
    EntityKind,
    FilterSet,
    FilterValue,
    Flag,
    GeoRadius,
    NumericRange,
    TextTerm,
)

logger = logging.getLogger(__name__)

CATEGORY_DELIMITER = ","

# Integer columns are 32-bit on every supported store
MAX_FILTER_INT = 2 ** 31 - 1

# Category vocabularies (lowercase tokens)
OFFERING_CATEGORIES: FrozenSet[str] = frozenset({
    "adventure", "ayurveda", "breathwork", "detox", "fitness", "healing",
    "meditation", "mindfulness", "nutrition", "sound", "spa", "yoga",
})
PROPERTY_TYPES: FrozenSet[str] = frozenset({
    "boutique", "eco_lodge", "hotel", "lodge", "resort", "retreat_center",
    "spa", "villa",
})
STATUSES: FrozenSet[str] = frozenset({"published", "draft", "archived"})

CATEGORY_VOCABULARY: Dict[EntityKind, FrozenSet[str]] = {
    EntityKind.RETREAT: OFFERING_CATEGORIES,
    EntityKind.PROGRAM: OFFERING_CATEGORIES,
    EntityKind.PROPERTY: PROPERTY_TYPES,
}

TRUTHY = frozenset({"1", "true", "yes", "on"})


# ---------------------------------------------------------------------------
# Single-value parsers. Each returns None instead of raising.
# ---------------------------------------------------------------------------

def _clean(raw) -> Optional[str]:
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    return value or None


def parse_date(raw) -> Optional[date]:
    value = _clean(raw)
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_int(raw, minimum: int = 0, maximum: int = MAX_FILTER_INT) -> Optional[int]:
    """Integers outside [minimum, maximum] are malformed."""
    value = _clean(raw)
    if value is None:
        return None
    try:
        number = int(value)
    except ValueError:
        return None
    return number if minimum <= number <= maximum else None


def parse_float(raw, minimum: float, maximum: float) -> Optional[float]:
    value = _clean(raw)
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if not math.isfinite(number) or not minimum <= number <= maximum:
        return None
    return number


def parse_category_set(raw, vocabulary: FrozenSet[str]) -> Optional[CategorySet]:
    """Split on commas, keep known tokens. Nothing known -> no filter."""
    value = _clean(raw)
    if value is None:
        return None
    tokens = {t.strip().lower() for t in value.split(CATEGORY_DELIMITER)}
    known = frozenset(t for t in tokens if t in vocabulary)
    if not known:
        return None
    return CategorySet(known)


def parse_text(raw, min_length: int) -> Optional[TextTerm]:
    value = _clean(raw)
    if value is None or len(value) < min_length:
        return None
    return TextTerm(value)


def parse_flag(raw) -> Optional[Flag]:
    value = _clean(raw)
    if value is None or value.lower() not in TRUTHY:
        return None
    return Flag(True)


def parse_date_range(raw_start, raw_end) -> Optional[DateRange]:
    start, end = parse_date(raw_start), parse_date(raw_end)
    if start is None or end is None or start > end:
        return None
    return DateRange(start, end)


def parse_numeric_range(raw_low, raw_high, minimum: int = 0) -> Optional[NumericRange]:
    low, high = parse_int(raw_low, minimum), parse_int(raw_high, minimum)
    if low is None or high is None or low > high:
        return None
    return NumericRange(low, high)


def parse_radius(raw_lat, raw_lng, raw_miles) -> Optional[GeoRadius]:
    """
    Both coordinates are required. A missing or unusable radius falls back to
    the default; radii past half the globe are clamped.
    """
    lat = parse_float(raw_lat, -90.0, 90.0)
    lng = parse_float(raw_lng, -180.0, 180.0)
    if lat is None or lng is None:
        return None
    miles = parse_float(raw_miles, 0.0, math.inf)
    if not miles:
        miles = DEFAULT_RADIUS_MILES
    return GeoRadius(lat, lng, min(miles, MAX_RADIUS_MILES))


# ---------------------------------------------------------------------------
# FilterSet construction
# ---------------------------------------------------------------------------

def _range_pairs(kind: EntityKind) -> Dict[str, Tuple[str, str, int]]:
    """Logical range filters accepted for a kind: name -> (low key, high key, minimum)."""
    pairs = {"price": ("priceMin", "priceMax", 0)}
    if kind.has_instances:
        pairs["guests"] = ("guestMin", "guestMax", 1)
    return pairs


def parse_filters(
    params: Mapping[str, str],
    kind: EntityKind,
    viewer: ViewerContext = PUBLIC_VIEWER,
) -> FilterSet:
    """
    Normalize raw parameters into a FilterSet for `kind`.

    Recognized keys: category, continent, text, verified, priceMin/priceMax,
    lat/lng/radiusMiles, and for retreats/programs dateStart/dateEnd and
    guestMin/guestMax. `status` is honored for admins only.
    """
    filters: Dict[str, FilterValue] = {}

    def put(name: str, value: Optional[FilterValue]) -> None:
        if value is not None:
            filters[name] = value

    put("category", parse_category_set(params.get("category"), CATEGORY_VOCABULARY[kind]))
    put("continent", parse_category_set(params.get("continent"), CONTINENTS))
    put("text", parse_text(params.get("text"), settings.min_text_length))
    put("verified", parse_flag(params.get("verified")))
    put("near", parse_radius(params.get("lat"), params.get("lng"), params.get("radiusMiles")))

    for name, (low_key, high_key, minimum) in _range_pairs(kind).items():
        put(name, parse_numeric_range(params.get(low_key), params.get(high_key), minimum))

    if kind.has_instances:
        put("dates", parse_date_range(params.get("dateStart"), params.get("dateEnd")))

    if viewer.is_admin:
        put("status", parse_category_set(params.get("status"), STATUSES))

    if filters:
        logger.debug(f"Parsed {kind.value} filters: {sorted(filters)}")
    return FilterSet(filters)
