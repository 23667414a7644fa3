"""
Query builder: FilterSet -> store-neutral predicate tree.

The tree only names logical fields and relations ("category",
"property.country", "instances", "price_mods"); a store backend decides how
to evaluate them (see atma_catalog.db.repositories for the SQL one).

Node variants:
  RangeFilter   field within [low, high]; a None bound is open
  SetFilter     field equals any of values (case-insensitive for strings)
  TextFilter    term is a case-insensitive substring of any of fields
  NullCheck     field is (or is not) null
  Exists        at least one related row satisfies `where`
  WithinRadius  (lat, lng) fields lie within `miles` of an origin
  AllOf/AnyOf   conjunction / disjunction of children
  Not           negation of one child
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, FrozenSet, Optional, Tuple, Union
import logging

from atma_catalog.core.security import PUBLIC_VIEWER, ViewerContext
from atma_catalog.search.countries import country_codes_for
from atma_catalog.search.models import (
    CategorySet,
    DateRange,
    EntityKind,
    FilterSet,
    GeoRadius,
    NumericRange,
    TextTerm,
)

logger = logging.getLogger(__name__)

UNLIMITED_GUESTS = -1
PRICE_TYPE = "BASE_PRICE"
PRICE_UNIT = "FIXED"


@dataclass(frozen=True)
class RangeFilter:
    field: str
    low: Any = None
    high: Any = None


@dataclass(frozen=True)
class SetFilter:
    field: str
    values: FrozenSet[Any]


@dataclass(frozen=True)
class TextFilter:
    fields: Tuple[str, ...]
    term: str


@dataclass(frozen=True)
class NullCheck:
    field: str
    is_null: bool = True


@dataclass(frozen=True)
class Exists:
    relation: str
    where: "Predicate"


@dataclass(frozen=True)
class WithinRadius:
    lat_field: str
    lng_field: str
    lat: float
    lng: float
    miles: float


@dataclass(frozen=True)
class AllOf:
    children: Tuple["Predicate", ...] = ()


@dataclass(frozen=True)
class AnyOf:
    children: Tuple["Predicate", ...] = ()


@dataclass(frozen=True)
class Not:
    child: "Predicate"


Predicate = Union[RangeFilter, SetFilter, TextFilter, NullCheck, Exists, WithinRadius, AllOf, AnyOf, Not]

MATCH_ALL = AllOf(())


@dataclass(frozen=True)
class QueryPlan:
    """
    Predicates for one listing query. `count_where` carries the same filter
    semantics as `where`; paging is applied separately.
    """
    kind: EntityKind
    where: Predicate = MATCH_ALL
    count_where: Predicate = MATCH_ALL
    today: date = field(default_factory=date.today)
    guests: Optional[NumericRange] = None
    near: Optional[GeoRadius] = None


# Logical field names per kind
TEXT_FIELDS = {
    EntityKind.RETREAT: ("name", "desc", "category"),
    EntityKind.PROGRAM: ("name", "desc", "category"),
    EntityKind.PROPERTY: ("name", "desc_short", "city"),
}
CATEGORY_FIELD = {
    EntityKind.RETREAT: "category",
    EntityKind.PROGRAM: "category",
    EntityKind.PROPERTY: "type",
}
COUNTRY_FIELD = {
    EntityKind.RETREAT: "property.country",
    EntityKind.PROGRAM: "property.country",
    EntityKind.PROPERTY: "country",
}
LOCATION_FIELDS = {
    EntityKind.RETREAT: ("property.lat", "property.lng"),
    EntityKind.PROGRAM: ("property.lat", "property.lng"),
    EntityKind.PROPERTY: ("lat", "lng"),
}


# ---------------------------------------------------------------------------
# Reusable fragments
# ---------------------------------------------------------------------------

def _unbounded_or(field_name: str, bound: RangeFilter) -> AnyOf:
    return AnyOf((NullCheck(field_name, is_null=True), bound))


def active_price_predicate(
    today: date,
    guests: Optional[NumericRange] = None,
    value_range: Optional[NumericRange] = None,
) -> AllOf:
    """
    A price modifier row that is a fixed base price, in effect on `today`,
    and (when a guest range is requested) eligible for that group size.
    """
    parts = [
        SetFilter("type", frozenset({PRICE_TYPE})),
        SetFilter("unit", frozenset({PRICE_UNIT})),
        _unbounded_or("date_start", RangeFilter("date_start", high=today)),
        _unbounded_or("date_end", RangeFilter("date_end", low=today)),
    ]
    if guests is not None:
        parts.append(_unbounded_or("guest_min", RangeFilter("guest_min", high=guests.high)))
        parts.append(_unbounded_or("guest_max", RangeFilter("guest_max", low=guests.low)))
    if value_range is not None:
        parts.append(RangeFilter("value", low=value_range.low, high=value_range.high))
    return AllOf(tuple(parts))


def instance_overlap_predicate(dates: DateRange) -> Exists:
    """At least one instance intersects [start, end] (inclusive)."""
    return Exists(
        "instances",
        AllOf((
            RangeFilter("start_date", high=dates.end),
            RangeFilter("end_date", low=dates.start),
        )),
    )


def lowest_price_predicate(
    value_range: NumericRange,
    today: date,
    guests: Optional[NumericRange] = None,
) -> AllOf:
    """
    The lowest active base price lies within value_range: some active price
    is in range and none is below it. Prices are whole numbers.
    """
    active = active_price_predicate(today, guests)
    cheaper = AllOf(active.children + (RangeFilter("value", high=value_range.low - 1),))
    return AllOf((
        Exists("price_mods", active_price_predicate(today, guests, value_range)),
        Not(Exists("price_mods", cheaper)),
    ))


def radius_predicate(kind: EntityKind, near: GeoRadius) -> WithinRadius:
    """Own coordinates for properties, the parent property's for retreats/programs."""
    lat_field, lng_field = LOCATION_FIELDS[kind]
    return WithinRadius(lat_field, lng_field, near.lat, near.lng, near.miles)


def guest_capacity_predicate(guests: NumericRange) -> AllOf:
    """Entity guest bounds [min_guests, max_guests] intersect the requested range."""
    return AllOf((
        RangeFilter("min_guests", high=guests.high),
        AnyOf((
            SetFilter("max_guests", frozenset({UNLIMITED_GUESTS})),
            RangeFilter("max_guests", low=guests.low),
        )),
    ))


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def _fragment(name: str, value, kind: EntityKind, filters: FilterSet, today: date) -> Optional[Predicate]:
    if name == "category" and isinstance(value, CategorySet):
        return SetFilter(CATEGORY_FIELD[kind], value.values)
    if name == "continent" and isinstance(value, CategorySet):
        return SetFilter(COUNTRY_FIELD[kind], country_codes_for(value.values))
    if name == "status" and isinstance(value, CategorySet):
        return SetFilter("status", value.values)
    if name == "text" and isinstance(value, TextTerm):
        return TextFilter(TEXT_FIELDS[kind], value.text)
    if name == "verified":
        return NullCheck("verified", is_null=False)
    if name == "dates" and isinstance(value, DateRange) and kind.has_instances:
        return instance_overlap_predicate(value)
    if name == "guests" and isinstance(value, NumericRange) and kind.has_instances:
        return guest_capacity_predicate(value)
    if name == "near" and isinstance(value, GeoRadius):
        return radius_predicate(kind, value)
    if name == "price" and isinstance(value, NumericRange):
        guests = filters.get("guests")
        return lowest_price_predicate(
            value,
            today,
            guests if isinstance(guests, NumericRange) else None,
        )
    logger.debug(f"No predicate for filter {name!r} on {kind.value}")
    return None


def build_query_plan(
    filters: FilterSet,
    kind: EntityKind,
    viewer: ViewerContext = PUBLIC_VIEWER,
    today: Optional[date] = None,
) -> QueryPlan:
    """
    AND together one fragment per filter, in filter-name order.
    Non-admin viewers only ever see published entities.
    """
    today = today or date.today()
    parts = []
    if not viewer.is_admin:
        parts.append(SetFilter("status", frozenset({"published"})))

    for name in filters.names():
        fragment = _fragment(name, filters.get(name), kind, filters, today)
        if fragment is not None:
            parts.append(fragment)

    where = AllOf(tuple(parts))
    guests = filters.get("guests")
    near = filters.get("near")
    return QueryPlan(
        kind=kind,
        where=where,
        count_where=where,
        today=today,
        guests=guests if isinstance(guests, NumericRange) else None,
        near=near if isinstance(near, GeoRadius) else None,
    )
