"""
Result projector: store rows -> ListingItem view models.

Every item gets exactly one image (placeholder when none), a price summary
that is either the lowest active base price or explicitly unavailable, and a
location label that is never empty.
"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from atma_catalog.core.config import settings
from atma_catalog.search.countries import country_name
from atma_catalog.search.geo import haversine_miles
from atma_catalog.search.models import (
    EntityKind,
    GeoRadius,
    ListingItem,
    ListingRow,
    NumericRange,
    PriceSummary,
)
from atma_catalog.search.predicates import PRICE_TYPE, PRICE_UNIT, UNLIMITED_GUESTS

LOCATION_TBD = "Location TBD"


def select_primary_image(images: Iterable[Any], placeholder: Optional[str] = None) -> str:
    """Lowest `order` wins, id breaks ties. Blank paths are skipped."""
    placeholder = placeholder or settings.placeholder_image
    candidates = [img for img in images if (getattr(img, "file_path", None) or "").strip()]
    if not candidates:
        return placeholder
    best = min(candidates, key=lambda img: (img.order or 0, img.id or 0))
    return best.file_path


def is_price_active(mod: Any, today: date, guests: Optional[NumericRange] = None) -> bool:
    if mod.type != PRICE_TYPE or mod.unit != PRICE_UNIT:
        return False
    if mod.date_start is not None and mod.date_start > today:
        return False
    if mod.date_end is not None and mod.date_end < today:
        return False
    if guests is not None:
        if mod.guest_min is not None and mod.guest_min > guests.high:
            return False
        if mod.guest_max is not None and mod.guest_max < guests.low:
            return False
    return True


def summarize_price(mods: Iterable[Any], today: date, guests: Optional[NumericRange] = None) -> PriceSummary:
    active = [m for m in mods if is_price_active(m, today, guests)]
    if not active:
        return PriceSummary.unavailable()
    lowest = min(active, key=lambda m: (m.value, m.id or 0))
    return PriceSummary(available=True, amount=lowest.value, currency=lowest.currency)


def location_label(city: Optional[str], country: Optional[str]) -> str:
    city = (city or "").strip()
    name = country_name(country)
    if city and name:
        return f"{city}, {name}"
    if city:
        return city
    if name:
        return name
    return LOCATION_TBD


def distance_from(near: Optional[GeoRadius], place: Any) -> Optional[float]:
    """Miles from the search origin, one decimal; None without an origin or coordinates."""
    if near is None or place is None:
        return None
    lat, lng = getattr(place, "lat", None), getattr(place, "lng", None)
    if lat is None or lng is None:
        return None
    return round(haversine_miles(near.lat, near.lng, lat, lng), 1)


def _details(kind: EntityKind, row: ListingRow, near: Optional[GeoRadius] = None) -> Dict[str, Any]:
    entity = row.entity
    if kind == EntityKind.PROPERTY:
        details = {"type": entity.type, "rating": entity.rating}
        if near is not None:
            details["distance_miles"] = distance_from(near, entity)
        return details
    max_guests = entity.max_guests
    details = {
        "category": entity.category,
        "duration": entity.duration,
        "min_guests": entity.min_guests,
        "max_guests": None if max_guests == UNLIMITED_GUESTS else max_guests,
        "property_id": entity.property_id,
        "property_name": row.property.name if row.property is not None else None,
        "next_start": row.next_start,
    }
    if near is not None:
        details["distance_miles"] = distance_from(near, row.property)
    return details


def project_row(
    kind: EntityKind,
    row: ListingRow,
    today: date,
    guests: Optional[NumericRange] = None,
    placeholder: Optional[str] = None,
    near: Optional[GeoRadius] = None,
) -> ListingItem:
    entity = row.entity
    place = entity if kind == EntityKind.PROPERTY else row.property
    city = getattr(place, "city", None) if place is not None else None
    country = getattr(place, "country", None) if place is not None else None
    return ListingItem(
        id=entity.id,
        kind=kind,
        name=entity.name or "Untitled",
        location_label=location_label(city, country),
        image=select_primary_image(row.images, placeholder),
        verified=entity.verified is not None,
        price=summarize_price(row.price_mods, today, guests),
        details=_details(kind, row, near),
    )


def project_rows(
    kind: EntityKind,
    rows: Iterable[ListingRow],
    today: date,
    guests: Optional[NumericRange] = None,
    near: Optional[GeoRadius] = None,
) -> List[ListingItem]:
    return [project_row(kind, row, today, guests, near=near) for row in rows]
