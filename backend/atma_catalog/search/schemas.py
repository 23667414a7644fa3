"""Response models for the catalog endpoints."""

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from atma_catalog.search.models import ListingItem, ListingResult

STATE_RESULTS = "results"
STATE_EMPTY = "empty"
STATE_PAST_END = "past_end"
STATE_ERROR = "error"

MESSAGES = {
    STATE_RESULTS: "",
    STATE_EMPTY: "No results match your search.",
    STATE_PAST_END: "No more results on this page.",
    STATE_ERROR: "Unable to load results. Please try again.",
}


class PriceSummaryOut(BaseModel):
    available: bool
    amount: Optional[int] = None
    currency: Optional[str] = None
    label: str


class ListingItemOut(BaseModel):
    id: int
    kind: str
    name: str
    location: str
    image: str
    verified: bool
    price: PriceSummaryOut
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_item(cls, item: ListingItem) -> "ListingItemOut":
        details = {
            k: v.isoformat() if isinstance(v, date) else v
            for k, v in item.details.items()
        }
        return cls(
            id=item.id,
            kind=item.kind.value,
            name=item.name,
            location=item.location_label,
            image=item.image,
            verified=item.verified,
            price=PriceSummaryOut(
                available=item.price.available,
                amount=item.price.amount,
                currency=item.price.currency,
                label=item.price.label,
            ),
            details=details,
        )


class ListingResultOut(BaseModel):
    kind: str
    state: str
    message: str
    items: List[ListingItemOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    sort: str
    direction: str

    @classmethod
    def from_result(cls, result: ListingResult) -> "ListingResultOut":
        if result.is_empty:
            state = STATE_EMPTY
        elif not result.items:
            state = STATE_PAST_END
        else:
            state = STATE_RESULTS
        return cls(
            kind=result.kind.plural,
            state=state,
            message=MESSAGES[state],
            items=[ListingItemOut.from_item(item) for item in result.items],
            total_count=result.total_count,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
            sort=result.sort_key.value,
            direction=result.sort_direction.value,
        )


class TabbedResultsOut(BaseModel):
    results: Dict[str, ListingResultOut]


class ErrorOut(BaseModel):
    state: str = STATE_ERROR
    message: str = MESSAGES[STATE_ERROR]
