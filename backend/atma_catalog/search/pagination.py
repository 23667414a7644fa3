"""
Pagination and sort resolution.

Offset/limit paging with a closed set of sort keys. The store always appends
an ascending id tie-break, so identical queries over unchanged data page
identically. Count and page window are two separate reads.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from atma_catalog.core.config import settings
from atma_catalog.search.models import MAX_PAGE, MAX_PAGE_SIZE, ListingRow, SortDirection, SortKey

DEFAULT_SORT = (SortKey.CREATED, SortDirection.DESC)

# Direction used when a known key is given without an explicit order
DEFAULT_DIRECTIONS: Dict[SortKey, SortDirection] = {
    SortKey.NAME: SortDirection.ASC,
    SortKey.PRICE: SortDirection.ASC,
    SortKey.VERIFIED: SortDirection.DESC,
    SortKey.CREATED: SortDirection.DESC,
}


@dataclass(frozen=True)
class SortSpec:
    key: SortKey = SortKey.CREATED
    direction: SortDirection = SortDirection.DESC


def resolve_sort(raw_key: Optional[str], raw_direction: Optional[str] = None) -> SortSpec:
    """Unknown or missing keys fall back to newest first; order is then ignored."""
    try:
        key = SortKey((raw_key or "").strip().lower())
    except ValueError:
        return SortSpec(*DEFAULT_SORT)
    try:
        direction = SortDirection((raw_direction or "").strip().lower())
    except ValueError:
        direction = DEFAULT_DIRECTIONS[key]
    return SortSpec(key, direction)


def parse_page(raw) -> int:
    """Malformed or below 1 -> 1; huge pages are clamped so the offset stays storable."""
    try:
        page = int(str(raw).strip())
    except (TypeError, ValueError):
        return 1
    return max(1, min(page, MAX_PAGE))


def parse_page_size(raw) -> int:
    """Missing or malformed -> configured default; clamped to 1..max."""
    default = min(settings.default_page_size, MAX_PAGE_SIZE)
    if raw is None:
        return default
    try:
        size = int(str(raw).strip())
    except (TypeError, ValueError):
        return default
    return max(1, min(size, settings.max_page_size, MAX_PAGE_SIZE))


def window(page: int, page_size: int) -> Tuple[int, int]:
    """(offset, limit) for a 1-based page."""
    return (page - 1) * page_size, page_size


def fetch_window(store, plan, sort: SortSpec, page: int, page_size: int) -> Tuple[List[ListingRow], int]:
    """
    Run the count and the bounded page against `store`, which must provide
    count(plan) -> int and fetch_page(plan, sort, offset, limit) -> rows.
    """
    offset, limit = window(page, page_size)
    total = store.count(plan)
    rows = store.fetch_page(plan, sort, offset, limit)
    return rows, total
