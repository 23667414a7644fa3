"""
Catalog search pipeline.

raw params -> parse_filters -> build_query_plan -> fetch_window (count + page)
-> project_rows -> ListingResult.

A store failure fails the whole search (CatalogUnavailableError); there are
no partial results and no retries.
"""

from datetime import date
from typing import Dict, Mapping, Optional
import logging

from sqlalchemy.orm import Session

from atma_catalog.core.monitoring import track_performance
from atma_catalog.core.security import PUBLIC_VIEWER, ViewerContext
from atma_catalog.db.repositories import ListingRepository
from atma_catalog.search.filters import parse_filters
from atma_catalog.search.models import EntityKind, ListingQuery, ListingResult
from atma_catalog.search.pagination import (
    SortSpec,
    fetch_window,
    parse_page,
    parse_page_size,
    resolve_sort,
)
from atma_catalog.search.predicates import build_query_plan
from atma_catalog.search.projector import project_rows

logger = logging.getLogger(__name__)


def build_listing_query(
    kind: EntityKind,
    params: Mapping[str, str],
    viewer: ViewerContext = PUBLIC_VIEWER,
) -> ListingQuery:
    """Normalize raw query-string parameters into a valid ListingQuery. Never raises."""
    sort = resolve_sort(params.get("sort"), params.get("order"))
    return ListingQuery(
        kind=kind,
        filters=parse_filters(params, kind, viewer),
        page=parse_page(params.get("page")),
        page_size=parse_page_size(params.get("pageSize")),
        sort_key=sort.key,
        sort_direction=sort.direction,
    )


class CatalogService:
    """Runs listing queries against a store (the SQL repository by default)."""

    def __init__(self, db: Optional[Session] = None, store=None, today: Optional[date] = None):
        if store is None and db is None:
            raise ValueError("CatalogService needs a database session or a store")
        self.store = store if store is not None else ListingRepository(db)
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    @track_performance("catalog.search")
    def search(self, query: ListingQuery, viewer: ViewerContext = PUBLIC_VIEWER) -> ListingResult:
        today = self.today
        plan = build_query_plan(query.filters, query.kind, viewer, today)
        sort = SortSpec(query.sort_key, query.sort_direction)
        rows, total = fetch_window(self.store, plan, sort, query.page, query.page_size)
        items = project_rows(query.kind, rows, today, plan.guests, plan.near)
        logger.info(
            f"Catalog search {query.kind.plural}: {len(items)} of {total} "
            f"(page {query.page}, size {query.page_size}, sort {sort.key.value} {sort.direction.value})",
            extra={"kind": query.kind.value, "total_count": total},
        )
        return ListingResult(
            kind=query.kind,
            items=items,
            total_count=total,
            page=query.page,
            page_size=query.page_size,
            sort_key=query.sort_key,
            sort_direction=query.sort_direction,
        )

    def search_params(
        self,
        kind: EntityKind,
        params: Mapping[str, str],
        viewer: ViewerContext = PUBLIC_VIEWER,
    ) -> ListingResult:
        return self.search(build_listing_query(kind, params, viewer), viewer)

    def search_all(
        self,
        params: Mapping[str, str],
        viewer: ViewerContext = PUBLIC_VIEWER,
    ) -> Dict[EntityKind, ListingResult]:
        """Same parameters against every entity kind (tabbed search)."""
        return {kind: self.search_params(kind, params, viewer) for kind in EntityKind}
