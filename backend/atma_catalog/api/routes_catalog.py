"""
Catalog listing routes.

  GET /catalog/search            -- same filters across retreats, programs, properties
  GET /catalog/{kind}            -- one paginated listing (retreats / programs / properties)

Query keys: category, continent, text, verified, dateStart, dateEnd,
guestMin, guestMax, priceMin, priceMax, lat, lng, radiusMiles, status (admin),
page, pageSize, sort, order. Malformed filter values are ignored, never rejected.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Dict
import logging

from atma_catalog.core.rate_limiting import limiter, SEARCH_LIMIT
from atma_catalog.core.security import ViewerContext, get_viewer
from atma_catalog.db.database import get_db
from atma_catalog.db.repositories import CatalogUnavailableError
from atma_catalog.search.models import EntityKind
from atma_catalog.search.schemas import ErrorOut, ListingResultOut, TabbedResultsOut
from atma_catalog.search.service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["catalog"])


def _raw_params(request: Request) -> Dict[str, str]:
    """Flatten the query string; a repeated key keeps its last value."""
    return dict(request.query_params)


def _unavailable() -> JSONResponse:
    return JSONResponse(status_code=503, content=ErrorOut().model_dump())


@router.get(
    "/search",
    response_model=TabbedResultsOut,
    responses={503: {"model": ErrorOut}},
)
@limiter.limit(SEARCH_LIMIT)
def tabbed_search(
    request: Request,
    db: Session = Depends(get_db),
    viewer: ViewerContext = Depends(get_viewer),
):
    """Search every entity kind with the same parameters."""
    try:
        results = CatalogService(db).search_all(_raw_params(request), viewer)
    except CatalogUnavailableError as e:
        logger.warning(f"Tabbed search unavailable: {e}")
        return _unavailable()
    return TabbedResultsOut(
        results={kind.plural: ListingResultOut.from_result(r) for kind, r in results.items()}
    )


@router.get(
    "/{segment}",
    response_model=ListingResultOut,
    responses={404: {"description": "Unknown catalog"}, 503: {"model": ErrorOut}},
)
@limiter.limit(SEARCH_LIMIT)
def list_catalog(
    segment: str,
    request: Request,
    db: Session = Depends(get_db),
    viewer: ViewerContext = Depends(get_viewer),
):
    """Paginated, filtered listing for retreats, programs or properties."""
    kind = EntityKind.from_segment(segment)
    if kind is None:
        raise HTTPException(status_code=404, detail=f"Unknown catalog: {segment}")
    try:
        result = CatalogService(db).search_params(kind, _raw_params(request), viewer)
    except CatalogUnavailableError as e:
        logger.warning(f"Catalog {kind.plural} unavailable: {e}")
        return _unavailable()
    return ListingResultOut.from_result(result)
