"""
Health check routes.
Probes for load-balancer readiness and liveness.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone
import time
import logging

from atma_catalog.db.database import get_db
from atma_catalog.db.repositories import CatalogUnavailableError, ListingRepository
from atma_catalog.core.rate_limiting import limiter, HEALTH_LIMIT
from atma_catalog.search.models import EntityKind

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

# Track startup time for uptime reporting
_STARTUP_TIME = time.time()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
@limiter.limit(HEALTH_LIMIT)
def health_check(request: Request, db: Session = Depends(get_db)):
    """Database connectivity, listing counts per kind, uptime."""
    health = {
        "status": "healthy",
        "database": "available",
        "listings": {},
        "uptime_seconds": int(time.time() - _STARTUP_TIME),
        "timestamp": _now(),
    }
    try:
        repo = ListingRepository(db)
        health["listings"] = {kind.plural: repo.count_all(kind) for kind in EntityKind}
    except CatalogUnavailableError as e:
        logger.error(f"Database health check failed: {e}")
        health["status"] = "degraded"
        health["database"] = "unavailable"
    return health


@router.get("/ready")
@limiter.limit(HEALTH_LIMIT)
def readiness_check(request: Request, db: Session = Depends(get_db)):
    """Ready only when the database answers."""
    try:
        db.execute(text("SELECT 1"))
        return {"ready": True, "timestamp": _now()}
    except SQLAlchemyError as e:
        logger.error(f"Readiness check failed: {e}")
        return {"ready": False, "error": "database unavailable", "timestamp": _now()}


@router.get("/live")
async def liveness_check():
    """Liveness probe. Returns 200 if service is running."""
    return {"alive": True, "uptime_seconds": int(time.time() - _STARTUP_TIME), "timestamp": _now()}
