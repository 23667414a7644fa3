"""
Viewer context.
The caller's role is resolved once per request and passed explicitly into
the filter parser and query builder.
"""

from dataclasses import dataclass
from typing import Optional
import hmac
import logging

from fastapi import Header

from atma_catalog.core.config import PLACEHOLDER_ADMIN_KEY, settings

logger = logging.getLogger(__name__)

ROLE_GUEST = "guest"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class ViewerContext:
    """Who is looking at the catalog."""
    role: str = ROLE_GUEST

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


PUBLIC_VIEWER = ViewerContext()


def admin_key_configured() -> bool:
    return bool(settings.admin_api_key) and settings.admin_api_key != PLACEHOLDER_ADMIN_KEY


def get_viewer(x_api_key: Optional[str] = Header(None)) -> ViewerContext:
    """
    FastAPI dependency: admin when the X-API-Key header matches the configured key.
    Admin access stays off until a real key replaces the shipped placeholder.
    """
    if not x_api_key:
        return PUBLIC_VIEWER
    if not admin_key_configured():
        logger.warning("X-API-Key sent but no admin key is configured, serving public catalog")
        return PUBLIC_VIEWER
    if hmac.compare_digest(x_api_key.encode(), settings.admin_api_key.encode()):
        return ViewerContext(role=ROLE_ADMIN)
    logger.warning("Rejected X-API-Key, serving public catalog")
    return PUBLIC_VIEWER
