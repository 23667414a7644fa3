"""
Database connection and session management.
Pooled engine with health-checked connections and automatic recycling.
Supports PostgreSQL and SQLite backends.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from typing import Generator
import logging
import math
import os

from atma_catalog.core.config import settings
from atma_catalog.db.models import Base

logger = logging.getLogger(__name__)

_is_sqlite = settings.database_url.startswith("sqlite")


def _null_safe(fn):
    def wrapper(value):
        return None if value is None else fn(value)
    return wrapper


def register_sqlite_functions(dbapi_conn) -> None:
    """sin/cos for the radius filter; many SQLite builds ship without math functions."""
    for name, fn in (("sin", math.sin), ("cos", math.cos)):
        dbapi_conn.create_function(name, 1, _null_safe(fn), deterministic=True)


def _resolve_sqlite_url(url: str) -> str:
    """Resolve a relative SQLite path against the backend directory."""
    db_path = url.replace("sqlite:///", "", 1)
    if db_path.startswith("./"):
        backend_dir = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
        return f"sqlite:///{os.path.join(backend_dir, db_path[2:])}"
    return url


if _is_sqlite:
    # SQLite: StaticPool for thread safety, WAL for concurrent readers
    engine = create_engine(
        _resolve_sqlite_url(settings.database_url),
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        register_sqlite_functions(dbapi_conn)
else:
    # PostgreSQL: production pooling, statements capped at 30s
    engine = create_engine(
        settings.database_url,
        poolclass=QueuePool,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_recycle=settings.database_pool_recycle,
        pool_pre_ping=settings.database_pool_pre_ping,
        pool_timeout=30,
        echo=False,
        connect_args={
            "connect_timeout": 10,
            "options": "-c statement_timeout=30000",
        },
    )

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency injection for a request-scoped database session.
    Connection failures surface on first use and are handled by the caller.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables at startup."""
    logger.info("Initializing database schema...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema initialized")
