"""
Shared fixtures: an in-memory SQLite catalog per test and row factories.
"""

import os

# Must be set before atma_catalog.core.config is imported
os.environ.setdefault("database_url", "sqlite://")
os.environ.setdefault("rate_limit_enabled", "false")
os.environ.setdefault("admin_api_key", "test-admin-key")

from datetime import date, datetime, timedelta
from itertools import count

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from atma_catalog.db.database import register_sqlite_functions
from atma_catalog.db.models import (
    Base,
    Image,
    PriceMod,
    Program,
    ProgramInstance,
    Property,
    Retreat,
    RetreatInstance,
)

TODAY = date(2025, 5, 20)
BASE_TIME = datetime(2025, 1, 1, 12, 0, 0)


def _memory_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", lambda conn, record: register_sqlite_functions(conn))
    return engine


@pytest.fixture
def engine():
    engine = _memory_engine()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def broken_db():
    """A session whose database has no tables: every catalog query fails."""
    engine = _memory_engine()
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class CatalogFactory:
    """Creates catalog rows with sensible defaults and committed ids."""

    def __init__(self, session):
        self.session = session
        self._seq = count(1)

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def _created(self, created_at):
        return created_at or BASE_TIME + timedelta(minutes=next(self._seq))

    def property(self, name="Sunrise Resort", city="Ubud", country="ID", created_at=None, **kw):
        kw.setdefault("type", "resort")
        return self._save(Property(
            name=name, city=city, country=country, created_at=self._created(created_at), **kw
        ))

    def retreat(self, name="Renewal Retreat", prop=None, created_at=None, **kw):
        kw.setdefault("category", "yoga")
        return self._save(Retreat(
            name=name,
            property_id=prop.id if prop is not None else None,
            created_at=self._created(created_at),
            **kw,
        ))

    def program(self, name="Daily Practice", prop=None, created_at=None, **kw):
        kw.setdefault("category", "meditation")
        return self._save(Program(
            name=name,
            property_id=prop.id if prop is not None else None,
            created_at=self._created(created_at),
            **kw,
        ))

    def retreat_instance(self, retreat, start, end, **kw):
        return self._save(RetreatInstance(retreat_id=retreat.id, start_date=start, end_date=end, **kw))

    def program_instance(self, program, start, end, **kw):
        return self._save(ProgramInstance(program_id=program.id, start_date=start, end_date=end, **kw))

    def image(self, file_path, order=0, **owner):
        return self._save(Image(file_path=file_path, order=order, **owner))

    def price(self, value, currency="USD", **kw):
        return self._save(PriceMod(value=value, currency=currency, **kw))


@pytest.fixture
def factory(db):
    return CatalogFactory(db)
