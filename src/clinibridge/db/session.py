"""Engine and session factory for the configured database."""

from collections.abc import Iterator
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from clinibridge.config import get_settings
from clinibridge.db.base import Base


@lru_cache
def get_engine() -> Engine:
    return create_engine(get_settings().database_url)


def get_session_factory() -> sessionmaker[Session]:
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def init_db(engine: Engine | None = None) -> None:
    """Create any missing tables."""
    # Import models so they register on Base.metadata
    from clinibridge.sqlalchemy import eligibility_cache, searches  # noqa: F401

    Base.metadata.create_all(engine or get_engine())


def get_db() -> Iterator[Session]:
    """Yield a session and close it afterwards (FastAPI dependency)."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()
