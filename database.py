"""SQLAlchemy engine and session setup for the GeoQuiz store."""

from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_database_url


class Base(DeclarativeBase):
    pass


def create_engine_for(url: Optional[str] = None) -> Engine:
    """Create an engine for url (DATABASE_URL when omitted)."""
    url = url or get_database_url()
    if url.startswith("sqlite") and (":memory:" in url or url in ("sqlite://", "sqlite:///")):
        # One shared connection so every session sees the same in-memory DB
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url)


def init_db(engine: Engine) -> None:
    """Create the areas/places/geometries tables if missing."""
    import models  # noqa: F401  registers the tables on Base.metadata

    Base.metadata.create_all(engine)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(url: Optional[str] = None):
    """Session for command-line scripts.

    Usage:
        with session_scope() as session:
            upsert_area(session, record)
    """
    engine = create_engine_for(url)
    init_db(engine)
    try:
        with Session(engine, expire_on_commit=False) as session:
            yield session
    finally:
        engine.dispose()
