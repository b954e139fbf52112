"""Database utilities and setup for the tab-scoped storage."""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from examprep.config import STORAGE_URL


# Base class for models
class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def create_storage_engine(url: str = STORAGE_URL) -> Engine:
    """
    Create engine for storage.

    In-memory SQLite keeps a single shared connection so that every session
    sees the same data for the lifetime of the process.
    """
    if url.startswith("sqlite"):
        kwargs: dict[str, object] = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create session factory bound to engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Initialize database (create all tables)."""
    # Register models on Base.metadata
    from examprep.models.db import storage  # noqa: F401

    Base.metadata.create_all(bind=engine)
