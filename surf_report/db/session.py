"""SQLModel session management."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from surf_report.core.config import settings
from surf_report.core.errors import ConfigurationError

_engine: Engine | None = None


def get_engine() -> Engine:
    """Create the engine on first use so a missing DATABASE_URL fails the run, not the import."""

    global _engine
    if _engine is None:
        if not settings.database_url:
            raise ConfigurationError("Missing database configuration: DATABASE_URL is not set")
        _engine = create_engine(settings.database_url, echo=False, pool_pre_ping=True)
    return _engine


def set_engine(engine: Engine | None) -> None:
    """Swap the process-wide engine (used by tests and the CLI)."""

    global _engine
    _engine = engine


def init_db() -> None:
    # Import for the side effect of registering every table on the metadata.
    from surf_report import models  # noqa: F401

    SQLModel.metadata.create_all(get_engine())


@contextmanager
def get_session() -> Iterator[Session]:
    """Get a database session as a context manager (for use with 'with' statement).

    FastAPI routes receive sessions through surf_report.api.deps.get_db.
    """
    session = Session(get_engine())
    try:
        yield session
    finally:
        session.close()

