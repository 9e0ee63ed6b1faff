"""Database configuration for the brokerage back office."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

DEFAULT_SQLITE_PATH = Path("data/brokerdesk.db")
DEFAULT_SQLITE_PATH.parent.mkdir(parents=True, exist_ok=True)

DATABASE_URL = os.getenv("BROKERDESK_DATABASE_URL", f"sqlite:///{DEFAULT_SQLITE_PATH}")


def _create_engine(url: str):
    """Create a SQLAlchemy engine for the given URL, handling sqlite connect args."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, future=True)


# Development falls back to the local SQLite file when the configured database
# is unreachable; any other environment fails at startup.
try:
    engine = _create_engine(DATABASE_URL)
    with engine.connect() as _conn:  # type: ignore[var-annotated]
        pass
except OperationalError as e:  # pragma: no cover - environment dependent
    env = os.getenv("ENVIRONMENT", "development").lower()
    logger.warning("Could not connect to database at %r: %s", DATABASE_URL, e)
    if env != "development":
        raise
    DATABASE_URL = f"sqlite:///{DEFAULT_SQLITE_PATH}"
    logger.warning("Falling back to SQLite for local development at %s", DATABASE_URL)
    engine = _create_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a database session."""

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db() -> None:
    """Ensure tables exist and the default business settings are seeded."""

    from brokerdesk import models  # noqa: F401  (import ensures model metadata is registered)
    from brokerdesk import crud

    Base.metadata.create_all(bind=engine, checkfirst=True)

    session = SessionLocal()
    try:
        created = crud.seed_default_settings(session)
        if created:
            logger.info("Seeded default settings: %s", ", ".join(created))
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
