"""Database configuration and session management."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import get_settings


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


logger = logging.getLogger(__name__)

_SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _json_serializer(value) -> str:
    # Keep non-ASCII text readable so free-text search can match it.
    return json.dumps(value, ensure_ascii=False)


def build_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url`` with backend specific options."""

    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        # Intake calls and the dispatch sweep share the file from several threads.
        return create_engine(
            url,
            connect_args={
                "check_same_thread": False,
                "timeout": _SQLITE_BUSY_TIMEOUT_SECONDS,
            },
            json_serializer=_json_serializer,
        )
    return create_engine(url, pool_pre_ping=True, json_serializer=_json_serializer)


settings = get_settings()

engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def initialize_database(bind: Engine | None = None) -> None:
    """Ensure all ORM models have corresponding database tables."""

    from app.infrastructure import models  # noqa: F401  # ensure models are imported

    target = bind or engine
    Base.metadata.create_all(bind=target, checkfirst=True)
    logger.debug("Database schema ensured on %s", target.url.render_as_string())


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and close it afterwards."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
