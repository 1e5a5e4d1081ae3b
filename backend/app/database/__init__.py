"""
Database engine, session factory, and metadata shared across the application.

The booking store is a plain SQL database reached through SQLAlchemy. Every
engine is built with a bounded lock/checkout wait so that no request blocks
indefinitely; exceeding it surfaces as a transient failure upstream.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings

logger = logging.getLogger(__name__)


Base: DeclarativeMeta = declarative_base()


def _build_engine_kwargs(db_url: str, timeout_seconds: float) -> dict[str, Any]:
    """Return engine kwargs for the given URL with bounded waits."""
    if db_url.startswith("sqlite"):
        kwargs: dict[str, Any] = {
            # sqlite3 busy handler: wait this long for a write lock, then fail
            "connect_args": {"check_same_thread": False, "timeout": timeout_seconds},
        }
        if ":memory:" in db_url or db_url.rstrip("/").endswith("sqlite://"):
            kwargs["poolclass"] = StaticPool
        return kwargs

    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        # Fail fast when the pool is exhausted instead of queueing forever
        "pool_timeout": timeout_seconds,
        "pool_pre_ping": True,
        "pool_recycle": 30,
        "connect_args": {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)} "
            f"-c lock_timeout={int(timeout_seconds * 1000)}",
        },
    }


def build_engine(db_url: str | None = None, *, timeout_seconds: float | None = None) -> Engine:
    """Create an engine for the booking store."""
    url = db_url or settings.database_url
    timeout = timeout_seconds if timeout_seconds is not None else settings.store_timeout_seconds
    created = create_engine(url, future=True, **_build_engine_kwargs(url, timeout))

    @event.listens_for(created, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("Database connection established")

    return created


engine: Engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create all tables (no migration tooling for the booking core)."""
    import app.models  # noqa: F401  (populate metadata)

    Base.metadata.create_all(bind or engine)
    logger.info("Booking store schema ensured")


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "engine",
    "get_db",
    "init_db",
]
