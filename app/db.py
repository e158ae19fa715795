"""Database engine, session factory and declarative base."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings

Base = declarative_base()

_IN_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


def _engine_options(database_url: str) -> dict[str, Any]:
    settings = get_settings()
    options: dict[str, Any] = {"echo": settings.database_echo}
    if database_url.startswith("sqlite"):
        # Storage calls run in the threadpool
        options["connect_args"] = {"check_same_thread": False}
        if database_url in _IN_MEMORY_SQLITE_URLS:
            options["poolclass"] = StaticPool
        return options
    options["pool_size"] = settings.database_pool_size
    options["max_overflow"] = settings.database_max_overflow
    options["pool_pre_ping"] = True
    return options


def build_engine(database_url: str | None = None):
    url = database_url or get_settings().database_url
    return create_engine(url, **_engine_options(url))


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """FastAPI dependency: yield a database session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def db_session(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """Session scope for code running outside a request; rolls back on error."""
    db = factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_tables() -> None:
    import app.models  # noqa: F401  registers every model on Base.metadata

    Base.metadata.create_all(bind=engine)
