"""
Database engine, session factory and the store-failure boundary
"""
import os
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from app.config import get_settings
from app.errors import DataUnavailable
from app.utils.logger import log


def _absolute_sqlite_url(url: str) -> str:
    """sqlite:///./loft.db → sqlite:////abs/path/loft.db, so cwd changes can't move the file"""
    if url.startswith("sqlite:///") and not url.startswith("sqlite:////"):
        return "sqlite:///" + os.path.abspath(url[len("sqlite:///"):])
    return url


def build_engine(url: str) -> Engine:
    url = _absolute_sqlite_url(url)
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,
            pool_pre_ping=True,
        )
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=3,
        max_overflow=5,
        pool_recycle=300,
    )


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def default_currency() -> str:
    """Column default for currency codes"""
    return get_settings().default_currency


def get_db():
    """FastAPI dependency: one session per request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create any missing tables."""
    import app.models  # noqa: F401  (registers every model on Base.metadata)

    Base.metadata.create_all(bind=engine)
    log.info(f"Database ready ({engine.url.get_backend_name()})")


@contextmanager
def store_operation(operation: str):
    """Wrap store reads so driver failures surface as DataUnavailable."""
    try:
        yield
    except SQLAlchemyError as e:
        log.error(f"Store query failed during {operation}: {e}")
        raise DataUnavailable(operation, e) from e
