"""Database session management."""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, make_url
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import get_settings
from ..utils.logging import get_logger
from .models import Base

logger = get_logger(__name__)

# Process-wide engine, built lazily from settings or set by configure_database
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def _build_engine(database_url: str) -> Engine:
    connect_args = {}
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        # Batch scoring writes from worker threads
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        database_url,
        echo=False,  # Set to True for SQL debugging
        pool_pre_ping=True,
        connect_args=connect_args,
    )


def configure_database(
    database_url: Optional[str] = None,
    engine: Optional[Engine] = None,
) -> Engine:
    """Point the session layer at a specific database.

    Passing neither argument rebuilds the engine from settings.
    """
    global _engine, _session_factory

    if _engine is not None and _engine is not engine:
        _engine.dispose()

    _engine = engine or _build_engine(database_url or get_settings().database_url)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.debug(f"Database configured: {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_engine() -> Engine:
    """Get the database engine."""
    if _engine is None:
        configure_database()
    return _engine


def get_session_factory() -> sessionmaker:
    """Get the session factory."""
    if _session_factory is None:
        configure_database()
    return _session_factory


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Get a database session with automatic cleanup."""
    session_factory = get_session_factory()
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None) -> None:
    """Initialize the database by creating all tables."""
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready")
