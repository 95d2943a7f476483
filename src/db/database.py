"""Database connection and session management."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import settings

from .models import Base


# Global engine instances
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def create_db_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            return create_engine(
                database_url,
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, echo=False)


def get_engine(database_url: Optional[str] = None) -> Engine:
    """Get or create the process-wide engine."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(database_url or settings.DATABASE_URL)
    return _engine


def get_session_factory(database_url: Optional[str] = None) -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = make_session_factory(get_engine(database_url))
    return _session_factory


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Session as a unit of work: commit on success, rollback on error."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Optional[Engine] = None) -> Engine:
    """Create all tables and return the engine used."""
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    return engine


def close_db() -> None:
    """Dispose of the engine. Useful for testing."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
