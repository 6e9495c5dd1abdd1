"""Database package: engine, session factory, init_db(), get_session()."""

import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import Engine, create_engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from has_messages.config import DATABASE_URL, SQL_ECHO
from has_messages.db.base import Base

# Import all models so Base.metadata has all tables
from has_messages.db.models import MessageRecipientRecord, MessageRecord  # noqa: F401

_init_lock = threading.Lock()
_engine: Engine | None = None
_SessionLocal: sessionmaker | None = None


def make_engine(url: str | None = None) -> Engine:
    """Create engine with check_same_thread=False for use from executor threads.

    For file-backed SQLite the database's directory is created on demand.
    """
    url = url or DATABASE_URL
    if url.startswith("sqlite"):
        database = make_url(url).database
        if database and database != ":memory:" and not database.startswith("file:"):
            Path(database).parent.mkdir(parents=True, exist_ok=True)
        if "?" in url:
            url += "&check_same_thread=False"
        else:
            url += "?check_same_thread=False"
    return create_engine(url, echo=SQL_ECHO)


def init_db() -> None:
    """Create engine and tables on first call. Later calls do nothing."""
    global _engine, _SessionLocal
    with _init_lock:
        if _SessionLocal is not None:
            return
        _engine = make_engine()
        Base.metadata.create_all(bind=_engine)
        _SessionLocal = sessionmaker(bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_session_factory() -> sessionmaker:
    """Return the shared session factory, initialising the database if needed."""
    init_db()
    return _SessionLocal


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Context manager yielding a DB session. Calls init_db() on first use."""
    init_db()
    session = _SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
