"""Database engine and session management using SQLModel."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from .config import get_config

_engine: Optional[Engine] = None


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def create_db_engine(db_path: Path) -> Engine:
    """Create a SQLite engine for *db_path* with foreign keys enforced."""
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # check_same_thread=False lets hosts share the engine with worker threads
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def get_engine() -> Engine:
    """Return the process-wide engine, created from config on first use."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(get_config().database_path)
    return _engine


def set_engine(engine: Optional[Engine]) -> None:
    """Replace the process-wide engine (None drops it; used by tests)."""
    global _engine
    _engine = engine


def init_db(engine: Optional[Engine] = None) -> None:
    """Create database tables."""
    # Import models to ensure they are registered with SQLModel.metadata
    from . import models  # noqa: F401

    engine = engine or get_engine()
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA journal_mode=WAL;")

    SQLModel.metadata.create_all(engine)


@contextmanager
def session_scope(engine: Optional[Engine] = None) -> Iterator[Session]:
    """Context manager yielding a session that is closed on exit.

    Callers commit explicitly; anything uncommitted is rolled back on close.
    """
    with Session(engine or get_engine()) as session:
        yield session
