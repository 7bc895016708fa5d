"""Database connection and session management for creditboard.

The board is a single-user store kept in SQLite by default (`DATABASE_URL`
selects another backend). File-backed SQLite databases run in WAL mode so
board reads are not blocked while a sweep or reorder commits.
"""

import os
from typing import Optional
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.ext.declarative import declarative_base
from dotenv import load_dotenv

load_dotenv()

# Database URL - SQLite file next to the app by default
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./creditboard.db")
SQL_ECHO = os.getenv("DEBUG", "False").lower() == "true"


def is_sqlite_file_url(database_url: str) -> bool:
    """True for on-disk SQLite databases (in-memory ones have no WAL)."""
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:")


def _enable_wal(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def build_engine(database_url: str) -> Engine:
    """Create an engine for the board store.

    SQLite connections are shared across FastAPI's threadpool, so the
    same-thread check is off.
    """
    connect_args = {"check_same_thread": False} if make_url(database_url).get_backend_name() == "sqlite" else {}
    board_engine = create_engine(database_url, echo=SQL_ECHO, pool_pre_ping=True, connect_args=connect_args)
    if is_sqlite_file_url(database_url):
        event.listen(board_engine, "connect", _enable_wal)
    return board_engine


# Create engine (module-level singleton)
engine = build_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative models
Base = declarative_base()


def get_db() -> Session:
    """Get database session (dependency for FastAPI)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the tasks and settings tables (and the board index) if missing."""
    # Import models so they register with Base.metadata
    from creditboard.database import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
