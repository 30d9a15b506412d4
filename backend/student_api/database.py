"""
Database connection and session management module.

Uses SQLAlchemy for ORM operations. Supports PostgreSQL (production) and
SQLite (local development and tests).

The connection handle is an explicit `Database` object owned by the
application (`app.state.database`); routes receive sessions from it
through the `get_db` dependency.
"""

import threading
from typing import Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from student_api.errors import DatabaseNotConfiguredError
from student_api.logging_config import get_logger, log_with_context

logger = get_logger("db")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def build_engine_kwargs(database_url: str) -> dict:
    """Engine options for the given backend."""
    # SQLite does not support pool_size, max_overflow, or pool_pre_ping
    engine_kwargs = {"echo": False}

    if database_url.startswith("postgresql"):
        engine_kwargs.update({
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
        })
    elif database_url.startswith("sqlite"):
        # FastAPI runs sync routes in a threadpool
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool

    return engine_kwargs


class Database:
    """
    Process-wide store handle: engine, session factory and table setup.

    The engine is created eagerly when a URL is given (SQLAlchemy does not
    open a connection until first use). Tables are created either by
    `connect()` at startup or lazily on the first session.
    """

    def __init__(self, database_url: Optional[str]):
        self.database_url = database_url
        self.engine = None
        self.SessionLocal = None
        self._ready = False
        self._ready_lock = threading.Lock()

        if database_url:
            self.engine = create_engine(database_url, **build_engine_kwargs(database_url))
            self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @property
    def is_configured(self) -> bool:
        return self.engine is not None

    def _require_engine(self):
        if not self.is_configured:
            raise DatabaseNotConfiguredError(
                "DATABASE_URL is not defined in environment variables."
            )

    def create_tables(self):
        """Create all tables registered on Base.metadata."""
        self._require_engine()
        # Register models with Base.metadata
        import student_api.models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)

    def connect(self):
        """
        Verify connectivity and create tables.

        Raises SQLAlchemyError if the database is unreachable and
        DatabaseNotConfiguredError if no URL was configured.
        """
        self._require_engine()
        with self._ready_lock:
            if self._ready:
                return
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            self.create_tables()
            self._ready = True
        log_with_context(logger, "INFO", "Connected to database successfully",
                         extra_data={"dialect": self.engine.dialect.name})

    def ping(self) -> bool:
        """Readiness check; never raises."""
        if not self.is_configured:
            return False
        try:
            with self.engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            log_with_context(logger, "WARNING", "Database ping failed",
                             extra_data={"error": str(e)})
            return False

    def session(self):
        """Open a new session, creating tables first if needed."""
        self._require_engine()
        if not self._ready:
            self.connect()
        return self.SessionLocal()

    def dispose(self):
        if self.engine is not None:
            self.engine.dispose()


def get_database(request: Request) -> Database:
    """FastAPI dependency returning the application's store handle."""
    return request.app.state.database


def get_db(request: Request):
    """
    FastAPI dependency that provides a database session.

    Yields a session and ensures it is closed after the request, even if
    the handler raised.
    """
    db = get_database(request).session()
    try:
        yield db
    finally:
        db.close()
