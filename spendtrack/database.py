"""Database configuration for the spendtrack backend."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings

Base = declarative_base()


def build_engine(url: str) -> Engine:
    """Create an engine for ``url`` with SQLite specific connection options."""

    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True, future=True)
    options: dict[str, object] = {"connect_args": {"check_same_thread": False}, "future": True}
    if parsed.database in (None, "", ":memory:"):
        # In-memory databases only live as long as their single connection.
        options["poolclass"] = StaticPool
    sqlite_engine = create_engine(url, **options)
    _begin_immediate(sqlite_engine)
    return sqlite_engine


def _begin_immediate(sqlite_engine: Engine) -> None:
    """Open every SQLite transaction with ``BEGIN IMMEDIATE``.

    pysqlite defers ``BEGIN`` until the first write, so a read-then-insert such
    as the budget overlap check would otherwise run unlocked. Taking the write
    lock up front also makes SAVEPOINT work inside the transaction.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


def init_db(bind: Engine | None = None) -> None:
    """Create database tables if they do not already exist."""
    from . import models  # noqa: F401  # Import models for metadata registration

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Provide a transactional scope around a series of operations."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Iterator[Session]:
    """FastAPI dependency that provides a database session."""
    with session_scope() as session:
        yield session
