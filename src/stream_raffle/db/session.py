"""Engine and session wiring for the raffle database."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from stream_raffle.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all raffle tables."""


# Models register themselves on Base.metadata for Alembic and test setup.
import stream_raffle.models  # noqa: E402,F401


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # Dedupe inserts and settings reads run in SAVEPOINTs, which pysqlite
    # only honours when SQLAlchemy emits BEGIN itself.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")


def build_engine(url: str, **kwargs: Any) -> Engine:
    """Create an engine for ``url``; SQLite URLs get savepoint support."""
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
    engine = create_engine(url, echo=settings.sql_debug, **kwargs)
    if is_sqlite:
        _enable_sqlite_savepoints(engine)
    return engine


engine = build_engine(settings.effective_database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield one request-scoped session; services own commit and rollback."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
