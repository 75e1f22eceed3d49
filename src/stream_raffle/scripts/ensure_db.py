"""Prepare the configured Postgres database for the raffle service.

Creates the database when missing and, with ``--seed``, provisions the SYSTEM
session and a default weight settings row so the service starts warm.
"""
from __future__ import annotations

import argparse
import sys
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from stream_raffle.core.settings import settings


def to_libpq_url(uri: str) -> str:
    """Strip quoting and any SQLAlchemy driver suffix (``postgresql+psycopg``)."""
    uri = (uri or "").strip().strip("'\"")
    if not uri:
        raise ValueError("DATABASE_URL is empty")
    parts = urlsplit(uri)
    scheme = parts.scheme.split("+", 1)[0]
    if scheme not in ("postgresql", "postgres"):
        raise ValueError(f"Not a Postgres URL: {uri!r}")
    return urlunsplit(("postgresql", parts.netloc, parts.path, parts.query, parts.fragment))


def maintenance_target(uri: str) -> tuple[str, str]:
    """Return ``(maintenance_url, database_name)`` for ``uri``."""
    parts = urlsplit(to_libpq_url(uri))
    database = parts.path.lstrip("/") or "postgres"
    maintenance = urlunsplit(("postgresql", parts.netloc, "/postgres", parts.query, ""))
    return maintenance, database


def ensure_database_exists(uri: str) -> bool:
    """Create the database if missing. Returns True when it was created."""
    maintenance, database = maintenance_target(uri)
    with psycopg.connect(maintenance, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (database,))
        if cur.fetchone() is not None:
            return False
        cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(database)))
    return True


def seed_defaults() -> None:
    """Provision the SYSTEM session and a default settings row."""
    from stream_raffle.db.session import SessionLocal
    from stream_raffle.models import WeightSettingsRecord
    from stream_raffle.services.session_manager import ensure_system_session
    from stream_raffle.services.weight_engine import DEFAULT_WEIGHT_SETTINGS

    db = SessionLocal()
    try:
        ensure_system_session(db)
        if db.scalars(select(WeightSettingsRecord).limit(1)).first() is None:
            db.add(WeightSettingsRecord(**DEFAULT_WEIGHT_SETTINGS.to_dict()))
            db.commit()
    finally:
        db.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Ensure the raffle database exists")
    parser.add_argument("--url", default=None, help="Override database URL")
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Provision the system session and default weight settings (run after migrations).",
    )
    args = parser.parse_args()

    url = args.url or settings.effective_database_url
    try:
        created = ensure_database_exists(url)
        print(f"[ensure_db] database {'created' if created else 'already exists'}")
        if args.seed:
            seed_defaults()
            print("[ensure_db] seeded defaults")
    except (ValueError, psycopg.Error, SQLAlchemyError) as exc:
        print(f"[ensure_db] ERROR: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
