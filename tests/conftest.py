# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count
from typing import Any

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stream_raffle.api.v1.dependencies import get_settings_store_dep
from stream_raffle.core.settings import settings
from stream_raffle.db.session import Base, build_engine
from stream_raffle.db.session import get_db as app_get_session
from stream_raffle.main import app as fastapi_app
from stream_raffle.models import Entry, RaffleSession, User
from stream_raffle.models.raffle_session import SESSION_STATUS_ACTIVE, SESSION_STATUS_ENDED
from stream_raffle.services.session_manager import ensure_system_session
from stream_raffle.services.users import apply_weights
from stream_raffle.services.weight_engine import DEFAULT_WEIGHT_SETTINGS
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store

TEST_DB_URL = "sqlite://"
ADMIN_TOKEN = "test-admin-token"
INGRESS_TOKEN = "test-ingress-token"

_USER_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    """Session whose commits land in savepoints of one outer transaction."""
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

        if transaction.is_active:
            transaction.rollback()
        connection.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def settings_store() -> WeightSettingsStore:
    """An uncached store so settings writes are visible immediately."""
    return WeightSettingsStore(ttl_seconds=0)


@pytest.fixture(autouse=True)
def reset_shared_store() -> Iterator[None]:
    get_weight_settings_store().invalidate()
    yield
    get_weight_settings_store().invalidate()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    settings_store: WeightSettingsStore,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_settings_store_dep] = lambda: settings_store
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_settings_store_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def admin_headers(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    monkeypatch.setattr(settings, "admin_token", ADMIN_TOKEN)
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture()
def ingress_headers(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    monkeypatch.setattr(settings, "ingress_token", INGRESS_TOKEN)
    return {"Authorization": f"Bearer {INGRESS_TOKEN}"}


@pytest.fixture()
def system_session(db_session: Session) -> RaffleSession:
    return ensure_system_session(db_session)


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Factory for committed users with cached weights already applied."""

    def _make_user(**overrides: Any) -> User:
        number = next(_USER_COUNTER)
        fields: dict[str, Any] = {
            "external_id": f"ext-{number}",
            "username": f"viewer{number}",
            "display_name": f"Viewer {number}",
            "is_follower": True,
        }
        fields.update(overrides)
        user = User(**fields)
        apply_weights(user, DEFAULT_WEIGHT_SETTINGS)
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def make_session(db_session: Session) -> Callable[..., RaffleSession]:
    def _make_session(status: str = SESSION_STATUS_ACTIVE, name: str | None = None) -> RaffleSession:
        session = RaffleSession(name=name or f"Session {status.lower()}", status=status)
        db_session.add(session)
        db_session.commit()
        return session

    return _make_session


@pytest.fixture()
def make_entry(db_session: Session) -> Callable[..., Entry]:
    def _make_entry(
        session: RaffleSession,
        user: User | None = None,
        name: str | None = None,
        is_winner: bool = False,
    ) -> Entry:
        entry = Entry(
            session_id=session.id,
            user_id=user.id if user is not None else None,
            name=name or (user.label if user is not None else "anonymous"),
            is_winner=is_winner,
        )
        db_session.add(entry)
        db_session.commit()
        return entry

    return _make_entry


@pytest.fixture()
def active_session(make_session: Callable[..., RaffleSession]) -> RaffleSession:
    return make_session(SESSION_STATUS_ACTIVE, name="Live")


@pytest.fixture()
def ended_session(make_session: Callable[..., RaffleSession]) -> RaffleSession:
    return make_session(SESSION_STATUS_ENDED, name="Yesterday")
