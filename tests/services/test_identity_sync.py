"""Tests for identity provider sync."""

from collections.abc import Callable
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from stream_raffle.db.time import utcnow
from stream_raffle.models import User
from stream_raffle.services.identity_sync import (
    TRIGGER_MANUAL,
    TRIGGER_MISSING_LAST_SYNC,
    TRIGGER_NEEDS_RESYNC,
    TRIGGER_STALE,
    IdentitySnapshot,
    get_sync_trigger,
    sync_all_users,
    sync_user_identity,
)
from stream_raffle.services.weight_settings import WeightSettingsStore


@pytest.fixture()
def provider(mocker):
    provider = mocker.Mock()
    provider.fetch.side_effect = lambda external_id: IdentitySnapshot(
        external_user_id=external_id,
        display_name=f"Fresh {external_id}",
        is_following=True,
        is_subscriber=True,
        sub_months=8,
    )
    return provider


def test_sync_trigger_reasons(make_user: Callable[..., User]) -> None:
    now = utcnow()
    assert get_sync_trigger(make_user(needs_resync=True), now) == TRIGGER_NEEDS_RESYNC
    assert get_sync_trigger(make_user(), now) == TRIGGER_MISSING_LAST_SYNC
    stale = make_user(last_synced_at=now - timedelta(hours=1))
    assert get_sync_trigger(stale, now) == TRIGGER_STALE
    fresh = make_user(last_synced_at=now - timedelta(seconds=5))
    assert get_sync_trigger(fresh, now) is None


def test_sync_updates_loyalty_and_weight(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
    provider,
) -> None:
    user = make_user(is_follower=False, needs_resync=True)

    result = sync_user_identity(db_session, user.id, provider, store=settings_store)

    assert result.ok
    assert result.value.updated is True
    assert result.value.reason == TRIGGER_NEEDS_RESYNC
    db_session.refresh(user)
    assert user.is_follower is True
    assert user.sub_months == 8
    assert user.needs_resync is False
    assert user.display_name == f"Fresh {user.external_id}"
    assert user.total_weight == pytest.approx(4.0)


def test_sync_respects_cooldown_unless_forced(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
    provider,
) -> None:
    user = make_user(last_synced_at=utcnow())

    skipped = sync_user_identity(db_session, user.id, provider, store=settings_store)
    forced = sync_user_identity(db_session, user.id, provider, force=True, store=settings_store)

    assert skipped.value.updated is False
    assert skipped.value.reason == "cooldown"
    assert forced.value.updated is True
    assert forced.value.reason == TRIGGER_MANUAL
    assert provider.fetch.call_count == 1


def test_provider_failure_keeps_cached_state(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
    mocker,
) -> None:
    user = make_user(sub_months=2, is_subscriber=True)
    failing = mocker.Mock()
    failing.fetch.side_effect = RuntimeError("provider down")

    result = sync_user_identity(db_session, user.id, failing, store=settings_store)

    assert result.ok
    assert result.value.updated is False
    assert result.value.reason == "provider_error"
    db_session.refresh(user)
    assert user.sub_months == 2


def test_sync_unknown_user(db_session: Session, provider) -> None:
    assert not sync_user_identity(db_session, 999, provider).ok


def test_sync_all_users(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
    provider,
) -> None:
    make_user()
    make_user(last_synced_at=utcnow())

    result = sync_all_users(db_session, provider, store=settings_store)

    assert result.value == 1
