"""Tests for support event ingestion."""

from collections.abc import Callable

import pytest
from sqlalchemy import insert, update
from sqlalchemy.orm import Session

from stream_raffle.models import ProcessedSupportEvent, User
from stream_raffle.services.results import ErrorCode
from stream_raffle.services.support import (
    EVENT_CHEER,
    EVENT_GIFTED_SUB,
    SupportEvent,
    SupportStatus,
    apply_support_event,
    normalize_event_type,
    parse_amount,
)
from stream_raffle.services.weight_settings import WeightSettingsStore


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(100, 100), ("250", 250), (2.9, 2), (0, 0), (-5, 0), (float("nan"), 0), (True, 0), ("lots", 0), (None, 0)],
)
def test_parse_amount(raw: object, expected: int) -> None:
    assert parse_amount(raw) == expected


def test_normalize_event_type_aliases() -> None:
    assert normalize_event_type("channel.cheer") == EVENT_CHEER
    assert normalize_event_type(" Gifted_Subs ") == EVENT_GIFTED_SUB
    assert normalize_event_type("channel.subscription.gift") == EVENT_GIFTED_SUB
    assert normalize_event_type("raid") is None


def test_cheer_updates_counters_and_weight(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
) -> None:
    user = make_user()

    result = apply_support_event(
        db_session,
        SupportEvent(type="cheer", external_user_id=user.external_id, amount=500, dedupe_key="evt-1"),
        store=settings_store,
    )

    assert result.ok
    assert result.value.status is SupportStatus.APPLIED
    assert result.value.total_weight == pytest.approx(6.0)
    db_session.refresh(user)
    assert user.total_cheer_bits == 500
    assert user.needs_resync is True
    assert user.total_weight == pytest.approx(6.0)
    assert user.current_weight == pytest.approx(6.0)


def test_gifted_subs_update_counters(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
) -> None:
    user = make_user(carry_over_weight=1.0)

    result = apply_support_event(
        db_session,
        SupportEvent(type="gifted_sub", external_user_id=user.external_id, amount=3, dedupe_key="gift-1"),
        store=settings_store,
    )

    assert result.value.status is SupportStatus.APPLIED
    db_session.refresh(user)
    assert user.total_gifted_subs == 3
    assert user.total_weight == pytest.approx(17.0)
    assert user.current_weight == pytest.approx(16.0)


def test_duplicate_delivery_applies_once(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
) -> None:
    user = make_user()
    event = SupportEvent(type="cheer", external_user_id=user.external_id, amount=100, dedupe_key="dup")

    first = apply_support_event(db_session, event, store=settings_store)
    second = apply_support_event(db_session, event, store=settings_store)

    assert first.value.status is SupportStatus.APPLIED
    assert second.ok
    assert second.value.status is SupportStatus.DUPLICATE
    db_session.refresh(user)
    assert user.total_cheer_bits == 100
    assert db_session.query(ProcessedSupportEvent).count() == 1


def test_anonymous_event_is_ignored(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
) -> None:
    user = make_user()

    result = apply_support_event(
        db_session,
        SupportEvent(
            type="cheer",
            external_user_id=user.external_id,
            amount=100,
            dedupe_key="anon",
            is_anonymous=True,
        ),
        store=settings_store,
    )

    assert result.value.status is SupportStatus.IGNORED
    db_session.refresh(user)
    assert user.total_cheer_bits == 0
    assert db_session.query(ProcessedSupportEvent).count() == 0


@pytest.mark.parametrize("amount", [0, -10, "abc", None])
def test_invalid_amount_is_ignored_without_dedupe_record(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
    amount: object,
) -> None:
    user = make_user()

    result = apply_support_event(
        db_session,
        SupportEvent(type="cheer", external_user_id=user.external_id, amount=amount, dedupe_key="bad"),
        store=settings_store,
    )

    assert result.ok
    assert result.value.status is SupportStatus.IGNORED
    assert db_session.query(ProcessedSupportEvent).count() == 0


def test_unknown_user_is_ignored(db_session: Session, settings_store: WeightSettingsStore) -> None:
    result = apply_support_event(
        db_session,
        SupportEvent(type="cheer", external_user_id="nobody", amount=100, dedupe_key="ghost"),
        store=settings_store,
    )

    assert result.value.status is SupportStatus.IGNORED
    assert result.value.reason == "unknown user"


def test_unsupported_type_is_a_validation_error(db_session: Session, settings_store: WeightSettingsStore) -> None:
    result = apply_support_event(
        db_session,
        SupportEvent(type="raid", external_user_id="someone", amount=10, dedupe_key="raid-1"),
        store=settings_store,
    )

    assert result.error is ErrorCode.VALIDATION_ERROR


def test_delivery_recorded_by_another_writer_is_a_duplicate(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
) -> None:
    user = make_user()

    # A concurrent delivery of the same key commits first.
    connection = db_session.connection()
    connection.execute(
        insert(ProcessedSupportEvent.__table__).values(
            dedupe_key="race",
            event_type=EVENT_CHEER,
            external_user_id=user.external_id,
        )
    )
    users = User.__table__
    connection.execute(update(users).where(users.c.id == user.id).values(total_cheer_bits=100))

    result = apply_support_event(
        db_session,
        SupportEvent(type="cheer", external_user_id=user.external_id, amount=100, dedupe_key="race"),
        store=settings_store,
    )

    assert result.value.status is SupportStatus.DUPLICATE
    assert db_session.query(ProcessedSupportEvent).count() == 1


def test_counters_build_on_rows_written_by_another_writer(
    db_session: Session,
    settings_store: WeightSettingsStore,
    make_user: Callable[..., User],
) -> None:
    user = make_user()
    users = User.__table__
    db_session.connection().execute(
        update(users).where(users.c.id == user.id).values(total_cheer_bits=300)
    )

    result = apply_support_event(
        db_session,
        SupportEvent(type="cheer", external_user_id=user.external_id, amount=200, dedupe_key="after-other"),
        store=settings_store,
    )

    assert result.value.status is SupportStatus.APPLIED
    assert result.value.total_weight == pytest.approx(6.0)
    db_session.refresh(user)
    assert user.total_cheer_bits == 500
