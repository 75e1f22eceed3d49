"""Carry-over of session weight into the next session.

When a session ends, each non-winning participant keeps a fraction of the
weight they earned during that session (``total - carry_over``) as a capped
bonus for the next one. Winners and ``reset_weights`` runs zero the bonus.

The fold is not idempotent: running it twice for one session double-applies
the bonus. :func:`stream_raffle.services.session_manager.end_session` runs it
inside the same transaction that flips the session to ENDED, which is what
guarantees at-most-once application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stream_raffle.core.settings import settings as app_settings
from stream_raffle.models import Entry, User
from stream_raffle.services.results import ErrorCode, ServiceResult
from stream_raffle.services.users import apply_weights
from stream_raffle.services.weight_engine import WeightSettings
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CarryOverUpdate:
    user_id: int
    username: str
    carry_over_weight: float
    total_weight: float


@dataclass
class CarryOverOutcome:
    updated_count: int = 0
    users: list[CarryOverUpdate] = field(default_factory=list)


def next_carry_over(
    total_weight: float,
    carry_over_weight: float,
    settings: WeightSettings,
) -> float:
    """Return the carry-over a non-winner takes into the next session."""
    session_weight = max(0.0, total_weight - carry_over_weight)
    raw = carry_over_weight + session_weight * settings.carry_over_multiplier
    return min(raw, settings.carry_over_max_bonus)


def _participants(db: Session, session_id: int) -> tuple[list[int], set[int]]:
    rows = db.execute(
        select(Entry.user_id, Entry.is_winner)
        .where(Entry.session_id == session_id)
        .order_by(Entry.id)
    ).all()
    participant_ids: list[int] = []
    winner_ids: set[int] = set()
    for user_id, is_winner in rows:
        if user_id is None:
            continue
        if user_id not in participant_ids:
            participant_ids.append(user_id)
        if is_winner:
            winner_ids.add(user_id)
    return participant_ids, winner_ids


def fold_carry_over(
    db: Session,
    session_id: int,
    reset_weights: bool,
    settings: WeightSettings,
    batch_size: int | None = None,
) -> CarryOverOutcome:
    """Apply carry-over to every participant without committing.

    Raises ``SQLAlchemyError`` on store failures; the caller owns the transaction.
    """
    batch_size = batch_size or app_settings.carry_over_batch_size
    participant_ids, winner_ids = _participants(db, session_id)
    outcome = CarryOverOutcome()

    for start in range(0, len(participant_ids), batch_size):
        batch_ids = participant_ids[start:start + batch_size]
        users = db.scalars(
            select(User)
            .where(User.id.in_(batch_ids))
            .order_by(User.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).all()
        # Participants without a user row are skipped.
        for user in users:
            if reset_weights or user.id in winner_ids:
                new_carry = 0.0
            else:
                new_carry = next_carry_over(user.total_weight, user.carry_over_weight, settings)
            user.carry_over_weight = new_carry
            breakdown = apply_weights(user, settings)
            outcome.users.append(
                CarryOverUpdate(
                    user_id=user.id,
                    username=user.label,
                    carry_over_weight=new_carry,
                    total_weight=breakdown.total_weight,
                )
            )

    outcome.updated_count = len(outcome.users)
    db.flush()
    return outcome


def apply_carry_over_for_session(
    db: Session,
    session_id: int,
    reset_weights: bool = False,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[CarryOverOutcome]:
    """Apply carry-over for ``session_id`` in its own transaction.

    Prefer :func:`stream_raffle.services.session_manager.end_session`, which
    couples this with ending the session.
    """
    store = store or get_weight_settings_store()
    try:
        outcome = fold_carry_over(db, session_id, reset_weights, store.get(db))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("Carry-over failed for session %s", session_id, exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info(
        "Applied carry-over for session %s to %d users (reset=%s)",
        session_id,
        outcome.updated_count,
        reset_weights,
    )
    return ServiceResult.success(outcome)
