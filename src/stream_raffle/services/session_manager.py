"""Session lifecycle: NONE -> ACTIVE -> ENDED -> ACTIVE -> ...

Starting and ending sessions is linearized globally by locking the permanent
SYSTEM session row before checking for an ACTIVE one. A partial unique index
on ``status = 'ACTIVE'`` backs the check at the database level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stream_raffle.db.time import utcnow
from stream_raffle.models import Entry, RaffleSession, User
from stream_raffle.models.raffle_session import (
    SESSION_STATUS_ACTIVE,
    SESSION_STATUS_ENDED,
    SESSION_STATUS_SYSTEM,
    SYSTEM_SESSION_NAME,
)
from stream_raffle.services.carry_over import CarryOverOutcome, fold_carry_over
from stream_raffle.services.results import ErrorCode, ServiceResult
from stream_raffle.services.users import apply_weights
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store

logger = logging.getLogger(__name__)


@dataclass
class EndSessionOutcome:
    session: RaffleSession
    carry_over: CarryOverOutcome


def get_current_session(db: Session) -> RaffleSession | None:
    """Return the single ACTIVE session, if any."""
    return db.scalars(
        select(RaffleSession)
        .where(RaffleSession.status == SESSION_STATUS_ACTIVE)
        .order_by(RaffleSession.created_at.desc(), RaffleSession.id.desc())
        .limit(1)
    ).first()


def get_latest_ended_session(db: Session) -> RaffleSession | None:
    """Return the most recently ended session, for "last results" displays."""
    return db.scalars(
        select(RaffleSession)
        .where(RaffleSession.status == SESSION_STATUS_ENDED)
        .order_by(RaffleSession.ended_at.desc(), RaffleSession.id.desc())
        .limit(1)
    ).first()


def ensure_system_session(db: Session) -> RaffleSession:
    """Get or create the permanent SYSTEM session. Idempotent."""
    system = db.scalars(
        select(RaffleSession)
        .where(RaffleSession.status == SESSION_STATUS_SYSTEM)
        .order_by(RaffleSession.id)
        .limit(1)
    ).first()
    if system is not None:
        return system

    system = RaffleSession(name=SYSTEM_SESSION_NAME, status=SESSION_STATUS_SYSTEM)
    db.add(system)
    db.commit()
    db.refresh(system)
    logger.info("Created system session %s", system.id)
    return system


def _lock_session_machine(db: Session) -> None:
    """Take the global session-lifecycle lock for the current transaction."""
    system = ensure_system_session(db)
    db.scalars(
        select(RaffleSession.id).where(RaffleSession.id == system.id).with_for_update()
    ).first()


def _reset_volatile_counters(db: Session, store: WeightSettingsStore) -> int:
    """Zero every user's support counters and recompute the affected weights."""
    users = db.scalars(
        select(User)
        .where(
            or_(
                User.total_cheer_bits != 0,
                User.total_gifted_subs != 0,
                User.total_donations != 0,
            )
        )
        .order_by(User.id)
        .with_for_update()
    ).all()
    if not users:
        return 0

    weight_settings = store.get(db)
    for user in users:
        user.total_cheer_bits = 0
        user.total_gifted_subs = 0
        user.total_donations = 0
        apply_weights(user, weight_settings)
    return len(users)


def start_new_session(
    db: Session,
    name: str | None = None,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[RaffleSession]:
    """Open a new ACTIVE session.

    In one transaction: refuse if a session is already ACTIVE, create the new
    session, move the previous session's unresolved entries into it, and
    reset every user's volatile support counters.
    """
    store = store or get_weight_settings_store()
    name = name.strip() if name and name.strip() else None
    try:
        _lock_session_machine(db)
        if get_current_session(db) is not None:
            db.rollback()
            return ServiceResult.failure(
                ErrorCode.ACTIVE_SESSION_EXISTS,
                "A session is already active",
            )

        previous = get_latest_ended_session(db)
        session = RaffleSession(name=name, status=SESSION_STATUS_ACTIVE)
        db.add(session)
        db.flush()

        migrated = 0
        if previous is not None:
            result = db.execute(
                update(Entry)
                .where(Entry.session_id == previous.id, Entry.is_winner.is_(False))
                .values(session_id=session.id)
                .execution_options(synchronize_session="fetch")
            )
            migrated = result.rowcount or 0

        reset = _reset_volatile_counters(db, store)
        db.commit()
        db.refresh(session)
    except IntegrityError:
        db.rollback()
        logger.info("Concurrent session start rejected by the single-active index")
        return ServiceResult.failure(ErrorCode.ACTIVE_SESSION_EXISTS, "A session is already active")
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to start a new session", exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info(
        "Started session %s (migrated %d entries, reset %d users)",
        session.id,
        migrated,
        reset,
    )
    return ServiceResult.success(session)


def _lock_active_session(db: Session) -> RaffleSession | None:
    return db.scalars(
        select(RaffleSession)
        .where(RaffleSession.status == SESSION_STATUS_ACTIVE)
        .order_by(RaffleSession.id.desc())
        .limit(1)
        .with_for_update()
    ).first()


def end_current_session(db: Session) -> ServiceResult[RaffleSession]:
    """Mark the ACTIVE session ENDED without touching carry-over."""
    try:
        _lock_session_machine(db)
        active = _lock_active_session(db)
        if active is None:
            db.rollback()
            return ServiceResult.failure(ErrorCode.NO_ACTIVE_SESSION, "No active session to end")
        active.status = SESSION_STATUS_ENDED
        active.ended_at = utcnow()
        db.commit()
        db.refresh(active)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to end the current session", exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info("Ended session %s", active.id)
    return ServiceResult.success(active)


def end_session(
    db: Session,
    reset_weights: bool = False,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[EndSessionOutcome]:
    """Apply carry-over and end the ACTIVE session in a single transaction.

    A concurrent second call blocks on the session lock and then sees
    ``NO_ACTIVE_SESSION``, so carry-over is applied at most once.
    """
    store = store or get_weight_settings_store()
    try:
        _lock_session_machine(db)
        active = _lock_active_session(db)
        if active is None:
            db.rollback()
            return ServiceResult.failure(ErrorCode.NO_ACTIVE_SESSION, "No active session to end")

        carry_over = fold_carry_over(db, active.id, reset_weights, store.get(db))
        active.status = SESSION_STATUS_ENDED
        active.ended_at = utcnow()
        db.commit()
        db.refresh(active)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to end session with carry-over", exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info(
        "Ended session %s, carry-over applied to %d users (reset=%s)",
        active.id,
        carry_over.updated_count,
        reset_weights,
    )
    return ServiceResult.success(EndSessionOutcome(session=active, carry_over=carry_over))
