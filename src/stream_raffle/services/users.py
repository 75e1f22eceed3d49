"""User provisioning and the single weight-persist path."""

from __future__ import annotations

import logging
import math

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stream_raffle.db.time import utcnow
from stream_raffle.models import User
from stream_raffle.services.results import ErrorCode, ServiceResult
from stream_raffle.services.weight_engine import (
    WeightBreakdown,
    WeightInputs,
    WeightSettings,
    compute_weight,
)
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store

__all__ = [
    "apply_weights",
    "ensure_user",
    "get_user_by_external_id",
    "list_users",
    "reset_support_counters",
    "set_session_bonus",
]

logger = logging.getLogger(__name__)

DEFAULT_USER_LIST_LIMIT = 20
MAX_USER_LIST_LIMIT = 50


def apply_weights(user: User, settings: WeightSettings) -> WeightBreakdown:
    """Recompute a user's weight and write ``total_weight``/``current_weight`` together.

    Every writer of a user row goes through here so the cached weights never
    drift from their derivation.
    """
    breakdown = compute_weight(WeightInputs.from_user(user), settings)
    user.total_weight = breakdown.total_weight
    user.current_weight = breakdown.current_weight
    user.last_updated = utcnow()
    return breakdown


def get_user_by_external_id(db: Session, external_id: str) -> User | None:
    return db.scalars(select(User).where(User.external_id == external_id)).first()


def ensure_user(
    db: Session,
    external_id: str,
    display_name: str | None = None,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[User]:
    """Return the user for ``external_id``, creating it with base weights if missing."""
    external_id = (external_id or "").strip()
    if not external_id:
        return ServiceResult.failure(ErrorCode.VALIDATION_ERROR, "external_id is required")

    store = store or get_weight_settings_store()
    try:
        user = get_user_by_external_id(db, external_id)
        if user is not None:
            # Backfill names on rows created before a display name was known.
            if display_name and not (user.display_name and user.username):
                user.display_name = user.display_name or display_name
                user.username = user.username or display_name
                db.commit()
            return ServiceResult.success(user)

        fallback = display_name or f"viewer-{external_id}"
        user = User(external_id=external_id, username=fallback, display_name=fallback)
        apply_weights(user, store.get(db))
        db.add(user)
        db.commit()
        db.refresh(user)
    except IntegrityError:
        # Lost a creation race; the other writer's row is just as good.
        db.rollback()
        user = get_user_by_external_id(db, external_id)
        if user is None:
            return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to provision user %s", external_id, exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info("Provisioned user %s", external_id)
    return ServiceResult.success(user)


def list_users(db: Session, search: str | None = None, limit: int = DEFAULT_USER_LIST_LIMIT) -> list[User]:
    """Return users for the admin table, most recently updated first."""
    limit = min(max(int(limit), 1), MAX_USER_LIST_LIMIT)
    query = select(User)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(User.username.ilike(pattern) | User.display_name.ilike(pattern))
    return list(db.scalars(query.order_by(User.last_updated.desc()).limit(limit)))


def set_session_bonus(
    db: Session,
    user_id: int,
    bonus: float,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[User]:
    """Set the admin override bonus for one user and recompute their weight."""
    try:
        bonus = float(bonus)
    except (TypeError, ValueError):
        return ServiceResult.failure(ErrorCode.VALIDATION_ERROR, "session_bonus must be a number")
    if not math.isfinite(bonus) or bonus < 0:
        return ServiceResult.failure(
            ErrorCode.VALIDATION_ERROR,
            "session_bonus must be a finite number >= 0",
        )

    store = store or get_weight_settings_store()
    try:
        user = db.scalars(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if user is None:
            return ServiceResult.failure(ErrorCode.NOT_FOUND, "User not found")
        user.session_bonus = bonus
        apply_weights(user, store.get(db))
        db.commit()
        db.refresh(user)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to set session bonus for user %s", user_id, exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    return ServiceResult.success(user)


def reset_support_counters(
    db: Session,
    user_id: int,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[User]:
    """Zero a user's cheer bits and gifted subs after their demo was played.

    Donations, carry-over and the session bonus are left alone.
    """
    store = store or get_weight_settings_store()
    try:
        user = db.scalars(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if user is None:
            return ServiceResult.failure(ErrorCode.NOT_FOUND, "User not found")
        user.total_cheer_bits = 0
        user.total_gifted_subs = 0
        apply_weights(user, store.get(db))
        db.commit()
        db.refresh(user)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to reset support counters for user %s", user_id, exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info("Reset support counters for user %s", user_id)
    return ServiceResult.success(user)
