"""Batch weight recomputation and drift detection."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stream_raffle.core.settings import settings as app_settings
from stream_raffle.models import User
from stream_raffle.services.results import ErrorCode, ServiceResult
from stream_raffle.services.users import apply_weights
from stream_raffle.services.weight_engine import WeightInputs, compute_weight
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store

logger = logging.getLogger(__name__)

DRIFT_TOLERANCE = 1e-9


@dataclass(frozen=True)
class WeightDrift:
    user_id: int
    stored_total: float
    stored_current: float
    expected_total: float
    expected_current: float


def recalculate_all_weights(
    db: Session,
    batch_size: int | None = None,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[int]:
    """Recompute and persist every user's weight in id-ordered batches.

    Each batch commits on its own so a long run never holds every row lock.
    Returns the number of users processed.
    """
    batch_size = batch_size or app_settings.recalc_batch_size
    store = store or get_weight_settings_store()
    weight_settings = store.get(db)

    processed = 0
    last_id = 0
    try:
        while True:
            users = db.scalars(
                select(User)
                .where(User.id > last_id)
                .order_by(User.id)
                .limit(batch_size)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).all()
            if not users:
                break
            for user in users:
                apply_weights(user, weight_settings)
            last_id = users[-1].id
            processed += len(users)
            db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error("Weight recalculation stopped after %d users", processed, exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info("Recalculated weights for %d users", processed)
    return ServiceResult.success(processed)


def find_weight_drift(db: Session, store: WeightSettingsStore | None = None) -> list[WeightDrift]:
    """List users whose cached weights disagree with the weight engine."""
    store = store or get_weight_settings_store()
    weight_settings = store.get(db)
    drifted: list[WeightDrift] = []
    for user in db.scalars(select(User).order_by(User.id)):
        expected = compute_weight(WeightInputs.from_user(user), weight_settings)
        if math.isclose(user.total_weight, expected.total_weight, abs_tol=DRIFT_TOLERANCE) and math.isclose(
            user.current_weight, expected.current_weight, abs_tol=DRIFT_TOLERANCE
        ):
            continue
        drifted.append(
            WeightDrift(
                user_id=user.id,
                stored_total=user.total_weight,
                stored_current=user.current_weight,
                expected_total=expected.total_weight,
                expected_current=expected.current_weight,
            )
        )
    return drifted
