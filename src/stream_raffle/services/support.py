"""Applying inbound support signals (cheers, gifted subs) to user counters.

Each event is applied end-to-end in one transaction: lock the user row,
record the dedupe key, bump the counter, recompute the weight. A failure at
any step rolls back the counter and the dedupe record together, so a
partially applied delivery is safe to retry. Redelivery of an already
applied key is a no-op success.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from stream_raffle.models import ProcessedSupportEvent, User
from stream_raffle.services.results import ErrorCode, ServiceResult
from stream_raffle.services.users import apply_weights
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store

logger = logging.getLogger(__name__)

EVENT_CHEER = "cheer"
EVENT_GIFTED_SUB = "gifted_sub"

# Upstream platform subscription names accepted as aliases.
_EVENT_ALIASES = {
    EVENT_CHEER: EVENT_CHEER,
    "channel.cheer": EVENT_CHEER,
    EVENT_GIFTED_SUB: EVENT_GIFTED_SUB,
    "gifted_subs": EVENT_GIFTED_SUB,
    "channel.subscription.gift": EVENT_GIFTED_SUB,
}


class SupportStatus(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


@dataclass(frozen=True)
class SupportEvent:
    """One inbound support signal as delivered by the event ingress."""

    type: str
    external_user_id: str
    amount: Any
    dedupe_key: str
    is_anonymous: bool = False


@dataclass(frozen=True)
class SupportOutcome:
    status: SupportStatus
    reason: str | None = None
    user_id: int | None = None
    total_weight: float | None = None


def normalize_event_type(event_type: str) -> str | None:
    return _EVENT_ALIASES.get((event_type or "").strip().lower())


def parse_amount(raw: Any) -> int:
    """Return the whole-number amount, or 0 for anything non-positive or non-finite."""
    if isinstance(raw, bool):
        return 0
    try:
        number = float(raw)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return max(0, math.floor(number))


def _ignored(reason: str) -> ServiceResult[SupportOutcome]:
    return ServiceResult.success(SupportOutcome(status=SupportStatus.IGNORED, reason=reason))


def _duplicate(event: SupportEvent) -> ServiceResult[SupportOutcome]:
    logger.info(
        "Duplicate support event ignored key=%s type=%s",
        event.dedupe_key,
        event.type,
    )
    return ServiceResult.success(
        SupportOutcome(status=SupportStatus.DUPLICATE, reason="already processed")
    )


def apply_support_event(
    db: Session,
    event: SupportEvent,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[SupportOutcome]:
    """Apply one support event to exactly one user."""
    if event.is_anonymous:
        # Anonymous supporters opt out of raffle weight.
        return _ignored("anonymous")

    event_type = normalize_event_type(event.type)
    if event_type is None:
        return ServiceResult.failure(ErrorCode.VALIDATION_ERROR, f"Unsupported event type: {event.type}")
    external_user_id = (event.external_user_id or "").strip()
    dedupe_key = (event.dedupe_key or "").strip()
    if not external_user_id or not dedupe_key:
        return ServiceResult.failure(
            ErrorCode.VALIDATION_ERROR,
            "external_user_id and dedupe_key are required",
        )

    amount = parse_amount(event.amount)
    if amount <= 0:
        logger.warning(
            "Support event with invalid amount skipped key=%s type=%s amount=%r",
            dedupe_key,
            event_type,
            event.amount,
        )
        return _ignored("invalid amount")

    store = store or get_weight_settings_store()
    weight_settings = store.get(db)
    try:
        user = db.scalars(
            select(User)
            .where(User.external_id == external_user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if user is None:
            db.rollback()
            logger.info("Support event for unknown user %s skipped", external_user_id)
            return _ignored("unknown user")

        if db.get(ProcessedSupportEvent, dedupe_key) is not None:
            db.rollback()
            return _duplicate(event)

        try:
            with db.begin_nested():
                db.add(
                    ProcessedSupportEvent(
                        dedupe_key=dedupe_key,
                        event_type=event_type,
                        external_user_id=external_user_id,
                    )
                )
        except IntegrityError:
            db.rollback()
            return _duplicate(event)

        if event_type == EVENT_CHEER:
            user.total_cheer_bits = (user.total_cheer_bits or 0) + amount
        else:
            user.total_gifted_subs = (user.total_gifted_subs or 0) + amount
        user.needs_resync = True
        breakdown = apply_weights(user, weight_settings)
        user_id = user.id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "Support event failed and was rolled back key=%s type=%s",
            dedupe_key,
            event_type,
            exc_info=True,
        )
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.debug("Applied %s x%d for user %s", event_type, amount, external_user_id)
    return ServiceResult.success(
        SupportOutcome(
            status=SupportStatus.APPLIED,
            user_id=user_id,
            total_weight=breakdown.total_weight,
        )
    )
