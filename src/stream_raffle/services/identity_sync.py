"""Reconciling loyalty counters with the identity provider.

The provider is the source of truth for follow and subscriber state. Support
events flag users with ``needs_resync``; reads of a stale or flagged user
pull a fresh snapshot, subject to a per-user cooldown.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stream_raffle.core.settings import settings as app_settings
from stream_raffle.db.time import as_utc, utcnow
from stream_raffle.models import User
from stream_raffle.services.results import ErrorCode, ServiceResult
from stream_raffle.services.users import apply_weights
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store

logger = logging.getLogger(__name__)

TRIGGER_NEEDS_RESYNC = "needs_resync"
TRIGGER_MISSING_LAST_SYNC = "missing_last_sync"
TRIGGER_STALE = "stale"
TRIGGER_MANUAL = "manual"


@dataclass(frozen=True)
class IdentitySnapshot:
    external_user_id: str
    display_name: str | None
    is_following: bool
    is_subscriber: bool
    sub_months: int


class IdentityProvider(Protocol):
    def fetch(self, external_user_id: str) -> IdentitySnapshot:
        """Return current follow/subscription state for one viewer."""


@dataclass(frozen=True)
class SyncResult:
    user: User
    updated: bool
    reason: str | None = None


def get_sync_trigger(user: User, now: datetime | None = None) -> str | None:
    """Return why ``user`` should be re-synced, or None if they are fresh."""
    if user.needs_resync:
        return TRIGGER_NEEDS_RESYNC
    if user.last_synced_at is None:
        return TRIGGER_MISSING_LAST_SYNC
    now = now or utcnow()
    stale_after = timedelta(seconds=app_settings.identity_sync_stale_seconds)
    if now - as_utc(user.last_synced_at) > stale_after:
        return TRIGGER_STALE
    return None


def sync_user_identity(
    db: Session,
    user_id: int,
    provider: IdentityProvider,
    force: bool = False,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[SyncResult]:
    """Pull a snapshot for one user and recompute their weight."""
    store = store or get_weight_settings_store()
    user = db.get(User, user_id)
    if user is None:
        return ServiceResult.failure(ErrorCode.NOT_FOUND, "User not found")

    now = utcnow()
    cooldown = timedelta(seconds=app_settings.identity_sync_cooldown_seconds)
    within_cooldown = (
        user.last_synced_at is not None and now - as_utc(user.last_synced_at) < cooldown
    )
    if not force and not user.needs_resync and within_cooldown:
        return ServiceResult.success(SyncResult(user=user, updated=False, reason="cooldown"))

    trigger = TRIGGER_MANUAL if force else get_sync_trigger(user, now)
    try:
        snapshot = provider.fetch(user.external_id)
    except Exception:
        # Provider outages leave cached state in place; the next read retries.
        logger.warning("Identity fetch failed for user %s", user.id, exc_info=True)
        return ServiceResult.success(SyncResult(user=user, updated=False, reason="provider_error"))

    try:
        user = db.scalars(
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).one()
        if snapshot.display_name:
            user.display_name = snapshot.display_name
        user.is_follower = bool(snapshot.is_following)
        user.is_subscriber = bool(snapshot.is_subscriber)
        user.sub_months = max(0, int(snapshot.sub_months or 0))
        user.needs_resync = False
        user.last_synced_at = now
        apply_weights(user, store.get(db))
        db.commit()
        db.refresh(user)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to persist identity sync for user %s", user_id, exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    logger.info("Synced identity for user %s trigger=%s", user.id, trigger)
    return ServiceResult.success(SyncResult(user=user, updated=True, reason=trigger))


def sync_all_users(
    db: Session,
    provider: IdentityProvider,
    force: bool = False,
    store: WeightSettingsStore | None = None,
) -> ServiceResult[int]:
    """Sync every user sequentially; returns how many rows were updated."""
    user_ids = list(db.scalars(select(User.id).order_by(User.id)))
    updated = 0
    for user_id in user_ids:
        result = sync_user_identity(db, user_id, provider, force=force, store=store)
        if not result.ok:
            return ServiceResult.failure(result.error, result.message)
        if result.value is not None and result.value.updated:
            updated += 1
    logger.info("Identity sync updated %d of %d users", updated, len(user_ids))
    return ServiceResult.success(updated)
