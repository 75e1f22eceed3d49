"""Loading and persisting the weight-formula constants.

Settings are read from the newest ``weight_settings`` row and cached for
``WEIGHT_SETTINGS_CACHE_SECONDS``. If the store is empty or unreachable the
hardcoded defaults are served instead, so a settings outage never blocks
entries or draws. Updates invalidate the cache.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Mapping
from threading import Lock
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stream_raffle.core.settings import settings as app_settings
from stream_raffle.db.time import utcnow
from stream_raffle.models import WeightSettingsRecord
from stream_raffle.services.results import ErrorCode, ServiceResult
from stream_raffle.services.weight_engine import DEFAULT_WEIGHT_SETTINGS, WeightSettings

logger = logging.getLogger(__name__)

_INTEGER_FIELDS = frozenset({"sub_months_cap", "resub_cap"})
_POSITIVE_FIELDS = frozenset({"cheer_bits_divisor", "donations_divisor"})


def _latest_record(db: Session) -> WeightSettingsRecord | None:
    return db.scalars(
        select(WeightSettingsRecord)
        .order_by(WeightSettingsRecord.updated_at.desc(), WeightSettingsRecord.id.desc())
        .limit(1)
    ).first()


def validate_settings_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Return a cleaned copy of ``changes`` or raise ``ValueError``.

    Unknown keys, non-numeric values, negatives, and non-finite numbers are
    rejected. Divisors must be strictly positive.
    """
    known = set(WeightSettings.field_names())
    cleaned: dict[str, Any] = {}
    for key, raw in changes.items():
        if key not in known:
            raise ValueError(f"Unknown weight setting: {key}")
        if raw is None:
            continue
        if isinstance(raw, bool):
            raise ValueError(f"{key} must be a number")
        try:
            number = float(raw)
        except (TypeError, ValueError) as err:
            raise ValueError(f"{key} must be a number") from err
        if not math.isfinite(number) or number < 0:
            raise ValueError(f"{key} must be a finite, non-negative number")
        if key in _POSITIVE_FIELDS and number == 0:
            raise ValueError(f"{key} must be greater than zero")
        cleaned[key] = int(number) if key in _INTEGER_FIELDS else number
    return cleaned


class WeightSettingsStore:
    """Read-mostly access to the weight settings row with a TTL cache."""

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = (
            app_settings.weight_settings_cache_seconds if ttl_seconds is None else ttl_seconds
        )
        self._clock = clock
        self._cached: WeightSettings | None = None
        self._cached_at = 0.0
        self._version = 0
        self._lock = Lock()

    def invalidate(self) -> None:
        """Drop the cached value so the next read hits the store."""
        with self._lock:
            self._cached = None
            self._cached_at = 0.0
            self._version += 1

    def get(self, db: Session) -> WeightSettings:
        """Return current settings, falling back to defaults on any store failure."""
        now = self._clock()
        with self._lock:
            if self._cached is not None and now - self._cached_at < self.ttl_seconds:
                return self._cached
            version = self._version

        try:
            # A failed read only rolls back this savepoint, never the caller's transaction.
            with db.begin_nested():
                record = _latest_record(db)
                loaded = WeightSettings.from_record(record) if record is not None else None
        except SQLAlchemyError:
            logger.warning("Weight settings store unavailable, using defaults", exc_info=True)
            return DEFAULT_WEIGHT_SETTINGS

        if loaded is None:
            return DEFAULT_WEIGHT_SETTINGS

        with self._lock:
            # Skip caching if an update invalidated the store mid-read.
            if self._version == version:
                self._cached = loaded
                self._cached_at = now
        return loaded

    def update(self, db: Session, changes: Mapping[str, Any]) -> ServiceResult[WeightSettings]:
        """Apply a partial update and persist it, creating the row if missing."""
        try:
            cleaned = validate_settings_changes(changes)
        except ValueError as err:
            return ServiceResult.failure(ErrorCode.VALIDATION_ERROR, str(err))

        try:
            record = _latest_record(db)
            if record is None:
                record = WeightSettingsRecord(**DEFAULT_WEIGHT_SETTINGS.to_dict())
                db.add(record)
            for key, value in cleaned.items():
                setattr(record, key, value)
            record.updated_at = utcnow()
            db.commit()
            db.refresh(record)
        except SQLAlchemyError:
            db.rollback()
            logger.error("Failed to update weight settings", exc_info=True)
            return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

        self.invalidate()
        updated = WeightSettings.from_record(record)
        logger.info("Weight settings updated: %s", sorted(cleaned))
        return ServiceResult.success(updated)


_STORE = WeightSettingsStore()


def get_weight_settings_store() -> WeightSettingsStore:
    """Return the process-wide settings store."""
    return _STORE
