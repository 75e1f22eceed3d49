"""Weighted-random winner selection with an exactly-once commit.

Weights are read outside the commit transaction; the chosen entry is then
re-fetched under a row lock and only flipped to a winner if nobody else got
there first. A lost race surfaces as a retryable ``ALREADY_PROCESSED``.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from stream_raffle.core.settings import settings as app_settings
from stream_raffle.db.time import utcnow
from stream_raffle.models import Entry, RaffleSession, User
from stream_raffle.models.raffle_session import SESSION_STATUS_ACTIVE
from stream_raffle.services.results import ErrorCode, ServiceResult
from stream_raffle.services.session_manager import get_current_session
from stream_raffle.services.users import apply_weights
from stream_raffle.services.weight_engine import WeightInputs, WeightSettings, compute_weight
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store

logger = logging.getLogger(__name__)

ANONYMOUS_ENTRY_WEIGHT = 1.0


@dataclass(frozen=True)
class WeightedEntry:
    entry_id: int
    name: str
    user_id: int | None
    weight: float


@dataclass
class DrawOutcome:
    winner: WeightedEntry
    total_weight: float
    spin_list: list[WeightedEntry] = field(default_factory=list)


def entry_weight(user: User | None, settings: WeightSettings) -> float:
    """Weight an entry draws with; anonymous entries count as 1.0."""
    if user is None:
        return ANONYMOUS_ENTRY_WEIGHT
    return compute_weight(WeightInputs.from_user(user), settings).total_weight


def load_weighted_entries(
    db: Session,
    session_id: int,
    settings: WeightSettings,
) -> list[WeightedEntry]:
    """Return the session's non-winner entries in stable id order."""
    rows = db.execute(
        select(Entry, User)
        .outerjoin(User, Entry.user_id == User.id)
        .where(Entry.session_id == session_id, Entry.is_winner.is_(False))
        .order_by(Entry.id)
    ).all()
    return [
        WeightedEntry(
            entry_id=entry.id,
            name=entry.name or (user.label if user is not None else "Unknown"),
            user_id=entry.user_id,
            weight=entry_weight(user, settings),
        )
        for entry, user in rows
    ]


def select_weighted_index(weights: Sequence[float], r: float) -> int:
    """Walk ``weights`` in order, subtracting each from ``r`` until it drops to 0 or below.

    Falls back to the last index if floating-point drift exhausts the walk.
    """
    if not weights:
        raise ValueError("weights must not be empty")
    remaining = r
    for index, weight in enumerate(weights):
        remaining -= weight
        if remaining <= 0:
            return index
    return len(weights) - 1


def draw(candidates: Sequence[WeightedEntry], rng: random.Random | None = None) -> tuple[WeightedEntry, float]:
    """Pick one candidate proportionally to its weight."""
    rng = rng or random.Random()
    total = sum(candidate.weight for candidate in candidates)
    r = rng.uniform(0, total)
    index = select_weighted_index([candidate.weight for candidate in candidates], r)
    return candidates[index], total


def _apply_lock_timeout(db: Session, timeout_seconds: float) -> None:
    if db.get_bind().dialect.name != "postgresql":
        return
    millis = max(1, int(timeout_seconds * 1000))
    db.execute(text(f"SET LOCAL lock_timeout = {millis}"))
    db.execute(text(f"SET LOCAL statement_timeout = {millis}"))


def commit_winner(
    db: Session,
    entry_id: int,
    session_id: int,
    timeout_seconds: float | None = None,
) -> ServiceResult[int | None]:
    """Flip ``entry_id`` to a winner exactly once and strip the winner's volatile counters.

    Returns the winning user's id (``None`` for anonymous entries).
    """
    timeout_seconds = timeout_seconds or app_settings.draw_timeout_seconds
    try:
        _apply_lock_timeout(db, timeout_seconds)
        entry = db.scalars(
            select(Entry)
            .where(Entry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if entry is None or entry.is_winner or entry.session_id != session_id:
            db.rollback()
            logger.info("Draw for entry %s lost a race; asking caller to retry", entry_id)
            return ServiceResult.failure(
                ErrorCode.ALREADY_PROCESSED,
                "Entry was already processed, try again",
            )

        entry.is_winner = True
        entry.won_at = utcnow()
        winner_user_id = entry.user_id
        if winner_user_id is not None:
            user = db.scalars(
                select(User)
                .where(User.id == winner_user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()
            if user is not None:
                user.total_cheer_bits = 0
                user.total_gifted_subs = 0
                user.total_donations = 0
                user.carry_over_weight = 0.0
        db.commit()
    except OperationalError:
        db.rollback()
        logger.warning("Winner commit for entry %s timed out", entry_id, exc_info=True)
        return ServiceResult.failure(ErrorCode.DRAW_TIMEOUT, "Draw timed out, try again")
    except SQLAlchemyError:
        db.rollback()
        logger.error("Winner commit for entry %s failed", entry_id, exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    return ServiceResult.success(winner_user_id)


def _refresh_winner_weights(db: Session, user_id: int, settings: WeightSettings) -> None:
    try:
        user = db.get(User, user_id)
        if user is None:
            return
        apply_weights(user, settings)
        db.commit()
    except SQLAlchemyError:
        # The counters are already zeroed; the next recompute job repairs the cache.
        db.rollback()
        logger.error("Failed to refresh weights for winner %s", user_id, exc_info=True)


def pick_winner(
    db: Session,
    session_id: int | None = None,
    rng: random.Random | None = None,
    store: WeightSettingsStore | None = None,
    timeout_seconds: float | None = None,
) -> ServiceResult[DrawOutcome]:
    """Draw a winner from the active session's non-winning entries."""
    store = store or get_weight_settings_store()
    try:
        if session_id is None:
            session = get_current_session(db)
        else:
            session = db.get(RaffleSession, session_id)
        if session is None or session.status != SESSION_STATUS_ACTIVE:
            return ServiceResult.failure(ErrorCode.NO_ACTIVE_SESSION, "No active session")

        weight_settings = store.get(db)
        candidates = load_weighted_entries(db, session.id, weight_settings)
    except SQLAlchemyError:
        db.rollback()
        logger.error("Failed to load draw candidates", exc_info=True)
        return ServiceResult.failure(ErrorCode.INTERNAL_ERROR)

    if not candidates:
        return ServiceResult.failure(
            ErrorCode.NO_PARTICIPANTS,
            "No participants available to choose from",
        )

    winner, total = draw(candidates, rng)
    session_id = session.id
    committed = commit_winner(db, winner.entry_id, session_id, timeout_seconds)
    if not committed.ok:
        return ServiceResult.failure(committed.error, committed.message)

    if committed.value is not None:
        _refresh_winner_weights(db, committed.value, weight_settings)

    spin_list = sorted(
        (candidate for candidate in candidates if candidate.entry_id != winner.entry_id),
        key=lambda candidate: candidate.weight,
        reverse=True,
    )[:app_settings.spin_list_size]

    logger.info(
        "Picked entry %s (weight %.3f of %.3f) in session %s",
        winner.entry_id,
        winner.weight,
        total,
        session_id,
    )
    return ServiceResult.success(DrawOutcome(winner=winner, total_weight=total, spin_list=spin_list))
