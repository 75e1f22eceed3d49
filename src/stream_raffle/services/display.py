"""Read-only projections for the display surface.

All weights shown here come from the same weight engine the draw uses, so the
leaderboard probabilities match the odds of the next draw.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stream_raffle.core.settings import settings as app_settings
from stream_raffle.models import Entry, RaffleSession, User
from stream_raffle.services.entries import get_submissions_open
from stream_raffle.services.session_manager import get_current_session, get_latest_ended_session
from stream_raffle.services.weight_engine import WeightBreakdown, WeightInputs, compute_weight
from stream_raffle.services.weight_settings import WeightSettingsStore, get_weight_settings_store
from stream_raffle.services.winner import load_weighted_entries


@dataclass(frozen=True)
class LeaderboardRow:
    entry_id: int
    name: str
    weight: float
    probability: float


@dataclass
class Leaderboard:
    session_id: int | None
    total_entries: int = 0
    total_weight: float = 0.0
    entries: list[LeaderboardRow] = field(default_factory=list)


@dataclass(frozen=True)
class UserWeightView:
    user: User
    breakdown: WeightBreakdown
    settings: dict[str, Any]
    chance_percent: float | None


@dataclass(frozen=True)
class RaffleStatus:
    submissions_open: bool
    has_active_session: bool
    session_id: int | None
    last_entry_at: datetime | None


def format_chance_percent(value: float) -> str:
    """Render a win probability (0-100) for humans."""
    if value is None or math.isnan(value):
        return ""
    clamped = max(0.0, min(100.0, value))
    if abs(clamped - round(clamped)) < 0.05:
        return f"{round(clamped)}%"
    if clamped >= 10:
        return f"{clamped:.1f}%"
    if clamped >= 0.01:
        return f"{clamped:.2f}%"
    return "<0.01%"


def get_leaderboard(
    db: Session,
    session_id: int | None = None,
    limit: int | None = None,
    store: WeightSettingsStore | None = None,
) -> Leaderboard:
    """Top non-winner entries by weight with win probability = weight / total x 100.

    With no active session, the most recently ended session is shown.
    """
    store = store or get_weight_settings_store()
    limit = limit or app_settings.leaderboard_size
    if session_id is None:
        session = get_current_session(db) or get_latest_ended_session(db)
        if session is None:
            return Leaderboard(session_id=None)
        session_id = session.id

    weighted = load_weighted_entries(db, session_id, store.get(db))
    total = sum(item.weight for item in weighted)
    rows = [
        LeaderboardRow(
            entry_id=item.entry_id,
            name=item.name,
            weight=item.weight,
            probability=(item.weight / total * 100) if total > 0 else 0.0,
        )
        for item in weighted
    ]
    rows.sort(key=lambda row: row.weight, reverse=True)
    return Leaderboard(
        session_id=session_id,
        total_entries=len(weighted),
        total_weight=total,
        entries=rows[:limit],
    )


def describe_user_weight(
    db: Session,
    user: User,
    store: WeightSettingsStore | None = None,
) -> UserWeightView:
    """Breakdown of one user's weight plus their chance in the active session."""
    store = store or get_weight_settings_store()
    weight_settings = store.get(db)
    breakdown = compute_weight(WeightInputs.from_user(user), weight_settings)

    chance: float | None = None
    session = get_current_session(db)
    if session is not None:
        weighted = load_weighted_entries(db, session.id, weight_settings)
        total = sum(item.weight for item in weighted)
        mine = sum(item.weight for item in weighted if item.user_id == user.id)
        if total > 0 and mine > 0:
            chance = mine / total * 100

    return UserWeightView(
        user=user,
        breakdown=breakdown,
        settings=weight_settings.to_dict(),
        chance_percent=chance,
    )


def get_status(db: Session) -> RaffleStatus:
    session = get_current_session(db)
    last_entry_at = None
    if session is not None:
        last_entry_at = db.scalar(
            select(func.max(Entry.created_at)).where(Entry.session_id == session.id)
        )
    return RaffleStatus(
        submissions_open=get_submissions_open(db),
        has_active_session=session is not None,
        session_id=session.id if session is not None else None,
        last_entry_at=last_entry_at,
    )


def get_latest_winner(db: Session) -> Entry | None:
    """Return the most recently drawn winning entry, if any."""
    return db.scalars(
        select(Entry)
        .join(RaffleSession, Entry.session_id == RaffleSession.id)
        .where(Entry.is_winner.is_(True))
        .order_by(Entry.won_at.desc(), Entry.id.desc())
        .limit(1)
    ).first()
