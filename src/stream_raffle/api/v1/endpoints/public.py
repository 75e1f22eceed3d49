"""Public display endpoints: status, leaderboard, winner, and weights."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from stream_raffle.api.v1.dependencies import SessionDep, SettingsStoreDep, raise_for_failure
from stream_raffle.db.time import utcnow
from stream_raffle.schemas.raffle import (
    EntryCreate,
    EntryResponse,
    LeaderboardResponse,
    StatusResponse,
)
from stream_raffle.schemas.users import UserResponse, UserWeightResponse
from stream_raffle.schemas.weights import WeightBreakdownResponse, WeightSettingsResponse
from stream_raffle.services import display
from stream_raffle.services.entries import submit_entry
from stream_raffle.services.users import get_user_by_external_id

router = APIRouter(tags=["raffle"])


@router.get("/status")
def get_status(db: SessionDep) -> StatusResponse:
    """Report whether submissions are open and which session is active."""
    current = display.get_status(db)
    return StatusResponse(
        submissions_open=current.submissions_open,
        has_active_session=current.has_active_session,
        session_id=current.session_id,
        last_entry_at=current.last_entry_at,
        updated_at=utcnow(),
    )


@router.get("/leaderboard")
def get_leaderboard(db: SessionDep, store: SettingsStoreDep) -> LeaderboardResponse:
    """Top entries by weight with their chance of winning."""
    board = display.get_leaderboard(db, store=store)
    return LeaderboardResponse(
        session_id=board.session_id,
        total_entries=board.total_entries,
        total_weight=board.total_weight,
        entries=[
            {
                "entry_id": row.entry_id,
                "name": row.name,
                "weight": row.weight,
                "probability": row.probability,
                "chance": display.format_chance_percent(row.probability),
            }
            for row in board.entries
        ],
    )


@router.get("/winner")
def get_winner(db: SessionDep) -> EntryResponse:
    """Return the most recent winner."""
    entry = display.get_latest_winner(db)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No winner yet")
    return EntryResponse.model_validate(entry)


@router.get("/users/{external_id}/weight")
def get_user_weight(external_id: str, db: SessionDep, store: SettingsStoreDep) -> UserWeightResponse:
    """Weight breakdown and current chance for one viewer."""
    user = get_user_by_external_id(db, external_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    view = display.describe_user_weight(db, user, store=store)
    return UserWeightResponse(
        user=UserResponse.model_validate(view.user),
        breakdown=WeightBreakdownResponse.model_validate(view.breakdown.to_dict()),
        settings=WeightSettingsResponse.model_validate(view.settings),
        chance_percent=view.chance_percent,
        chance=(
            display.format_chance_percent(view.chance_percent)
            if view.chance_percent is not None
            else None
        ),
    )


@router.post("/entries", status_code=status.HTTP_201_CREATED)
def create_entry(payload: EntryCreate, db: SessionDep) -> EntryResponse:
    """Submit an entry to the active session."""
    user_id = None
    if payload.external_user_id:
        user = get_user_by_external_id(db, payload.external_user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        user_id = user.id
    result = submit_entry(
        db,
        name=payload.name,
        user_id=user_id,
        link=payload.link,
        notes=payload.notes,
    )
    if not result.ok:
        raise_for_failure(result)
    return EntryResponse.model_validate(result.value)
