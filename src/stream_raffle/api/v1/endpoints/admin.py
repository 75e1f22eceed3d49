"""Admin control surface: sessions, draws, settings, and user edits."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, status

from stream_raffle.api.v1.dependencies import (
    SessionDep,
    SettingsStoreDep,
    raise_for_failure,
    require_admin,
)
from stream_raffle.schemas.raffle import (
    DrawResponse,
    EndSessionRequest,
    EndSessionResponse,
    EntryResponse,
    SessionResponse,
    StartSessionRequest,
    SubmissionsToggle,
)
from stream_raffle.schemas.users import SessionBonusUpdate, UserResponse
from stream_raffle.schemas.weights import WeightSettingsResponse, WeightSettingsUpdate
from stream_raffle.services import entries as entry_service
from stream_raffle.services import recalc as recalc_service
from stream_raffle.services import session_manager
from stream_raffle.services import users as user_service
from stream_raffle.services.winner import pick_winner

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/sessions/start", status_code=status.HTTP_201_CREATED)
def start_session(
    db: SessionDep,
    store: SettingsStoreDep,
    payload: StartSessionRequest | None = None,
) -> SessionResponse:
    """Open a new raffle session, carrying unresolved entries forward."""
    result = session_manager.start_new_session(db, payload.name if payload else None, store=store)
    if not result.ok:
        raise_for_failure(result)
    return SessionResponse.model_validate(result.value)


@router.post("/sessions/end")
def end_session(
    db: SessionDep,
    store: SettingsStoreDep,
    payload: EndSessionRequest | None = None,
) -> EndSessionResponse:
    """Apply carry-over and end the active session atomically."""
    reset_weights = payload.reset_weights if payload else False
    result = session_manager.end_session(db, reset_weights=reset_weights, store=store)
    if not result.ok:
        raise_for_failure(result)
    outcome = result.unwrap()
    return EndSessionResponse(
        session=SessionResponse.model_validate(outcome.session),
        updated_count=outcome.carry_over.updated_count,
        users=[asdict(update) for update in outcome.carry_over.users],
    )


@router.post("/draw")
def draw_winner(db: SessionDep, store: SettingsStoreDep) -> DrawResponse:
    """Draw a weighted-random winner from the active session."""
    result = pick_winner(db, store=store)
    if not result.ok:
        raise_for_failure(result)
    return DrawResponse.model_validate(asdict(result.unwrap()))


@router.get("/weight-settings")
def get_weight_settings(db: SessionDep, store: SettingsStoreDep) -> WeightSettingsResponse:
    """Return the weight constants currently in force."""
    return WeightSettingsResponse.model_validate(store.get(db).to_dict())


@router.put("/weight-settings")
def update_weight_settings(
    payload: WeightSettingsUpdate,
    db: SessionDep,
    store: SettingsStoreDep,
) -> WeightSettingsResponse:
    """Apply a partial update to the weight constants."""
    result = store.update(db, payload.model_dump(exclude_none=True))
    if not result.ok:
        raise_for_failure(result)
    return WeightSettingsResponse.model_validate(result.unwrap().to_dict())


@router.put("/submissions")
def set_submissions(payload: SubmissionsToggle, db: SessionDep) -> dict[str, bool]:
    """Open or close entry submissions."""
    result = entry_service.set_submissions_open(db, payload.submissions_open)
    if not result.ok:
        raise_for_failure(result)
    return {"submissions_open": bool(result.value)}


@router.get("/users")
def list_users(
    db: SessionDep,
    search: str | None = None,
    limit: int = Query(user_service.DEFAULT_USER_LIST_LIMIT, ge=1, le=user_service.MAX_USER_LIST_LIMIT),
) -> list[UserResponse]:
    """Search users for the admin table."""
    return [UserResponse.model_validate(user) for user in user_service.list_users(db, search, limit)]


@router.put("/users/{user_id}/session-bonus")
def set_session_bonus(
    user_id: int,
    payload: SessionBonusUpdate,
    db: SessionDep,
    store: SettingsStoreDep,
) -> UserResponse:
    """Set a manual bonus for one user."""
    result = user_service.set_session_bonus(db, user_id, payload.session_bonus, store=store)
    if not result.ok:
        raise_for_failure(result)
    return UserResponse.model_validate(result.value)


@router.post("/users/{user_id}/reset-support")
def reset_support(user_id: int, db: SessionDep, store: SettingsStoreDep) -> UserResponse:
    """Zero a user's cheer bits and gifted subs once their demo has been played."""
    result = user_service.reset_support_counters(db, user_id, store=store)
    if not result.ok:
        raise_for_failure(result)
    return UserResponse.model_validate(result.value)


@router.post("/recalc-weights")
def recalc_weights(db: SessionDep, store: SettingsStoreDep) -> dict[str, int]:
    """Recompute every user's cached weight."""
    result = recalc_service.recalculate_all_weights(db, store=store)
    if not result.ok:
        raise_for_failure(result)
    return {"processed": int(result.value or 0)}


@router.get("/weight-drift")
def weight_drift(db: SessionDep, store: SettingsStoreDep) -> list[dict[str, float]]:
    """List users whose cached weights disagree with the formula."""
    return [asdict(drift) for drift in recalc_service.find_weight_drift(db, store=store)]


@router.get("/entries")
def list_entries(db: SessionDep, session_id: int | None = None) -> list[EntryResponse]:
    """List entries for a session (default: the active one)."""
    return [EntryResponse.model_validate(entry) for entry in entry_service.list_entries(db, session_id)]


@router.delete("/entries/{entry_id}")
def delete_entry(entry_id: int, db: SessionDep) -> dict[str, int | str]:
    """Remove an entry."""
    result = entry_service.delete_entry(db, entry_id)
    if not result.ok:
        raise_for_failure(result)
    return {"status": "deleted", "entry_id": entry_id}
