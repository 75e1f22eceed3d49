"""Session, entry, and draw schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StartSessionRequest(BaseModel):
    name: str | None = Field(None, max_length=200)


class EndSessionRequest(BaseModel):
    reset_weights: bool = Field(False, description="Zero carry-over for every participant")


class SubmissionsToggle(BaseModel):
    submissions_open: bool


class SessionResponse(BaseModel):
    """Schema for session information returned by the API."""

    id: int
    name: str | None
    status: str
    created_at: datetime
    ended_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class CarryOverUserResponse(BaseModel):
    user_id: int
    username: str
    carry_over_weight: float
    total_weight: float


class EndSessionResponse(BaseModel):
    session: SessionResponse
    updated_count: int
    users: list[CarryOverUserResponse]


class EntryCreate(BaseModel):
    """Schema for submitting an entry."""

    name: str | None = Field(None, max_length=100)
    external_user_id: str | None = Field(None, description="Linked viewer, omitted for anonymous entries")
    link: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)


class EntryResponse(BaseModel):
    id: int
    session_id: int
    user_id: int | None
    name: str
    link: str | None
    notes: str | None
    is_winner: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WeightedEntryResponse(BaseModel):
    entry_id: int
    name: str
    user_id: int | None
    weight: float


class DrawResponse(BaseModel):
    winner: WeightedEntryResponse
    total_weight: float
    spin_list: list[WeightedEntryResponse]


class LeaderboardRowResponse(BaseModel):
    entry_id: int
    name: str
    weight: float
    probability: float
    chance: str


class LeaderboardResponse(BaseModel):
    session_id: int | None
    total_entries: int
    total_weight: float
    entries: list[LeaderboardRowResponse]


class StatusResponse(BaseModel):
    submissions_open: bool
    has_active_session: bool
    session_id: int | None
    last_entry_at: datetime | None
    updated_at: datetime
