"""User-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .weights import WeightBreakdownResponse, WeightSettingsResponse


class UserResponse(BaseModel):
    """Schema for user information returned by the admin API."""

    id: int
    external_id: str
    username: str | None
    display_name: str | None
    is_follower: bool
    is_subscriber: bool
    sub_months: int
    total_cheer_bits: int
    total_gifted_subs: int
    carry_over_weight: float
    session_bonus: float
    total_weight: float
    current_weight: float
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)


class SessionBonusUpdate(BaseModel):
    session_bonus: float = Field(..., ge=0, allow_inf_nan=False)


class UserWeightResponse(BaseModel):
    user: UserResponse
    breakdown: WeightBreakdownResponse
    settings: WeightSettingsResponse
    chance_percent: float | None
    chance: str | None
