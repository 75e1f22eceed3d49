"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .raffle import (
    DrawResponse,
    EndSessionRequest,
    EntryCreate,
    EntryResponse,
    LeaderboardResponse,
    SessionResponse,
    StartSessionRequest,
    StatusResponse,
    SubmissionsToggle,
)
from .support import SupportEventIn, SupportEventResponse
from .users import SessionBonusUpdate, UserResponse, UserWeightResponse
from .weights import WeightBreakdownResponse, WeightSettingsResponse, WeightSettingsUpdate

__all__ = [
    "DrawResponse", "EndSessionRequest", "EntryCreate", "EntryResponse",
    "LeaderboardResponse", "SessionResponse", "StartSessionRequest",
    "StatusResponse", "SubmissionsToggle",
    "SupportEventIn", "SupportEventResponse",
    "SessionBonusUpdate", "UserResponse", "UserWeightResponse",
    "WeightBreakdownResponse", "WeightSettingsResponse", "WeightSettingsUpdate",
]
