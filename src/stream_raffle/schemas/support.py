"""Support event ingress schemas."""

from pydantic import BaseModel, Field


class SupportEventIn(BaseModel):
    """A support signal delivered by the event ingress."""

    type: str = Field(..., description="cheer or gifted_sub")
    user_id: str = Field(..., min_length=1, description="External platform user id")
    amount: float | None = Field(None, description="Bits cheered or subs gifted")
    dedupe_key: str = Field(..., min_length=1, max_length=255)
    is_anonymous: bool = False


class SupportEventResponse(BaseModel):
    status: str
    reason: str | None = None
    total_weight: float | None = None
