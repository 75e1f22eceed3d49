"""Weight-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, Field


class WeightSettingsResponse(BaseModel):
    """Current weight-formula constants."""

    base_weight: float
    sub_months_multiplier: float
    sub_months_cap: int
    resub_multiplier: float
    resub_cap: int
    cheer_bits_divisor: float
    cheer_bits_cap: float
    donations_divisor: float
    donations_cap: float
    gifted_subs_multiplier: float
    gifted_subs_cap: float
    carry_over_multiplier: float
    carry_over_max_bonus: float
    loyalty_max_bonus: float
    support_max_bonus: float

    model_config = ConfigDict(from_attributes=True)


class WeightSettingsUpdate(BaseModel):
    """Partial update; omitted fields keep their current value."""

    base_weight: float | None = Field(None, ge=0)
    sub_months_multiplier: float | None = Field(None, ge=0)
    sub_months_cap: int | None = Field(None, ge=0)
    resub_multiplier: float | None = Field(None, ge=0)
    resub_cap: int | None = Field(None, ge=0)
    cheer_bits_divisor: float | None = Field(None, gt=0)
    cheer_bits_cap: float | None = Field(None, ge=0)
    donations_divisor: float | None = Field(None, gt=0)
    donations_cap: float | None = Field(None, ge=0)
    gifted_subs_multiplier: float | None = Field(None, ge=0)
    gifted_subs_cap: float | None = Field(None, ge=0)
    carry_over_multiplier: float | None = Field(None, ge=0)
    carry_over_max_bonus: float | None = Field(None, ge=0)
    loyalty_max_bonus: float | None = Field(None, ge=0)
    support_max_bonus: float | None = Field(None, ge=0)


class WeightBreakdownResponse(BaseModel):
    """Every component of a computed weight."""

    base_weight: float
    effective_months: int
    months_component: float
    resub_component: float
    loyalty_raw: float
    loyalty: float
    cheer_weight: float
    donations_weight: float
    gifted_subs_weight: float
    support_raw: float
    support: float
    session_bonus: float
    carry_over_weight: float
    total_weight: float
    current_weight: float
