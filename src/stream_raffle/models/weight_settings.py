# src/stream_raffle/models/weight_settings.py
"""Persisted weight-formula constants."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer
from sqlalchemy.orm import Mapped, mapped_column

from stream_raffle.db.session import Base
from stream_raffle.db.time import utcnow


class WeightSettingsRecord(Base):
    """Single configuration row; the newest ``updated_at`` wins."""

    __tablename__ = "weight_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    base_weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    sub_months_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    sub_months_cap: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    resub_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=0.2)
    resub_cap: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    cheer_bits_divisor: Mapped[float] = mapped_column(Float, nullable=False, default=100.0)
    cheer_bits_cap: Mapped[float] = mapped_column(Float, nullable=False, default=120.0)
    donations_divisor: Mapped[float] = mapped_column(Float, nullable=False, default=1000.0)
    donations_cap: Mapped[float] = mapped_column(Float, nullable=False, default=5.0)
    gifted_subs_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=5.0)
    gifted_subs_cap: Mapped[float] = mapped_column(Float, nullable=False, default=120.0)
    carry_over_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)
    carry_over_max_bonus: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    loyalty_max_bonus: Mapped[float] = mapped_column(Float, nullable=False, default=3.0)
    support_max_bonus: Mapped[float] = mapped_column(Float, nullable=False, default=120.0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
