# src/stream_raffle/models/support_event.py
"""Dedupe records for inbound support events."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from stream_raffle.db.session import Base
from stream_raffle.db.time import utcnow


class ProcessedSupportEvent(Base):
    """Existence of a row means the delivery with this key was applied."""

    __tablename__ = "processed_support_event"

    dedupe_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    external_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
