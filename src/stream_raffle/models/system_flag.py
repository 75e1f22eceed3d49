# src/stream_raffle/models/system_flag.py
"""Small key/value table for process-wide raffle state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stream_raffle.db.session import Base
from stream_raffle.db.time import utcnow

SUBMISSIONS_OPEN_KEY = "submissions_open"


class SystemFlag(Base):
    """Named state value anchored to the SYSTEM session."""

    __tablename__ = "system_flag"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    session_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("raffle_session.id"),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
