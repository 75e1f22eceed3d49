# src/stream_raffle/models/raffle_session.py
"""Model for raffle rounds."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from stream_raffle.db.session import Base
from stream_raffle.db.time import utcnow

SESSION_STATUS_ACTIVE = "ACTIVE"
SESSION_STATUS_ENDED = "ENDED"
SESSION_STATUS_SYSTEM = "SYSTEM"

SYSTEM_SESSION_NAME = "System Sentinel Session"


class RaffleSession(Base):
    """One raffle round. At most one row is ACTIVE at any time.

    A single SYSTEM row anchors process-wide state flags and is never shown
    to viewers.
    """

    __tablename__ = "raffle_session"
    __table_args__ = (
        Index("ix_raffle_session_status", "status"),
        # Second line of defence behind the locked check in start_new_session.
        Index(
            "uq_raffle_session_single_active",
            "status",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=SESSION_STATUS_ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == SESSION_STATUS_ACTIVE
