# src/stream_raffle/models/user.py
"""SQLAlchemy model for raffle participants."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stream_raffle.db.session import Base
from stream_raffle.db.time import utcnow


class User(Base):
    """Viewer identity plus the raw counters the weight formula reads.

    ``total_weight`` and ``current_weight`` are cached derivations; every
    writer persists both together so that
    ``current_weight + carry_over_weight == total_weight`` holds after each write.
    """

    __tablename__ = "raffle_user"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    external_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    username: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Loyalty counters, sourced from the identity provider.
    is_follower: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_subscriber: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sub_months: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resub_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Support counters. Volatile: zeroed on a win and at session start.
    total_cheer_bits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_donations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_gifted_subs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    carry_over_weight: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    session_bonus: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    total_weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    current_weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)

    # Set by support events so the next read re-pulls identity state.
    needs_resync: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    @property
    def label(self) -> str:
        """Return the best human-readable name for the user."""
        for candidate in (self.display_name, self.username, self.external_id):
            if candidate and candidate.strip():
                return candidate.strip()
        return f"user-{self.id}"
