# src/stream_raffle/models/entry.py
"""Model for raffle submissions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stream_raffle.db.session import Base
from stream_raffle.db.time import utcnow

from .raffle_session import RaffleSession
from .user import User


class Entry(Base):
    """A single submission in a raffle session.

    Entries without a linked user are anonymous and draw with weight 1.0.
    """

    __tablename__ = "raffle_entry"
    __table_args__ = (
        Index("ix_raffle_entry_session_winner", "session_id", "is_winner"),
        Index("ix_raffle_entry_user_id", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("raffle_session.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("raffle_user.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    won_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    session: Mapped[RaffleSession] = relationship("RaffleSession")
    user: Mapped[User | None] = relationship("User")
