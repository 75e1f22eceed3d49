# src/stream_raffle/models/__init__.py
"""SQLAlchemy models for the raffle service."""

from .entry import Entry
from .raffle_session import RaffleSession
from .support_event import ProcessedSupportEvent
from .system_flag import SystemFlag
from .user import User
from .weight_settings import WeightSettingsRecord

__all__ = [
    "Entry",
    "RaffleSession",
    "ProcessedSupportEvent",
    "SystemFlag",
    "User",
    "WeightSettingsRecord",
]
