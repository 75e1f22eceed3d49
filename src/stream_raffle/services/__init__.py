# src/stream_raffle/services/__init__.py
"""Business logic services for the raffle."""

from .results import ErrorCode, ServiceResult
from .weight_engine import (
    DEFAULT_WEIGHT_SETTINGS,
    WeightBreakdown,
    WeightInputs,
    WeightSettings,
    compute_weight,
)
from .weight_settings import WeightSettingsStore, get_weight_settings_store

__all__ = [
    "DEFAULT_WEIGHT_SETTINGS",
    "ErrorCode",
    "ServiceResult",
    "WeightBreakdown",
    "WeightInputs",
    "WeightSettings",
    "WeightSettingsStore",
    "compute_weight",
    "get_weight_settings_store",
]
