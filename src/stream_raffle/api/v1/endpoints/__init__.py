"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .events import router as events_router
from .public import router as public_router

__all__ = [
    "admin_router",
    "events_router",
    "public_router",
]
