"""Version 1 API endpoints."""

from .endpoints import admin_router, events_router, public_router

__all__ = [
    "admin_router",
    "events_router",
    "public_router",
]
