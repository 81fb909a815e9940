"""Routers package."""

from app.routers.auth import router as auth_router
from app.routers.checkins import router as checkins_router

__all__ = [
    "auth_router",
    "checkins_router",
]
