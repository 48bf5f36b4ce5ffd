"""Routers package for the messaging API."""

from .admin import router as admin_router
from .messages import router as messages_router

__all__ = ["admin_router", "messages_router"]
