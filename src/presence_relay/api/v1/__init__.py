# src/presence_relay/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import events_router, socket_router

__all__ = [
    "events_router",
    "socket_router",
]
