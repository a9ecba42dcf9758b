# src/presence_relay/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .events import router as events_router
from .socket import router as socket_router

__all__ = [
    "events_router",
    "socket_router",
]
