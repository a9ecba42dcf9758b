# src/presence_relay/models/__init__.py
"""SQLAlchemy models for the Presence Relay service."""

from .connection import Connection
from .message import Message

__all__ = [
    "Connection",
    "Message",
]
