"""Repositories backing the durable ``Connections`` and ``Messages`` tables."""

from .connection_repo import ConnectionRepository
from .message_repo import InvalidCursorError, MessagePage, MessageRepository

__all__ = [
    "ConnectionRepository",
    "InvalidCursorError",
    "MessagePage",
    "MessageRepository",
]
