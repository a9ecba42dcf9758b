# src/presence_relay/utils/conversation.py
"""Helpers for deriving conversation keys."""

from __future__ import annotations

CONVERSATION_KEY_SEPARATOR = "#"


def conversation_key(first: str, second: str) -> str:
    """Return the order-independent key shared by two participants.

    The nicknames are sorted lexicographically before joining, so
    ``conversation_key("bob", "alice") == conversation_key("alice", "bob")``.
    """
    return CONVERSATION_KEY_SEPARATOR.join(sorted((first, second)))
