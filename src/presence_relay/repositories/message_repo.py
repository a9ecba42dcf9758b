"""Data access helpers for the ``Messages`` table."""
from __future__ import annotations

import base64
import binascii
import json
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, or_, select

from presence_relay.db.time import as_utc, utcnow
from presence_relay.models.message import Message

from .base import Repository

__all__ = ["InvalidCursorError", "MessagePage", "MessageRepository"]


class InvalidCursorError(ValueError):
    """Raised when a pagination cursor was not produced by this repository."""


@dataclass(frozen=True)
class MessagePage:
    """One page of a conversation, newest first."""

    items: list[Message]
    last_evaluated_key: str | None


def encode_cursor(message: Message) -> str:
    """Encode the position of ``message`` as an opaque continuation token."""
    raw = json.dumps(
        {
            "createdAt": as_utc(message.created_at).isoformat(),
            "messageId": message.message_id,
        },
        separators=(",", ":"),
    ).encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(token: str) -> tuple[datetime, str]:
    """Return the ``(created_at, message_id)`` position encoded in ``token``."""
    padding = "=" * (-len(token) % 4)
    try:
        data = json.loads(base64.urlsafe_b64decode(token + padding))
        created_at = datetime.fromisoformat(data["createdAt"])
        message_id = str(data["messageId"])
    except (binascii.Error, ValueError, TypeError, KeyError) as exc:
        raise InvalidCursorError("Malformed pagination cursor") from exc
    return as_utc(created_at), message_id


class MessageRepository(Repository):
    """Persistence and keyset pagination for direct messages."""

    def create(self, *, conversation_key: str, sender: str, message: str) -> Message:
        """Insert and commit a new message with a fresh identifier."""
        with self._store_operation("message insert"):
            record = Message(
                message_id=str(uuid.uuid4()),
                conversation_key=conversation_key,
                sender=sender,
                message=message,
                created_at=utcnow(),
            )
            self.session.add(record)
            self.session.commit()
            return record

    def query_page(
        self,
        conversation_key: str,
        *,
        limit: int,
        cursor: str | None = None,
    ) -> MessagePage:
        """Return up to ``limit`` messages for a conversation, newest first.

        Args:
            conversation_key: Key shared by both participants.
            limit: Maximum number of rows in the page (must be positive).
            cursor: Token returned as ``last_evaluated_key`` by a previous page.

        Returns:
            The page; ``last_evaluated_key`` is set only when older rows remain.

        Raises:
            InvalidCursorError: If ``cursor`` cannot be decoded.
        """
        stmt = select(Message).where(Message.conversation_key == conversation_key)
        if cursor:
            created_at, message_id = decode_cursor(cursor)
            stmt = stmt.where(
                or_(
                    Message.created_at < created_at,
                    and_(Message.created_at == created_at, Message.message_id < message_id),
                )
            )
        # One extra row tells us whether another page exists.
        stmt = stmt.order_by(Message.created_at.desc(), Message.message_id.desc()).limit(limit + 1)

        with self._store_operation("message query"):
            rows = list(self.session.execute(stmt).scalars())

        items = rows[:limit]
        last_key = encode_cursor(items[-1]) if len(rows) > limit else None
        return MessagePage(items=items, last_evaluated_key=last_key)
