"""Model describing direct messages between two nicknames."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from presence_relay.db.session import Base
from presence_relay.db.time import utcnow


class Message(Base):
    """Immutable direct message, indexed by its conversation key.

    Both participants derive the same ``conversation_key`` so history is
    shared by the pair regardless of who sent what.
    """

    __tablename__ = "message"
    __table_args__ = (
        Index(
            "ix_message_conversation_created",
            "conversation_key",
            "created_at",
            "message_id",
        ),
    )

    message_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    conversation_key: Mapped[str] = mapped_column(Text, nullable=False)
    sender: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
