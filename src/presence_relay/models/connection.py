# src/presence_relay/models/connection.py
"""SQLAlchemy model for live client sessions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from presence_relay.db.session import Base
from presence_relay.db.time import utcnow


class Connection(Base):
    """A volatile session bound to a nickname.

    The nickname index is not unique: uniqueness among live
    sessions is enforced by the registry's liveness probe, and a lost race can
    leave two rows for the same nickname until one of them is reaped.
    """

    __tablename__ = "connection"

    connection_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    nickname: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    connected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"Connection(connection_id={self.connection_id!r}, nickname={self.nickname!r})"
