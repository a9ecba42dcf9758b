"""Data access helpers for the ``Connections`` table."""
from __future__ import annotations

from sqlalchemy import delete, select

from presence_relay.db.time import utcnow
from presence_relay.models.connection import Connection

from .base import Repository

__all__ = ["ConnectionRepository"]


class ConnectionRepository(Repository):
    """Point lookups, nickname index queries and idempotent writes for sessions."""

    def get(self, connection_id: str) -> Connection | None:
        """Return the connection with the given primary key."""
        with self._store_operation("connection lookup"):
            return self.session.get(Connection, connection_id)

    def find_by_nickname(self, nickname: str) -> Connection | None:
        """Return the most recent binding for ``nickname`` via the secondary index."""
        with self._store_operation("nickname lookup"):
            result = self.session.execute(
                select(Connection)
                .where(Connection.nickname == nickname)
                .order_by(Connection.connected_at.desc())
                .limit(1)
            )
            return result.scalars().first()

    def list_all(self) -> list[Connection]:
        """Return every stored connection."""
        with self._store_operation("connection scan"):
            result = self.session.execute(select(Connection))
            return list(result.scalars())

    def upsert(self, connection_id: str, nickname: str) -> Connection:
        """Insert or overwrite the binding for ``connection_id``."""
        with self._store_operation("connection upsert"):
            connection = self.session.get(Connection, connection_id)
            if connection is None:
                connection = Connection(connection_id=connection_id, nickname=nickname)
                self.session.add(connection)
            else:
                connection.nickname = nickname
                connection.connected_at = utcnow()
            self.session.commit()
            return connection

    def delete(self, connection_id: str) -> bool:
        """Delete the binding for ``connection_id``.

        Returns:
            True if a row was removed; deleting a missing id is not an error.
        """
        with self._store_operation("connection delete"):
            result = self.session.execute(
                delete(Connection).where(Connection.connection_id == connection_id)
            )
            self.session.commit()
            return bool(result.rowcount)
