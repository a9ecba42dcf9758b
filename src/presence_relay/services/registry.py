"""Connection registry binding nicknames to volatile sessions.

The registry owns the ``Connections`` table and is the single place where a
failed push turns into a reap. Nickname uniqueness is best-effort: an existing
binding is probed with a ``ping`` and only a responsive session blocks a new
bind. Two binds racing between probe and write can both succeed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from presence_relay.core.errors import (
    ConnectionGoneError,
    InfrastructureError,
    NicknameTakenError,
    UnauthenticatedError,
)
from presence_relay.models import Connection
from presence_relay.repositories import ConnectionRepository
from presence_relay.schemas.events import ConnectRequest, validate_request
from presence_relay.schemas.push import ping_payload

from .gateway import PushGateway
from .presence import PresenceBroadcaster

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps connection ids to nicknames and reaps stale sessions."""

    def __init__(
        self,
        connections: ConnectionRepository,
        gateway: PushGateway,
        *,
        presence: PresenceBroadcaster | None = None,
    ) -> None:
        self.connections = connections
        self.gateway = gateway
        self.presence = presence or PresenceBroadcaster(self)

    async def bind(self, connection_id: str, nickname: str | None) -> Connection:
        """Bind ``nickname`` to a newly opened session.

        Raises:
            ValidationError: If the nickname is missing or blank.
            NicknameTakenError: If a live session already answers for the nickname.
        """
        request = validate_request(ConnectRequest, nickname=nickname)

        existing = self.connections.find_by_nickname(request.nickname)
        if existing is not None and existing.connection_id != connection_id:
            if await self.deliver(existing.connection_id, ping_payload()):
                logger.info(
                    "Rejected bind of %s to %s: held by live session %s",
                    request.nickname,
                    connection_id,
                    existing.connection_id,
                )
                raise NicknameTakenError(request.nickname)
            logger.info("Stale binding for %s reaped; rebinding", request.nickname)

        connection = self.connections.upsert(connection_id, request.nickname)
        logger.info("Bound %s to %s", request.nickname, connection_id)
        await self.presence.notify_all(exclude_id=connection_id)
        return connection

    async def unbind(self, connection_id: str) -> None:
        """Remove the binding for a closed session. Safe to repeat."""
        removed = self.connections.delete(connection_id)
        if removed:
            logger.info("Unbound %s", connection_id)
        await self.presence.notify_all(exclude_id=connection_id)

    def lookup(self, nickname: str) -> str | None:
        """Return the connection id currently bound to ``nickname``, if any."""
        connection = self.connections.find_by_nickname(nickname)
        return connection.connection_id if connection is not None else None

    def nickname_of(self, connection_id: str) -> str | None:
        connection = self.connections.get(connection_id)
        return connection.nickname if connection is not None else None

    def require_nickname(self, connection_id: str) -> str:
        """Return the caller's nickname or raise ``UnauthenticatedError``."""
        nickname = self.nickname_of(connection_id)
        if nickname is None:
            raise UnauthenticatedError(connection_id)
        return nickname

    def live_connections(self) -> list[Connection]:
        return self.connections.list_all()

    def reap(self, connection_id: str) -> None:
        """Delete a binding whose session is gone. Never raises."""
        try:
            if self.connections.delete(connection_id):
                logger.info("Reaped stale connection %s", connection_id)
        except InfrastructureError:
            logger.error("Failed to reap connection %s", connection_id, exc_info=True)

    async def deliver(self, connection_id: str, payload: Mapping[str, Any]) -> bool:
        """Push ``payload`` and reap the connection if its session is gone.

        Returns:
            True if the gateway accepted the push, False if the session was gone.

        Raises:
            InfrastructureError: If the gateway itself is unavailable.
        """
        try:
            await self.gateway.post_to_connection(connection_id, payload)
        except ConnectionGoneError:
            self.reap(connection_id)
            return False
        return True
