"""Dispatch of inbound protocol events to the relay services.

Client errors are answered with an ``error`` push to the originating
connection and a successful acknowledgment; every other failure propagates so
the transport can report a server fault. Unknown actions are acknowledged
with a 500 and no push.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from presence_relay.core.errors import ClientError
from presence_relay.repositories import ConnectionRepository, MessageRepository
from presence_relay.schemas.events import parse_body
from presence_relay.schemas.push import error_payload

from .gateway import PushGateway
from .history import HistoryService
from .registry import ConnectionRegistry
from .relay import MessageRelay

logger = logging.getLogger(__name__)

ACTION_CONNECT = "connect"
ACTION_DISCONNECT = "disconnect"
ACTION_GET_CLIENTS = "getClients"
ACTION_SEND_MESSAGE = "sendMessage"
ACTION_GET_MESSAGES = "getMessages"

# Route keys used by connection-management gateways for session lifecycle.
_ACTION_ALIASES = {
    "$connect": ACTION_CONNECT,
    "$disconnect": ACTION_DISCONNECT,
}

# Actions raised by the transport itself when a session opens or closes.
LIFECYCLE_ACTIONS = frozenset({ACTION_CONNECT, ACTION_DISCONNECT, *_ACTION_ALIASES})

HTTP_OK = 200
HTTP_INTERNAL_SERVER_ERROR = 500


@dataclass(frozen=True)
class InboundEvent:
    """A single connection-scoped event delivered by a transport."""

    action: str
    connection_id: str
    body: Any = None
    query: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Acknowledgment:
    """Result reported back to the transport for one event.

    ``close`` asks the transport to terminate the session, used when a
    ``connect`` is rejected.
    """

    status_code: int
    body: str = ""
    close: bool = False

    @property
    def ok(self) -> bool:
        return self.status_code < HTTP_INTERNAL_SERVER_ERROR


Handler = Callable[[InboundEvent, dict[str, Any]], Awaitable[None]]


class EventRouter:
    """Routes inbound events by action tag."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        relay: MessageRelay,
        history: HistoryService,
    ) -> None:
        self.registry = registry
        self.relay = relay
        self.history = history
        self._handlers: dict[str, Handler] = {
            ACTION_CONNECT: self._handle_connect,
            ACTION_DISCONNECT: self._handle_disconnect,
            ACTION_GET_CLIENTS: self._handle_get_clients,
            ACTION_SEND_MESSAGE: self._handle_send_message,
            ACTION_GET_MESSAGES: self._handle_get_messages,
        }

    @classmethod
    def for_session(cls, session: Session, gateway: PushGateway) -> EventRouter:
        """Wire the services for one event over ``session`` and ``gateway``."""
        registry = ConnectionRegistry(ConnectionRepository(session), gateway)
        messages = MessageRepository(session)
        return cls(registry, MessageRelay(registry, messages), HistoryService(registry, messages))

    async def dispatch(self, event: InboundEvent) -> Acknowledgment:
        """Handle ``event`` and return the acknowledgment for the transport.

        Raises:
            InfrastructureError: If the store or gateway is unavailable.
        """
        action = _ACTION_ALIASES.get(event.action, event.action)
        handler = self._handlers.get(action)
        if handler is None:
            logger.warning("Unknown action %r from %s", event.action, event.connection_id)
            return Acknowledgment(HTTP_INTERNAL_SERVER_ERROR)

        logger.debug("Dispatching %s for %s", action, event.connection_id)
        try:
            body = parse_body(event.body)
            await handler(event, body)
        except ClientError as exc:
            logger.info("Rejected %s from %s: %s", action, event.connection_id, exc)
            await self.registry.deliver(event.connection_id, error_payload(str(exc)))
            return Acknowledgment(HTTP_OK, "ok", close=action == ACTION_CONNECT)

        return Acknowledgment(HTTP_OK, "ok")

    async def _handle_connect(self, event: InboundEvent, body: dict[str, Any]) -> None:
        nickname = event.query.get("nickname") or body.get("nickname")
        await self.registry.bind(event.connection_id, nickname)

    async def _handle_disconnect(self, event: InboundEvent, body: dict[str, Any]) -> None:
        await self.registry.unbind(event.connection_id)

    async def _handle_get_clients(self, event: InboundEvent, body: dict[str, Any]) -> None:
        await self.registry.presence.roster_for(event.connection_id)

    async def _handle_send_message(self, event: InboundEvent, body: dict[str, Any]) -> None:
        await self.relay.send(
            event.connection_id,
            body.get("recipientNickname"),
            body.get("message"),
        )

    async def _handle_get_messages(self, event: InboundEvent, body: dict[str, Any]) -> None:
        await self.history.get_messages(
            event.connection_id,
            body.get("targetNickname"),
            body.get("limit"),
            body.get("startKey"),
        )
