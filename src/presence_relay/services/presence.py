"""Presence broadcasting for the relay."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from presence_relay.schemas.push import clients_payload

if TYPE_CHECKING:  # pragma: no cover - typing helper
    from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class PresenceBroadcaster:
    """Pushes the online roster to connected clients.

    Fan-out is concurrent and isolated per recipient: a gone session is reaped
    by the registry, any other failure is logged, and neither affects the
    remaining recipients or the caller.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    def _roster(self) -> tuple[list[str], dict]:
        connections = self.registry.live_connections()
        ids = [connection.connection_id for connection in connections]
        return ids, clients_payload(connection.nickname for connection in connections)

    async def notify_all(self, exclude_id: str | None = None) -> int:
        """Push the roster to every live connection except ``exclude_id``.

        Returns:
            Number of recipients the gateway accepted the push for.
        """
        ids, payload = self._roster()
        recipients = [connection_id for connection_id in ids if connection_id != exclude_id]
        if not recipients:
            return 0

        results = await asyncio.gather(
            *(self.registry.deliver(connection_id, payload) for connection_id in recipients),
            return_exceptions=True,
        )

        delivered = 0
        for connection_id, result in zip(recipients, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning("Roster push to %s failed: %s", connection_id, result)
            elif result:
                delivered += 1
        logger.debug("Roster pushed to %d of %d connections", delivered, len(recipients))
        return delivered

    async def roster_for(self, connection_id: str) -> bool:
        """Push the roster to exactly one connection."""
        _, payload = self._roster()
        return await self.registry.deliver(connection_id, payload)
