"""Push gateways delivering payloads to client sessions.

A gateway accepts a connection id and a JSON payload and either delivers it,
raises ``ConnectionGoneError`` when the session no longer exists, or raises
``InfrastructureError`` when the gateway itself is unavailable. A push that
does not complete within the configured timeout counts as gone.

Two implementations are provided:

- ``LocalPushGateway`` writes to WebSocket sessions accepted by this process;
- ``HttpPushGateway`` posts to an external connection-management API.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
from fastapi import WebSocket, WebSocketDisconnect
from jose import jwt

from presence_relay.core.errors import ConnectionGoneError, InfrastructureError
from presence_relay.core.settings import Settings, settings

# Configure logger for this module
logger = logging.getLogger(__name__)

# HTTP status codes signalling a session that no longer exists
HTTP_NOT_FOUND = 404
HTTP_GONE = 410
HTTP_INTERNAL_SERVER_ERROR = 500


class PushGateway(Protocol):
    """Anything that can push a payload to a connection."""

    async def post_to_connection(self, connection_id: str, payload: Mapping[str, Any]) -> None:
        ...


class LocalPushGateway:
    """Gateway over WebSocket sessions owned by this process."""

    def __init__(self, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = (
            settings.push_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self._sockets: dict[str, WebSocket] = {}
        self._sockets_lock = asyncio.Lock()

    async def register(self, connection_id: str, websocket: WebSocket) -> None:
        async with self._sockets_lock:
            self._sockets[connection_id] = websocket
            logger.debug("Registered socket %s, total %d", connection_id, len(self._sockets))

    async def unregister(self, connection_id: str) -> None:
        async with self._sockets_lock:
            if self._sockets.pop(connection_id, None) is not None:
                logger.debug("Unregistered socket %s, total %d", connection_id, len(self._sockets))

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self._sockets

    async def post_to_connection(self, connection_id: str, payload: Mapping[str, Any]) -> None:
        websocket = self._sockets.get(connection_id)
        if websocket is None:
            raise ConnectionGoneError(connection_id)

        try:
            await asyncio.wait_for(websocket.send_json(dict(payload)), self.timeout_seconds)
        except (WebSocketDisconnect, RuntimeError, OSError, TimeoutError) as exc:
            logger.info("Push to %s failed (%s); treating session as gone", connection_id, exc)
            await self.unregister(connection_id)
            raise ConnectionGoneError(connection_id) from exc

    async def close(self) -> None:
        async with self._sockets_lock:
            self._sockets.clear()


@dataclass(frozen=True)
class HttpGatewayConfig:
    """Immutable configuration for the HTTP push gateway."""

    base_url: str
    shared_secret: str | None
    audience: str
    token_ttl_seconds: int
    timeout_seconds: float


def load_http_gateway_config(config: Settings | None = None) -> HttpGatewayConfig:
    """Build configuration object from settings."""

    config = config or settings
    if not config.push_gateway_url:
        raise InfrastructureError("PUSH_GATEWAY_URL is required for the http push gateway")

    return HttpGatewayConfig(
        base_url=config.push_gateway_url,
        shared_secret=config.push_gateway_shared_secret,
        audience=config.push_gateway_audience,
        token_ttl_seconds=config.push_gateway_token_ttl_seconds,
        timeout_seconds=float(config.push_timeout_seconds),
    )


class HttpPushGateway:
    """Gateway posting payloads to ``POST {base_url}/@connections/{id}``."""

    def __init__(
        self,
        config: HttpGatewayConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or load_http_gateway_config()
        self._client = client
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    def _build_auth_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}

        if self.config.shared_secret:
            now = int(time.time())
            claims = {
                "aud": self.config.audience,
                "iat": now,
                "exp": now + max(1, self.config.token_ttl_seconds),
                "jti": secrets.token_hex(8),
            }
            token = jwt.encode(claims, self.config.shared_secret, algorithm="HS256")
            headers["Authorization"] = f"Bearer {token}"

        return headers

    async def post_to_connection(self, connection_id: str, payload: Mapping[str, Any]) -> None:
        client = await self._ensure_client()
        try:
            response = await client.post(
                f"/@connections/{connection_id}",
                json=dict(payload),
                headers=self._build_auth_headers(),
            )
        except httpx.TimeoutException as exc:
            logger.info("Push to %s timed out; treating session as gone", connection_id)
            raise ConnectionGoneError(connection_id) from exc
        except httpx.HTTPError as exc:
            raise InfrastructureError(f"Push gateway request failed: {exc}") from exc

        if response.status_code in (HTTP_GONE, HTTP_NOT_FOUND):
            raise ConnectionGoneError(connection_id)
        if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
            raise InfrastructureError(f"Push gateway responded with {response.status_code}")
        if response.is_error:
            raise InfrastructureError(
                f"Push gateway rejected push to {connection_id} ({response.status_code})"
            )

    async def close(self) -> None:
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


def build_push_gateway(config: Settings | None = None) -> LocalPushGateway | HttpPushGateway:
    """Return the gateway selected by ``PUSH_GATEWAY_MODE``."""
    config = config or settings
    if config.push_gateway_mode == "http":
        return HttpPushGateway(load_http_gateway_config(config))
    return LocalPushGateway(timeout_seconds=config.push_timeout_seconds)
