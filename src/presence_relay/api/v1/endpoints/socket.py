# src/presence_relay/api/v1/endpoints/socket.py
"""WebSocket transport: one socket per client session."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session, sessionmaker

from presence_relay.api.v1.dependencies import PushGatewayDep, SessionFactoryDep
from presence_relay.core.errors import ConnectionGoneError
from presence_relay.schemas.push import error_payload
from presence_relay.services.gateway import LocalPushGateway
from presence_relay.services.router import (
    ACTION_CONNECT,
    ACTION_DISCONNECT,
    LIFECYCLE_ACTIONS,
    Acknowledgment,
    EventRouter,
    InboundEvent,
)

logger = logging.getLogger(__name__)

# Application close code for a rejected nickname bind.
WS_CLOSE_CONNECT_REJECTED = 4409

router = APIRouter(tags=["socket"])


async def _dispatch(
    session_factory: sessionmaker[Session],
    gateway: LocalPushGateway,
    event: InboundEvent,
) -> Acknowledgment:
    with session_factory() as db:
        return await EventRouter.for_session(db, gateway).dispatch(event)


async def _receive_frame(websocket: WebSocket) -> str:
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
    if message.get("text") is not None:
        return message["text"]
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


def _decode_frame(text: str) -> dict[str, Any] | None:
    try:
        frame = json.loads(text)
    except json.JSONDecodeError:
        return None
    return frame if isinstance(frame, dict) else None


async def _reply_error(gateway: LocalPushGateway, connection_id: str, message: str) -> None:
    try:
        await gateway.post_to_connection(connection_id, error_payload(message))
    except ConnectionGoneError:
        logger.debug("Could not report frame error to %s; session gone", connection_id)


async def _close(websocket: WebSocket, code: int) -> None:
    try:
        await websocket.close(code=code)
    except RuntimeError:
        logger.debug("Socket already closed")


@router.websocket("/ws")
async def relay_socket(
    websocket: WebSocket,
    gateway: PushGatewayDep,
    session_factory: SessionFactoryDep,
    nickname: str | None = None,
) -> None:
    """Run one client session.

    Opening the socket binds ``nickname``; every text frame is a JSON object
    carrying an ``action``; closing the socket unbinds the session.
    """
    if not isinstance(gateway, LocalPushGateway):
        # Sockets are terminated by an external gateway in http mode.
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    connection_id = uuid.uuid4().hex
    await websocket.accept()
    await gateway.register(connection_id, websocket)

    query = {"nickname": nickname} if nickname else {}
    try:
        ack = await _dispatch(
            session_factory,
            gateway,
            InboundEvent(action=ACTION_CONNECT, connection_id=connection_id, query=query),
        )
    except Exception:
        logger.exception("Server fault while connecting %s", connection_id)
        await gateway.unregister(connection_id)
        await _close(websocket, status.WS_1011_INTERNAL_ERROR)
        return

    if ack.close:
        await gateway.unregister(connection_id)
        await _close(websocket, WS_CLOSE_CONNECT_REJECTED)
        return

    try:
        while True:
            frame = _decode_frame(await _receive_frame(websocket))
            if frame is None:
                await _reply_error(gateway, connection_id, "Invalid JSON format")
                continue

            event = InboundEvent(
                action=str(frame.get("action") or ""),
                connection_id=connection_id,
                body=frame,
            )
            if event.action in LIFECYCLE_ACTIONS:
                # Session lifecycle is driven by the socket, not by frames.
                await _reply_error(
                    gateway,
                    connection_id,
                    f"Action '{event.action}' is not allowed on an open session",
                )
                continue

            ack = await _dispatch(session_factory, gateway, event)
            if not ack.ok:
                logger.warning("Event %r from %s not handled", event.action, connection_id)
    except WebSocketDisconnect:
        logger.debug("Socket %s closed by client", connection_id)
    except Exception:
        logger.exception("Server fault on socket %s", connection_id)
        await _close(websocket, status.WS_1011_INTERNAL_ERROR)
    finally:
        await gateway.unregister(connection_id)

    try:
        await _dispatch(
            session_factory,
            gateway,
            InboundEvent(action=ACTION_DISCONNECT, connection_id=connection_id),
        )
    except Exception:
        logger.exception("Server fault while disconnecting %s", connection_id)
