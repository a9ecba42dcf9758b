# src/presence_relay/api/v1/endpoints/events.py
"""Ingress for events posted by an external connection-management gateway."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from presence_relay.api.v1.dependencies import PushGatewayDep, SessionDep
from presence_relay.schemas.events import GatewayEnvelope
from presence_relay.services.router import EventRouter, InboundEvent

HTTP_FORBIDDEN = 403

router = APIRouter(prefix="/events", tags=["events"])


@router.post("")
async def handle_event(
    envelope: GatewayEnvelope,
    db: SessionDep,
    gateway: PushGatewayDep,
) -> JSONResponse:
    """Dispatch one gateway event and mirror the acknowledgment as the HTTP status.

    Infrastructure failures are not caught here; the application-level handler
    turns them into a 500 response.
    """
    event = InboundEvent(
        action=envelope.request_context.route_key,
        connection_id=envelope.request_context.connection_id,
        body=envelope.body,
        query=envelope.query_string_parameters or {},
    )
    ack = await EventRouter.for_session(db, gateway).dispatch(event)

    # A non-2xx answer to a connect makes the gateway drop the session.
    status_code = HTTP_FORBIDDEN if ack.close else ack.status_code
    content: dict[str, Any] = {"statusCode": status_code, "body": ack.body}
    return JSONResponse(status_code=status_code, content=content)
