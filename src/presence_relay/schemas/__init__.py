# src/presence_relay/schemas/__init__.py
"""
Pydantic schemas for relay events and push payloads.

These schemas define the structure of wire data for serialization and validation.
"""

from .events import (
    ConnectRequest,
    GatewayEnvelope,
    GetMessagesRequest,
    SendMessageRequest,
    parse_body,
    validate_request,
)
from .push import (
    MessageRecord,
    clients_payload,
    error_payload,
    message_payload,
    messages_payload,
    ping_payload,
)

__all__ = [
    "ConnectRequest", "GatewayEnvelope", "GetMessagesRequest", "SendMessageRequest",
    "parse_body", "validate_request",
    "MessageRecord",
    "clients_payload", "error_payload", "message_payload", "messages_payload", "ping_payload",
]
