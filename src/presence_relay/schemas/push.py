"""Outbound push payloads.

Every payload is a JSON object ``{"type": ..., "value": ...}``; the ``ping``
liveness probe carries no ``value``.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from presence_relay.db.time import as_utc

PUSH_CLIENTS = "clients"
PUSH_MESSAGE = "message"
PUSH_MESSAGES = "messages"
PUSH_ERROR = "error"
PUSH_PING = "ping"


class MessageRecord(BaseModel):
    """Stored message as exposed to clients."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    message_id: str = Field(..., alias="messageId")
    conversation_key: str = Field(..., alias="conversationKey")
    sender: str
    message: str
    created_at: datetime = Field(..., alias="createdAt")

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        """Render the timestamp as ISO-8601 in UTC."""
        return as_utc(value).isoformat()


def ping_payload() -> dict[str, Any]:
    return {"type": PUSH_PING}


def clients_payload(nicknames: Iterable[str]) -> dict[str, Any]:
    """Build the roster push listing every online nickname."""
    clients = [{"nickname": nickname} for nickname in sorted(nicknames)]
    return {"type": PUSH_CLIENTS, "value": {"clients": clients}}


def message_payload(sender: str, text: str) -> dict[str, Any]:
    return {"type": PUSH_MESSAGE, "value": {"sender": sender, "message": text}}


def messages_payload(messages: Iterable[Any], last_evaluated_key: str | None) -> dict[str, Any]:
    """Build a history page push; ``messages`` keep the order they are given in."""
    records = [
        MessageRecord.model_validate(item).model_dump(by_alias=True, mode="json")
        for item in messages
    ]
    return {
        "type": PUSH_MESSAGES,
        "value": {"messages": records, "lastEvaluatedKey": last_evaluated_key},
    }


def error_payload(message: str) -> dict[str, Any]:
    return {"type": PUSH_ERROR, "value": {"message": message}}
