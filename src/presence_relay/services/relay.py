"""Direct message relay."""

from __future__ import annotations

import logging

from presence_relay.core.errors import ValidationError
from presence_relay.core.settings import settings
from presence_relay.models import Message
from presence_relay.repositories import MessageRepository
from presence_relay.schemas.events import SendMessageRequest, validate_request
from presence_relay.schemas.push import message_payload
from presence_relay.utils.conversation import conversation_key

from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class MessageRelay:
    """Persists direct messages and forwards them to a live recipient."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        messages: MessageRepository,
        *,
        max_message_length: int | None = None,
    ) -> None:
        self.registry = registry
        self.messages = messages
        self.max_message_length = (
            settings.max_message_length if max_message_length is None else max_message_length
        )

    async def send(
        self,
        sender_connection_id: str,
        recipient_nickname: str | None,
        text: str | None,
    ) -> Message:
        """Persist a message from the caller and deliver it if the recipient is online.

        The message is committed before any delivery attempt, so an offline or
        vanished recipient can still read it through history. Nothing is pushed
        back to the sender.

        Raises:
            UnauthenticatedError: If the sender has no nickname bound.
            ValidationError: If the recipient or text is missing or blank.
        """
        sender = self.registry.require_nickname(sender_connection_id)
        request = validate_request(
            SendMessageRequest,
            recipientNickname=recipient_nickname,
            message=text,
        )
        if len(request.message) > self.max_message_length:
            raise ValidationError(
                f"message: must be at most {self.max_message_length} characters"
            )

        record = self.messages.create(
            conversation_key=conversation_key(sender, request.recipient_nickname),
            sender=sender,
            message=request.message,
        )

        recipient_id = self.registry.lookup(request.recipient_nickname)
        if recipient_id is None:
            logger.debug(
                "Recipient %s offline; message %s stored",
                request.recipient_nickname,
                record.message_id,
            )
            return record

        delivered = await self.registry.deliver(
            recipient_id,
            message_payload(sender, request.message),
        )
        if not delivered:
            logger.info(
                "Recipient %s vanished; message %s kept for history",
                request.recipient_nickname,
                record.message_id,
            )
        return record
