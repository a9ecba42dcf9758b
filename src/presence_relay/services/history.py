"""Paginated conversation history."""

from __future__ import annotations

from presence_relay.core.errors import ValidationError
from presence_relay.core.settings import settings
from presence_relay.repositories import InvalidCursorError, MessagePage, MessageRepository
from presence_relay.schemas.events import GetMessagesRequest, validate_request
from presence_relay.schemas.push import messages_payload
from presence_relay.utils.conversation import conversation_key

from .registry import ConnectionRegistry


class HistoryService:
    """Serves pages of a conversation to one of its participants."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        messages: MessageRepository,
        *,
        max_limit: int | None = None,
    ) -> None:
        self.registry = registry
        self.messages = messages
        self.max_limit = settings.history_max_limit if max_limit is None else max_limit

    async def get_messages(
        self,
        requesting_connection_id: str,
        target_nickname: str | None,
        limit: object,
        cursor: str | None = None,
    ) -> MessagePage:
        """Push one page of the caller's conversation with ``target_nickname``.

        Messages are returned newest first; clients reverse them for display.
        ``lastEvaluatedKey`` in the push is the store's cursor, echoed as-is, and
        is null when no older messages remain. An empty conversation yields an
        empty page.

        Raises:
            UnauthenticatedError: If the caller has no nickname bound.
            ValidationError: If the target is blank, the limit is not a positive
                integer, or the cursor is not recognised.
        """
        requester = self.registry.require_nickname(requesting_connection_id)
        request = validate_request(
            GetMessagesRequest,
            targetNickname=target_nickname,
            limit=limit,
            startKey=cursor,
        )

        try:
            page = self.messages.query_page(
                conversation_key(requester, request.target_nickname),
                limit=min(request.limit, self.max_limit),
                cursor=request.start_key,
            )
        except InvalidCursorError as exc:
            raise ValidationError(f"startKey: {exc}") from exc

        await self.registry.deliver(
            requesting_connection_id,
            messages_payload(page.items, page.last_evaluated_key),
        )
        return page
