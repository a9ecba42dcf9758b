"""Pydantic schemas for inbound relay events."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Annotated, Any, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from presence_relay.core.errors import ValidationError
from presence_relay.utils.conversation import CONVERSATION_KEY_SEPARATOR

RequestT = TypeVar("RequestT", bound=BaseModel)


def _require_text(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


NonBlankStr = Annotated[StrictStr, AfterValidator(_require_text)]


def _require_nickname(value: str) -> str:
    # The separator would let two different pairs share a conversation key.
    if CONVERSATION_KEY_SEPARATOR in value:
        raise ValueError(f"must not contain '{CONVERSATION_KEY_SEPARATOR}'")
    return value


NicknameStr = Annotated[NonBlankStr, AfterValidator(_require_nickname)]


class ConnectRequest(BaseModel):
    """Nickname supplied when a session opens."""

    nickname: NicknameStr


class SendMessageRequest(BaseModel):
    """Body of a ``sendMessage`` event."""

    model_config = ConfigDict(populate_by_name=True)

    recipient_nickname: NicknameStr = Field(..., alias="recipientNickname")
    message: NonBlankStr


class GetMessagesRequest(BaseModel):
    """Body of a ``getMessages`` event."""

    model_config = ConfigDict(populate_by_name=True)

    target_nickname: NicknameStr = Field(..., alias="targetNickname")
    limit: int = Field(..., strict=True, gt=0)
    start_key: StrictStr | None = Field(default=None, alias="startKey")


class RequestContext(BaseModel):
    """Routing metadata attached by a connection-management gateway."""

    model_config = ConfigDict(populate_by_name=True)

    route_key: str = Field(..., alias="routeKey")
    connection_id: str = Field(..., alias="connectionId", min_length=1)


class GatewayEnvelope(BaseModel):
    """Inbound event as posted by an external gateway."""

    model_config = ConfigDict(populate_by_name=True)

    request_context: RequestContext = Field(..., alias="requestContext")
    query_string_parameters: dict[str, str] | None = Field(
        default=None,
        alias="queryStringParameters",
    )
    body: Any = None


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def validate_request(model: type[RequestT], **values: Any) -> RequestT:
    """Validate ``values`` (keyed by wire name) against ``model``.

    ``None`` is treated as an absent field.

    Raises:
        ValidationError: If any field is missing or invalid.
    """
    present = {key: value for key, value in values.items() if value is not None}
    try:
        return model.model_validate(present)
    except PydanticValidationError as exc:
        raise ValidationError(_describe(exc)) from exc


def parse_body(body: Any) -> dict[str, Any]:
    """Normalize an inbound event body into a mapping.

    Gateways deliver the body either as a decoded object or as raw JSON text.
    """
    if body is None or body == "":
        return {}
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValidationError("Invalid JSON format") from exc
    if not isinstance(body, Mapping):
        raise ValidationError("Event body must be a JSON object")
    return dict(body)
