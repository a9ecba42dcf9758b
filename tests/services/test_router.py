# tests/services/test_router.py
"""Tests for event dispatch and client error reporting."""

import json

import pytest

from presence_relay.core.errors import InfrastructureError
from presence_relay.services import InboundEvent
from presence_relay.services.relay import MessageRelay


def _event(action, connection_id, body=None, query=None):
    return InboundEvent(action=action, connection_id=connection_id, body=body, query=query or {})


@pytest.mark.asyncio
async def test_two_clients_chat_and_page_history(event_router, push_gateway):
    """Alice and Bob connect, exchange messages and read them back."""
    ack = await event_router.dispatch(_event("connect", "c-alice", query={"nickname": "alice"}))
    assert ack.status_code == 200
    assert push_gateway.pushes == []

    await event_router.dispatch(_event("connect", "c-bob", query={"nickname": "bob"}))
    assert push_gateway.pushes_to("c-alice", "clients")[-1]["value"]["clients"] == [
        {"nickname": "alice"},
        {"nickname": "bob"},
    ]
    assert push_gateway.pushes_to("c-bob") == []

    await event_router.dispatch(
        _event("sendMessage", "c-alice", {"recipientNickname": "bob", "message": "hi bob"})
    )
    await event_router.dispatch(
        _event("sendMessage", "c-bob", {"recipientNickname": "alice", "message": "hi alice"})
    )
    assert push_gateway.pushes_to("c-bob", "message") == [
        {"type": "message", "value": {"sender": "alice", "message": "hi bob"}}
    ]
    assert push_gateway.pushes_to("c-alice", "message") == [
        {"type": "message", "value": {"sender": "bob", "message": "hi alice"}}
    ]

    ack = await event_router.dispatch(
        _event("getMessages", "c-alice", {"targetNickname": "bob", "limit": 1})
    )
    assert ack.ok
    first = push_gateway.pushes_to("c-alice", "messages")[-1]["value"]
    assert len(first["messages"]) == 1
    assert first["lastEvaluatedKey"] is not None

    await event_router.dispatch(
        _event(
            "getMessages",
            "c-alice",
            {"targetNickname": "bob", "limit": 1, "startKey": first["lastEvaluatedKey"]},
        )
    )
    second = push_gateway.pushes_to("c-alice", "messages")[-1]["value"]
    assert len(second["messages"]) == 1
    assert second["lastEvaluatedKey"] is None
    texts = {first["messages"][0]["message"], second["messages"][0]["message"]}
    assert texts == {"hi bob", "hi alice"}

    await event_router.dispatch(_event("disconnect", "c-bob"))
    assert push_gateway.pushes_to("c-alice", "clients")[-1]["value"]["clients"] == [
        {"nickname": "alice"}
    ]


@pytest.mark.asyncio
async def test_get_clients_replies_to_caller(event_router, push_gateway):
    await event_router.dispatch(_event("connect", "c1", query={"nickname": "alice"}))

    ack = await event_router.dispatch(_event("getClients", "c1"))

    assert ack.status_code == 200
    assert push_gateway.pushes_to("c1") == [
        {"type": "clients", "value": {"clients": [{"nickname": "alice"}]}}
    ]


@pytest.mark.asyncio
async def test_connect_aliases_and_body_nickname(event_router, registry):
    ack = await event_router.dispatch(_event("$connect", "c1", body={"nickname": "alice"}))

    assert ack.status_code == 200
    assert not ack.close
    assert registry.nickname_of("c1") == "alice"

    await event_router.dispatch(_event("$disconnect", "c1"))
    assert registry.nickname_of("c1") is None


@pytest.mark.asyncio
async def test_rejected_connect_reports_error_and_asks_to_close(event_router, push_gateway):
    await event_router.dispatch(_event("connect", "c1", query={"nickname": "alice"}))

    ack = await event_router.dispatch(_event("connect", "c2", query={"nickname": "alice"}))

    assert ack.status_code == 200
    assert ack.close is True
    assert push_gateway.pushes_to("c2") == [
        {"type": "error", "value": {"message": "Nickname 'alice' is already taken"}}
    ]


@pytest.mark.asyncio
async def test_connect_without_nickname(event_router, push_gateway):
    ack = await event_router.dispatch(_event("connect", "c1"))

    assert ack.close is True
    [error] = push_gateway.pushes_to("c1", "error")
    assert "nickname" in error["value"]["message"]


@pytest.mark.asyncio
async def test_unbound_caller_gets_error_push(event_router, push_gateway):
    ack = await event_router.dispatch(
        _event("sendMessage", "ghost", {"recipientNickname": "bob", "message": "boo"})
    )

    assert ack.status_code == 200
    assert ack.close is False
    assert push_gateway.pushes_to("ghost") == [
        {"type": "error", "value": {"message": "Connection is not bound to a nickname"}}
    ]


@pytest.mark.asyncio
async def test_body_may_arrive_as_json_text(event_router, push_gateway):
    await event_router.dispatch(_event("connect", "c1", query={"nickname": "alice"}))
    await event_router.dispatch(_event("connect", "c2", query={"nickname": "bob"}))

    await event_router.dispatch(
        _event("sendMessage", "c1", json.dumps({"recipientNickname": "bob", "message": "hey"}))
    )

    assert push_gateway.pushes_to("c2", "message")[0]["value"]["message"] == "hey"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("body", "message"),
    [
        ("{not json", "Invalid JSON format"),
        ("[1, 2]", "Event body must be a JSON object"),
    ],
)
async def test_malformed_body_reported(event_router, push_gateway, body, message):
    await event_router.dispatch(_event("connect", "c1", query={"nickname": "alice"}))

    ack = await event_router.dispatch(_event("sendMessage", "c1", body))

    assert ack.status_code == 200
    assert push_gateway.pushes_to("c1", "error") == [
        {"type": "error", "value": {"message": message}}
    ]


@pytest.mark.asyncio
async def test_unknown_action_acknowledged_with_500(event_router, push_gateway):
    await event_router.dispatch(_event("connect", "c1", query={"nickname": "alice"}))

    ack = await event_router.dispatch(_event("shout", "c1"))

    assert ack.status_code == 500
    assert not ack.ok
    assert push_gateway.pushes_to("c1") == []


@pytest.mark.asyncio
async def test_infrastructure_errors_propagate(event_router, push_gateway, mocker):
    await event_router.dispatch(_event("connect", "c1", query={"nickname": "alice"}))
    mocker.patch.object(
        MessageRelay,
        "send",
        side_effect=InfrastructureError("store down"),
    )

    with pytest.raises(InfrastructureError):
        await event_router.dispatch(
            _event("sendMessage", "c1", {"recipientNickname": "bob", "message": "hi"})
        )

    assert push_gateway.pushes_to("c1", "error") == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"recipientNickname": "bob", "message": ""},
        {"recipientNickname": "", "message": "hi"},
    ],
)
async def test_empty_send_reports_error_and_stores_nothing(
    event_router, push_gateway, count_messages, body
):
    await event_router.dispatch(_event("connect", "c1", query={"nickname": "alice"}))
    await event_router.dispatch(_event("connect", "c2", query={"nickname": "bob"}))
    push_gateway.clear()

    ack = await event_router.dispatch(_event("sendMessage", "c1", body))

    assert ack.status_code == 200
    [error] = push_gateway.pushes_to("c1", "error")
    assert "must not be empty" in error["value"]["message"]
    assert push_gateway.pushes_to("c2") == []
    assert count_messages() == 0
