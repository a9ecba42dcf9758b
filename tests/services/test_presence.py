# tests/services/test_presence.py
"""Tests for roster fan-out."""

import pytest


@pytest.mark.asyncio
async def test_notify_all_skips_excluded(registry, push_gateway, bind_connection):
    bind_connection("c1", "alice")
    bind_connection("c2", "bob")
    bind_connection("c3", "carol")

    delivered = await registry.presence.notify_all(exclude_id="c3")

    assert delivered == 2
    assert push_gateway.pushes_to("c3") == []
    expected = {
        "type": "clients",
        "value": {
            "clients": [{"nickname": "alice"}, {"nickname": "bob"}, {"nickname": "carol"}]
        },
    }
    assert push_gateway.pushes_to("c1") == [expected]
    assert push_gateway.pushes_to("c2") == [expected]


@pytest.mark.asyncio
async def test_notify_all_with_nobody_online(registry, push_gateway):
    assert await registry.presence.notify_all() == 0
    assert push_gateway.pushes == []


@pytest.mark.asyncio
async def test_failures_do_not_stop_fan_out(registry, push_gateway, bind_connection):
    bind_connection("c1", "alice")
    bind_connection("c2", "bob")
    bind_connection("c3", "carol")
    push_gateway.gone.add("c1")
    push_gateway.failing.add("c2")

    delivered = await registry.presence.notify_all()

    assert delivered == 1
    assert len(push_gateway.pushes_to("c3", "clients")) == 1
    # Gone sessions are reaped; an unavailable gateway leaves the binding alone.
    assert registry.nickname_of("c1") is None
    assert registry.nickname_of("c2") == "bob"


@pytest.mark.asyncio
async def test_roster_for_single_connection(registry, push_gateway, bind_connection):
    bind_connection("c1", "bob")
    bind_connection("c2", "alice")

    assert await registry.presence.roster_for("c1") is True

    assert push_gateway.pushes_to("c2") == []
    assert push_gateway.pushes_to("c1")[0]["value"]["clients"] == [
        {"nickname": "alice"},
        {"nickname": "bob"},
    ]
