"""Event dispatch and connection teardown."""

from __future__ import annotations

import pytest

from app.monitoring.metrics import realtime_errors_total, realtime_events_total
from spotlink.realtime import TrustedIdentity


pytestmark = pytest.mark.anyio


async def test_connect_binds_trusted_identity(realtime, socket_factory):
    identity = TrustedIdentity(user_id="42", nickname="Neo", profile_image="neo.png")

    state = await realtime.lifecycle.connect(socket_factory(), identity)

    assert state.authenticated is True
    assert state.nickname == "Neo"
    assert state.profile_image == "neo.png"
    assert await realtime.presence.connections_for("42") == frozenset({state.connection_id})
    assert realtime.rooms.is_attached(state.connection_id)


async def test_anonymous_connection_gets_default_nickname(realtime, socket_factory):
    state = await realtime.lifecycle.connect(socket_factory())

    assert state.nickname == "Anonymous"
    assert state.user_id is None
    assert len(realtime.presence) == 0


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        ("Trinity", "Trinity"),
        ({"nickname": "  Morpheus "}, "Morpheus"),
        ({"nickname": "   "}, "Anonymous"),
        (None, "Anonymous"),
    ],
)
async def test_set_nickname_accepts_string_or_object(realtime, open_connection, data, expected):
    state, websocket = await open_connection()

    await realtime.lifecycle.handle(state, "setNickname", data)

    assert state.nickname == expected
    assert websocket.sent == []


async def test_set_nickname_binds_user_and_profile(realtime, open_connection):
    state, _ = await open_connection()

    await realtime.lifecycle.handle(
        state, "setNickname", {"nickname": "Tank", "userId": 7, "profileImage": "tank.png"}
    )

    assert state.user_id == "7"
    assert state.profile_image == "tank.png"
    assert realtime.presence.identity_of(state.connection_id) == "7"


async def test_unknown_events_are_reported_without_closing(realtime, open_connection):
    state, websocket = await open_connection()

    await realtime.lifecycle.handle(state, "teleport", {"to": "mars"})

    assert websocket.sent == [{"event": "error", "data": {"message": "Unsupported event: teleport"}}]
    assert realtime.rooms.is_attached(state.connection_id)
    assert realtime_errors_total.value("RealtimeError") == 1


async def test_invalid_payloads_are_reported_per_event_family(realtime, open_connection):
    state, websocket = await open_connection()

    await realtime.lifecycle.handle(state, "joinSpotChat", {"spotName": "no id"})
    await realtime.lifecycle.handle(state, "joinDirectChat", {"notifyPartner": "sometimes"})

    assert [frame["event"] for frame in websocket.sent] == ["error", "directError"]
    assert websocket.sent[0]["data"]["message"] == "Invalid payload for joinSpotChat"
    assert websocket.sent[1]["data"]["message"] == "Invalid payload for joinDirectChat"


async def test_ping_is_answered_with_pong(realtime, open_connection):
    state, websocket = await open_connection()

    await realtime.lifecycle.handle(state, "ping")

    assert websocket.sent == [{"event": "pong"}]
    assert realtime_events_total.value("ping") == 1


async def test_disconnect_unwinds_every_registration(realtime, open_connection):
    state, _ = await open_connection(user_id="alice", nickname="Alice")
    await realtime.lifecycle.handle(state, "joinSpotChat", {"spotId": "lib"})
    await realtime.lifecycle.handle(
        state, "joinDirectChat", {"participants": {"fromUserId": "alice", "toUserId": "bob"}}
    )

    await realtime.lifecycle.disconnect(state)

    assert "alice" not in realtime.presence
    assert not realtime.rooms.is_attached(state.connection_id)
    assert realtime.rooms.rooms() == frozenset()
    assert state.spot_id is None
    assert state.conversations == set()


async def test_disconnect_releases_registrations_when_announcement_fails(realtime, open_connection, monkeypatch):
    state, _ = await open_connection(user_id="alice")
    await realtime.spots.join(state, "lib")

    async def explode(_state):
        raise RuntimeError("boom")

    monkeypatch.setattr(realtime.spots, "leave", explode)

    with pytest.raises(RuntimeError):
        await realtime.lifecycle.disconnect(state)

    assert "alice" not in realtime.presence
    assert not realtime.rooms.is_attached(state.connection_id)


async def test_set_nickname_without_name_keeps_current_one(realtime, open_connection):
    state, _ = await open_connection(nickname="Tank")

    await realtime.lifecycle.handle(state, "setNickname", {"userId": "x"})

    assert state.nickname == "Tank"
    assert state.user_id == "x"
