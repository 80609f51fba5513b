"""Unit tests for the generic room membership and broadcast primitive."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from fastapi.websockets import WebSocketState

from app.monitoring.metrics import realtime_connections, realtime_deliveries_dropped_total
from spotlink.realtime import RoomMultiplexer


pytestmark = pytest.mark.anyio


class BrokenWebSocket:
    application_state = WebSocketState.CONNECTED

    async def send_json(self, payload: dict[str, Any]) -> None:
        raise RuntimeError("socket already closed")


async def test_join_and_leave_are_idempotent(socket_factory):
    rooms = RoomMultiplexer()
    rooms.attach("c1", socket_factory())

    assert await rooms.join("spot:lib", "c1") is True
    assert await rooms.join("spot:lib", "c1") is False
    assert rooms.occupancy("spot:lib") == 1
    assert rooms.is_member("spot:lib", "c1")

    assert await rooms.leave("spot:lib", "c1") is True
    assert await rooms.leave("spot:lib", "c1") is False
    assert rooms.occupancy("spot:lib") == 0
    assert "spot:lib" not in rooms.rooms()


async def test_broadcast_skips_excluded_connection(socket_factory):
    rooms = RoomMultiplexer()
    sockets = {cid: socket_factory() for cid in ("c1", "c2", "c3")}
    for cid, websocket in sockets.items():
        rooms.attach(cid, websocket)
        await rooms.join("direct:a-b", cid)

    delivered = await rooms.broadcast("direct:a-b", {"event": "x"}, exclude="c2")

    assert delivered == 2
    assert sockets["c1"].sent == [{"event": "x"}]
    assert sockets["c2"].sent == []
    assert sockets["c3"].sent == [{"event": "x"}]


async def test_stale_connections_are_skipped_silently(socket_factory):
    rooms = RoomMultiplexer()
    healthy = socket_factory()
    closed = socket_factory()
    closed.close()
    rooms.attach("healthy", healthy)
    rooms.attach("closed", closed)
    rooms.attach("broken", BrokenWebSocket())
    for cid in ("healthy", "closed", "broken", "never-attached"):
        await rooms.join("spot:lib", cid)

    delivered = await rooms.broadcast("spot:lib", {"event": "hello"})

    assert delivered == 1
    assert healthy.sent == [{"event": "hello"}]
    assert realtime_deliveries_dropped_total.value("stale") == 3


async def test_detach_drops_remaining_memberships(socket_factory):
    rooms = RoomMultiplexer()
    rooms.attach("c1", socket_factory())
    await rooms.join("spot:lib", "c1")
    await rooms.join("direct:a-b", "c1")
    assert realtime_connections.value() == 1

    removed = await rooms.detach("c1")

    assert removed == ["direct:a-b", "spot:lib"]
    assert rooms.rooms_of("c1") == frozenset()
    assert rooms.rooms() == frozenset()
    assert not rooms.is_attached("c1")
    assert realtime_connections.value() == 0


async def test_occupancy_broadcast_uses_count_under_lock(socket_factory):
    rooms = RoomMultiplexer()
    websocket = socket_factory()
    rooms.attach("c1", websocket)
    rooms.attach("c2", socket_factory())
    await rooms.join("spot:lib", "c1")
    await rooms.join("spot:lib", "c2")

    await rooms.broadcast_occupancy("spot:lib", lambda count: {"event": "count", "data": count})

    assert websocket.sent == [{"event": "count", "data": 2}]


async def test_room_events_arrive_in_acceptance_order(socket_factory):
    rooms = RoomMultiplexer()
    listener = socket_factory()
    rooms.attach("listener", listener)
    await rooms.join("spot:lib", "listener")

    await asyncio.gather(
        *(rooms.broadcast("spot:lib", {"event": "n", "data": index}) for index in range(20))
    )

    assert [frame["data"] for frame in listener.sent] == list(range(20))
