"""Generic join/leave/broadcast primitive over named rooms."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Protocol, Set

from fastapi.websockets import WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import (
    realtime_connections,
    realtime_deliveries_dropped_total,
    realtime_room_joins_total,
)

from .locks import KeyedLock

logger = logging.getLogger(__name__)


class Sink(Protocol):
    """The part of a websocket the multiplexer delivers through."""

    application_state: WebSocketState

    async def send_json(self, data: Any) -> None: ...


async def safe_send_json(websocket: Sink, data: dict[str, Any]) -> bool:
    """Safely send JSON data through websocket, handling disconnections gracefully.

    Returns True if message was sent successfully, False otherwise.
    """
    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.debug("Failed to send websocket message: %s", e)
        return False


def room_kind(room: str) -> str:
    kind, sep, _ = room.partition(":")
    return kind if sep else "room"


class RoomMultiplexer:
    """Track room membership by connection id and deliver to members.

    Join, leave and broadcast on the same room are serialized, so every member
    sees a room's events in the order they were accepted.
    """

    def __init__(self) -> None:
        self._sinks: Dict[str, Sink] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._memberships: Dict[str, Set[str]] = {}
        self._locks = KeyedLock()

    # Connection sinks -------------------------------------------------------

    def attach(self, connection_id: str, websocket: Sink) -> None:
        if connection_id not in self._sinks:
            realtime_connections.inc()
        self._sinks[connection_id] = websocket

    async def detach(self, connection_id: str) -> list[str]:
        """Forget a connection, dropping any membership it still holds."""

        removed = [room for room in sorted(self.rooms_of(connection_id)) if await self.leave(room, connection_id)]
        if self._sinks.pop(connection_id, None) is not None:
            realtime_connections.dec()
        return removed

    def is_attached(self, connection_id: str) -> bool:
        return connection_id in self._sinks

    @property
    def connection_count(self) -> int:
        return len(self._sinks)

    # Membership -------------------------------------------------------------

    async def join(self, room: str, connection_id: str) -> bool:
        async with self._locks.hold(room):
            members = self._rooms.setdefault(room, set())
            if connection_id in members:
                return False
            members.add(connection_id)
            self._memberships.setdefault(connection_id, set()).add(room)
        realtime_room_joins_total.labels(room_kind(room)).inc()
        logger.debug("Connection %s joined %s", connection_id, room)
        return True

    async def leave(self, room: str, connection_id: str) -> bool:
        async with self._locks.hold(room):
            members = self._rooms.get(room)
            if not members or connection_id not in members:
                return False
            members.discard(connection_id)
            if not members:
                self._rooms.pop(room, None)
            rooms = self._memberships.get(connection_id)
            if rooms is not None:
                rooms.discard(room)
                if not rooms:
                    self._memberships.pop(connection_id, None)
        logger.debug("Connection %s left %s", connection_id, room)
        return True

    def occupancy(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    def is_member(self, room: str, connection_id: str) -> bool:
        return connection_id in self._rooms.get(room, ())

    def rooms_of(self, connection_id: str) -> frozenset[str]:
        return frozenset(self._memberships.get(connection_id, ()))

    def rooms(self) -> frozenset[str]:
        return frozenset(self._rooms)

    # Delivery ---------------------------------------------------------------

    async def broadcast(
        self,
        room: str,
        payload: dict[str, Any],
        *,
        exclude: str | None = None,
    ) -> int:
        async with self._locks.hold(room):
            return await self._deliver(room, payload, exclude)

    async def broadcast_occupancy(
        self,
        room: str,
        build: Callable[[int], dict[str, Any]],
    ) -> int:
        """Broadcast ``build(count)`` using the member count seen under the room lock."""

        async with self._locks.hold(room):
            return await self._deliver(room, build(self.occupancy(room)), None)

    async def _deliver(self, room: str, payload: dict[str, Any], exclude: str | None) -> int:
        delivered = 0
        for connection_id in sorted(self._rooms.get(room, ())):
            if connection_id == exclude:
                continue
            if await self.send(connection_id, payload):
                delivered += 1
        return delivered

    async def send(self, connection_id: str, payload: dict[str, Any]) -> bool:
        websocket = self._sinks.get(connection_id)
        if websocket is None or not await safe_send_json(websocket, payload):
            realtime_deliveries_dropped_total.labels("stale").inc()
            return False
        return True
