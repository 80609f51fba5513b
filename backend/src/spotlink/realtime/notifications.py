"""Deliver targeted events to every connection a user owns."""

from __future__ import annotations

import logging
from typing import Any

from app.monitoring.metrics import realtime_deliveries_dropped_total

from .presence import PresenceRegistry
from .rooms import RoomMultiplexer

logger = logging.getLogger(__name__)


def envelope(event: str, data: Any) -> dict[str, Any]:
    return {"event": event, "data": data}


class NotificationFanout:
    """Presence-only fan-out: nothing is queued for users without a live connection."""

    def __init__(self, presence: PresenceRegistry, rooms: RoomMultiplexer) -> None:
        self._presence = presence
        self._rooms = rooms

    async def notify(
        self,
        user_id: str,
        event: str,
        payload: dict[str, Any],
        *,
        exclude: str | None = None,
    ) -> int:
        targets = [
            connection_id
            for connection_id in sorted(await self._presence.connections_for(user_id))
            if connection_id != exclude
        ]
        if not targets:
            realtime_deliveries_dropped_total.labels("offline").inc()
            logger.debug("Dropping %s for %s: no live connections", event, user_id)
            return 0

        message = envelope(event, payload)
        delivered = 0
        for connection_id in targets:
            if await self._rooms.send(connection_id, message):
                delivered += 1
        return delivered
