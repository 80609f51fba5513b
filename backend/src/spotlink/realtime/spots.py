"""Ephemeral chat rooms scoped to a map spot."""

from __future__ import annotations

import logging
from typing import Any

from .connection import ConnectionState
from .errors import MessageTooLong, NotInRoom
from .messages import MessageFactory
from .notifications import envelope
from .rooms import RoomMultiplexer

logger = logging.getLogger(__name__)


def spot_room(spot_id: Any) -> str:
    return f"spot:{spot_id}"


class SpotChatManager:
    """Spot membership policy on top of the room multiplexer.

    A connection is in at most one spot. Leaving announces the departure to the
    remaining members first, then drops the membership and finally broadcasts
    the recomputed occupancy.
    """

    def __init__(
        self,
        rooms: RoomMultiplexer,
        *,
        messages: MessageFactory | None = None,
        max_length: int = 2000,
    ) -> None:
        self._rooms = rooms
        self._messages = messages or MessageFactory()
        self._max_length = max_length

    def occupancy(self, spot_id: Any) -> int:
        return self._rooms.occupancy(spot_room(spot_id))

    async def join(self, state: ConnectionState, spot_id: str | int, spot_name: str | None = None) -> None:
        if state.spot_id is not None and spot_room(state.spot_id) == spot_room(spot_id):
            await self._rooms.send(state.connection_id, self._count_event(state.spot_id))
            return
        if state.spot_id is not None:
            await self.leave(state)

        room = spot_room(spot_id)
        await self._rooms.join(room, state.connection_id)
        state.spot_id = spot_id
        state.spot_name = spot_name or str(spot_id)
        logger.info("%s joined spot %s", state.nickname, spot_id)

        joined = self._messages.system(f"{state.nickname} joined {state.spot_name}", spotId=spot_id)
        await self._rooms.broadcast(room, envelope("chatMessage", joined))
        await self._broadcast_count(spot_id)

    async def leave(self, state: ConnectionState) -> bool:
        spot_id = state.spot_id
        if spot_id is None:
            return False
        state.spot_id = None
        state.spot_name = None

        room = spot_room(spot_id)
        left = self._messages.system(f"{state.nickname} left", spotId=spot_id)
        await self._rooms.broadcast(room, envelope("chatMessage", left), exclude=state.connection_id)
        await self._rooms.leave(room, state.connection_id)
        await self._broadcast_count(spot_id)
        logger.info("%s left spot %s", state.nickname, spot_id)
        return True

    async def send_message(self, state: ConnectionState, body: str) -> bool:
        if state.spot_id is None:
            raise NotInRoom("Join a spot before sending messages")
        text = body.strip()
        if not text:
            return False
        if len(text) > self._max_length:
            raise MessageTooLong(f"Message exceeds maximum length of {self._max_length} characters")

        message = self._messages.user(
            text,
            spotId=state.spot_id,
            user=state.nickname,
            userId=state.user_id,
            profileImage=state.profile_image,
        )
        await self._rooms.broadcast(spot_room(state.spot_id), envelope("chatMessage", message))
        return True

    def _count_event(self, spot_id: Any, count: int | None = None) -> dict[str, Any]:
        if count is None:
            count = self.occupancy(spot_id)
        return envelope("userCountUpdate", {"spotId": spot_id, "userCount": count})

    async def _broadcast_count(self, spot_id: Any) -> None:
        await self._rooms.broadcast_occupancy(
            spot_room(spot_id), lambda count: self._count_event(spot_id, count)
        )
