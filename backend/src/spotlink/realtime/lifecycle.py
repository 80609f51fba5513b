"""Wire connections into the realtime layer and unwind them on disconnect."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from pydantic import ValidationError

from app.monitoring.metrics import realtime_errors_total, realtime_events_total

from .connection import ConnectionState, TrustedIdentity
from .direct import DirectConversationManager, bind_identity
from .errors import RealtimeError
from .events import (
    JoinDirectPayload,
    JoinSpotPayload,
    LeaveDirectPayload,
    NicknamePayload,
    SendDirectPayload,
    message_body,
)
from .notifications import envelope
from .presence import PresenceRegistry
from .rooms import RoomMultiplexer, Sink
from .spots import SpotChatManager

logger = logging.getLogger(__name__)

Handler = Callable[[ConnectionState, Any], Awaitable[Any]]

# Validation failures on these events are reported as ``directError``.
DIRECT_EVENTS = frozenset({"joinDirectChat", "leaveDirectChat", "sendDirectMessage"})


class ConnectionLifecycle:
    """Entry point used by the websocket endpoint for every connection.

    Each inbound event runs to completion before the next one from the same
    connection is read. Errors are reported to the originating connection only
    and never close it.
    """

    def __init__(
        self,
        rooms: RoomMultiplexer,
        presence: PresenceRegistry,
        spots: SpotChatManager,
        direct: DirectConversationManager,
        *,
        default_nickname: str = "Anonymous",
    ) -> None:
        self._rooms = rooms
        self._presence = presence
        self._spots = spots
        self._direct = direct
        self._default_nickname = default_nickname
        self._handlers: Dict[str, Handler] = {
            "setNickname": self.set_nickname,
            "joinSpotChat": self._join_spot,
            "leaveSpotChat": self._leave_spot,
            "chatMessage": self._spot_message,
            "joinDirectChat": self._join_direct,
            "leaveDirectChat": self._leave_direct,
            "sendDirectMessage": self._direct_message,
            "ping": self._ping,
        }

    @property
    def events(self) -> frozenset[str]:
        return frozenset(self._handlers)

    async def connect(self, websocket: Sink, identity: TrustedIdentity | None = None) -> ConnectionState:
        state = ConnectionState.from_identity(identity, default_nickname=self._default_nickname)
        self._rooms.attach(state.connection_id, websocket)
        if state.user_id:
            await self._presence.register(state.user_id, state.connection_id)
        logger.info(
            "Connection %s attached (user=%s, authenticated=%s)",
            state.connection_id,
            state.user_id,
            state.authenticated,
        )
        return state

    async def set_nickname(self, state: ConnectionState, data: Any) -> None:
        payload = NicknamePayload.parse(data)
        if "nickname" in payload.model_fields_set:
            state.nickname = payload.nickname or self._default_nickname
        if payload.profile_image:
            state.profile_image = payload.profile_image
        await bind_identity(self._presence, state, payload.user_id)
        logger.debug("Connection %s is now %s (%s)", state.connection_id, state.nickname, state.user_id)

    async def handle(self, state: ConnectionState, event: str, data: Any = None) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            await self._report(state, RealtimeError(f"Unsupported event: {event}"))
            return
        realtime_events_total.labels(event).inc()
        try:
            await handler(state, data)
        except RealtimeError as exc:
            await self._report(state, exc)
        except ValidationError:
            error_event = "directError" if event in DIRECT_EVENTS else "error"
            await self._report(state, RealtimeError(f"Invalid payload for {event}", event=error_event))

    async def disconnect(self, state: ConnectionState) -> None:
        try:
            await self._spots.leave(state)
            await self._direct.disconnect(state)
        finally:
            await self._presence.unregister(state.connection_id)
            await self._rooms.detach(state.connection_id)
            logger.info("Connection %s detached", state.connection_id)

    async def _report(self, state: ConnectionState, exc: RealtimeError) -> None:
        realtime_errors_total.labels(type(exc).__name__).inc()
        logger.debug("Reporting %s to %s: %s", exc.event, state.connection_id, exc.message)
        await self._rooms.send(state.connection_id, envelope(exc.event, exc.to_payload()))

    async def _join_spot(self, state: ConnectionState, data: Any) -> None:
        payload = JoinSpotPayload.model_validate(data)
        await self._spots.join(state, payload.spot_id, payload.spot_name)

    async def _leave_spot(self, state: ConnectionState, data: Any) -> None:
        await self._spots.leave(state)

    async def _spot_message(self, state: ConnectionState, data: Any) -> None:
        await self._spots.send_message(state, message_body(data))

    async def _join_direct(self, state: ConnectionState, data: Any) -> None:
        await self._direct.join(state, JoinDirectPayload.model_validate(data or {}))

    async def _leave_direct(self, state: ConnectionState, data: Any) -> None:
        payload = LeaveDirectPayload.model_validate(data or {})
        await self._direct.leave(state, payload.conversation_id)

    async def _direct_message(self, state: ConnectionState, data: Any) -> None:
        await self._direct.send_message(state, SendDirectPayload.model_validate(data or {}))

    async def _ping(self, state: ConnectionState, data: Any) -> None:
        await self._rooms.send(state.connection_id, {"event": "pong"})
