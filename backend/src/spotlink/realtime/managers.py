"""Process-wide realtime services and accessors for the FastAPI layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.config import Settings, get_settings
from app.services.unread import UnreadLedger

from .direct import DirectConversationManager
from .lifecycle import ConnectionLifecycle
from .messages import MessageFactory
from .notifications import NotificationFanout
from .presence import PresenceRegistry
from .rooms import RoomMultiplexer
from .spots import SpotChatManager

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RealtimeServices:
    presence: PresenceRegistry
    rooms: RoomMultiplexer
    fanout: NotificationFanout
    spots: SpotChatManager
    direct: DirectConversationManager
    unread: UnreadLedger
    lifecycle: ConnectionLifecycle


def build_realtime(settings: Settings) -> RealtimeServices:
    messages = MessageFactory(settings.message_time_format)
    presence = PresenceRegistry()
    rooms = RoomMultiplexer()
    fanout = NotificationFanout(presence, rooms)
    unread = UnreadLedger()
    spots = SpotChatManager(rooms, messages=messages, max_length=settings.chat_message_max_length)
    direct = DirectConversationManager(
        rooms,
        presence,
        fanout,
        messages=messages,
        observer=unread,
        max_length=settings.chat_message_max_length,
    )
    lifecycle = ConnectionLifecycle(
        rooms,
        presence,
        spots,
        direct,
        default_nickname=settings.realtime_default_nickname,
    )
    return RealtimeServices(
        presence=presence,
        rooms=rooms,
        fanout=fanout,
        spots=spots,
        direct=direct,
        unread=unread,
        lifecycle=lifecycle,
    )


_services = build_realtime(get_settings())


def configure_realtime(settings: Settings | None = None) -> RealtimeServices:
    """Replace the process-wide services, dropping every connection and room."""

    global _services
    _services = build_realtime(settings or get_settings())
    return _services


async def shutdown_realtime() -> None:
    rooms = _services.rooms
    if rooms.connection_count:
        logger.info(
            "Shutting down realtime layer with %d connection(s) in %d room(s)",
            rooms.connection_count,
            len(rooms.rooms()),
        )


# Convenience accessors exposed to the FastAPI layer ----------------------


def get_realtime() -> RealtimeServices:
    return _services


def get_lifecycle() -> ConnectionLifecycle:
    return _services.lifecycle


def get_presence_registry() -> PresenceRegistry:
    return _services.presence


def get_room_multiplexer() -> RoomMultiplexer:
    return _services.rooms


def get_spot_manager() -> SpotChatManager:
    return _services.spots


def get_direct_manager() -> DirectConversationManager:
    return _services.direct


def get_unread_ledger() -> UnreadLedger:
    return _services.unread


__all__ = [
    "RealtimeServices",
    "build_realtime",
    "configure_realtime",
    "shutdown_realtime",
    "get_realtime",
    "get_lifecycle",
    "get_presence_registry",
    "get_room_multiplexer",
    "get_spot_manager",
    "get_direct_manager",
    "get_unread_ledger",
]
