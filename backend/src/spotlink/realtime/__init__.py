"""In-process presence, room and notification layer for spot and direct chat."""

from .connection import ConnectionState, TrustedIdentity
from .direct import DirectConversationManager, conversation_id_for
from .errors import InvalidConversation, MessageTooLong, NotInRoom, RealtimeError
from .lifecycle import ConnectionLifecycle
from .managers import (  # noqa: F401
    RealtimeServices,
    build_realtime,
    configure_realtime,
    get_direct_manager,
    get_lifecycle,
    get_presence_registry,
    get_realtime,
    get_room_multiplexer,
    get_spot_manager,
    get_unread_ledger,
    shutdown_realtime,
)
from .notifications import NotificationFanout
from .presence import PresenceRegistry
from .rooms import RoomMultiplexer
from .spots import SpotChatManager

__all__ = [
    "ConnectionLifecycle",
    "ConnectionState",
    "DirectConversationManager",
    "InvalidConversation",
    "MessageTooLong",
    "NotInRoom",
    "NotificationFanout",
    "PresenceRegistry",
    "RealtimeError",
    "RealtimeServices",
    "RoomMultiplexer",
    "SpotChatManager",
    "TrustedIdentity",
    "build_realtime",
    "configure_realtime",
    "conversation_id_for",
    "get_direct_manager",
    "get_lifecycle",
    "get_presence_registry",
    "get_realtime",
    "get_room_multiplexer",
    "get_spot_manager",
    "get_unread_ledger",
    "shutdown_realtime",
]
