"""Pairwise direct conversations with invite and unread fan-out."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from .connection import ConnectionState
from .errors import InvalidConversation, MessageTooLong, NotInRoom
from .events import JoinDirectPayload, SendDirectPayload
from .messages import MessageFactory
from .notifications import NotificationFanout, envelope
from .presence import PresenceRegistry
from .rooms import RoomMultiplexer

logger = logging.getLogger(__name__)


def conversation_id_for(user_a: Any, user_b: Any) -> str:
    """Both participants derive the same id without talking to each other."""

    first, second = sorted((str(user_a), str(user_b)))
    return f"{first}-{second}"


def partner_from_conversation(conversation_id: str, user_id: str) -> str | None:
    # Identities may contain dashes themselves, so match on the known side.
    prefix, suffix = f"{user_id}-", f"-{user_id}"
    if conversation_id.startswith(prefix) and len(conversation_id) > len(prefix):
        return conversation_id[len(prefix):]
    if conversation_id.endswith(suffix) and len(conversation_id) > len(suffix):
        return conversation_id[: -len(suffix)]
    return None


def direct_room(conversation_id: str) -> str:
    return f"direct:{conversation_id}"


class ConversationObserver(Protocol):
    """Hook for whoever keeps unread and invite state between sessions."""

    def conversation_opened(self, *, user_id: str, partner_id: str, conversation_id: str) -> None: ...

    def invite_sent(
        self, *, recipient_id: str, sender: dict[str, Any], conversation_id: str, created_at: str
    ) -> None: ...

    def message_sent(
        self,
        *,
        recipient_id: str,
        sender: dict[str, Any],
        conversation_id: str,
        preview: str,
        time: str,
    ) -> None: ...


async def bind_identity(presence: PresenceRegistry, state: ConnectionState, user_id: str | None) -> bool:
    """Point the connection's presence binding at ``user_id``.

    Connections whose identity came from a verified token keep it; a
    different client-supplied identity is ignored.
    """

    if not user_id or user_id == state.user_id:
        return False
    if state.authenticated:
        logger.warning(
            "Ignoring identity %s supplied by authenticated connection %s (%s)",
            user_id,
            state.connection_id,
            state.user_id,
        )
        return False
    await presence.register(user_id, state.connection_id)
    state.user_id = user_id
    return True


class DirectConversationManager:
    def __init__(
        self,
        rooms: RoomMultiplexer,
        presence: PresenceRegistry,
        fanout: NotificationFanout,
        *,
        messages: MessageFactory | None = None,
        observer: ConversationObserver | None = None,
        max_length: int = 2000,
    ) -> None:
        self._rooms = rooms
        self._presence = presence
        self._fanout = fanout
        self._messages = messages or MessageFactory()
        self._observer = observer
        self._max_length = max_length

    def occupancy(self, conversation_id: str) -> int:
        return self._rooms.occupancy(direct_room(conversation_id))

    async def join(self, state: ConnectionState, payload: JoinDirectPayload) -> str:
        participants = payload.participants
        if state.authenticated:
            from_user_id = state.user_id
        else:
            from_user_id = participants.from_user_id or state.user_id
        to_user_id = participants.to_user_id
        conversation_id = payload.conversation_id
        if conversation_id is None:
            if not from_user_id or not to_user_id:
                raise InvalidConversation("Unable to resolve a conversation for these participants")
            conversation_id = conversation_id_for(from_user_id, to_user_id)

        # Rebind only once the conversation resolves.
        await bind_identity(self._presence, state, participants.from_user_id)
        if participants.from_nickname:
            state.nickname = participants.from_nickname
        if participants.from_profile_image:
            state.profile_image = participants.from_profile_image
        if to_user_id is None and from_user_id:
            to_user_id = partner_from_conversation(conversation_id, from_user_id)

        room = direct_room(conversation_id)
        state.conversations.add(conversation_id)
        if await self._rooms.join(room, state.connection_id):
            logger.info("%s joined direct conversation %s", state.nickname, conversation_id)
            joined = self._messages.system(f"{state.nickname} joined the chat", conversationId=conversation_id)
            await self._rooms.broadcast(room, envelope("directMessage", joined))
            await self._broadcast_count(conversation_id)
        else:
            await self._rooms.send(state.connection_id, self._count_event(conversation_id))

        if self._observer is not None and from_user_id and to_user_id:
            self._observer.conversation_opened(
                user_id=from_user_id, partner_id=to_user_id, conversation_id=conversation_id
            )

        if payload.notify_partner and from_user_id and to_user_id and from_user_id != to_user_id:
            await self._send_invite(state, payload, conversation_id, to_user_id)
        return conversation_id

    async def leave(self, state: ConnectionState, conversation_id: str | None) -> bool:
        if not conversation_id or conversation_id not in state.conversations:
            return False
        await self._vacate(state, conversation_id, f"{state.nickname} left the chat")
        logger.info("%s left direct conversation %s", state.nickname, conversation_id)
        return True

    async def disconnect(self, state: ConnectionState) -> None:
        for conversation_id in sorted(state.conversations):
            await self._vacate(state, conversation_id, f"{state.nickname} disconnected")

    async def send_message(self, state: ConnectionState, payload: SendDirectPayload) -> bool:
        conversation_id = payload.conversation_id
        if not conversation_id or not self._rooms.is_member(direct_room(conversation_id), state.connection_id):
            raise NotInRoom("Join the conversation before sending messages", event="directError")

        text = payload.message.strip()
        if not text:
            return False
        if len(text) > self._max_length:
            raise MessageTooLong(
                f"Message exceeds maximum length of {self._max_length} characters",
                event="directError",
            )

        # A bound connection always speaks for its own identity.
        sender_id = state.user_id or payload.sender_id
        sender_nickname = payload.sender_nickname or state.nickname
        sender_image = payload.sender_profile_image or state.profile_image
        recipient_id = payload.recipient_id
        if recipient_id is None and sender_id:
            recipient_id = partner_from_conversation(conversation_id, sender_id)

        message = self._messages.user(
            text,
            conversationId=conversation_id,
            senderId=sender_id,
            senderNickname=sender_nickname,
            senderProfileImage=sender_image,
            recipientId=recipient_id,
        )
        await self._rooms.broadcast(direct_room(conversation_id), envelope("directMessage", message))

        from_user = {"id": sender_id, "nickname": sender_nickname, "profileImage": sender_image}
        notification = {
            "conversationId": conversation_id,
            "fromUser": from_user,
            "message": text,
            "time": message["time"],
            "toUserId": recipient_id,
        }
        if recipient_id and recipient_id != sender_id:
            if self._observer is not None:
                self._observer.message_sent(
                    recipient_id=recipient_id,
                    sender=from_user,
                    conversation_id=conversation_id,
                    preview=text,
                    time=message["time"],
                )
            await self._fanout.notify(
                recipient_id,
                "directMessageNotification",
                notification,
                exclude=state.connection_id,
            )
        if state.user_id:
            await self._fanout.notify(
                state.user_id,
                "directMessageNotification",
                {**notification, "isSelf": True},
                exclude=state.connection_id,
            )
        return True

    async def _send_invite(
        self,
        state: ConnectionState,
        payload: JoinDirectPayload,
        conversation_id: str,
        to_user_id: str,
    ) -> None:
        participants = payload.participants
        from_user = {
            **state.to_public(),
            "major": participants.from_major,
            "hobby": participants.from_hobby,
        }
        created_at = datetime.now(timezone.utc).isoformat()
        invite = {
            "conversationId": conversation_id,
            "fromUser": from_user,
            "toUserId": to_user_id,
            "createdAt": created_at,
            "metadata": payload.metadata or {},
        }
        if self._observer is not None:
            self._observer.invite_sent(
                recipient_id=to_user_id,
                sender=from_user,
                conversation_id=conversation_id,
                created_at=created_at,
            )
        delivered = await self._fanout.notify(
            to_user_id, "directChatInvite", invite, exclude=state.connection_id
        )
        logger.debug("Invite for %s delivered to %d connection(s)", conversation_id, delivered)

    async def _vacate(self, state: ConnectionState, conversation_id: str, text: str) -> None:
        state.conversations.discard(conversation_id)
        room = direct_room(conversation_id)
        notice = self._messages.system(text, conversationId=conversation_id)
        await self._rooms.broadcast(room, envelope("directMessage", notice), exclude=state.connection_id)
        await self._rooms.leave(room, state.connection_id)
        await self._broadcast_count(conversation_id)

    def _count_event(self, conversation_id: str, count: int | None = None) -> dict[str, Any]:
        if count is None:
            count = self.occupancy(conversation_id)
        return envelope("directUserCountUpdate", {"conversationId": conversation_id, "userCount": count})

    async def _broadcast_count(self, conversation_id: str) -> None:
        await self._rooms.broadcast_occupancy(
            direct_room(conversation_id),
            lambda count: self._count_event(conversation_id, count),
        )
