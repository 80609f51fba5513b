"""Payload models for inbound client events."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _coerce_identifier(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


Identifier = Annotated[str | None, BeforeValidator(_coerce_identifier)]
OptionalText = Annotated[str | None, BeforeValidator(_coerce_text)]
Body = Annotated[str, BeforeValidator(lambda value: "" if value is None else str(value))]


class EventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NicknamePayload(EventPayload):
    """``setNickname``; older clients send the nickname as a bare string."""

    nickname: OptionalText = None
    user_id: Identifier = Field(default=None, alias="userId")
    profile_image: OptionalText = Field(default=None, alias="profileImage")

    @classmethod
    def parse(cls, data: Any) -> "NicknamePayload":
        if isinstance(data, str) or data is None:
            return cls(nickname=data)
        return cls.model_validate(data)


class JoinSpotPayload(EventPayload):
    spot_id: str | int = Field(alias="spotId")
    spot_name: OptionalText = Field(default=None, alias="spotName")


class DirectParticipants(EventPayload):
    from_user_id: Identifier = Field(default=None, alias="fromUserId")
    from_nickname: OptionalText = Field(default=None, alias="fromNickname")
    from_profile_image: OptionalText = Field(default=None, alias="fromProfileImage")
    from_major: OptionalText = Field(default=None, alias="fromMajor")
    from_hobby: OptionalText = Field(default=None, alias="fromHobby")
    to_user_id: Identifier = Field(default=None, alias="toUserId")
    to_nickname: OptionalText = Field(default=None, alias="toNickname")
    to_profile_image: OptionalText = Field(default=None, alias="toProfileImage")


class JoinDirectPayload(EventPayload):
    conversation_id: Identifier = Field(default=None, alias="conversationId")
    participants: DirectParticipants = Field(default_factory=DirectParticipants)
    notify_partner: bool = Field(default=False, alias="notifyPartner")
    metadata: dict[str, Any] | None = None


class LeaveDirectPayload(EventPayload):
    conversation_id: Identifier = Field(default=None, alias="conversationId")


class SendDirectPayload(EventPayload):
    conversation_id: Identifier = Field(default=None, alias="conversationId")
    message: Body = ""
    sender_id: Identifier = Field(default=None, alias="senderId")
    sender_nickname: OptionalText = Field(default=None, alias="senderNickname")
    sender_profile_image: OptionalText = Field(default=None, alias="senderProfileImage")
    recipient_id: Identifier = Field(default=None, alias="recipientId")


def message_body(data: Any) -> str:
    """Extract the text of a ``chatMessage`` event."""

    if isinstance(data, dict):
        data = data.get("message")
    if data is None:
        return ""
    return str(data)
