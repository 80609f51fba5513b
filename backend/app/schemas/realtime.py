"""Schemas describing realtime state over HTTP."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class SpotOccupancyRead(CamelModel):
    """Number of connections currently inside a spot chat."""

    spot_id: str = Field(serialization_alias="spotId")
    user_count: int = Field(ge=0, serialization_alias="userCount")


class PresenceRead(CamelModel):
    user_id: str = Field(serialization_alias="userId")
    online: bool
    connections: int = Field(ge=0)


class UnreadEntryRead(CamelModel):
    """Pending invite or unread messages from one sender."""

    sender_id: str = Field(serialization_alias="senderId")
    conversation_id: str = Field(serialization_alias="conversationId")
    sender: dict[str, Any] = Field(default_factory=dict, serialization_alias="fromUser")
    message: str | None = None
    time: str | None = None
    unread_count: int = Field(default=0, ge=0, serialization_alias="unreadCount")
    is_invite: bool = Field(default=False, serialization_alias="isInvite")
    updated_at: datetime = Field(serialization_alias="updatedAt")
