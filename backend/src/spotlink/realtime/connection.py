"""Per-connection state owned by the websocket handler."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any


def new_connection_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class TrustedIdentity:
    """Identity established by the credential verifier before the socket is accepted."""

    user_id: str
    nickname: str | None = None
    profile_image: str | None = None


@dataclass(slots=True)
class ConnectionState:
    connection_id: str = field(default_factory=new_connection_id)
    nickname: str = "Anonymous"
    user_id: str | None = None
    profile_image: str | None = None
    authenticated: bool = False
    spot_id: str | int | None = None
    spot_name: str | None = None
    conversations: set[str] = field(default_factory=set)

    @classmethod
    def from_identity(cls, identity: TrustedIdentity | None, *, default_nickname: str) -> "ConnectionState":
        if identity is None:
            return cls(nickname=default_nickname)
        return cls(
            nickname=identity.nickname or default_nickname,
            user_id=identity.user_id,
            profile_image=identity.profile_image,
            authenticated=True,
        )

    def to_public(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "nickname": self.nickname,
            "profileImage": self.profile_image,
        }
