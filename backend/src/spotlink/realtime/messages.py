"""Builders for the message payloads broadcast to rooms."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True, slots=True)
class Stamp:
    time: str
    created_at: str


class MessageFactory:
    def __init__(self, time_format: str = "%H:%M") -> None:
        self._time_format = time_format

    def stamp(self) -> Stamp:
        now = datetime.now(timezone.utc)
        return Stamp(
            time=now.astimezone().strftime(self._time_format),
            created_at=now.isoformat(),
        )

    def system(self, text: str, **scope: Any) -> dict[str, Any]:
        stamp = self.stamp()
        return {
            "type": "system",
            **scope,
            "message": text,
            "time": stamp.time,
            "createdAt": stamp.created_at,
        }

    def user(self, text: str, **fields: Any) -> dict[str, Any]:
        stamp = self.stamp()
        return {
            "type": "user",
            **fields,
            "message": text,
            "time": stamp.time,
            "createdAt": stamp.created_at,
        }
