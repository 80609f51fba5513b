"""Unread message and invite bookkeeping for direct conversations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Tuple

PREVIEW_LENGTH = 120


@dataclass(slots=True)
class UnreadEntry:
    recipient_id: str
    sender_id: str
    conversation_id: str
    sender: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    time: str | None = None
    unread_count: int = 0
    is_invite: bool = False
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class UnreadLedger:
    """Accumulate unread state per (recipient, sender) pair.

    Entries are cleared once the recipient is seen opening the conversation.
    Accessed both from the event loop and from threadpool request handlers.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], UnreadEntry] = {}
        self._lock = Lock()

    def invite_sent(
        self, *, recipient_id: str, sender: dict[str, Any], conversation_id: str, created_at: str
    ) -> None:
        with self._lock:
            entry = self._entry(recipient_id, sender, conversation_id)
            if not entry.unread_count:
                entry.is_invite = True
            entry.updated_at = datetime.fromisoformat(created_at)

    def message_sent(
        self,
        *,
        recipient_id: str,
        sender: dict[str, Any],
        conversation_id: str,
        preview: str,
        time: str,
    ) -> None:
        with self._lock:
            entry = self._entry(recipient_id, sender, conversation_id)
            entry.unread_count += 1
            entry.message = preview[:PREVIEW_LENGTH]
            entry.time = time
            entry.is_invite = False
            entry.updated_at = datetime.now(timezone.utc)

    def conversation_opened(self, *, user_id: str, partner_id: str, conversation_id: str) -> None:
        self.clear(user_id, partner_id)

    def clear(self, recipient_id: str, sender_id: str) -> bool:
        with self._lock:
            return self._entries.pop((recipient_id, sender_id), None) is not None

    def entries_for(self, recipient_id: str) -> list[UnreadEntry]:
        with self._lock:
            entries = [entry for (recipient, _), entry in self._entries.items() if recipient == recipient_id]
        entries.sort(key=lambda entry: entry.updated_at, reverse=True)
        return entries

    def _entry(self, recipient_id: str, sender: dict[str, Any], conversation_id: str) -> UnreadEntry:
        sender_id = str(sender.get("id"))
        key = (recipient_id, sender_id)
        entry = self._entries.get(key)
        if entry is None:
            entry = UnreadEntry(recipient_id=recipient_id, sender_id=sender_id, conversation_id=conversation_id)
            self._entries[key] = entry
        entry.sender = {k: v for k, v in sender.items() if k in ("id", "nickname", "profileImage")}
        entry.conversation_id = conversation_id
        return entry
