"""Application service helpers."""

from .unread import UnreadEntry, UnreadLedger

__all__ = ["UnreadEntry", "UnreadLedger"]
