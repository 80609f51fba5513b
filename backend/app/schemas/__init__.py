"""Pydantic schemas for API payloads."""

from .realtime import PresenceRead, SpotOccupancyRead, UnreadEntryRead

__all__ = ["PresenceRead", "SpotOccupancyRead", "UnreadEntryRead"]
