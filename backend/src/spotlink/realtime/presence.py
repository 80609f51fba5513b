"""Registry mapping user identities to their live connections."""

from __future__ import annotations

import logging
from typing import Dict, Set

from app.monitoring.metrics import realtime_identities

from .locks import KeyedLock

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Track which connections each user identity currently owns.

    An identity is present in the registry iff at least one of its connections
    is registered; the entry is removed together with its last connection.
    Mutations are serialized per identity.
    """

    def __init__(self) -> None:
        self._connections: Dict[str, Set[str]] = {}
        self._owners: Dict[str, str] = {}
        self._locks = KeyedLock()

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    async def register(self, user_id: str, connection_id: str) -> None:
        while True:
            previous = self._owners.get(connection_id)
            if previous == user_id:
                return
            async with self._locks.hold_many(previous, user_id):
                # The binding may have moved while we waited for the locks.
                if self._owners.get(connection_id) != previous:
                    continue
                if previous is not None:
                    self._discard(previous, connection_id)
                    logger.debug("Connection %s rebound from %s to %s", connection_id, previous, user_id)
                self._connections.setdefault(user_id, set()).add(connection_id)
                self._owners[connection_id] = user_id
                realtime_identities.set(len(self._connections))
                return

    async def unregister(self, connection_id: str) -> str | None:
        user_id = self._owners.get(connection_id)
        if user_id is None:
            return None
        async with self._locks.hold(user_id):
            if self._owners.get(connection_id) != user_id:
                return None
            self._discard(user_id, connection_id)
            realtime_identities.set(len(self._connections))
        return user_id

    async def connections_for(self, user_id: str) -> frozenset[str]:
        async with self._locks.hold(user_id):
            return frozenset(self._connections.get(user_id, ()))

    def identity_of(self, connection_id: str) -> str | None:
        return self._owners.get(connection_id)

    def identities(self) -> frozenset[str]:
        return frozenset(self._connections)

    def _discard(self, user_id: str, connection_id: str) -> None:
        self._owners.pop(connection_id, None)
        bucket = self._connections.get(user_id)
        if not bucket:
            return
        bucket.discard(connection_id)
        if not bucket:
            self._connections.pop(user_id, None)
