"""Per-key asyncio locks."""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


class KeyedLock:
    """Hand out one ``asyncio.Lock`` per key.

    Locks are created on first use and discarded once no task holds or waits
    for them, so the table only grows with the number of keys in contention.
    Acquiring several keys at once always happens in sorted order.
    """

    def __init__(self) -> None:
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._users[key] - 1
            if remaining:
                self._users[key] = remaining
            else:
                self._users.pop(key, None)
                self._locks.pop(key, None)

    @asynccontextmanager
    async def hold_many(self, *keys: Hashable) -> AsyncIterator[None]:
        unique = sorted({key for key in keys if key is not None}, key=str)
        async with AsyncExitStack() as stack:
            for key in unique:
                await stack.enter_async_context(self.hold(key))
            yield
