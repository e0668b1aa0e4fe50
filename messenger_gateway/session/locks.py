"""Per-conversation async mutexes."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0  # holder + waiters


class KeyedLockRegistry:
    """
    Map of conversation key -> FIFO mutex.

    ``asyncio.Lock`` wakes waiters in arrival order, so callers queued on the
    same key run strictly one after another. An entry is dropped as soon as
    nobody holds or waits on it, which keeps the map bounded by the number of
    conversations currently in flight.

    The registry is bound to the event loop that uses it; create one per
    process (or per app) and inject it.
    """

    def __init__(self) -> None:
        self._entries: dict[str, _LockEntry] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Acquire the mutex for ``key`` for the duration of the block."""
        entry = self._entries.get(key)
        if entry is None:
            entry = _LockEntry()
            self._entries[key] = entry
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def is_locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.lock.locked())

    def waiting(self, key: str) -> int:
        """Number of callers holding or queued on ``key``."""
        entry = self._entries.get(key)
        return entry.users if entry else 0

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
