"""
Per-key asyncio locks that are forgotten once nobody holds or awaits them.

Keys come and go with guild members, so a plain ``Dict[key, asyncio.Lock]``
would grow for every author ever seen. Each entry counts the coroutines
currently inside or queued on ``locked(key)`` and is removed when that count
drops back to zero.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Generic, Hashable, TypeVar

K = TypeVar("K", bound=Hashable)


@dataclass(slots=True)
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedLock(Generic[K]):
    def __init__(self) -> None:
        self._entries: Dict[K, _Entry] = {}

    @asynccontextmanager
    async def locked(self, key: K) -> AsyncIterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    def is_locked(self, key: K) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)
