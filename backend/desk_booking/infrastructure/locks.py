from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import date
from typing import AsyncIterator, Iterable

LockKey = tuple[int, date]


class DayLockRegistry:
    """
    One asyncio.Lock per (location_id, day). Writers on the same day are serialized;
    writers on different days run in parallel. Locks for several days are always
    taken in ascending date order.

    A lock lives only while some writer holds or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[LockKey, asyncio.Lock] = {}
        self._users: dict[LockKey, int] = {}

    def _checkout(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: LockKey) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            del self._users[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, location_id: int, days: Iterable[date]) -> AsyncIterator[None]:
        keys = [(location_id, day) for day in sorted(set(days))]
        locks = [self._checkout(key) for key in keys]
        try:
            async with AsyncExitStack() as stack:
                for lock in locks:
                    await stack.enter_async_context(lock)
                yield
        finally:
            for key in keys:
                self._checkin(key)

    def locked(self, location_id: int, day: date) -> bool:
        lock = self._locks.get((location_id, day))
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


day_locks = DayLockRegistry()
