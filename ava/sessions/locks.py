from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class SessionLocks:
    """One ``asyncio.Lock`` per session id.

    Work for the same session is serialised; different sessions never contend.
    A lock is only dropped once nobody holds it or waits for it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._users[session_id] = self._users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[session_id] -= 1
            if not self._users[session_id]:
                del self._users[session_id]

    def discard(self, session_id: str) -> None:
        if session_id not in self._users:
            self._locks.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._locks)


__all__ = ["SessionLocks"]
