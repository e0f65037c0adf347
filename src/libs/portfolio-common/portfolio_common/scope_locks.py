# src/libs/portfolio-common/portfolio_common/scope_locks.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from .events import ScopeKey

logger = logging.getLogger(__name__)


class ScopeLockMap:
    """
    One asyncio.Lock per (portfolio, symbol) scope. Operations on the same
    scope are serialized; disjoint scopes never contend. Locks are created on
    first use and discarded once no task holds or waits for them.
    """
    def __init__(self):
        self._locks: Dict[ScopeKey, asyncio.Lock] = {}
        self._users: Dict[ScopeKey, int] = {}

    @asynccontextmanager
    async def hold(self, *keys: ScopeKey) -> AsyncIterator[None]:
        """
        Acquires the locks of every given scope. Keys are taken in sorted order
        so that multi-scope writers cannot deadlock each other.
        """
        ordered = sorted(set(keys))
        registered = []
        acquired = []
        try:
            for key in ordered:
                lock = self._locks.setdefault(key, asyncio.Lock())
                self._users[key] = self._users.get(key, 0) + 1
                registered.append(key)
                await lock.acquire()
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
            for key in registered:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def is_locked(self, key: ScopeKey) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
