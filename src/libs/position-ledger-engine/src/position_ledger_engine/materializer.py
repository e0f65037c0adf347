# src/libs/position-ledger-engine/src/position_ledger_engine/materializer.py
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Set

from portfolio_common.config import POSITION_CACHE_POLICY
from portfolio_common.event_domain import EventParser
from portfolio_common.event_store import EventStore
from portfolio_common.events import Event, ScopeKey
from portfolio_common.logging_utils import format_scope
from portfolio_common.monitoring import POSITION_CACHE_INVALIDATIONS_TOTAL, observe_cache_lookup
from portfolio_common.scope_locks import ScopeLockMap

from .ledger_engine import LedgerEngine
from .models import Position

logger = logging.getLogger(__name__)

LAZY = "lazy"
WRITE_THROUGH = "write-through"


@dataclass
class CacheEntry:
    position: Optional[Position]
    version: int = 0
    stale: bool = True


class PositionMaterializer:
    """
    Keeps the latest position of every scope and routes event writes.

    Writes and reads of a scope are serialized on that scope's lock: a write
    holds the locks of every scope it touches across store write, checkpoint
    invalidation and (with the write-through policy) recomputation, so a read
    issued after a write returns always reflects it. Scopes that do not share
    a lock never wait on each other.
    """
    def __init__(
        self,
        event_store: EventStore,
        engine: LedgerEngine,
        policy: str = POSITION_CACHE_POLICY,
        locks: Optional[ScopeLockMap] = None,
        parser: Optional[EventParser] = None,
    ):
        if policy not in (LAZY, WRITE_THROUGH):
            raise ValueError(f"Unknown position cache policy '{policy}'.")
        self._event_store = event_store
        self._engine = engine
        self._policy = policy
        self._locks = locks or ScopeLockMap()
        self._parser = parser or EventParser()
        self._cache: Dict[ScopeKey, CacheEntry] = {}
        # Every scope a write has touched; a position is never forgotten.
        self._written: Set[ScopeKey] = set()

    @property
    def policy(self) -> str:
        return self._policy

    def entry(self, portfolio_id: str, symbol: str) -> Optional[CacheEntry]:
        return self._cache.get((portfolio_id, symbol))

    def has_seen(self, portfolio_id: str, symbol: str) -> bool:
        """True once a write through this materializer has touched the scope, even if its events were since removed."""
        return (portfolio_id, symbol) in self._written

    async def append(self, event: Event) -> Event:
        """Stores a new event and invalidates every scope it fans out to."""
        scopes = event.scopes()
        async with self._locks.hold(*scopes):
            event_id = await self._event_store.append(event)
            stored = await self._event_store.get(event_id)
            await self._after_write(scopes, stored.time)
        return stored

    async def update(self, event_id: str, patch: Mapping[str, Any]) -> Event:
        """
        Edits a stored event. The scopes of both versions are invalidated from
        the earlier of the two times, since an edit may move an event in time
        or between portfolios.
        """
        while True:
            current = await self._event_store.get(event_id)
            # Rejects a malformed patch before any lock is taken.
            patched = self._parser.apply_patch(current, patch)
            scopes = set(current.scopes()) | set(patched.scopes())
            async with self._locks.hold(*scopes):
                # The scopes were read unlocked; start over if a concurrent edit moved the event.
                latest = await self._event_store.get(event_id)
                if latest.revision != current.revision:
                    continue
                before, after = await self._event_store.update(event_id, patch)
                await self._after_write(scopes, min(before.time, after.time))
                return after

    async def remove(self, event_id: str) -> Event:
        while True:
            current = await self._event_store.get(event_id)
            scopes = current.scopes()
            async with self._locks.hold(*scopes):
                latest = await self._event_store.get(event_id)
                if latest.revision != current.revision:
                    continue
                removed = await self._event_store.remove(event_id)
                await self._after_write(scopes, removed.time)
                return removed

    async def get_position(self, portfolio_id: str, symbol: str) -> Position:
        key = (portfolio_id, symbol)
        async with self._locks.hold(key):
            entry = self._cache.get(key)
            if entry is not None and not entry.stale and entry.position is not None:
                observe_cache_lookup("hit")
                return entry.position
            observe_cache_lookup("miss" if entry is None else "stale")
            return await self._recompute(key)

    async def get_positions_for_portfolio(self, portfolio_id: str) -> Dict[str, Position]:
        # Scopes emptied by removals keep reporting their (empty) position.
        scopes = set(await self._event_store.distinct_scopes(portfolio_id))
        scopes.update(key for key in self._written if key[0] == portfolio_id)
        positions: Dict[str, Position] = {}
        for _, symbol in sorted(scopes):
            positions[symbol] = await self.get_position(portfolio_id, symbol)
        return positions

    async def position_as_of(self, portfolio_id: str, symbol: str, as_of: datetime) -> Position:
        """Historical read, serialized with writers of the scope but never cached."""
        async with self._locks.hold((portfolio_id, symbol)):
            return await self._engine.compute_position(portfolio_id, symbol, as_of)

    async def _after_write(self, scopes: Iterable[ScopeKey], since: datetime) -> None:
        for key in sorted(set(scopes)):
            self._engine.invalidate_from(key[0], key[1], since)
            self._written.add(key)
            entry = self._cache.setdefault(key, CacheEntry(position=None))
            entry.stale = True
            entry.version += 1
            POSITION_CACHE_INVALIDATIONS_TOTAL.inc()
            logger.debug(
                "Position marked stale.",
                extra={"ledger_scope": format_scope(*key), "version": entry.version, "since": since.isoformat()}
            )
            if self._policy == WRITE_THROUGH:
                await self._recompute(key)

    async def _recompute(self, key: ScopeKey) -> Position:
        position = await self._engine.compute_position(*key)
        entry = self._cache.setdefault(key, CacheEntry(position=None))
        entry.position = position
        entry.stale = False
        return position
