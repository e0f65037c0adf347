# src/libs/portfolio-common/portfolio_common/event_store.py
import bisect
import itertools
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from .event_domain.parser import EventParser
from .events import Event, ScopeKey
from .exceptions import NotFoundError
from .monitoring import EVENT_STORE_WRITES_TOTAL
from .utils import async_timed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventScope:
    """Selects the events of one symbol, optionally restricted to one portfolio."""
    symbol: str
    portfolio_id: Optional[str] = None

    def matches(self, event: Event) -> bool:
        if event.symbol != self.symbol:
            return False
        return self.portfolio_id is None or self.portfolio_id in event.portfolios


class EventStore(Protocol):
    """
    Access contract for the event log. Events are totally ordered by
    (time, sequence); `sequence` is assigned on append and never changes, so
    replays over the same events are stable. Implementations raise
    NotFoundError for unknown ids and StoreUnavailableError for transient I/O
    failures, and never retry.
    """
    async def append(self, event: Event) -> str: ...
    async def get(self, event_id: str) -> Event: ...
    async def list_ordered(self, scope: EventScope, until: Optional[datetime] = None) -> List[Event]: ...
    async def update(self, event_id: str, patch: Mapping[str, Any]) -> Tuple[Event, Event]: ...
    async def remove(self, event_id: str) -> Event: ...
    async def distinct_scopes(self, portfolio_id: Optional[str] = None) -> List[ScopeKey]: ...
    async def distinct_symbols(self, portfolio_id: Optional[str] = None) -> List[str]: ...


def _sort_key(event: Event):
    return event.sort_key()


class InMemoryEventStore:
    """
    Event store kept in process memory. Each symbol's events are held in a list
    sorted by (time, sequence), maintained on every write.
    """
    def __init__(self, parser: Optional[EventParser] = None):
        self._parser = parser or EventParser()
        self._events: Dict[str, Event] = {}
        self._by_symbol: Dict[str, List[Event]] = defaultdict(list)
        self._sequence = itertools.count(1)

    def _insert(self, event: Event) -> None:
        bisect.insort(self._by_symbol[event.symbol], event, key=_sort_key)
        self._events[event.event_id] = event

    def _discard(self, event: Event) -> None:
        events = self._by_symbol[event.symbol]
        index = bisect.bisect_left(events, event.sort_key(), key=_sort_key)
        while index < len(events) and events[index].event_id != event.event_id:
            index += 1
        if index < len(events):
            del events[index]
        if not events:
            del self._by_symbol[event.symbol]
        del self._events[event.event_id]

    def _lookup(self, event_id: str) -> Event:
        try:
            return self._events[event_id]
        except KeyError:
            raise NotFoundError(f"Event '{event_id}' does not exist.") from None

    @async_timed(store="InMemoryEventStore", method="append")
    async def append(self, event: Event) -> str:
        stored = event.model_copy(
            update={
                "event_id": uuid.uuid4().hex,
                "sequence": next(self._sequence),
                "revision": 1,
            }
        )
        self._insert(stored)
        EVENT_STORE_WRITES_TOTAL.labels("append").inc()
        logger.debug(
            "Appended event.",
            extra={"event_id": stored.event_id, "sequence": stored.sequence, "symbol": stored.symbol}
        )
        return stored.event_id

    @async_timed(store="InMemoryEventStore", method="get")
    async def get(self, event_id: str) -> Event:
        return self._lookup(event_id)

    @async_timed(store="InMemoryEventStore", method="list_ordered")
    async def list_ordered(self, scope: EventScope, until: Optional[datetime] = None) -> List[Event]:
        events = [e for e in self._by_symbol.get(scope.symbol, []) if scope.matches(e)]
        if until is not None:
            events = [e for e in events if e.time <= until]
        return events

    @async_timed(store="InMemoryEventStore", method="update")
    async def update(self, event_id: str, patch: Mapping[str, Any]) -> Tuple[Event, Event]:
        before = self._lookup(event_id)
        patched = self._parser.apply_patch(before, patch)
        # Identity and position in the tie-break order survive an edit.
        after = patched.model_copy(
            update={
                "event_id": before.event_id,
                "sequence": before.sequence,
                "revision": before.revision + 1,
            }
        )
        self._discard(before)
        self._insert(after)
        EVENT_STORE_WRITES_TOTAL.labels("update").inc()
        return before, after

    @async_timed(store="InMemoryEventStore", method="remove")
    async def remove(self, event_id: str) -> Event:
        event = self._lookup(event_id)
        self._discard(event)
        EVENT_STORE_WRITES_TOTAL.labels("remove").inc()
        return event

    @async_timed(store="InMemoryEventStore", method="distinct_scopes")
    async def distinct_scopes(self, portfolio_id: Optional[str] = None) -> List[ScopeKey]:
        scopes = {
            scope
            for event in self._events.values()
            for scope in event.scopes()
            if portfolio_id is None or scope[0] == portfolio_id
        }
        return sorted(scopes)

    @async_timed(store="InMemoryEventStore", method="distinct_symbols")
    async def distinct_symbols(self, portfolio_id: Optional[str] = None) -> List[str]:
        return sorted({symbol for _, symbol in await self.distinct_scopes(portfolio_id)})

    def __len__(self) -> int:
        return len(self._events)
