# src/libs/position-ledger-engine/src/position_ledger_engine/sorter.py
import logging
from typing import Sequence

from portfolio_common.events import Event

logger = logging.getLogger(__name__)

class EventSorter:
    """
    Responsible for the replay order of events.
    """
    def sort_events(self, existing_events: Sequence[Event], new_events: Sequence[Event] = ()) -> list[Event]:
        """
        Merges and sorts events.
        Sorting Rules:
        1. Primary sort: time ascending.
        2. Secondary sort: insertion sequence ascending.
        """
        all_events = list(existing_events) + list(new_events)
        all_events.sort(key=lambda event: event.sort_key())
        return all_events

    def ensure_ordered(self, events: Sequence[Event]) -> list[Event]:
        """Returns `events` in replay order, re-sorting only if a store handed them out of order."""
        events = list(events)
        if all(a.sort_key() < b.sort_key() for a, b in zip(events, events[1:])):
            return events
        logger.warning("Event store returned events out of replay order; re-sorting.", extra={"count": len(events)})
        return self.sort_events(events)
