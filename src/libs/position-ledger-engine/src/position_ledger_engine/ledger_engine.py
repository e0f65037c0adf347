# src/libs/position-ledger-engine/src/position_ledger_engine/ledger_engine.py
import bisect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from portfolio_common.event_store import EventScope, EventStore
from portfolio_common.events import Event, ScopeKey
from portfolio_common.logging_utils import format_scope, ledger_scope_var
from portfolio_common.monitoring import observe_replay, replay_timer

from .cost_basis_strategies import AverageCostBasisStrategy, CostBasisStrategy
from .cost_calculator import PositionCalculator
from .error_reporter import ErrorReporter
from .models import ErroredEvent, Position, PositionStatus, Sale
from .sorter import EventSorter

logger = logging.getLogger(__name__)

# Identifies one version of one event: (event_id, sequence, revision).
Fingerprint = Tuple[Optional[str], Optional[int], int]


def _fingerprint(event: Event) -> Fingerprint:
    return (event.event_id, event.sequence, event.revision)


@dataclass
class ScopeHistory:
    """
    Checkpoints of one scope: the position after each applied event, in replay
    order. `fingerprints[i]` identifies the event that produced `snapshots[i]`.
    Snapshots are stored without their sales; `sales` holds every sale once
    and `sale_counts[i]` is how many of them `snapshots[i]` had applied.
    When a replay stopped at an invalid event, `halted` holds that event's
    fingerprint and error; it sits at index `len(snapshots)`.
    """
    snapshots: List[Position] = field(default_factory=list)
    fingerprints: List[Fingerprint] = field(default_factory=list)
    sales: List[Sale] = field(default_factory=list)
    sale_counts: List[int] = field(default_factory=list)
    halted: Optional[Tuple[Fingerprint, ErroredEvent]] = None

    def append(self, position: Position, fingerprint: Fingerprint) -> Position:
        """Records `position`, whose `sales` are only the ones it added, and returns the checkpoint."""
        if position.sales:
            self.sales.extend(position.sales)
            position = position.model_copy(update={"sales": []})
        self.snapshots.append(position)
        self.fingerprints.append(fingerprint)
        self.sale_counts.append(len(self.sales))
        return position

    def position(self, index: int) -> Position:
        snapshot = self.snapshots[index]
        if not self.sale_counts[index]:
            return snapshot
        return snapshot.model_copy(update={"sales": self.sales[: self.sale_counts[index]]})

    def truncate(self, length: int) -> int:
        dropped = len(self.snapshots) - length
        if dropped <= 0:
            return 0
        del self.sales[self.sale_counts[length - 1] if length else 0:]
        del self.snapshots[length:]
        del self.fingerprints[length:]
        del self.sale_counts[length:]
        self.halted = None
        return dropped

    def match_prefix(self, events: Sequence[Event]) -> int:
        """
        Drops checkpoints that no longer match `events` and returns how many of
        them remain valid.
        """
        for index, fingerprint in enumerate(self.fingerprints[: len(events)]):
            if fingerprint != _fingerprint(events[index]):
                self.truncate(index)
                return index

        matched = min(len(self.snapshots), len(events))
        if self.halted is not None and matched < len(events) and matched == len(self.snapshots):
            if self.halted[0] != _fingerprint(events[matched]):
                self.halted = None
        return matched

    def is_halted_at(self, events: Sequence[Event], index: int) -> bool:
        return (
            self.halted is not None
            and index == len(self.snapshots)
            and index < len(events)
            and self.halted[0] == _fingerprint(events[index])
        )


class LedgerEngine:
    """
    Derives positions by folding each scope's ordered events with the
    average-cost method.

    The engine holds no state other than replay checkpoints. A position is
    always the fold of its scope's events up to a cutoff; checkpoints only let
    a replay resume instead of starting over. They are verified against the
    fetched events on every call and can be dropped early with
    `invalidate_from`.
    """
    def __init__(
        self,
        event_store: EventStore,
        cost_basis_strategy: Optional[CostBasisStrategy] = None,
        sorter: Optional[EventSorter] = None,
    ):
        self._event_store = event_store
        self._cost_basis_strategy = cost_basis_strategy or AverageCostBasisStrategy()
        self._sorter = sorter or EventSorter()
        self._histories: Dict[ScopeKey, ScopeHistory] = {}

    async def compute_position(
        self, portfolio_id: str, symbol: str, as_of: Optional[datetime] = None
    ) -> Position:
        """
        Returns the position of (portfolio_id, symbol) after all events with
        time <= `as_of` (all events when `as_of` is None). A sale exceeding the
        held quantity stops the replay: the result keeps the last valid state
        and is flagged INCONSISTENT with the offending event in `errors`.
        """
        key = (portfolio_id, symbol)
        events = await self._fetch(key, as_of)
        history = self._replay(key, events, complete=as_of is None)
        return self._position_at(key, history, events)

    async def compute_positions_for_portfolio(
        self, portfolio_id: str, as_of: Optional[datetime] = None
    ) -> Dict[str, Position]:
        positions: Dict[str, Position] = {}
        for _, symbol in await self._event_store.distinct_scopes(portfolio_id):
            positions[symbol] = await self.compute_position(portfolio_id, symbol, as_of)
        return positions

    async def position_history(self, portfolio_id: str, symbol: str) -> List[Position]:
        """Returns the position after each applied event of the scope, oldest first."""
        key = (portfolio_id, symbol)
        events = await self._fetch(key, None)
        history = self._replay(key, events, complete=True)
        return [history.position(index) for index in range(min(len(events), len(history.snapshots)))]

    def invalidate_from(self, portfolio_id: str, symbol: str, time: datetime) -> int:
        """
        Drops the checkpoints of one scope produced by events at or after
        `time`. Other scopes keep theirs. Returns the number dropped.
        """
        history = self._histories.get((portfolio_id, symbol))
        if history is None:
            return 0

        index = bisect.bisect_left(history.snapshots, time, key=lambda snapshot: snapshot.as_of)
        dropped = history.truncate(index)
        # A recorded halt is re-evaluated on the next replay.
        history.halted = None
        if dropped:
            logger.debug(
                "Invalidated position checkpoints.",
                extra={"ledger_scope": format_scope(portfolio_id, symbol), "dropped": dropped, "from": time.isoformat()}
            )
        return dropped

    async def _fetch(self, key: ScopeKey, as_of: Optional[datetime]) -> List[Event]:
        portfolio_id, symbol = key
        events = await self._event_store.list_ordered(
            EventScope(symbol=symbol, portfolio_id=portfolio_id), until=as_of
        )
        return self._sorter.ensure_ordered(events)

    def _replay(self, key: ScopeKey, events: List[Event], complete: bool) -> ScopeHistory:
        if complete and not events:
            # Nothing left to checkpoint for a scope whose events were all removed.
            self._histories.pop(key, None)
            return ScopeHistory()
        history = self._histories.setdefault(key, ScopeHistory())
        matched = history.match_prefix(events)
        if complete:
            # Events after the last fetched one no longer exist.
            history.truncate(len(events))

        if matched >= len(events) or history.is_halted_at(events, matched):
            observe_replay("cached", 0)
            return history

        token = ledger_scope_var.set(format_scope(*key))
        try:
            with replay_timer():
                folded = self._fold(key, history, events[matched:])
        finally:
            ledger_scope_var.reset(token)

        observe_replay("full" if matched == 0 else "incremental", folded)
        return history

    def _fold(self, key: ScopeKey, history: ScopeHistory, events: Sequence[Event]) -> int:
        portfolio_id, symbol = key
        error_reporter = ErrorReporter()
        calculator = PositionCalculator(self._cost_basis_strategy, error_reporter)
        position = history.snapshots[-1] if history.snapshots else Position.empty(portfolio_id, symbol)

        folded = 0
        for event in events:
            updated = calculator.apply_event(position, event)
            if updated is None:
                errored = error_reporter.errors_for_scope(key)[-1]
                history.halted = (_fingerprint(event), errored)
                logger.warning(
                    "Replay halted on invalid event.",
                    extra={
                        "ledger_scope": format_scope(portfolio_id, symbol),
                        "event_id": event.event_id,
                        "error_type": errored.error_type,
                        "error_reason": errored.error_reason,
                    }
                )
                break
            position = history.append(updated, _fingerprint(event))
            folded += 1
        return folded

    def _position_at(self, key: ScopeKey, history: ScopeHistory, events: List[Event]) -> Position:
        applied = min(len(events), len(history.snapshots))
        position = history.position(applied - 1) if applied else Position.empty(*key)
        if history.is_halted_at(events, applied):
            position = position.model_copy(
                update={"status": PositionStatus.INCONSISTENT, "errors": [history.halted[1]]}
            )
        return position
