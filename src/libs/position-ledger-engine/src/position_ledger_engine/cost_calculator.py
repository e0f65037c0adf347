# src/libs/position-ledger-engine/src/position_ledger_engine/cost_calculator.py
from typing import Optional, Protocol

from portfolio_common.events import Event, OperationKind, SplitKind
from portfolio_common.exceptions import InsufficientQuantityError
from portfolio_common.monitoring import observe_data_error

from .cost_basis_strategies import CostBasisStrategy
from .error_reporter import ErrorReporter
from .models import Position

class EventApplyStrategy(Protocol):
    def apply(
        self, position: Position, event: Event, cost_basis_strategy: CostBasisStrategy, error_reporter: ErrorReporter
    ) -> Optional[Position]: ...

class PurchaseStrategy:
    def apply(self, position, event, cost_basis_strategy, error_reporter) -> Optional[Position]:
        return cost_basis_strategy.apply_purchase(position, event)

class SaleStrategy:
    def apply(self, position, event, cost_basis_strategy, error_reporter) -> Optional[Position]:
        try:
            return cost_basis_strategy.apply_sale(position, event)
        except InsufficientQuantityError as e:
            observe_data_error(type(e).__name__)
            error_reporter.add_error(
                event.event_id,
                position.portfolio_id,
                position.symbol,
                type(e).__name__,
                str(e),
                requested_quantity=e.requested,
                available_quantity=e.available,
            )
            return None

class SplitStrategy:
    def apply(self, position, event, cost_basis_strategy, error_reporter) -> Optional[Position]:
        return cost_basis_strategy.apply_split(position, event)

class PositionCalculator:
    """
    Applies one event to a position by dispatching on the event kind.
    Returns None when the event was rejected; the reason is on the error reporter.
    """
    def __init__(self, cost_basis_strategy: CostBasisStrategy, error_reporter: ErrorReporter):
        self._cost_basis_strategy = cost_basis_strategy
        self._error_reporter = error_reporter
        self._strategies: dict[object, EventApplyStrategy] = {
            OperationKind.PURCHASE: PurchaseStrategy(),
            OperationKind.SALE: SaleStrategy(),
            SplitKind.SPLIT: SplitStrategy(),
            SplitKind.REVERSE_SPLIT: SplitStrategy(),
        }

    def apply_event(self, position: Position, event: Event) -> Optional[Position]:
        strategy = self._strategies.get(event.kind)
        if strategy is None:
            self._error_reporter.add_error(
                event.event_id, position.portfolio_id, position.symbol,
                "UnsupportedEvent", f"Unknown event kind '{event.kind}'."
            )
            return None

        updated = strategy.apply(position, event, self._cost_basis_strategy, self._error_reporter)
        if updated is None:
            return None
        return updated.model_copy(
            update={
                "as_of": event.time,
                "last_event_id": event.event_id,
                "event_count": position.event_count + 1,
            }
        )
