# src/libs/position-ledger-engine/src/position_ledger_engine/error_reporter.py
from decimal import Decimal
from typing import Optional

from portfolio_common.events import ScopeKey

from .models import ErroredEvent

class ErrorReporter:
    """
    Collects the per-scope data errors found while replaying events.
    """
    def __init__(self):
        self._errored_events: dict[tuple[Optional[str], ScopeKey], ErroredEvent] = {}

    def add_error(
        self,
        event_id: Optional[str],
        portfolio_id: str,
        symbol: str,
        error_type: str,
        error_reason: str,
        requested_quantity: Optional[Decimal] = None,
        available_quantity: Optional[Decimal] = None,
    ) -> ErroredEvent:
        errored = ErroredEvent(
            event_id=event_id,
            portfolio_id=portfolio_id,
            symbol=symbol,
            error_type=error_type,
            error_reason=error_reason,
            requested_quantity=requested_quantity,
            available_quantity=available_quantity,
        )
        self._errored_events[(event_id, (portfolio_id, symbol))] = errored
        return errored

    def errors_for_scope(self, scope: ScopeKey) -> list[ErroredEvent]:
        return [e for (_, key), e in self._errored_events.items() if key == scope]
