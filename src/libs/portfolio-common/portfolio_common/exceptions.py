# src/libs/portfolio-common/portfolio_common/exceptions.py
from decimal import Decimal
from typing import Any, Iterable, Optional


class LedgerError(Exception):
    """Base exception for all position ledger errors."""
    def __init__(self, message="An unspecified error occurred in the position ledger."):
        self.message = message
        super().__init__(self.message)


class EventValidationError(LedgerError, ValueError):
    """
    Raised when event input is malformed (missing field, negative amount,
    unparseable timestamp). Such an event never reaches the event store.
    """
    def __init__(self, issues: Iterable[Any]) -> None:
        self.issues = list(issues)
        message = "; ".join(f"{i.code}: {i.field}" for i in self.issues)
        super().__init__(message or "Event validation failed")


class UnknownReferenceError(LedgerError):
    """Raised when an event references a portfolio or broker that does not exist."""
    def __init__(self, issues: Iterable[Any]) -> None:
        self.issues = list(issues)
        message = "; ".join(f"{i.code}: {i.message}" for i in self.issues)
        super().__init__(message or "Event references unknown entities")


class InsufficientQuantityError(LedgerError):
    """
    A sale would drive the quantity of its (portfolio, symbol) scope negative.
    This is a data-integrity condition of one scope; it never aborts the
    computation of other scopes.
    """
    def __init__(
        self,
        event_id: Optional[str],
        portfolio_id: str,
        symbol: str,
        requested: Decimal,
        available: Decimal,
    ) -> None:
        self.event_id = event_id
        self.portfolio_id = portfolio_id
        self.symbol = symbol
        self.requested = requested
        self.available = available
        super().__init__(
            f"Sale quantity ({requested}) exceeds available holdings ({available}) "
            f"for portfolio '{portfolio_id}' and symbol '{symbol}'."
        )


class NotFoundError(LedgerError):
    """Raised on lookup of an event, portfolio, position or price that does not exist."""
    def __init__(self, message="The requested entity was not found."):
        super().__init__(message)


class PriceUnavailableError(NotFoundError):
    """Raised by a price source that has no price for a symbol at the requested time."""
    def __init__(self, symbol: str, as_of: Any) -> None:
        self.symbol = symbol
        self.as_of = as_of
        super().__init__(f"No price available for '{symbol}' as of {as_of}.")


class StoreUnavailableError(LedgerError):
    """
    Raised for a transient I/O failure of the event store. It is propagated to
    the caller, which owns the retry policy.
    """
    def __init__(self, message="The event store is temporarily unavailable."):
        super().__init__(message)
