# src/libs/position-ledger-engine/src/position_ledger_engine/models.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from portfolio_common.exceptions import InsufficientQuantityError


class PositionStatus(str, Enum):
    CONSISTENT = "CONSISTENT"
    # The replay stopped at an invalid event; the position holds the last valid state.
    INCONSISTENT = "INCONSISTENT"


class ErroredEvent(BaseModel):
    """
    Represents an event that could not be applied to a scope, along with the reason.
    """
    model_config = ConfigDict(frozen=True)

    event_id: Optional[str] = Field(None, description="The ID of the event that failed.")
    portfolio_id: str = Field(..., description="Portfolio of the scope the event failed in.")
    symbol: str = Field(..., description="Symbol of the scope the event failed in.")
    error_type: str = Field(..., description="Name of the error condition, e.g. InsufficientQuantityError.")
    error_reason: str = Field(..., description="Why the event could not be applied.")
    requested_quantity: Optional[Decimal] = None
    available_quantity: Optional[Decimal] = None


class Sale(BaseModel):
    """A sale applied to a position, priced against the average cost at sale time."""
    model_config = ConfigDict(frozen=True)

    event_id: Optional[str] = None
    time: datetime
    quantity: Decimal
    cost_price: Decimal
    sell_price: Decimal
    fees: Decimal = Decimal(0)
    realized_gain: Decimal


class Position(BaseModel):
    """
    Holdings of one symbol in one portfolio, as the fold of that scope's
    ordered events. `cost_basis` is always `quantity * average_price`.
    `average_price` keeps its last value when the quantity drops to zero.
    """
    model_config = ConfigDict(frozen=True)

    portfolio_id: str
    symbol: str
    quantity: Decimal = Decimal(0)
    average_price: Decimal = Decimal(0)
    cost_basis: Decimal = Decimal(0)
    realized_gain: Decimal = Decimal(0)

    as_of: Optional[datetime] = Field(None, description="Time of the last applied event")
    last_event_id: Optional[str] = None
    event_count: int = 0
    sales: List[Sale] = Field(default_factory=list)

    status: PositionStatus = PositionStatus.CONSISTENT
    errors: List[ErroredEvent] = Field(default_factory=list)

    @classmethod
    def empty(cls, portfolio_id: str, symbol: str) -> "Position":
        return cls(portfolio_id=portfolio_id, symbol=symbol)

    @property
    def is_consistent(self) -> bool:
        return self.status == PositionStatus.CONSISTENT

    @property
    def is_open(self) -> bool:
        return self.quantity > 0

    def raise_for_errors(self) -> "Position":
        """Raises the first recorded data error, or returns the position unchanged."""
        for error in self.errors:
            if error.error_type == InsufficientQuantityError.__name__:
                raise InsufficientQuantityError(
                    error.event_id,
                    error.portfolio_id,
                    error.symbol,
                    error.requested_quantity,
                    error.available_quantity,
                )
        return self


class PositionValuation(BaseModel):
    """A position priced with an externally supplied current price."""
    model_config = ConfigDict(frozen=True)

    position: Position
    current_price: Decimal
    current_value: Decimal
    unrealized_gain: Decimal
    total_gain: Decimal
