# src/libs/portfolio-common/portfolio_common/events.py
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, condecimal, field_validator

# A (portfolio_id, symbol) pair: the unit a Position and a replay are computed for.
ScopeKey = Tuple[str, str]

STOCK_OPERATION = "stock-operation"
STOCK_SPLIT = "stock-split"


class OperationKind(str, Enum):
    PURCHASE = "purchase"
    SALE = "sale"


class SplitKind(str, Enum):
    """
    Direction of a corporate action. The event factor is always a positive
    magnitude: SPLIT multiplies the held quantity by it, REVERSE_SPLIT divides.
    """
    SPLIT = "split"
    REVERSE_SPLIT = "reverse-split"


class EventBase(BaseModel):
    """
    Fields shared by every ledger event. `event_id`, `sequence` and `revision`
    are owned by the event store and assigned on append/update.
    """
    model_config = ConfigDict(from_attributes=True, frozen=True, extra="ignore")

    event_id: Optional[str] = Field(None, description="Store-assigned unique identifier")
    sequence: Optional[int] = Field(None, description="Store-assigned insertion sequence, breaks time ties")
    revision: int = Field(0, description="Incremented by the store on every update")

    symbol: str = Field(..., min_length=1, description="Instrument ticker, e.g. PETR4")
    time: datetime = Field(..., description="Absolute time the event took effect")
    portfolios: List[str] = Field(..., min_length=1, description="Portfolios the event is recorded against")

    @field_validator("symbol")
    @classmethod
    def strip_symbol(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("symbol must not be blank")
        return v

    @field_validator("time", mode="before")
    @classmethod
    def standardize_datetimes(cls, v: Any) -> Any:
        """Ensure all incoming datetimes are timezone-aware (UTC)."""
        if isinstance(v, str):
            # Handle ISO format strings with or without 'Z'
            if v.endswith("Z"):
                v = v[:-1] + "+00:00"
            v = datetime.fromisoformat(v)

        if isinstance(v, datetime) and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_validator("portfolios")
    @classmethod
    def unique_portfolios(cls, v: List[str]) -> List[str]:
        seen: List[str] = []
        for portfolio_id in v:
            if not portfolio_id:
                raise ValueError("portfolio identifiers must not be empty")
            if portfolio_id not in seen:
                seen.append(portfolio_id)
        return seen

    def scopes(self) -> List[ScopeKey]:
        """The (portfolio, symbol) scopes this event fans out to, one per portfolio."""
        return [(portfolio_id, self.symbol) for portfolio_id in self.portfolios]

    def sort_key(self) -> Tuple[datetime, int]:
        return (self.time, self.sequence if self.sequence is not None else 0)


class StockOperationEvent(EventBase):
    """A purchase or sale of a stock through a broker."""
    event_type: Literal["stock-operation"] = STOCK_OPERATION
    broker: str = Field(..., min_length=1, description="Identifier of the broker the trade went through")
    kind: OperationKind
    quantity: condecimal(gt=0) = Field(..., description="Number of units traded")
    price: condecimal(ge=0) = Field(..., description="Unit price")
    fees: condecimal(ge=0) = Field(default=Decimal(0), description="Fees paid on the trade")


class StockSplitEvent(EventBase):
    """A split or reverse split of a stock. Affects quantity, never cost basis."""
    event_type: Literal["stock-split"] = STOCK_SPLIT
    kind: SplitKind
    factor: condecimal(gt=0) = Field(..., description="Split ratio magnitude, e.g. 2 for 2-for-1")


Event = Annotated[Union[StockOperationEvent, StockSplitEvent], Field(discriminator="event_type")]

event_adapter: TypeAdapter = TypeAdapter(Event)
