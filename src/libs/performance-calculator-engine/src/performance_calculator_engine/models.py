# src/libs/performance-calculator-engine/src/performance_calculator_engine/models.py
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from portfolio_common.config import PERFORMANCE_DEFAULT_FREQUENCY

from .constants import FREQUENCY_DAILY, FREQUENCY_MONTHLY, FREQUENCY_WEEKLY


class Frequency(str, Enum):
    DAILY = FREQUENCY_DAILY
    # Buckets end on Fridays.
    WEEKLY = FREQUENCY_WEEKLY
    # Buckets end on the last day of each month.
    MONTHLY = FREQUENCY_MONTHLY


class PerformanceScope(BaseModel):
    """Which positions a series aggregates: one portfolio, or all of them."""
    model_config = ConfigDict(frozen=True)

    portfolio_id: Optional[str] = None

    @classmethod
    def all_portfolios(cls) -> "PerformanceScope":
        return cls()

    @classmethod
    def portfolio(cls, portfolio_id: str) -> "PerformanceScope":
        return cls(portfolio_id=portfolio_id)


class Bucketing(BaseModel):
    """
    Time buckets of a performance series. A missing start resolves to the
    date of the first event in scope, a missing end to today.
    """
    model_config = ConfigDict(frozen=True)

    frequency: Frequency = Field(default_factory=lambda: Frequency(PERFORMANCE_DEFAULT_FREQUENCY))
    start: Optional[date] = None
    end: Optional[date] = None

    @model_validator(mode="after")
    def check_range(self) -> "Bucketing":
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("bucketing start must not be after its end")
        return self


class PerformancePoint(BaseModel):
    """Aggregated cost basis and market value of a scope at the end of one bucket."""
    model_config = ConfigDict(frozen=True)

    label: str
    boundary: date
    # None when the cost basis is zero and gaps are configured instead of zeros.
    percentual_gain: Optional[Decimal]
    cost_basis: Decimal
    current_value: Decimal
    # Index starting at 100 that follows market value net of cash flows.
    reference: Decimal
