# tests/conftest.py
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

import pytest

from portfolio_common.event_store import InMemoryEventStore
from portfolio_common.events import OperationKind, SplitKind, StockOperationEvent, StockSplitEvent
from portfolio_common.reference_directory import Broker, InMemoryReferenceDirectory, Portfolio

BASE_TIME = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def at() -> Callable[[int], datetime]:
    """Returns a timestamp `days` days after a fixed base time."""
    def _at(days: int = 0, hours: int = 0) -> datetime:
        return BASE_TIME + timedelta(days=days, hours=hours)
    return _at


@pytest.fixture
def operation(at) -> Callable[..., StockOperationEvent]:
    def _operation(
        kind: str,
        quantity,
        price,
        day: int = 0,
        symbol: str = "PETR4",
        portfolios=("P1",),
        broker: str = "XP",
        fees="0",
    ) -> StockOperationEvent:
        return StockOperationEvent(
            symbol=symbol,
            time=at(day),
            portfolios=list(portfolios),
            broker=broker,
            kind=OperationKind(kind),
            quantity=Decimal(str(quantity)),
            price=Decimal(str(price)),
            fees=Decimal(str(fees)),
        )
    return _operation


@pytest.fixture
def split(at) -> Callable[..., StockSplitEvent]:
    def _split(factor, day: int = 0, symbol: str = "PETR4", portfolios=("P1",), kind: str = "split") -> StockSplitEvent:
        return StockSplitEvent(
            symbol=symbol,
            time=at(day),
            portfolios=list(portfolios),
            kind=SplitKind(kind),
            factor=Decimal(str(factor)),
        )
    return _split


@pytest.fixture
def event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def directory() -> InMemoryReferenceDirectory:
    return InMemoryReferenceDirectory(
        portfolios=[
            Portfolio(id="P1", name="Growth"),
            Portfolio(id="P2", name="Income"),
            Portfolio(id="P3", name="Empty"),
        ],
        brokers=[Broker(id="XP", name="XP Investimentos", country="BR")],
    )
