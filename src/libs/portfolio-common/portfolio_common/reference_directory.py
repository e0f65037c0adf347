# src/libs/portfolio-common/portfolio_common/reference_directory.py
import logging
from typing import Dict, Iterable, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class Portfolio(BaseModel):
    """Reference entity owned outside the ledger; the ledger only keeps its id."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1)
    name: str
    description: Optional[str] = None


class Broker(BaseModel):
    """Reference entity owned outside the ledger; the ledger only keeps its id."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., min_length=1)
    name: str
    country: Optional[str] = None


class ReferenceDirectory(Protocol):
    async def portfolio_exists(self, portfolio_id: str) -> bool: ...
    async def broker_exists(self, broker_id: str) -> bool: ...


class InMemoryReferenceDirectory:
    """
    Directory of known portfolios and brokers, used for existence checks at
    event ingestion.
    """
    def __init__(
        self,
        portfolios: Iterable[Portfolio] = (),
        brokers: Iterable[Broker] = (),
    ):
        self._portfolios: Dict[str, Portfolio] = {p.id: p for p in portfolios}
        self._brokers: Dict[str, Broker] = {b.id: b for b in brokers}

    def register_portfolio(self, portfolio: Portfolio) -> Portfolio:
        self._portfolios[portfolio.id] = portfolio
        logger.debug("Registered portfolio.", extra={"portfolio_id": portfolio.id})
        return portfolio

    def register_broker(self, broker: Broker) -> Broker:
        self._brokers[broker.id] = broker
        logger.debug("Registered broker.", extra={"broker_id": broker.id})
        return broker

    async def portfolio_exists(self, portfolio_id: str) -> bool:
        return portfolio_id in self._portfolios

    async def broker_exists(self, broker_id: str) -> bool:
        return broker_id in self._brokers
