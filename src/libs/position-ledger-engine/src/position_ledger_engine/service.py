# src/libs/position-ledger-engine/src/position_ledger_engine/service.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from portfolio_common.event_domain import EventParser, ensure_event_references
from portfolio_common.event_store import EventStore
from portfolio_common.events import Event, EventBase
from portfolio_common.exceptions import NotFoundError
from portfolio_common.logging_utils import format_scope
from portfolio_common.price_source import PriceSource
from portfolio_common.reference_directory import ReferenceDirectory

from .ledger_engine import LedgerEngine
from .materializer import PositionMaterializer
from .models import Position, PositionValuation
from .valuation import value_position

logger = logging.getLogger(__name__)


class LedgerService:
    """
    Entry point for callers outside the ledger: records, edits and deletes
    events, and serves positions through the materializer.
    """
    def __init__(
        self,
        event_store: EventStore,
        directory: ReferenceDirectory,
        engine: Optional[LedgerEngine] = None,
        materializer: Optional[PositionMaterializer] = None,
        parser: Optional[EventParser] = None,
    ):
        self.event_store = event_store
        self.directory = directory
        self.engine = engine or LedgerEngine(event_store)
        self.parser = parser or EventParser()
        self.materializer = materializer or PositionMaterializer(event_store, self.engine, parser=self.parser)

    async def record_event(self, raw_event: Union[Mapping[str, Any], EventBase]) -> Event:
        """
        Validates an event and appends it. Raises EventValidationError for a
        malformed payload and UnknownReferenceError for unknown portfolios or
        brokers; in both cases nothing is stored.
        """
        if isinstance(raw_event, EventBase):
            event = raw_event
        else:
            event = self.parser.parse(raw_event)
        await ensure_event_references(event, self.directory)

        stored = await self.materializer.append(event)
        logger.info(
            "Recorded event.",
            extra={
                "event_id": stored.event_id,
                "event_type": stored.event_type,
                "scopes": [format_scope(*key) for key in stored.scopes()],
            }
        )
        return stored

    async def edit_event(self, event_id: str, patch: Mapping[str, Any]) -> Event:
        current = await self.event_store.get(event_id)
        # Validate the edited version before anything is written.
        await ensure_event_references(self.parser.apply_patch(current, patch), self.directory)

        after = await self.materializer.update(event_id, patch)
        logger.info("Edited event.", extra={"event_id": event_id, "revision": after.revision})
        return after

    async def delete_event(self, event_id: str) -> Event:
        removed = await self.materializer.remove(event_id)
        logger.info("Deleted event.", extra={"event_id": event_id})
        return removed

    async def compute_position(self, portfolio_id: str, symbol: str) -> Position:
        """
        Current position of a scope. A scope whose events were all removed
        reports the empty position; one that never had an event is not found.
        """
        known = self.materializer.has_seen(portfolio_id, symbol)
        if not known and (portfolio_id, symbol) not in await self.event_store.distinct_scopes(portfolio_id):
            raise NotFoundError(f"No position for symbol '{symbol}' in portfolio '{portfolio_id}'.")
        return await self.materializer.get_position(portfolio_id, symbol)

    async def compute_positions_for_portfolio(self, portfolio_id: str) -> Dict[str, Position]:
        if not await self.directory.portfolio_exists(portfolio_id):
            raise NotFoundError(f"Portfolio '{portfolio_id}' does not exist.")
        return await self.materializer.get_positions_for_portfolio(portfolio_id)

    async def valuate_position(
        self,
        portfolio_id: str,
        symbol: str,
        price_source: PriceSource,
        as_of: Optional[datetime] = None,
    ) -> PositionValuation:
        """Prices the current position with the price source's close as of `as_of` (now by default)."""
        position = await self.compute_position(portfolio_id, symbol)
        price = await price_source.current_price(symbol, as_of or datetime.now(timezone.utc))
        return value_position(position, price)
