# src/libs/performance-calculator-engine/src/performance_calculator_engine/aggregator.py
import bisect
import logging
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_EVEN, Context, Decimal, localcontext
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from portfolio_common.config import LEDGER_DECIMAL_PLACES, LEDGER_DECIMAL_PRECISION, PERFORMANCE_ZERO_COST_BASIS
from portfolio_common.event_store import EventScope, EventStore
from portfolio_common.events import Event, OperationKind, ScopeKey, StockOperationEvent
from portfolio_common.exceptions import PriceUnavailableError
from portfolio_common.price_source import PriceSource
from position_ledger_engine.materializer import PositionMaterializer

from .constants import BOUNDARY, REFERENCE_BASE, SERIES_COLUMNS, ZERO_COST_BASIS_GAP, ZERO_COST_BASIS_ZERO
from .exceptions import MissingConfigurationError
from .helpers import bucket_boundaries, end_of_day
from .models import Bucketing, PerformancePoint, PerformanceScope

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class PerformanceAggregator:
    """
    Builds a time series of aggregated cost basis, market value and percentual
    gain for a set of positions.

    Positions at each bucket boundary are read through the materializer, so a
    series never observes a half-applied write. Prices come from the price
    source; a symbol without a price at a boundary keeps its last known price,
    and a symbol never priced is valued at cost.
    """
    def __init__(
        self,
        event_store: EventStore,
        materializer: PositionMaterializer,
        price_source: PriceSource,
        zero_cost_basis: str = PERFORMANCE_ZERO_COST_BASIS,
        today: Callable[[], date] = _utc_today,
    ):
        if zero_cost_basis not in (ZERO_COST_BASIS_ZERO, ZERO_COST_BASIS_GAP):
            raise MissingConfigurationError(f"Invalid zero cost basis policy '{zero_cost_basis}'.")
        self._event_store = event_store
        self._materializer = materializer
        self._price_source = price_source
        self._zero_cost_basis = zero_cost_basis
        self._today = today
        self._quantum = Decimal(1).scaleb(-LEDGER_DECIMAL_PLACES)
        self._context = Context(prec=LEDGER_DECIMAL_PRECISION, rounding=ROUND_HALF_EVEN)

    async def performance_series(
        self, scope: PerformanceScope, bucketing: Optional[Bucketing] = None
    ) -> List[PerformancePoint]:
        bucketing = bucketing or Bucketing()
        scopes = await self._event_store.distinct_scopes(scope.portfolio_id)
        if not scopes:
            logger.info("No positions in scope; empty performance series.", extra={"portfolio_id": scope.portfolio_id})
            return []

        events = {
            key: await self._event_store.list_ordered(EventScope(symbol=key[1], portfolio_id=key[0]))
            for key in scopes
        }
        start = bucketing.start or self._first_event_date(events)
        end = bucketing.end or self._today()
        boundaries = bucket_boundaries(bucketing.frequency, start, end)
        logger.info(
            "Computing performance series.",
            extra={
                "portfolio_id": scope.portfolio_id,
                "frequency": bucketing.frequency.value,
                "start": start.isoformat(),
                "end": end.isoformat(),
                "buckets": len(boundaries),
            }
        )

        cash_flows = _cash_flows(events)
        last_prices: Dict[str, Decimal] = {}
        points: List[PerformancePoint] = []
        reference = REFERENCE_BASE
        for boundary in boundaries:
            cost_basis, current_value = await self._valuate(boundary, scopes, last_prices)
            if points:
                previous = points[-1]
                flow = _cash_flow_between(cash_flows, end_of_day(previous.boundary), end_of_day(boundary))
                reference = self._next_reference(reference, previous.current_value, current_value, flow)
            points.append(
                PerformancePoint(
                    label=boundary.isoformat(),
                    boundary=boundary,
                    percentual_gain=self._percentual_gain(cost_basis, current_value),
                    cost_basis=cost_basis,
                    current_value=current_value,
                    reference=reference,
                )
            )
        return points

    async def _valuate(
        self, boundary: date, scopes: Sequence[ScopeKey], last_prices: Dict[str, Decimal]
    ) -> Tuple[Decimal, Decimal]:
        """Total cost basis and market value of the open positions in `scopes` at the end of `boundary`."""
        as_of = end_of_day(boundary)
        cost_basis = Decimal(0)
        current_value = Decimal(0)
        priced: Dict[str, Optional[Decimal]] = {}

        for portfolio_id, symbol in scopes:
            position = await self._materializer.position_as_of(portfolio_id, symbol, as_of)
            if not position.is_consistent:
                logger.warning(
                    "Aggregating inconsistent position at its last valid state.",
                    extra={"portfolio_id": portfolio_id, "symbol": symbol, "boundary": boundary.isoformat()}
                )
            if not position.is_open:
                continue

            if symbol not in priced:
                priced[symbol] = await self._price_at(symbol, as_of, last_prices)
            price = priced[symbol]

            with localcontext(self._context):
                cost_basis += position.cost_basis
                if price is None:
                    current_value += position.cost_basis
                else:
                    current_value += (position.quantity * price).quantize(self._quantum)

        return cost_basis, current_value

    async def _price_at(self, symbol: str, as_of: datetime, last_prices: Dict[str, Decimal]) -> Optional[Decimal]:
        try:
            price = await self._price_source.current_price(symbol, as_of)
        except PriceUnavailableError:
            price = last_prices.get(symbol)
            logger.debug(
                "Price unavailable; using last known price." if price is not None else "Price unavailable; valuing at cost.",
                extra={"symbol": symbol, "as_of": as_of.isoformat()}
            )
            return price
        last_prices[symbol] = price
        return price

    def _percentual_gain(self, cost_basis: Decimal, current_value: Decimal) -> Optional[Decimal]:
        if cost_basis == 0:
            return Decimal(0) if self._zero_cost_basis == ZERO_COST_BASIS_ZERO else None
        with localcontext(self._context):
            return ((current_value - cost_basis) / cost_basis * 100).quantize(self._quantum)

    def _next_reference(
        self, reference: Decimal, previous_value: Decimal, current_value: Decimal, cash_flow: Decimal
    ) -> Decimal:
        """
        Moves the reference index by the bucket's change in market value net of
        the cash put in (purchases) or taken out (sales) during the bucket.
        """
        if previous_value == 0:
            return reference
        with localcontext(self._context):
            change = (current_value - cash_flow - previous_value) / previous_value
            return (reference + abs(reference) * change).quantize(self._quantum)

    def _first_event_date(self, events: Mapping[ScopeKey, Sequence[Event]]) -> date:
        first = min((scope_events[0].time for scope_events in events.values() if scope_events), default=None)
        return first.astimezone(timezone.utc).date() if first else self._today()


def _cash_flows(events: Mapping[ScopeKey, Sequence[Event]]) -> List[Tuple[datetime, Decimal]]:
    """Signed traded amounts of every operation in scope, by time: purchases add, sales subtract."""
    flows = []
    for scope_events in events.values():
        for event in scope_events:
            if isinstance(event, StockOperationEvent):
                amount = event.quantity * event.price
                flows.append((event.time, amount if event.kind == OperationKind.PURCHASE else -amount))
    flows.sort(key=lambda flow: flow[0])
    return flows


def _cash_flow_between(flows: Sequence[Tuple[datetime, Decimal]], after: datetime, until: datetime) -> Decimal:
    lo = bisect.bisect_right(flows, after, key=lambda flow: flow[0])
    hi = bisect.bisect_right(flows, until, key=lambda flow: flow[0])
    return sum((amount for _, amount in flows[lo:hi]), Decimal(0))


def series_to_frame(points: Sequence[PerformancePoint]) -> pd.DataFrame:
    """Tabulates a performance series, one row per bucket, indexed by boundary date."""
    df = pd.DataFrame([point.model_dump() for point in points], columns=SERIES_COLUMNS)
    df[BOUNDARY] = pd.to_datetime(df[BOUNDARY])
    return df.set_index(BOUNDARY)
