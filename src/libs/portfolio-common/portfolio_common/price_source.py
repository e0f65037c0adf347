# src/libs/portfolio-common/portfolio_common/price_source.py
import bisect
import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Protocol, Tuple, Union

from .config import PRICE_LOOKBACK_DAYS
from .exceptions import PriceUnavailableError

logger = logging.getLogger(__name__)


class PriceSource(Protocol):
    async def current_price(self, symbol: str, as_of: datetime) -> Decimal: ...


class InMemoryPriceSource:
    """
    Dated closing prices per symbol. A lookup returns the latest close on or
    before the requested day, searching back at most `lookback_days` so that
    weekends and holidays still resolve to a price.
    """
    def __init__(self, lookback_days: int = PRICE_LOOKBACK_DAYS):
        self._lookback = timedelta(days=lookback_days)
        self._closes: Dict[str, List[Tuple[date, Decimal]]] = defaultdict(list)

    def add_price(self, symbol: str, day: Union[date, datetime], close: Union[Decimal, str, int]) -> None:
        if isinstance(day, datetime):
            day = day.date()
        closes = self._closes[symbol]
        entry = (day, Decimal(str(close)))
        index = bisect.bisect_left(closes, day, key=lambda item: item[0])
        if index < len(closes) and closes[index][0] == day:
            closes[index] = entry
        else:
            closes.insert(index, entry)

    async def current_price(self, symbol: str, as_of: datetime) -> Decimal:
        day = as_of.date() if isinstance(as_of, datetime) else as_of
        closes = self._closes.get(symbol, [])
        index = bisect.bisect_right(closes, day, key=lambda item: item[0])
        if index:
            close_day, close = closes[index - 1]
            if day - close_day <= self._lookback:
                return close
        logger.debug("No price within lookback window.", extra={"symbol": symbol, "as_of": str(day)})
        raise PriceUnavailableError(symbol, day)
