# src/libs/position-ledger-engine/src/position_ledger_engine/valuation.py
from decimal import ROUND_HALF_EVEN, Context, Decimal, localcontext
from typing import Dict, Iterable

from portfolio_common.config import LEDGER_DECIMAL_PLACES, LEDGER_DECIMAL_PRECISION

from .models import Position, PositionValuation

_QUANTUM = Decimal(1).scaleb(-LEDGER_DECIMAL_PLACES)
_CONTEXT = Context(prec=LEDGER_DECIMAL_PRECISION, rounding=ROUND_HALF_EVEN)


def value_position(position: Position, current_price: Decimal) -> PositionValuation:
    """
    Prices a position. The price comes from the caller and is not stored in the ledger.
    """
    current_price = Decimal(str(current_price))
    with localcontext(_CONTEXT):
        current_value = (position.quantity * current_price).quantize(_QUANTUM)
        unrealized_gain = current_value - position.cost_basis
        total_gain = unrealized_gain + position.realized_gain

    return PositionValuation(
        position=position,
        current_price=current_price,
        current_value=current_value,
        unrealized_gain=unrealized_gain,
        total_gain=total_gain,
    )


def compute_allocation(valuations: Iterable[PositionValuation]) -> Dict[str, Decimal]:
    """
    Share of each symbol in the aggregate current value, in percent.
    Every share is 0 when the total value is 0.
    """
    by_symbol: Dict[str, Decimal] = {}
    for valuation in valuations:
        symbol = valuation.position.symbol
        by_symbol[symbol] = by_symbol.get(symbol, Decimal(0)) + valuation.current_value

    total = sum(by_symbol.values(), Decimal(0))
    if total == 0:
        return {symbol: Decimal(0) for symbol in by_symbol}

    with localcontext(_CONTEXT):
        return {
            symbol: (value / total * 100).quantize(_QUANTUM)
            for symbol, value in by_symbol.items()
        }
