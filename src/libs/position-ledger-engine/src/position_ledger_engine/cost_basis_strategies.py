# src/libs/position-ledger-engine/src/position_ledger_engine/cost_basis_strategies.py
import logging
from decimal import ROUND_HALF_EVEN, Context, Decimal, localcontext
from typing import Protocol

from portfolio_common.config import LEDGER_DECIMAL_PLACES, LEDGER_DECIMAL_PRECISION
from portfolio_common.events import SplitKind, StockOperationEvent, StockSplitEvent
from portfolio_common.exceptions import InsufficientQuantityError

from .models import Position, Sale

logger = logging.getLogger(__name__)

class CostBasisStrategy(Protocol):
    def apply_purchase(self, position: Position, event: StockOperationEvent) -> Position: ...
    def apply_sale(self, position: Position, event: StockOperationEvent) -> Position: ...
    def apply_split(self, position: Position, event: StockSplitEvent) -> Position: ...

class AverageCostBasisStrategy:
    """
    Implements the Average Cost (AVCO) method for tracking cost basis.

    Every held unit shares one blended price. Purchases (fees included) are
    re-averaged into it, sales leave it unchanged, and splits rescale it so
    that cost basis is conserved. Results are quantized to a fixed number of
    decimal places, except the cost basis left by a sale, which is the exact
    product of the remaining quantity and the average price. Every transition
    thus keeps `average_price == quantize(cost_basis / quantity)` for open
    positions, so a split followed by the matching reverse split restores the
    position exactly.
    """
    def __init__(self, places: int = LEDGER_DECIMAL_PLACES, precision: int = LEDGER_DECIMAL_PRECISION):
        self._quantum = Decimal(1).scaleb(-places)
        self._context = Context(prec=precision, rounding=ROUND_HALF_EVEN)
        logger.debug("AverageCostBasisStrategy initialized.", extra={"places": places, "precision": precision})

    def _q(self, value: Decimal) -> Decimal:
        return value.quantize(self._quantum, context=self._context)

    def apply_purchase(self, position: Position, event: StockOperationEvent) -> Position:
        with localcontext(self._context):
            quantity = self._q(position.quantity + event.quantity)
            cost_basis = self._q(position.cost_basis + event.quantity * event.price + event.fees)
            average_price = self._q(cost_basis / quantity)

        return position.model_copy(
            update={
                "quantity": quantity,
                "cost_basis": cost_basis,
                "average_price": average_price,
            }
        )

    def apply_sale(self, position: Position, event: StockOperationEvent) -> Position:
        if event.quantity > position.quantity:
            raise InsufficientQuantityError(
                event.event_id,
                position.portfolio_id,
                position.symbol,
                event.quantity,
                position.quantity,
            )

        with localcontext(self._context):
            average_price = position.average_price
            realized = self._q(event.quantity * (event.price - average_price) - event.fees)
            quantity = self._q(position.quantity - event.quantity)
            # Exact: at most twice the quantized places, within the context precision.
            cost_basis = quantity * average_price

        sale = Sale(
            event_id=event.event_id,
            time=event.time,
            quantity=event.quantity,
            cost_price=average_price,
            sell_price=event.price,
            fees=event.fees,
            realized_gain=realized,
        )
        return position.model_copy(
            update={
                "quantity": quantity,
                "cost_basis": cost_basis,
                "realized_gain": self._q(position.realized_gain + realized),
                "sales": [*position.sales, sale],
            }
        )

    def apply_split(self, position: Position, event: StockSplitEvent) -> Position:
        with localcontext(self._context):
            if event.kind == SplitKind.SPLIT:
                quantity = self._q(position.quantity * event.factor)
                rescaled_price = position.average_price / event.factor
            else:
                quantity = self._q(position.quantity / event.factor)
                rescaled_price = position.average_price * event.factor

            if quantity > 0:
                average_price = self._q(position.cost_basis / quantity)
            else:
                average_price = self._q(rescaled_price)

        return position.model_copy(
            update={
                "quantity": quantity,
                "average_price": average_price,
            }
        )
