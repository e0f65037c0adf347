"""Average-cost position ledger: derives per-(portfolio, symbol) positions from an event log."""
from .ledger_engine import LedgerEngine
from .materializer import CacheEntry, PositionMaterializer
from .models import ErroredEvent, Position, PositionStatus, PositionValuation, Sale
from .service import LedgerService
from .valuation import compute_allocation, value_position

__all__ = [
    "CacheEntry",
    "ErroredEvent",
    "LedgerEngine",
    "LedgerService",
    "Position",
    "PositionMaterializer",
    "PositionStatus",
    "PositionValuation",
    "Sale",
    "compute_allocation",
    "value_position",
]
