# tools/replay_ledger.py
import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from typing import Any, Dict, List, Optional

from portfolio_common.event_store import InMemoryEventStore
from portfolio_common.exceptions import LedgerError
from portfolio_common.logging_utils import correlation_id_var, generate_correlation_id, setup_logging
from portfolio_common.price_source import InMemoryPriceSource
from portfolio_common.reference_directory import Broker, InMemoryReferenceDirectory, Portfolio
from performance_calculator_engine import Bucketing, Frequency, PerformanceAggregator, PerformanceScope
from position_ledger_engine import LedgerService

logger = logging.getLogger(__name__)

def load_dataset(path: str) -> Dict[str, Any]:
    """
    Reads a JSON document of the form
    {"portfolios": [...], "brokers": [...], "events": [...], "prices": [...]}.
    Each price is {"symbol": ..., "date": "YYYY-MM-DD", "close": ...}.
    """
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

async def replay(dataset: Dict[str, Any], portfolio_id: Optional[str], frequency: str) -> Dict[str, Any]:
    directory = InMemoryReferenceDirectory(
        portfolios=[Portfolio(**p) for p in dataset.get("portfolios", [])],
        brokers=[Broker(**b) for b in dataset.get("brokers", [])],
    )
    store = InMemoryEventStore()
    service = LedgerService(store, directory)

    prices = InMemoryPriceSource()
    for price in dataset.get("prices", []):
        prices.add_price(price["symbol"], date.fromisoformat(price["date"]), str(price["close"]))

    for raw_event in dataset.get("events", []):
        await service.record_event(raw_event)
    logger.info(f"Replayed {len(store)} event(s).")

    portfolio_ids = [portfolio_id] if portfolio_id else sorted({pid for pid, _ in await store.distinct_scopes()})
    positions = {}
    for pid in portfolio_ids:
        positions[pid] = {
            symbol: position.model_dump(mode="json")
            for symbol, position in (await service.compute_positions_for_portfolio(pid)).items()
        }

    aggregator = PerformanceAggregator(store, service.materializer, prices)
    scope = PerformanceScope.portfolio(portfolio_id) if portfolio_id else PerformanceScope.all_portfolios()
    series = await aggregator.performance_series(scope, Bucketing(frequency=Frequency(frequency)))

    return {
        "positions": positions,
        "performance": [point.model_dump(mode="json") for point in series],
    }

async def main(path: str, portfolio_id: Optional[str], frequency: str) -> int:
    correlation_id = generate_correlation_id("REPLAY_TOOL")
    token = correlation_id_var.set(correlation_id)
    logger.info(f"Starting ledger replay from '{path}'.", extra={"correlation_id": correlation_id})
    try:
        result = await replay(load_dataset(path), portfolio_id, frequency)
    except LedgerError as e:
        logger.error(f"Ledger replay failed: {e}", exc_info=True)
        return 1
    finally:
        correlation_id_var.reset(token)

    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0

def cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Replays a JSON event log through the position ledger and prints positions and performance."
    )
    parser.add_argument("path", help="Path to the JSON dataset to replay.")
    parser.add_argument("--portfolio-id", default=None, help="Restrict output to one portfolio.")
    parser.add_argument(
        "--frequency",
        choices=[f.value for f in Frequency],
        default=Frequency.WEEKLY.value,
        help="Bucket frequency of the performance series.",
    )
    parser.add_argument("--log-level", default="WARNING", help="Log level for the JSON logs written to stderr.")

    args = parser.parse_args(argv)
    # stdout carries the JSON result only.
    setup_logging(args.log_level.upper(), stream=sys.stderr)
    return asyncio.run(main(args.path, args.portfolio_id, args.frequency))

if __name__ == "__main__":
    sys.exit(cli())
