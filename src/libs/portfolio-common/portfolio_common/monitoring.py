# src/libs/portfolio-common/portfolio_common/monitoring.py
import logging
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------------------
# Event store metrics (used by portfolio_common.utils.async_timed)
# --------------------------------------------------------------------------------------
EVENT_STORE_OPERATION_LATENCY_SECONDS = Histogram(
    "event_store_operation_latency_seconds",
    "Latency of event store operations in seconds",
    labelnames=("store", "method"),
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5),
)

EVENT_STORE_WRITES_TOTAL = Counter(
    "event_store_writes_total",
    "Number of writes applied to the event store",
    labelnames=("operation",),
)

# --------------------------------------------------------------------------------------
# Ledger engine metrics
# --------------------------------------------------------------------------------------
LEDGER_REPLAYS_TOTAL = Counter(
    "ledger_replays_total",
    "Number of position replays performed by the ledger engine",
    labelnames=("mode",),
)

LEDGER_REPLAY_EVENTS_TOTAL = Counter(
    "ledger_replay_events_total",
    "Number of events folded into positions by the ledger engine",
)

LEDGER_REPLAY_LATENCY_SECONDS = Histogram(
    "ledger_replay_latency_seconds",
    "Time spent folding the events of one scope",
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1),
)

LEDGER_DATA_ERRORS_TOTAL = Counter(
    "ledger_data_errors_total",
    "Number of per-scope data errors detected during replay",
    labelnames=("error_type",),
)

# --------------------------------------------------------------------------------------
# Position cache metrics
# --------------------------------------------------------------------------------------
POSITION_CACHE_INVALIDATIONS_TOTAL = Counter(
    "position_cache_invalidations_total",
    "Number of cached positions marked stale by event writes",
)

POSITION_CACHE_LOOKUPS_TOTAL = Counter(
    "position_cache_lookups_total",
    "Position cache lookups by result",
    labelnames=("result",),
)

def observe_replay(mode: str, events_folded: int) -> None:
    LEDGER_REPLAYS_TOTAL.labels(mode).inc()
    if events_folded:
        LEDGER_REPLAY_EVENTS_TOTAL.inc(events_folded)

def observe_data_error(error_type: str) -> None:
    LEDGER_DATA_ERRORS_TOTAL.labels(error_type).inc()

def observe_cache_lookup(result: str) -> None:
    POSITION_CACHE_LOOKUPS_TOTAL.labels(result).inc()

def replay_timer():
    """Context manager that observes the latency of a single scope replay."""
    return LEDGER_REPLAY_LATENCY_SECONDS.time()
