# src/libs/portfolio-common/portfolio_common/utils.py
import time
import functools
from typing import Callable, Any

from .monitoring import EVENT_STORE_OPERATION_LATENCY_SECONDS

def async_timed(store: str, method: str) -> Callable:
    """
    A decorator that times an async function and records the latency
    in the EVENT_STORE_OPERATION_LATENCY_SECONDS Prometheus histogram.

    Args:
        store: The name of the store class (e.g., 'InMemoryEventStore').
        method: The name of the method being timed (e.g., 'list_ordered').
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            start_time = time.monotonic()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.monotonic() - start_time
                EVENT_STORE_OPERATION_LATENCY_SECONDS.labels(
                    store=store,
                    method=method
                ).observe(duration)
        return wrapper
    return decorator
