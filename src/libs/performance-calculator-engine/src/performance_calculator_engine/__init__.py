"""Aggregated performance series over ledger positions."""
from .aggregator import PerformanceAggregator, series_to_frame
from .helpers import bucket_boundaries, period_bucketing, resolve_period
from .models import Bucketing, Frequency, PerformancePoint, PerformanceScope

__all__ = [
    "Bucketing",
    "Frequency",
    "PerformanceAggregator",
    "PerformancePoint",
    "PerformanceScope",
    "bucket_boundaries",
    "period_bucketing",
    "resolve_period",
    "series_to_frame",
]
