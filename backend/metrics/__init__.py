"""
Metrics Module
In-memory snapshot and history storage feeding the alert engine.

Exports:
    Models: MetricPoint, GameMetrics, MetricSnapshot, IngestionResult
    Store: MetricStore, get_metric_store
    Buffer: MetricHistoryBuffer
"""

from .models import (
    MetricPoint,
    GameMetrics,
    MetricSnapshot,
    IngestionResult,
    to_metric_point,
)

from .buffer import MetricHistoryBuffer
from .store import MetricStore, get_metric_store

__all__ = [
    # Models
    "MetricPoint",
    "GameMetrics",
    "MetricSnapshot",
    "IngestionResult",
    "to_metric_point",
    # Buffer
    "MetricHistoryBuffer",
    # Store
    "MetricStore",
    "get_metric_store",
]
