"""
In-Memory Metric History
Bounded, app-keyed storage of recent metric points.

This is READ-OPTIMIZED, NOT DURABLE.
"""

from collections import deque
from typing import Dict, List, Optional

from .models import MetricPoint


class MetricHistoryBuffer:
    """
    Per-app, per-metric deques with automatic eviction.

    Structure: app_id → metric → deque[MetricPoint] (oldest first)

    Usage:
        buffer = MetricHistoryBuffer(maxlen=500)
        buffer.append("730", "ccu", point)
        points = buffer.get("730", "ccu", limit=100)
    """

    def __init__(self, maxlen: int = 500):
        self.maxlen = maxlen
        self._data: Dict[str, Dict[str, deque]] = {}

    def append(self, app_id: str, metric: str, point: MetricPoint) -> None:
        """Add a point, keeping each deque time-ordered"""
        metrics = self._data.setdefault(app_id, {})
        if metric not in metrics:
            metrics[metric] = deque(maxlen=self.maxlen)

        points = metrics[metric]

        # Same timestamp replaces, late arrivals are re-sorted in
        if points and points[-1].timestamp == point.timestamp:
            points[-1] = point
        elif points and points[-1].timestamp > point.timestamp:
            ordered = sorted([*points, point], key=lambda p: p.timestamp)
            metrics[metric] = deque(ordered[-self.maxlen:], maxlen=self.maxlen)
        else:
            points.append(point)

    def extend(self, app_id: str, metric: str, points: List[MetricPoint]) -> int:
        for point in points:
            self.append(app_id, metric, point)
        return len(points)

    def get(self, app_id: str, metric: str, limit: int = None) -> List[MetricPoint]:
        if app_id not in self._data or metric not in self._data[app_id]:
            return []

        data = list(self._data[app_id][metric])
        if limit:
            return data[-limit:]
        return data

    def get_latest(self, app_id: str, metric: str) -> Optional[MetricPoint]:
        points = self.get(app_id, metric, limit=1)
        return points[0] if points else None

    def history(self, app_id: str) -> Dict[str, List[MetricPoint]]:
        """All metrics for one app"""
        return {metric: list(points) for metric, points in self._data.get(app_id, {}).items()}

    def app_ids(self) -> List[str]:
        return list(self._data.keys())

    def clear(self, app_id: str = None) -> None:
        if app_id:
            self._data.pop(app_id, None)
        else:
            self._data.clear()

    def stats(self) -> dict:
        return {
            app_id: {metric: len(points) for metric, points in metrics.items()}
            for app_id, metrics in self._data.items()
        }
