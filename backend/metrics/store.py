import logging
from datetime import datetime
from typing import List, Dict, Optional

import pandas as pd

from .models import GameMetrics, MetricPoint, MetricSnapshot, IngestionResult
from .buffer import MetricHistoryBuffer
from settings import settings

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = ("app_id", "metric", "value", "timestamp")
NUMERIC_METRICS = ("ccu", "daily_reviews", "positive_rate", "price")


class MetricStore:
    def __init__(self, history_size: int = 1440):
        self._history = MetricHistoryBuffer(maxlen=history_size)
        self._latest: Dict[str, GameMetrics] = {}
        self._stats = {
            "snapshots_ingested": 0,
            "points_uploaded": 0,
            "errors": 0,
            "start_time": datetime.now()
        }

    def ingest(self, snapshot: MetricSnapshot) -> GameMetrics:
        current = self._latest.get(snapshot.app_id) or GameMetrics(app_id=snapshot.app_id)
        updates = {}

        for metric, value in snapshot.numeric_values().items():
            point = MetricPoint(value=value, timestamp=snapshot.timestamp)
            updates[metric] = point
            self._history.append(snapshot.app_id, metric, point)

        if snapshot.has_update is not None:
            updates["has_update"] = snapshot.has_update
        if snapshot.sale_active is not None:
            updates["sale_active"] = snapshot.sale_active
        if snapshot.name:
            updates["name"] = snapshot.name

        metrics = current.model_copy(update=updates)
        self._latest[snapshot.app_id] = metrics
        self._stats["snapshots_ingested"] += 1
        return metrics

    def ingest_batch(self, snapshots: List[MetricSnapshot]) -> IngestionResult:
        if not snapshots:
            return IngestionResult(success=True, count=0, message="No snapshots")

        for snapshot in snapshots:
            self.ingest(snapshot)

        app_ids = sorted(set(s.app_id for s in snapshots))
        return IngestionResult(
            success=True,
            count=len(snapshots),
            app_ids=app_ids,
            message=f"Ingested {len(snapshots)} snapshots"
        )

    def ingest_history_frame(self, df: pd.DataFrame) -> IngestionResult:
        """
        Load historical points from a long-format frame.

        Expected columns: app_id, metric, value, timestamp. Rows that
        fail to parse are counted as errors and skipped.
        """
        missing = [c for c in HISTORY_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"History frame is missing columns: {', '.join(missing)}")

        frame = df.loc[:, list(HISTORY_COLUMNS)].copy()
        frame["app_id"] = frame["app_id"].astype(str).str.strip()
        frame["metric"] = frame["metric"].astype(str).str.strip().str.lower()
        frame["value"] = pd.to_numeric(frame["value"], errors="coerce")
        frame["timestamp"] = pd.to_datetime(frame["timestamp"], errors="coerce", utc=True)

        valid = frame.dropna(subset=["value", "timestamp"])
        errors = len(frame) - len(valid)
        if errors:
            logger.warning("Skipped %d unparseable history rows", errors)
            self._stats["errors"] += errors

        count = 0
        for (app_id, metric), rows in valid.sort_values("timestamp").groupby(["app_id", "metric"]):
            points = [
                MetricPoint(value=float(row.value), timestamp=row.timestamp.to_pydatetime())
                for row in rows.itertuples(index=False)
            ]
            count += self._history.extend(app_id, metric, points)

            latest = self._latest.get(app_id) or GameMetrics(app_id=app_id)
            if metric in NUMERIC_METRICS and getattr(latest, metric) is None:
                latest = latest.model_copy(update={metric: points[-1]})
            self._latest[app_id] = latest

        self._stats["points_uploaded"] += count
        app_ids = sorted(valid["app_id"].unique().tolist())

        return IngestionResult(
            success=errors == 0,
            count=count,
            errors=errors,
            app_ids=app_ids,
            message=f"Loaded {count} history points"
        )

    def get(self, app_id: str) -> Optional[GameMetrics]:
        latest = self._latest.get(app_id)
        if latest is None:
            return None
        return latest.model_copy(update={"history": self._history.history(app_id)})

    def snapshot_map(self) -> Dict[str, GameMetrics]:
        """What the alert engine evaluates against for one tick"""
        return {app_id: self.get(app_id) for app_id in self._latest}

    def app_ids(self) -> List[str]:
        return sorted(self._latest.keys())

    def clear(self, app_id: str = None) -> None:
        self._history.clear(app_id)
        if app_id:
            self._latest.pop(app_id, None)
        else:
            self._latest.clear()
            self._stats = {
                "snapshots_ingested": 0,
                "points_uploaded": 0,
                "errors": 0,
                "start_time": datetime.now()
            }

    def stats(self) -> dict:
        return {
            **self._stats,
            "uptime_seconds": (datetime.now() - self._stats["start_time"]).total_seconds(),
            "apps": len(self._latest),
            "history": self._history.stats(),
        }


_store: Optional[MetricStore] = None


def get_metric_store() -> MetricStore:
    global _store
    if _store is None:
        _store = MetricStore(history_size=settings.metric_history_size)
    return _store
