"""
Metric Models
The data contract between metric collection and the alert engine.

After normalization, the alert engine only sees these types.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone


def _parse_timestamp(v):
    """Handle various timestamp formats, always returning aware UTC"""
    if isinstance(v, datetime):
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)
    if isinstance(v, str):
        ts = datetime.fromisoformat(v.replace('Z', '+00:00'))
        return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)
    if isinstance(v, (int, float)):
        # Unix timestamp (seconds or milliseconds)
        if v > 1e12:
            return datetime.fromtimestamp(v / 1000, tz=timezone.utc)
        return datetime.fromtimestamp(v, tz=timezone.utc)
    return v


# =============================================================================
# MetricPoint
# =============================================================================

class MetricPoint(BaseModel):
    """A single (value, timestamp) observation"""
    value: float
    timestamp: datetime

    @field_validator('timestamp', mode='before')
    @classmethod
    def parse_timestamp(cls, v):
        return _parse_timestamp(v)


# =============================================================================
# GameMetrics: what a rule is evaluated against
# =============================================================================

class GameMetrics(BaseModel):
    """
    Current metric values for one game plus per-metric history.

    Fields:
        app_id: Steam app id (string key)
        name: Display name used in alert titles
        ccu: Concurrent users
        daily_reviews: Reviews posted in the last day
        positive_rate: Positive review ratio (percent)
        price: Current price
        has_update: A new patch/news item was published
        sale_active: The game is on sale
        history: metric name -> points, oldest first
    """
    app_id: str
    name: str = ""
    ccu: Optional[MetricPoint] = None
    daily_reviews: Optional[MetricPoint] = None
    positive_rate: Optional[MetricPoint] = None
    price: Optional[MetricPoint] = None
    has_update: Optional[bool] = None
    sale_active: Optional[bool] = None
    history: Dict[str, List[MetricPoint]] = Field(default_factory=dict)

    @field_validator('app_id', mode='before')
    @classmethod
    def stringify_app_id(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator('history', mode='after')
    @classmethod
    def sort_history(cls, v):
        return {metric: sorted(points, key=lambda p: p.timestamp) for metric, points in v.items()}

    def history_for(self, metric: str) -> List[MetricPoint]:
        return self.history.get(metric, [])


# =============================================================================
# Ingestion
# =============================================================================

class MetricSnapshot(BaseModel):
    """
    Flat snapshot as posted by a collector.

    Numeric metrics are plain values stamped with `timestamp`.
    """
    app_id: str
    name: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ccu: Optional[float] = Field(default=None, ge=0)
    daily_reviews: Optional[float] = Field(default=None, ge=0)
    positive_rate: Optional[float] = Field(default=None, ge=0, le=100)
    price: Optional[float] = Field(default=None, ge=0)
    has_update: Optional[bool] = None
    sale_active: Optional[bool] = None

    @field_validator('app_id', mode='before')
    @classmethod
    def stringify_app_id(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator('timestamp', mode='before')
    @classmethod
    def parse_timestamp(cls, v):
        return _parse_timestamp(v)

    def numeric_values(self) -> Dict[str, float]:
        values = {
            "ccu": self.ccu,
            "daily_reviews": self.daily_reviews,
            "positive_rate": self.positive_rate,
            "price": self.price,
        }
        return {k: v for k, v in values.items() if v is not None}


class IngestionResult(BaseModel):
    """Result of metric ingestion"""
    success: bool = True
    count: int = 0
    errors: int = 0
    app_ids: List[str] = []
    message: str = ""


def to_metric_point(data: Dict[str, Any]) -> MetricPoint:
    """
    Convert an external history row to MetricPoint.

    Handles timestamp/ts/time and value/count/ccu field variants.
    """
    ts = data.get('timestamp') or data.get('ts') or data.get('time')
    value = data.get('value')
    if value is None:
        value = data.get('count', data.get('ccu'))
    return MetricPoint(value=float(value), timestamp=ts)
