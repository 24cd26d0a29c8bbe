"""
Condition Evaluation
Evaluates one condition against one game's metrics.

Flow:
1. Look up the metric extractor in the registry
2. Direct operators compare current vs threshold
3. Change operators find a baseline in history and compare the change

Missing data never raises; it resolves to "not triggered".
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from metrics.models import GameMetrics, MetricPoint
from settings import LookbackPolicy

from .models import (
    AlertCondition,
    AlertMetric,
    AlertOperator,
    ConditionResult,
    as_utc,
    utcnow,
)


# =============================================================================
# Metric Registry
# =============================================================================

@dataclass(frozen=True)
class MetricReading:
    """Current value of a metric plus its history (oldest first)"""
    current: float
    timestamp: Optional[datetime] = None
    history: tuple = ()


MetricExtractor = Callable[[GameMetrics], Optional[MetricReading]]

METRIC_EXTRACTORS: Dict[AlertMetric, MetricExtractor] = {}


def register_metric(metric: AlertMetric):
    """Register the extractor for a metric. Each metric is registered once."""
    def decorator(func: MetricExtractor) -> MetricExtractor:
        if metric in METRIC_EXTRACTORS:
            raise ValueError(f"Metric already registered: {metric.value}")
        METRIC_EXTRACTORS[metric] = func
        return func
    return decorator


def _point_reading(point: Optional[MetricPoint], history: List[MetricPoint]) -> Optional[MetricReading]:
    if point is None:
        return None
    return MetricReading(current=point.value, timestamp=point.timestamp, history=tuple(history))


def _flag_reading(flag: Optional[bool]) -> Optional[MetricReading]:
    if flag is None:
        return None
    return MetricReading(current=1.0 if flag else 0.0)


@register_metric(AlertMetric.CCU)
def _ccu(metrics: GameMetrics) -> Optional[MetricReading]:
    return _point_reading(metrics.ccu, metrics.history_for(AlertMetric.CCU.value))


@register_metric(AlertMetric.DAILY_REVIEWS)
def _daily_reviews(metrics: GameMetrics) -> Optional[MetricReading]:
    return _point_reading(metrics.daily_reviews, metrics.history_for(AlertMetric.DAILY_REVIEWS.value))


@register_metric(AlertMetric.POSITIVE_RATE)
def _positive_rate(metrics: GameMetrics) -> Optional[MetricReading]:
    return _point_reading(metrics.positive_rate, metrics.history_for(AlertMetric.POSITIVE_RATE.value))


@register_metric(AlertMetric.PRICE)
def _price(metrics: GameMetrics) -> Optional[MetricReading]:
    return _point_reading(metrics.price, metrics.history_for(AlertMetric.PRICE.value))


@register_metric(AlertMetric.HAS_UPDATE)
def _has_update(metrics: GameMetrics) -> Optional[MetricReading]:
    return _flag_reading(metrics.has_update)


@register_metric(AlertMetric.SALE_ACTIVE)
def _sale_active(metrics: GameMetrics) -> Optional[MetricReading]:
    return _flag_reading(metrics.sale_active)


_unregistered = set(AlertMetric) - set(METRIC_EXTRACTORS)
if _unregistered:
    raise RuntimeError(f"No extractor registered for: {sorted(m.value for m in _unregistered)}")


def get_metric_reading(metrics: Optional[GameMetrics], metric: AlertMetric) -> Optional[MetricReading]:
    if metrics is None:
        return None
    return METRIC_EXTRACTORS[metric](metrics)


# =============================================================================
# Comparisons
# =============================================================================

DIRECT_COMPARISONS: Dict[AlertOperator, Callable[[float, float], bool]] = {
    AlertOperator.GT: lambda current, threshold: current > threshold,
    AlertOperator.GTE: lambda current, threshold: current >= threshold,
    AlertOperator.LT: lambda current, threshold: current < threshold,
    AlertOperator.LTE: lambda current, threshold: current <= threshold,
    AlertOperator.EQ: lambda current, threshold: current == threshold,
    AlertOperator.NEQ: lambda current, threshold: current != threshold,
}

# change is signed (current - previous); decreases are compared on -change
CHANGE_COMPARISONS: Dict[AlertOperator, Callable[[float, float], bool]] = {
    AlertOperator.CHANGE_UP: lambda change, threshold: change >= threshold,
    AlertOperator.CHANGE_DOWN: lambda change, threshold: -change >= threshold,
    AlertOperator.CHANGE_ANY: lambda change, threshold: abs(change) >= threshold,
}

_unhandled = set(AlertOperator) - set(DIRECT_COMPARISONS) - set(CHANGE_COMPARISONS)
if _unhandled:
    raise RuntimeError(f"No comparison defined for: {sorted(o.value for o in _unhandled)}")


def percent_change(current: float, previous: Optional[float]) -> Optional[float]:
    """(current - previous) / previous * 100, undefined for a zero or missing baseline"""
    if previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100


# =============================================================================
# Baseline Lookup
# =============================================================================

def find_previous_value(
    history: List[MetricPoint],
    time_window_minutes: Optional[int],
    now: datetime,
    current_ts: Optional[datetime] = None,
    policy: LookbackPolicy = LookbackPolicy.OLDEST_AVAILABLE,
) -> Optional[float]:
    """
    Pick the baseline point for a change comparison.

    With a window: the most recent point at or before `now - window`.
    If none predates the window, OLDEST_AVAILABLE falls back to the
    oldest point while STRICT returns None.

    Without a window: the most recent point strictly older than the
    current reading (or the last point if the reading has no timestamp).
    """
    if not history:
        return None

    points = sorted(history, key=lambda p: as_utc(p.timestamp), reverse=True)

    if time_window_minutes:
        window_start = as_utc(now) - timedelta(minutes=time_window_minutes)
        for point in points:
            if as_utc(point.timestamp) <= window_start:
                return point.value
        if policy == LookbackPolicy.STRICT:
            return None
        return points[-1].value

    if current_ts is None:
        return points[0].value
    for point in points:
        if as_utc(point.timestamp) < as_utc(current_ts):
            return point.value
    return None


# =============================================================================
# Evaluation
# =============================================================================

def evaluate_condition(
    condition: AlertCondition,
    metrics: Optional[GameMetrics],
    now: datetime = None,
    policy: LookbackPolicy = LookbackPolicy.OLDEST_AVAILABLE,
) -> ConditionResult:
    """
    Evaluate a single condition. Pure: same inputs, same result.
    """
    now = now or utcnow()
    reading = get_metric_reading(metrics, condition.metric)
    if reading is None:
        return ConditionResult(triggered=False, current=0.0)

    current = reading.current

    if condition.operator in DIRECT_COMPARISONS:
        # a window on a direct condition only adds context for the message
        previous = None
        if condition.time_window_minutes:
            previous = find_previous_value(
                list(reading.history), condition.time_window_minutes, now, reading.timestamp, policy
            )
        return ConditionResult(
            triggered=DIRECT_COMPARISONS[condition.operator](current, condition.value),
            current=current,
            previous=previous,
            change_percent=percent_change(current, previous),
        )

    previous = find_previous_value(
        list(reading.history), condition.time_window_minutes, now, reading.timestamp, policy
    )
    change_pct = percent_change(current, previous)

    if previous is None or previous == 0:
        return ConditionResult(triggered=False, current=current, previous=previous)

    if condition.percentage_change:
        change = change_pct
    else:
        change = current - previous

    return ConditionResult(
        triggered=CHANGE_COMPARISONS[condition.operator](change, condition.value),
        current=current,
        previous=previous,
        change_percent=change_pct,
    )


class ConditionEvaluator:
    """
    Condition evaluation bound to a lookback policy.

    Usage:
        evaluator = ConditionEvaluator(policy=LookbackPolicy.STRICT)
        result = evaluator.evaluate(condition, metrics, now=now)
    """

    def __init__(self, policy: LookbackPolicy = LookbackPolicy.OLDEST_AVAILABLE):
        self.policy = policy

    def evaluate(self, condition: AlertCondition, metrics: Optional[GameMetrics], now: datetime = None) -> ConditionResult:
        return evaluate_condition(condition, metrics, now=now, policy=self.policy)
