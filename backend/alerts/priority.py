"""
Dynamic Priority
Derives alert severity from the size and direction of a metric change.

Independent of the composer: callers opt in when they want severity to
follow the data instead of the rule's static priority.
"""

from enum import Enum
from typing import List, Tuple, Union

from .models import AlertMetric, AlertOperator, AlertPriority


class ChangeDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    ANY = "any"


# (minimum |change %|, priority), checked top to bottom
Tiers = List[Tuple[float, AlertPriority]]

CCU_TIERS: Tiers = [
    (100, AlertPriority.CRITICAL),
    (50, AlertPriority.HIGH),
    (20, AlertPriority.MEDIUM),
]

RATING_DROP_TIERS: Tiers = [
    (10, AlertPriority.CRITICAL),
    (5, AlertPriority.HIGH),
]

DEFAULT_TIERS: Tiers = [
    (100, AlertPriority.HIGH),
    (50, AlertPriority.MEDIUM),
]


def _tier(abs_change: float, tiers: Tiers, floor: AlertPriority) -> AlertPriority:
    for minimum, priority in tiers:
        if abs_change >= minimum:
            return priority
    return floor


def direction_for(operator: AlertOperator, change_percent: float) -> ChangeDirection:
    """Direction implied by a change operator, falling back to the sign of the change"""
    if operator == AlertOperator.CHANGE_UP:
        return ChangeDirection.UP
    if operator == AlertOperator.CHANGE_DOWN:
        return ChangeDirection.DOWN
    if operator == AlertOperator.CHANGE_ANY:
        return ChangeDirection.ANY
    return ChangeDirection.UP if change_percent >= 0 else ChangeDirection.DOWN


def calculate_priority(
    change_percent: float,
    metric: Union[AlertMetric, str],
    direction: Union[ChangeDirection, str] = ChangeDirection.ANY,
) -> AlertPriority:
    """
    Severity for a change of `change_percent` on `metric`.

    - ccu: >=100% critical, >=50% high, >=20% medium, else low
    - positive_rate: a drop >=10 critical, >=5 high, else medium;
      any rise is low. ANY takes the direction from the sign.
    - everything else: >=100% high, >=50% medium, else low
    """
    metric = AlertMetric(metric)
    direction = ChangeDirection(direction)
    abs_change = abs(change_percent)

    if metric == AlertMetric.CCU:
        return _tier(abs_change, CCU_TIERS, AlertPriority.LOW)

    if metric == AlertMetric.POSITIVE_RATE:
        if direction == ChangeDirection.ANY:
            direction = ChangeDirection.DOWN if change_percent < 0 else ChangeDirection.UP
        if direction == ChangeDirection.DOWN:
            return _tier(abs_change, RATING_DROP_TIERS, AlertPriority.MEDIUM)
        return AlertPriority.LOW

    return _tier(abs_change, DEFAULT_TIERS, AlertPriority.LOW)
