"""
Rule Templates
Ready-made rules for the common Steam market alerts.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .models import (
    AlertChannel,
    AlertCondition,
    AlertMetric,
    AlertOperator,
    AlertPriority,
    AlertRule,
    AlertRuleType,
)


@dataclass(frozen=True)
class AlertRuleTemplate:
    id: str
    name: str
    description: str
    type: AlertRuleType
    category: str  # performance, engagement, competitor, market
    conditions: List[AlertCondition] = field(default_factory=list)
    priority: AlertPriority = AlertPriority.MEDIUM
    channels: List[AlertChannel] = field(default_factory=lambda: [AlertChannel.IN_APP])
    cooldown_minutes: int = 60

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "category": self.category,
            "conditions": [c.to_dict() for c in self.conditions],
            "priority": self.priority.value,
            "channels": [c.value for c in self.channels],
            "cooldown_minutes": self.cooldown_minutes,
        }


DAY = 1440
WEEK = 10080

ALERT_RULE_TEMPLATES: Dict[str, AlertRuleTemplate] = {t.id: t for t in [
    AlertRuleTemplate(
        id="ccu_spike",
        name="CCU spike",
        description="Concurrent users rose sharply",
        type=AlertRuleType.CCU_CHANGE,
        category="performance",
        conditions=[AlertCondition(AlertMetric.CCU, AlertOperator.CHANGE_UP, 50, time_window_minutes=60)],
        priority=AlertPriority.HIGH,
        channels=[AlertChannel.IN_APP, AlertChannel.EMAIL],
        cooldown_minutes=60,
    ),
    AlertRuleTemplate(
        id="ccu_drop",
        name="CCU drop",
        description="Concurrent users fell sharply",
        type=AlertRuleType.CCU_CHANGE,
        category="performance",
        conditions=[AlertCondition(AlertMetric.CCU, AlertOperator.CHANGE_DOWN, 30, time_window_minutes=60)],
        priority=AlertPriority.HIGH,
        channels=[AlertChannel.IN_APP, AlertChannel.EMAIL],
        cooldown_minutes=60,
    ),
    AlertRuleTemplate(
        id="ccu_threshold",
        name="CCU target reached",
        description="Concurrent users reached the target",
        type=AlertRuleType.CCU_THRESHOLD,
        category="performance",
        conditions=[AlertCondition(AlertMetric.CCU, AlertOperator.GTE, 10000)],
        priority=AlertPriority.MEDIUM,
        cooldown_minutes=DAY,
    ),
    AlertRuleTemplate(
        id="review_spike",
        name="Review spike",
        description="More reviews than usual are coming in",
        type=AlertRuleType.REVIEW_SPIKE,
        category="engagement",
        conditions=[AlertCondition(AlertMetric.DAILY_REVIEWS, AlertOperator.CHANGE_UP, 100, time_window_minutes=DAY)],
        priority=AlertPriority.MEDIUM,
        cooldown_minutes=DAY,
    ),
    AlertRuleTemplate(
        id="rating_drop",
        name="Rating drop",
        description="Positive review rate dropped",
        type=AlertRuleType.RATING_DROP,
        category="engagement",
        conditions=[AlertCondition(
            AlertMetric.POSITIVE_RATE, AlertOperator.CHANGE_DOWN, 5,
            time_window_minutes=DAY, percentage_change=False,
        )],
        priority=AlertPriority.HIGH,
        channels=[AlertChannel.IN_APP, AlertChannel.EMAIL],
        cooldown_minutes=DAY,
    ),
    AlertRuleTemplate(
        id="price_drop",
        name="Price cut",
        description="The game got cheaper",
        type=AlertRuleType.PRICE_CHANGE,
        category="market",
        conditions=[AlertCondition(AlertMetric.PRICE, AlertOperator.CHANGE_DOWN, 10)],
        priority=AlertPriority.LOW,
        cooldown_minutes=60,
    ),
    AlertRuleTemplate(
        id="competitor_update",
        name="Competitor update",
        description="A competing game shipped an update",
        type=AlertRuleType.COMPETITOR_UPDATE,
        category="competitor",
        conditions=[AlertCondition(AlertMetric.HAS_UPDATE, AlertOperator.EQ, 1)],
        priority=AlertPriority.MEDIUM,
        channels=[AlertChannel.IN_APP, AlertChannel.EMAIL],
        cooldown_minutes=DAY,
    ),
    AlertRuleTemplate(
        id="sale_start",
        name="Steam sale started",
        description="A Steam sale is live",
        type=AlertRuleType.SALE_START,
        category="market",
        conditions=[AlertCondition(AlertMetric.SALE_ACTIVE, AlertOperator.EQ, 1)],
        priority=AlertPriority.MEDIUM,
        channels=[AlertChannel.IN_APP, AlertChannel.EMAIL],
        cooldown_minutes=WEEK,
    ),
]}


def rule_from_template(template_id: str, **overrides) -> AlertRule:
    """
    Instantiate a rule from a template. Keyword overrides win over
    template defaults (e.g. target_type, target_ids, channels).
    """
    template = ALERT_RULE_TEMPLATES.get(template_id)
    if template is None:
        raise KeyError(template_id)

    fields = {
        "id": "",
        "name": template.name,
        "description": template.description,
        "type": template.type,
        "conditions": list(template.conditions),
        "priority": template.priority,
        "channels": list(template.channels),
        "cooldown_minutes": template.cooldown_minutes,
    }
    fields.update({k: v for k, v in overrides.items() if v is not None})
    return AlertRule(**fields)
