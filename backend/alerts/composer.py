"""
Message Composition
Turns a triggered rule evaluation into an AlertMessage.
"""

from datetime import datetime
from typing import Optional

from .models import (
    AlertData,
    AlertMessage,
    AlertMetric,
    AlertPriority,
    RuleEvaluation,
    utcnow,
)
from .priority import calculate_priority, direction_for


METRIC_LABELS = {
    AlertMetric.CCU: "Concurrent users",
    AlertMetric.DAILY_REVIEWS: "Daily reviews",
    AlertMetric.POSITIVE_RATE: "Positive review rate",
    AlertMetric.PRICE: "Price",
    AlertMetric.HAS_UPDATE: "Update flag",
    AlertMetric.SALE_ACTIVE: "Sale flag",
}


def format_number(value: Optional[float]) -> str:
    """12000.0 -> '12,000', 1234.5 -> '1,234.5', 0.0004 -> '0.0004'"""
    if value is None:
        return "N/A"
    if float(value).is_integer():
        return f"{int(value):,}"
    if abs(value) < 1:
        return f"{value:.4g}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def build_title(evaluation: RuleEvaluation) -> str:
    if evaluation.target_name or evaluation.target_id:
        return f"[{evaluation.target_name or evaluation.target_id}] {evaluation.rule.name}"
    return evaluation.rule.name


def build_body(evaluation: RuleEvaluation) -> str:
    primary = evaluation.primary
    label = METRIC_LABELS[primary.condition.metric]

    if primary.change_percent is not None:
        direction = "rose" if primary.change_percent >= 0 else "fell"
        body = (
            f"{label} {direction} by {abs(primary.change_percent):.1f}% "
            f"({format_number(primary.previous_value)} → {format_number(primary.current_value)})"
        )
    else:
        body = f"{label} reached {format_number(primary.current_value)}."

    extra = len(evaluation.triggered_conditions) - 1
    if extra > 0:
        body += f" (+{extra} more condition{'s' if extra > 1 else ''} met)"
    return body


def resolve_priority(evaluation: RuleEvaluation, dynamic: bool = False) -> AlertPriority:
    primary = evaluation.primary
    if not dynamic or primary.change_percent is None:
        return evaluation.rule.priority
    return calculate_priority(
        primary.change_percent,
        primary.condition.metric,
        direction_for(primary.condition.operator, primary.change_percent),
    )


def compose_message(
    evaluation: RuleEvaluation,
    now: datetime = None,
    dynamic_priority: bool = False,
    action_base_path: str = "/games",
) -> AlertMessage:
    """
    Build the message for one (rule, target) firing.

    The body describes the first triggered condition; `data` keeps the
    raw numbers for auditing and channel rendering.
    """
    if not evaluation.triggered_conditions:
        raise ValueError(f"Evaluation for rule {evaluation.rule.id} has no triggered conditions")

    now = now or evaluation.evaluated_at or utcnow()
    rule = evaluation.rule
    primary = evaluation.primary
    target_id = evaluation.target_id

    return AlertMessage(
        id="",
        rule_id=rule.id,
        rule_name=rule.name,
        title=build_title(evaluation),
        body=build_body(evaluation),
        summary=rule.description or None,
        target_type=rule.target_type,
        target_id=target_id,
        target_name=evaluation.target_name,
        data=AlertData(
            metric=primary.condition.metric.value,
            previous_value=primary.previous_value,
            current_value=primary.current_value,
            change_percent=primary.change_percent,
            threshold=primary.condition.value,
            triggered_at=now,
        ),
        priority=resolve_priority(evaluation, dynamic_priority),
        channels=list(rule.channels),
        created_at=now,
        action_url=f"{action_base_path.rstrip('/')}/{target_id}" if target_id else None,
        action_label="View game" if target_id else None,
    )


class MessageComposer:
    """
    Composer bound to rendering options.

    Usage:
        composer = MessageComposer(dynamic_priority=True)
        message = composer.compose(evaluation)
    """

    def __init__(self, dynamic_priority: bool = False, action_base_path: str = "/games"):
        self.dynamic_priority = dynamic_priority
        self.action_base_path = action_base_path

    def compose(self, evaluation: RuleEvaluation, now: datetime = None) -> AlertMessage:
        return compose_message(
            evaluation,
            now=now,
            dynamic_priority=self.dynamic_priority,
            action_base_path=self.action_base_path,
        )
