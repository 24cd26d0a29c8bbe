"""
Alert System
Rule-based alerts over Steam game metrics.

Structure:
    alerts/
    ├── models.py      → AlertRule, AlertCondition, AlertMessage, enums
    ├── conditions.py  → metric registry + single-condition evaluation
    ├── evaluator.py   → rule evaluation (targets, cooldown, AND/OR)
    ├── composer.py    → AlertMessage composition
    ├── priority.py    → dynamic severity from change size
    ├── grouper.py     → burst deduplication
    ├── channels.py    → per-channel payload rendering
    ├── templates.py   → ready-made rules
    └── engine.py      → AlertEngine (rule store + tick pipeline)

Usage:
    from alerts import get_alert_engine, AlertRule, AlertCondition, AlertMetric, AlertOperator

    engine = get_alert_engine()
    engine.add_rule(AlertRule(
        id="",
        name="CCU target",
        conditions=[AlertCondition(AlertMetric.CCU, AlertOperator.GTE, 10000)],
    ))

    # Called by the scheduler with the current metrics map
    result = engine.run_tick(metrics_map)
    for message in result.messages:
        deliver(result.payloads[message.id])
"""

from .models import (
    AlertRule,
    AlertCondition,
    AlertMessage,
    AlertData,
    AlertMetric,
    AlertOperator,
    AlertPriority,
    AlertChannel,
    AlertStatus,
    AlertRuleType,
    TargetType,
    ConditionLogic,
    ConditionResult,
    TriggeredCondition,
    RuleEvaluation,
    RuleValidationError,
    validate_rule,
)

from .conditions import ConditionEvaluator, evaluate_condition, register_metric
from .evaluator import RuleEvaluator, EvaluationBatch, evaluate_rule, is_in_cooldown
from .composer import MessageComposer, compose_message
from .priority import ChangeDirection, calculate_priority
from .grouper import AlertGrouper, group_alerts
from .channels import ChannelFormatter, ChannelPayload, format_for_channel, format_for_channels
from .templates import ALERT_RULE_TEMPLATES, rule_from_template

from .engine import (
    AlertEngine,
    TickResult,
    get_alert_engine,
)

__all__ = [
    # Models
    "AlertRule",
    "AlertCondition",
    "AlertMessage",
    "AlertData",
    "AlertMetric",
    "AlertOperator",
    "AlertPriority",
    "AlertChannel",
    "AlertStatus",
    "AlertRuleType",
    "TargetType",
    "ConditionLogic",
    "ConditionResult",
    "TriggeredCondition",
    "RuleEvaluation",
    "RuleValidationError",
    "validate_rule",
    # Evaluation
    "ConditionEvaluator",
    "evaluate_condition",
    "register_metric",
    "RuleEvaluator",
    "EvaluationBatch",
    "evaluate_rule",
    "is_in_cooldown",
    # Messages
    "MessageComposer",
    "compose_message",
    "ChangeDirection",
    "calculate_priority",
    "AlertGrouper",
    "group_alerts",
    "ChannelFormatter",
    "ChannelPayload",
    "format_for_channel",
    "format_for_channels",
    # Templates
    "ALERT_RULE_TEMPLATES",
    "rule_from_template",
    # Engine
    "AlertEngine",
    "TickResult",
    "get_alert_engine",
]
