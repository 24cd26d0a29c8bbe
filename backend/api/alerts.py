"""
Alerts API
Endpoints for managing alert rules and running evaluation ticks.

Endpoints:
    POST   /api/alerts/rules                → Create alert rule
    GET    /api/alerts/rules                → List all rules
    GET    /api/alerts/rules/{id}           → Get rule by ID (with state)
    DELETE /api/alerts/rules/{id}           → Delete rule
    POST   /api/alerts/rules/{id}/enable    → Enable rule
    POST   /api/alerts/rules/{id}/disable   → Disable rule
    GET    /api/alerts/templates            → List rule templates
    POST   /api/alerts/templates/{id}       → Create rule from template
    POST   /api/alerts/evaluate             → Run a tick over the metric store
    POST   /api/alerts/test                 → Dry-run rules against inline metrics
    GET    /api/alerts/history              → Alert history (optionally grouped)
    DELETE /api/alerts/history              → Clear history
    GET    /api/alerts/summary              → Counts by priority and rule
    POST   /api/alerts/format               → Render a message for a channel
    POST   /api/alerts/priority             → Dynamic priority for a change
    GET    /api/alerts/stats                → Engine statistics
    POST   /api/alerts/reset                → Clear cooldowns
"""

import logging
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Dict, List, Optional

from alerts import (
    get_alert_engine,
    AlertRule,
    AlertCondition,
    AlertMessage,
    AlertMetric,
    AlertOperator,
    AlertPriority,
    AlertChannel,
    AlertRuleType,
    TargetType,
    ConditionLogic,
    ChangeDirection,
    RuleValidationError,
    ALERT_RULE_TEMPLATES,
    calculate_priority,
    rule_from_template,
)
from metrics import GameMetrics, get_metric_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["Alerts"])


# =============================================================================
# Request Models
# =============================================================================

class ConditionRequest(BaseModel):
    metric: AlertMetric
    operator: AlertOperator
    value: float
    time_window_minutes: Optional[int] = Field(default=None, gt=0)
    percentage_change: bool = True


class CreateRuleRequest(BaseModel):
    """Request body for creating an alert rule"""
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    type: AlertRuleType = AlertRuleType.CUSTOM
    target_type: TargetType = TargetType.GLOBAL
    target_ids: List[str] = []
    conditions: List[ConditionRequest] = Field(..., min_length=1)
    condition_logic: ConditionLogic = ConditionLogic.AND
    channels: List[AlertChannel] = [AlertChannel.IN_APP]
    priority: AlertPriority = AlertPriority.MEDIUM
    cooldown_minutes: int = Field(default=60, ge=0)
    enabled: bool = True

    @field_validator('target_ids', mode='before')
    @classmethod
    def stringify_ids(cls, v):
        return [str(x) for x in v] if isinstance(v, list) else v

    @model_validator(mode='after')
    def scoped_rules_need_targets(self):
        if self.target_type != TargetType.GLOBAL and not self.target_ids:
            raise ValueError(f"target_ids required for target_type '{self.target_type.value}'")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "name": "CCU target reached",
                "target_type": "game",
                "target_ids": ["730"],
                "conditions": [{"metric": "ccu", "operator": "gte", "value": 10000}],
                "condition_logic": "and",
                "channels": ["in_app", "slack"],
                "priority": "medium",
                "cooldown_minutes": 60
            }
        }

    def to_rule(self) -> AlertRule:
        return AlertRule(
            id="",
            name=self.name,
            description=self.description,
            type=self.type,
            enabled=self.enabled,
            target_type=self.target_type,
            target_ids=self.target_ids,
            conditions=[AlertCondition(**c.model_dump()) for c in self.conditions],
            condition_logic=self.condition_logic,
            channels=self.channels,
            priority=self.priority,
            cooldown_minutes=self.cooldown_minutes,
        )


class TemplateRuleRequest(BaseModel):
    target_type: TargetType = TargetType.GLOBAL
    target_ids: List[str] = []
    channels: Optional[List[AlertChannel]] = None
    priority: Optional[AlertPriority] = None
    cooldown_minutes: Optional[int] = Field(default=None, ge=0)


class TestAlertRequest(BaseModel):
    """Inline metrics for a dry run"""
    metrics: List[GameMetrics] = Field(..., min_length=1)


class FormatRequest(BaseModel):
    message: Dict
    channel: str


class PriorityRequest(BaseModel):
    change_percent: float
    metric: AlertMetric
    direction: ChangeDirection = ChangeDirection.ANY


def _get_rule_or_404(rule_id: str) -> AlertRule:
    rule = get_alert_engine().get_rule(rule_id)
    if not rule:
        raise HTTPException(404, f"Rule not found: {rule_id}")
    return rule


def _store_rule(rule: AlertRule) -> AlertRule:
    try:
        return get_alert_engine().add_rule(rule)
    except RuleValidationError as e:
        raise HTTPException(400, str(e))


# =============================================================================
# Rule Management
# =============================================================================

@router.post("/rules")
async def create_rule(request: CreateRuleRequest):
    """
    Create a new alert rule.

    Metrics: ccu, daily_reviews, positive_rate, price, has_update, sale_active
    Operators: gt, gte, lt, lte, eq, neq, change_up, change_down, change_any
    """
    rule = _store_rule(request.to_rule())
    logger.info("Created rule %s (%s)", rule.id, rule.name)

    return {
        "message": "Alert rule created",
        "rule": rule.to_dict()
    }


@router.get("/rules")
async def list_rules(enabled: Optional[bool] = None):
    """Get all alert rules"""
    rules = get_alert_engine().get_rules()
    if enabled is not None:
        rules = [r for r in rules if r.enabled == enabled]

    return {
        "count": len(rules),
        "rules": [r.to_dict() for r in rules]
    }


@router.get("/rules/{rule_id}")
async def get_rule(rule_id: str):
    """Get a specific alert rule and its cooldown state"""
    rule = _get_rule_or_404(rule_id)

    return {
        "rule": rule.to_dict(),
        "state": get_alert_engine().rule_state(rule_id)
    }


@router.delete("/rules/{rule_id}")
async def delete_rule(rule_id: str):
    if not get_alert_engine().remove_rule(rule_id):
        raise HTTPException(404, f"Rule not found: {rule_id}")

    return {"message": f"Rule {rule_id} deleted"}


@router.post("/rules/{rule_id}/enable")
async def enable_rule(rule_id: str):
    if not get_alert_engine().enable_rule(rule_id):
        raise HTTPException(404, f"Rule not found: {rule_id}")

    return {"message": f"Rule {rule_id} enabled"}


@router.post("/rules/{rule_id}/disable")
async def disable_rule(rule_id: str):
    if not get_alert_engine().disable_rule(rule_id):
        raise HTTPException(404, f"Rule not found: {rule_id}")

    return {"message": f"Rule {rule_id} disabled"}


# =============================================================================
# Templates
# =============================================================================

@router.get("/templates")
async def list_templates():
    templates = [t.to_dict() for t in ALERT_RULE_TEMPLATES.values()]
    return {"count": len(templates), "templates": templates}


@router.post("/templates/{template_id}")
async def create_from_template(template_id: str, request: TemplateRuleRequest):
    """Create a rule from a template, optionally scoped to games"""
    if template_id not in ALERT_RULE_TEMPLATES:
        raise HTTPException(404, f"Template not found: {template_id}")

    rule = rule_from_template(template_id, **request.model_dump())
    rule = _store_rule(rule)

    return {
        "message": f"Alert rule created from template {template_id}",
        "rule": rule.to_dict()
    }


# =============================================================================
# Evaluation
# =============================================================================

@router.post("/evaluate")
async def evaluate():
    """Run one evaluation tick over every stored rule and the metric store"""
    metrics_map = get_metric_store().snapshot_map()
    result = get_alert_engine().run_tick(metrics_map)
    return result.to_dict()


@router.post("/test")
async def test_alerts(request: TestAlertRequest):
    """
    Dry-run stored rules against inline metrics.

    Cooldowns are ignored and no rule state or history changes.
    """
    metrics_map = {m.app_id: m for m in request.metrics}
    result = get_alert_engine().preview(metrics_map)
    return result.to_dict()


# =============================================================================
# Alert History
# =============================================================================

@router.get("/history")
async def get_history(
    limit: int = Query(default=50, le=200),
    grouped: bool = Query(default=False)
):
    history = get_alert_engine().get_history(limit, grouped=grouped)

    return {
        "count": len(history),
        "alerts": [m.to_dict() for m in history]
    }


@router.delete("/history")
async def clear_history():
    get_alert_engine().clear_history()
    return {"message": "Alert history cleared"}


@router.get("/summary")
async def get_summary():
    return get_alert_engine().summary()


# =============================================================================
# Rendering Utilities
# =============================================================================

@router.post("/format")
async def format_message(request: FormatRequest):
    """Render a stored-format message for one channel"""
    try:
        message = AlertMessage.from_dict(request.message)
    except (KeyError, ValueError, TypeError) as e:
        raise HTTPException(400, f"Invalid message: {e}")

    engine = get_alert_engine()
    return engine.formatter.format(message, request.channel).to_dict()


@router.post("/priority")
async def priority(request: PriorityRequest):
    result = calculate_priority(request.change_percent, request.metric, request.direction)
    return {"priority": result.value}


# =============================================================================
# Testing & Management
# =============================================================================

@router.get("/stats")
async def get_stats():
    return get_alert_engine().stats()


@router.post("/reset")
async def reset_states():
    """Reset all rule cooldowns"""
    get_alert_engine().reset_states()
    return {"message": "Alert states reset"}
