"""
Alert Models
Data structures for alert rules, evaluation results and messages.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Dict, Any, Tuple
from enum import Enum
import uuid


# =============================================================================
# Enumerations (closed sets)
# =============================================================================

class AlertMetric(str, Enum):
    """Tracked game metrics a condition can watch"""
    CCU = "ccu"
    DAILY_REVIEWS = "daily_reviews"
    POSITIVE_RATE = "positive_rate"
    PRICE = "price"
    HAS_UPDATE = "has_update"
    SALE_ACTIVE = "sale_active"


class AlertOperator(str, Enum):
    """Condition operators"""
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    EQ = "eq"
    NEQ = "neq"
    CHANGE_UP = "change_up"        # increased by at least
    CHANGE_DOWN = "change_down"    # decreased by at least
    CHANGE_ANY = "change_any"      # changed by at least

    @property
    def is_change(self) -> bool:
        return self in CHANGE_OPERATORS


CHANGE_OPERATORS = frozenset({
    AlertOperator.CHANGE_UP,
    AlertOperator.CHANGE_DOWN,
    AlertOperator.CHANGE_ANY,
})


class AlertPriority(str, Enum):
    """Alert severity, lowest first"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertChannel(str, Enum):
    """Delivery channels"""
    EMAIL = "email"
    PUSH = "push"
    IN_APP = "in_app"
    SLACK = "slack"
    DISCORD = "discord"


class AlertStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class TargetType(str, Enum):
    """What a rule watches: one game, a group of games, or everything"""
    GAME = "game"
    PROJECT = "project"
    GLOBAL = "global"


class ConditionLogic(str, Enum):
    AND = "and"
    OR = "or"


class AlertRuleType(str, Enum):
    """Descriptive rule category"""
    CCU_THRESHOLD = "ccu_threshold"
    CCU_CHANGE = "ccu_change"
    REVIEW_SPIKE = "review_spike"
    RATING_DROP = "rating_drop"
    PRICE_CHANGE = "price_change"
    COMPETITOR_UPDATE = "competitor_update"
    SALE_START = "sale_start"
    RELEASE_DATE = "release_date"
    TREND_CHANGE = "trend_change"
    CUSTOM = "custom"


class RuleValidationError(ValueError):
    """Raised when a rule is not fit to be stored"""


# =============================================================================
# Helpers
# =============================================================================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: datetime) -> datetime:
    """Naive datetimes are treated as UTC"""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def parse_ts(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return as_utc(ts).isoformat() if ts else None


# =============================================================================
# Rules
# =============================================================================

@dataclass
class AlertCondition:
    """
    A single metric/operator/threshold triple.

    Example:
        "CCU rose by at least 50% over the last hour"
        AlertCondition(AlertMetric.CCU, AlertOperator.CHANGE_UP, 50, time_window_minutes=60)
    """
    metric: AlertMetric
    operator: AlertOperator
    value: float
    time_window_minutes: Optional[int] = None
    percentage_change: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric.value,
            "operator": self.operator.value,
            "value": self.value,
            "time_window_minutes": self.time_window_minutes,
            "percentage_change": self.percentage_change,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertCondition":
        window = data.get("time_window_minutes", data.get("timeWindow"))
        return cls(
            metric=AlertMetric(data["metric"]),
            operator=AlertOperator(data["operator"]),
            value=float(data["value"]),
            time_window_minutes=int(window) if window else None,
            percentage_change=bool(data.get("percentage_change", data.get("percentageChange", True))),
        )


@dataclass
class AlertRule:
    """
    User-defined alert rule.

    `last_triggered_at` is owned by whoever stores the rule; the evaluator
    only reads it and reports new firings.
    """
    id: str
    name: str
    conditions: List[AlertCondition]
    description: str = ""
    type: AlertRuleType = AlertRuleType.CUSTOM
    enabled: bool = True
    target_type: TargetType = TargetType.GLOBAL
    target_ids: List[str] = field(default_factory=list)
    condition_logic: ConditionLogic = ConditionLogic.AND
    channels: List[AlertChannel] = field(default_factory=lambda: [AlertChannel.IN_APP])
    priority: AlertPriority = AlertPriority.MEDIUM
    cooldown_minutes: int = 60
    last_triggered_at: Optional[datetime] = None
    trigger_count: int = 0
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if not self.id:
            self.id = f"rule_{uuid.uuid4().hex[:8]}"
        if not self.name and self.conditions:
            first = self.conditions[0]
            self.name = f"{first.metric.value} {first.operator.value} {first.value:g}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "enabled": self.enabled,
            "target_type": self.target_type.value,
            "target_ids": list(self.target_ids),
            "conditions": [c.to_dict() for c in self.conditions],
            "condition_logic": self.condition_logic.value,
            "channels": [c.value for c in self.channels],
            "priority": self.priority.value,
            "cooldown_minutes": self.cooldown_minutes,
            "last_triggered_at": _iso(self.last_triggered_at),
            "trigger_count": self.trigger_count,
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertRule":
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description") or "",
            type=AlertRuleType(data.get("type", "custom")),
            enabled=data.get("enabled", True),
            target_type=TargetType(data.get("target_type", "global")),
            target_ids=[str(t) for t in data.get("target_ids") or []],
            conditions=[AlertCondition.from_dict(c) for c in data.get("conditions", [])],
            condition_logic=ConditionLogic(data.get("condition_logic", "and")),
            channels=[AlertChannel(c) for c in data.get("channels", ["in_app"])],
            priority=AlertPriority(data.get("priority", "medium")),
            cooldown_minutes=int(data.get("cooldown_minutes", 60)),
            last_triggered_at=parse_ts(data.get("last_triggered_at")),
            trigger_count=int(data.get("trigger_count", 0)),
            created_at=parse_ts(data.get("created_at")) or utcnow(),
        )


def validate_rule(rule: AlertRule) -> AlertRule:
    """
    Authoring-time checks. The evaluator never calls this; a malformed rule
    there just produces no alerts.
    """
    if not rule.conditions:
        raise RuleValidationError(f"Rule {rule.id} must have at least one condition")
    if rule.cooldown_minutes < 0:
        raise RuleValidationError(f"Rule {rule.id} has negative cooldown: {rule.cooldown_minutes}")
    if rule.target_type != TargetType.GLOBAL and not rule.target_ids:
        raise RuleValidationError(
            f"Rule {rule.id} targets a {rule.target_type.value} but lists no target ids"
        )
    for condition in rule.conditions:
        if condition.time_window_minutes is not None and condition.time_window_minutes <= 0:
            raise RuleValidationError(f"Time window must be positive, got {condition.time_window_minutes}")
    return rule


# =============================================================================
# Evaluation Results
# =============================================================================

@dataclass(frozen=True)
class ConditionResult:
    """Outcome of one condition against one target"""
    triggered: bool
    current: float
    previous: Optional[float] = None
    change_percent: Optional[float] = None


@dataclass(frozen=True)
class TriggeredCondition:
    condition: AlertCondition
    current_value: float
    previous_value: Optional[float] = None
    change_percent: Optional[float] = None


@dataclass
class RuleEvaluation:
    """A (rule, target) pair that satisfied the rule's condition logic"""
    rule: AlertRule
    triggered_conditions: List[TriggeredCondition]
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    evaluated_at: datetime = field(default_factory=utcnow)

    @property
    def primary(self) -> TriggeredCondition:
        return self.triggered_conditions[0]


# =============================================================================
# Messages
# =============================================================================

@dataclass
class AlertData:
    """Machine-readable part of a message, kept verbatim for auditing"""
    metric: str
    current_value: float
    triggered_at: datetime
    previous_value: Optional[float] = None
    change_percent: Optional[float] = None
    threshold: Optional[float] = None
    additional_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric,
            "previous_value": self.previous_value,
            "current_value": self.current_value,
            "change_percent": self.change_percent,
            "threshold": self.threshold,
            "triggered_at": _iso(self.triggered_at),
            "additional_info": self.additional_info,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertData":
        return cls(
            metric=data["metric"],
            current_value=float(data["current_value"]),
            triggered_at=parse_ts(data.get("triggered_at")) or utcnow(),
            previous_value=data.get("previous_value"),
            change_percent=data.get("change_percent"),
            threshold=data.get("threshold"),
            additional_info=data.get("additional_info") or {},
        )


@dataclass
class AlertMessage:
    """
    A composed alert, ready for grouping and channel formatting.

    This is what gets stored in history and sent to delivery.
    """
    id: str
    rule_id: str
    rule_name: str
    title: str
    body: str
    data: AlertData
    priority: AlertPriority
    channels: List[AlertChannel]
    created_at: datetime = field(default_factory=utcnow)
    summary: Optional[str] = None
    target_type: TargetType = TargetType.GLOBAL
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    status: AlertStatus = AlertStatus.PENDING
    action_url: Optional[str] = None
    action_label: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            self.id = f"alert_{uuid.uuid4().hex[:12]}"

    @property
    def group_key(self) -> Tuple[str, str]:
        return (self.rule_id, self.target_id or "global")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "title": self.title,
            "body": self.body,
            "summary": self.summary,
            "target_type": self.target_type.value,
            "target_id": self.target_id,
            "target_name": self.target_name,
            "data": self.data.to_dict(),
            "priority": self.priority.value,
            "status": self.status.value,
            "channels": [c.value for c in self.channels],
            "created_at": _iso(self.created_at),
            "action_url": self.action_url,
            "action_label": self.action_label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlertMessage":
        return cls(
            id=data.get("id", ""),
            rule_id=data["rule_id"],
            rule_name=data.get("rule_name", ""),
            title=data["title"],
            body=data["body"],
            data=AlertData.from_dict(data["data"]),
            priority=AlertPriority(data.get("priority", "medium")),
            channels=[AlertChannel(c) for c in data.get("channels", ["in_app"])],
            created_at=parse_ts(data.get("created_at")) or utcnow(),
            summary=data.get("summary"),
            target_type=TargetType(data.get("target_type", "global")),
            target_id=data.get("target_id"),
            target_name=data.get("target_name"),
            status=AlertStatus(data.get("status", "pending")),
            action_url=data.get("action_url"),
            action_label=data.get("action_label"),
        )
