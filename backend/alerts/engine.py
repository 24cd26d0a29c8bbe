import logging
from collections import Counter, deque
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Callable, Any

from metrics.models import GameMetrics
from settings import settings, LookbackPolicy

from .channels import ChannelFormatter, ChannelPayload
from .composer import MessageComposer
from .evaluator import EvaluationBatch, RuleEvaluator, cooldown_remaining
from .grouper import group_alerts
from .models import AlertMessage, AlertPriority, AlertRule, utcnow, validate_rule

logger = logging.getLogger(__name__)

AlertCallback = Callable[[AlertMessage, List[ChannelPayload]], None]


@dataclass
class TickResult:
    """Everything one evaluation tick produced"""
    evaluated_at: datetime
    messages: List[AlertMessage] = field(default_factory=list)
    payloads: Dict[str, List[ChannelPayload]] = field(default_factory=dict)
    fired: Dict[str, datetime] = field(default_factory=dict)
    skipped_cooldown: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evaluated_at": self.evaluated_at.isoformat(),
            "triggered_count": len(self.messages),
            "messages": [m.to_dict() for m in self.messages],
            "payloads": {
                message_id: [p.to_dict() for p in payloads]
                for message_id, payloads in self.payloads.items()
            },
            "fired": {rule_id: ts.isoformat() for rule_id, ts in self.fired.items()},
            "skipped_cooldown": self.skipped_cooldown,
        }


class AlertEngine:
    def __init__(
        self,
        history_size: int = 500,
        group_window_minutes: float = 5,
        policy: LookbackPolicy = LookbackPolicy.OLDEST_AVAILABLE,
        composer: MessageComposer = None,
        formatter: ChannelFormatter = None,
    ):
        self._rules: Dict[str, AlertRule] = {}
        self._history: deque = deque(maxlen=history_size)
        self._callbacks: List[AlertCallback] = []
        self._evaluator = RuleEvaluator(policy=policy)
        self._composer = composer or MessageComposer()
        self._formatter = formatter or ChannelFormatter()
        self._group_window = group_window_minutes
        self._stats = {
            "ticks": 0,
            "triggers": 0,
            "suppressed": 0,
            "callback_errors": 0,
            "start_time": datetime.now()
        }

    @property
    def formatter(self) -> ChannelFormatter:
        return self._formatter

    # -------------------------------------------------------------------------
    # Rule store
    # -------------------------------------------------------------------------

    def add_rule(self, rule: AlertRule) -> AlertRule:
        validate_rule(rule)
        self._rules[rule.id] = rule
        logger.debug("Added alert rule %s (%s)", rule.id, rule.name)
        return rule

    def remove_rule(self, rule_id: str) -> bool:
        if rule_id in self._rules:
            del self._rules[rule_id]
            logger.debug("Removed alert rule %s", rule_id)
            return True
        return False

    def get_rule(self, rule_id: str) -> Optional[AlertRule]:
        return self._rules.get(rule_id)

    def get_rules(self) -> List[AlertRule]:
        return list(self._rules.values())

    def enable_rule(self, rule_id: str) -> bool:
        if rule_id in self._rules:
            self._rules[rule_id].enabled = True
            return True
        return False

    def disable_rule(self, rule_id: str) -> bool:
        if rule_id in self._rules:
            self._rules[rule_id].enabled = False
            return True
        return False

    def mark_triggered(self, rule_id: str, fired_at: datetime) -> None:
        """Persist a firing reported by the evaluator"""
        rule = self._rules.get(rule_id)
        if rule is None:
            return
        rule.last_triggered_at = fired_at
        rule.trigger_count += 1

    def rule_state(self, rule_id: str, now: datetime = None) -> Dict[str, Any]:
        rule = self._rules[rule_id]
        remaining = cooldown_remaining(rule, now)
        return {
            "armed": rule.enabled and remaining.total_seconds() == 0,
            "cooldown_remaining_seconds": remaining.total_seconds(),
            "trigger_count": rule.trigger_count,
            "last_triggered": rule.last_triggered_at.isoformat() if rule.last_triggered_at else None,
        }

    # -------------------------------------------------------------------------
    # Tick pipeline
    # -------------------------------------------------------------------------

    def process(
        self,
        rules: List[AlertRule],
        metrics_map: Mapping[str, GameMetrics],
        now: datetime = None,
    ) -> TickResult:
        """
        evaluate → compose → group → format, without touching any state.
        """
        now = now or utcnow()
        batch: EvaluationBatch = self._evaluator.evaluate_all(rules, metrics_map, now)

        raw = [self._composer.compose(result, now=now) for result in batch.results]
        messages = group_alerts(raw, self._group_window)

        return TickResult(
            evaluated_at=now,
            messages=messages,
            payloads={m.id: self._formatter.format_all(m) for m in messages},
            fired=dict(batch.fired),
            skipped_cooldown=list(batch.skipped_cooldown),
        )

    def run_tick(self, metrics_map: Mapping[str, GameMetrics], now: datetime = None) -> TickResult:
        """
        One scheduled evaluation over every stored rule.

        Not re-entrant: callers keep at most one tick in flight.
        """
        result = self.process(self.get_rules(), metrics_map, now)
        self._stats["ticks"] += 1
        self._stats["suppressed"] += len(result.skipped_cooldown)

        for rule_id, fired_at in result.fired.items():
            self.mark_triggered(rule_id, fired_at)

        for message in result.messages:
            self._history.append(message)
            self._stats["triggers"] += 1
            self._notify(message, result.payloads.get(message.id, []))

        logger.info(
            "Tick at %s: %d rule(s) fired, %d message(s), %d in cooldown",
            result.evaluated_at.isoformat(), len(result.fired),
            len(result.messages), len(result.skipped_cooldown),
        )
        return result

    def preview(self, metrics_map: Mapping[str, GameMetrics], now: datetime = None) -> TickResult:
        """Dry run against stored rules with cooldowns ignored"""
        rules = [replace(rule, last_triggered_at=None) for rule in self.get_rules()]
        return self.process(rules, metrics_map, now)

    def _notify(self, message: AlertMessage, payloads: List[ChannelPayload]) -> None:
        for callback in self._callbacks:
            try:
                callback(message, payloads)
            except Exception:
                self._stats["callback_errors"] += 1
                logger.exception("Alert callback failed for message %s", message.id)

    def on_alert(self, callback: AlertCallback) -> None:
        self._callbacks.append(callback)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def get_history(self, limit: int = 50, grouped: bool = False) -> List[AlertMessage]:
        """Newest first. `grouped` re-groups the whole retained history."""
        history = list(self._history)
        if grouped:
            history = group_alerts(history, self._group_window)
        history.sort(key=lambda m: m.created_at, reverse=True)
        return history[:limit]

    def clear_history(self) -> None:
        self._history.clear()

    def summary(self) -> Dict[str, Any]:
        history = list(self._history)
        by_priority = Counter(m.priority.value for m in history)
        by_rule: Dict[str, Dict[str, Any]] = {}
        for message in history:
            entry = by_rule.setdefault(message.rule_id, {
                "rule_id": message.rule_id,
                "rule_name": message.rule_name,
                "count": 0,
                "last_triggered_at": message.created_at,
            })
            entry["count"] += 1
            entry["last_triggered_at"] = max(entry["last_triggered_at"], message.created_at)

        recent = sorted(by_rule.values(), key=lambda e: e["last_triggered_at"], reverse=True)
        return {
            "total": len(history),
            "by_priority": {p.value: by_priority.get(p.value, 0) for p in AlertPriority},
            "recent_triggers": [
                {**e, "last_triggered_at": e["last_triggered_at"].isoformat()} for e in recent[:10]
            ],
        }

    def reset_states(self) -> None:
        for rule in self._rules.values():
            rule.last_triggered_at = None
            rule.trigger_count = 0

    def stats(self) -> Dict[str, Any]:
        uptime = (datetime.now() - self._stats["start_time"]).total_seconds()
        return {
            **self._stats,
            "uptime_seconds": round(uptime, 2),
            "rules_count": len(self._rules),
            "enabled_rules": sum(1 for r in self._rules.values() if r.enabled),
            "history_size": len(self._history),
        }


_alert_engine: Optional[AlertEngine] = None


def get_alert_engine() -> AlertEngine:
    global _alert_engine
    if _alert_engine is None:
        _alert_engine = AlertEngine(
            history_size=settings.history_size,
            group_window_minutes=settings.group_window_minutes,
            policy=settings.lookback_policy,
            composer=MessageComposer(
                dynamic_priority=settings.dynamic_priority,
                action_base_path=settings.action_base_path,
            ),
            formatter=ChannelFormatter(
                display_timezone=settings.display_timezone,
                footer_text=settings.alert_footer_text,
            ),
        )
    return _alert_engine
