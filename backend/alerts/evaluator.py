"""
Rule Evaluation
Resolves a rule's targets, applies the cooldown gate and combines
condition results with AND/OR logic.

The evaluator never mutates rules. Firings are reported back through
EvaluationBatch.fired so the rule store can persist last_triggered_at.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional

from metrics.models import GameMetrics
from settings import LookbackPolicy

from .conditions import evaluate_condition
from .models import (
    AlertRule,
    ConditionLogic,
    RuleEvaluation,
    TargetType,
    TriggeredCondition,
    as_utc,
    utcnow,
)

logger = logging.getLogger(__name__)


def cooldown_remaining(rule: AlertRule, now: datetime = None) -> timedelta:
    """Time left before the rule is armed again (zero when armed)"""
    if rule.last_triggered_at is None or rule.cooldown_minutes <= 0:
        return timedelta(0)
    now = now or utcnow()
    elapsed = as_utc(now) - as_utc(rule.last_triggered_at)
    remaining = timedelta(minutes=rule.cooldown_minutes) - elapsed
    return max(remaining, timedelta(0))


def is_in_cooldown(rule: AlertRule, now: datetime = None) -> bool:
    """
    Cooldown applies to the whole rule: one target firing quiets
    every target until it elapses.
    """
    return cooldown_remaining(rule, now) > timedelta(0)


def resolve_targets(rule: AlertRule, metrics_map: Mapping[str, GameMetrics]) -> List[str]:
    if rule.target_type == TargetType.GLOBAL:
        return list(metrics_map.keys())
    return list(rule.target_ids)


def combine(logic: ConditionLogic, triggered_count: int, total: int) -> bool:
    if logic == ConditionLogic.AND:
        return total > 0 and triggered_count == total
    if logic == ConditionLogic.OR:
        return triggered_count > 0
    raise ValueError(f"Unknown condition logic: {logic}")


def evaluate_rule(
    rule: AlertRule,
    metrics_map: Mapping[str, GameMetrics],
    now: datetime = None,
    policy: LookbackPolicy = LookbackPolicy.OLDEST_AVAILABLE,
) -> List[RuleEvaluation]:
    """
    Evaluate one rule against every target it covers.

    Returns one RuleEvaluation per target that satisfies the rule's
    condition logic, each carrying all of its triggered conditions.
    """
    now = now or utcnow()

    if not rule.enabled:
        return []

    if is_in_cooldown(rule, now):
        logger.debug("Rule %s in cooldown for %s", rule.id, cooldown_remaining(rule, now))
        return []

    results: List[RuleEvaluation] = []

    for target_id in resolve_targets(rule, metrics_map):
        metrics = metrics_map.get(target_id)
        if metrics is None:
            continue

        triggered: List[TriggeredCondition] = []
        for condition in rule.conditions:
            result = evaluate_condition(condition, metrics, now=now, policy=policy)
            if result.triggered:
                triggered.append(TriggeredCondition(
                    condition=condition,
                    current_value=result.current,
                    previous_value=result.previous,
                    change_percent=result.change_percent,
                ))

        if combine(rule.condition_logic, len(triggered), len(rule.conditions)):
            results.append(RuleEvaluation(
                rule=rule,
                triggered_conditions=triggered,
                target_id=target_id,
                target_name=metrics.name or None,
                evaluated_at=now,
            ))

    return results


@dataclass
class EvaluationBatch:
    """All results of one tick plus the rules that fired"""
    results: List[RuleEvaluation] = field(default_factory=list)
    fired: Dict[str, datetime] = field(default_factory=dict)
    skipped_cooldown: List[str] = field(default_factory=list)
    evaluated_at: Optional[datetime] = None

    def for_rule(self, rule_id: str) -> List[RuleEvaluation]:
        return [r for r in self.results if r.rule.id == rule_id]


class RuleEvaluator:
    """
    Evaluates a set of rules for one tick.

    Usage:
        evaluator = RuleEvaluator(policy=LookbackPolicy.STRICT)
        batch = evaluator.evaluate_all(rules, metrics_map, now=now)
        for rule_id, fired_at in batch.fired.items():
            store.mark_triggered(rule_id, fired_at)
    """

    def __init__(self, policy: LookbackPolicy = LookbackPolicy.OLDEST_AVAILABLE):
        self.policy = policy

    def evaluate(self, rule: AlertRule, metrics_map: Mapping[str, GameMetrics], now: datetime = None) -> List[RuleEvaluation]:
        return evaluate_rule(rule, metrics_map, now=now, policy=self.policy)

    def evaluate_all(
        self,
        rules: List[AlertRule],
        metrics_map: Mapping[str, GameMetrics],
        now: datetime = None,
    ) -> EvaluationBatch:
        now = now or utcnow()
        batch = EvaluationBatch(evaluated_at=now)

        for rule in rules:
            if rule.enabled and is_in_cooldown(rule, now):
                batch.skipped_cooldown.append(rule.id)
                continue

            results = self.evaluate(rule, metrics_map, now)
            if results:
                batch.results.extend(results)
                batch.fired[rule.id] = now
                logger.info("Rule %s fired for %d target(s)", rule.id, len(results))

        return batch
