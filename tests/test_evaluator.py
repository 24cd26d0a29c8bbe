"""
Tests for rule evaluation: targets, cooldown and AND/OR logic.
"""
import pytest
from datetime import timedelta

from alerts import (
    AlertCondition,
    AlertMetric,
    AlertOperator,
    ConditionLogic,
    RuleEvaluator,
    TargetType,
    evaluate_rule,
    is_in_cooldown,
)
from alerts.evaluator import cooldown_remaining


@pytest.fixture
def passing():
    return AlertCondition(AlertMetric.CCU, AlertOperator.GTE, 10000)


@pytest.fixture
def failing():
    return AlertCondition(AlertMetric.CCU, AlertOperator.LT, 100)


class TestConditionLogic:
    """A triggers, B does not."""

    def test_and_does_not_fire(self, make_rule, metrics_map, now, passing, failing):
        rule = make_rule([passing, failing], ConditionLogic.AND)
        assert evaluate_rule(rule, metrics_map, now=now) == []

    def test_or_fires(self, make_rule, metrics_map, now, passing, failing):
        rule = make_rule([passing, failing], ConditionLogic.OR)
        results = evaluate_rule(rule, metrics_map, now=now)
        assert len(results) == 1
        assert results[0].target_id == "730"
        assert [t.condition for t in results[0].triggered_conditions] == [passing]

    def test_all_triggered_conditions_reported(self, make_rule, metrics_map, now, passing):
        second = AlertCondition(AlertMetric.CCU, AlertOperator.GT, 11000)
        rule = make_rule([passing, second], ConditionLogic.AND)
        results = evaluate_rule(rule, metrics_map, now=now)
        assert len(results) == 1
        assert len(results[0].triggered_conditions) == 2

    def test_or_with_nothing_triggered(self, make_rule, metrics_map, now, failing):
        rule = make_rule([failing], ConditionLogic.OR)
        assert evaluate_rule(rule, metrics_map, now=now) == []


class TestCooldown:
    """The cooldown gate covers the whole rule."""

    def test_recent_trigger_suppresses_everything(self, make_rule, metrics_map, now):
        rule = make_rule(cooldown_minutes=60, last_triggered_at=now - timedelta(seconds=1))
        assert evaluate_rule(rule, metrics_map, now=now) == []
        assert is_in_cooldown(rule, now)

    def test_elapsed_cooldown_rearms(self, make_rule, metrics_map, now):
        rule = make_rule(cooldown_minutes=60, last_triggered_at=now - timedelta(minutes=60))
        assert not is_in_cooldown(rule, now)
        assert len(evaluate_rule(rule, metrics_map, now=now)) == 1

    def test_zero_cooldown(self, make_rule, metrics_map, now):
        rule = make_rule(cooldown_minutes=0, last_triggered_at=now)
        assert len(evaluate_rule(rule, metrics_map, now=now)) == 1

    def test_other_targets_suppressed_too(self, make_rule, make_metrics, now):
        rule = make_rule(
            target_type=TargetType.PROJECT,
            target_ids=["1", "2"],
            last_triggered_at=now - timedelta(minutes=5),
        )
        metrics = {
            "1": make_metrics(app_id="1", ccu=50000),
            "2": make_metrics(app_id="2", ccu=50000),
        }
        assert evaluate_rule(rule, metrics, now=now) == []

    def test_remaining(self, make_rule, now):
        rule = make_rule(cooldown_minutes=60, last_triggered_at=now - timedelta(minutes=45))
        assert cooldown_remaining(rule, now) == timedelta(minutes=15)


class TestTargets:
    def test_disabled_rule(self, make_rule, metrics_map, now):
        rule = make_rule(enabled=False)
        assert evaluate_rule(rule, metrics_map, now=now) == []

    def test_global_covers_every_target(self, make_rule, metrics_map, now):
        rule = make_rule([AlertCondition(AlertMetric.CCU, AlertOperator.GT, 0)])
        results = evaluate_rule(rule, metrics_map, now=now)
        assert {r.target_id for r in results} == {"730", "570"}

    def test_scoped_rule_only_checks_its_targets(self, make_rule, metrics_map, now):
        rule = make_rule(
            [AlertCondition(AlertMetric.CCU, AlertOperator.GT, 0)],
            target_type=TargetType.GAME,
            target_ids=["570"],
        )
        results = evaluate_rule(rule, metrics_map, now=now)
        assert [r.target_id for r in results] == ["570"]
        assert results[0].target_name == "Dota 2"

    def test_missing_target_is_no_data(self, make_rule, metrics_map, now):
        rule = make_rule(target_type=TargetType.GAME, target_ids=["999"])
        assert evaluate_rule(rule, metrics_map, now=now) == []

    def test_rule_is_not_mutated(self, make_rule, metrics_map, now):
        rule = make_rule()
        evaluate_rule(rule, metrics_map, now=now)
        assert rule.last_triggered_at is None
        assert rule.trigger_count == 0


class TestRuleEvaluator:
    def test_batch_reports_fired_rules(self, make_rule, metrics_map, now):
        firing = make_rule(id="a")
        quiet = make_rule(id="b", conditions=[AlertCondition(AlertMetric.CCU, AlertOperator.LT, 0)])
        cooling = make_rule(id="c", last_triggered_at=now - timedelta(minutes=1))

        batch = RuleEvaluator().evaluate_all([firing, quiet, cooling], metrics_map, now=now)

        assert batch.fired == {"a": now}
        assert batch.skipped_cooldown == ["c"]
        assert len(batch.for_rule("a")) == 1
        assert firing.last_triggered_at is None
