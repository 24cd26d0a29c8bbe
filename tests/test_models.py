"""
Tests for rule models, validation and templates.
"""
import pytest
from datetime import timezone

from alerts import (
    ALERT_RULE_TEMPLATES,
    AlertChannel,
    AlertCondition,
    AlertMetric,
    AlertOperator,
    AlertPriority,
    AlertRule,
    RuleValidationError,
    TargetType,
    rule_from_template,
    validate_rule,
)


class TestAlertRule:
    def test_defaults(self):
        rule = AlertRule(id="", name="", conditions=[AlertCondition(AlertMetric.CCU, AlertOperator.GTE, 10000)])
        assert rule.id.startswith("rule_")
        assert rule.name == "ccu gte 10000"
        assert rule.enabled
        assert rule.target_type == TargetType.GLOBAL

    def test_from_dict(self):
        rule = AlertRule.from_dict({
            "id": "r1",
            "name": "Sale watch",
            "target_type": "game",
            "target_ids": [730],
            "conditions": [{"metric": "sale_active", "operator": "eq", "value": 1}],
            "condition_logic": "or",
            "channels": ["email", "discord"],
            "priority": "critical",
            "cooldown_minutes": 10080,
            "last_triggered_at": "2026-03-01T12:00:00Z",
        })
        assert rule.target_ids == ["730"]
        assert rule.channels == [AlertChannel.EMAIL, AlertChannel.DISCORD]
        assert rule.priority == AlertPriority.CRITICAL
        assert rule.last_triggered_at.tzinfo == timezone.utc

    def test_round_trip(self):
        rule = AlertRule(
            id="r1",
            name="CCU drop",
            conditions=[AlertCondition(AlertMetric.CCU, AlertOperator.CHANGE_DOWN, 30, time_window_minutes=60)],
        )
        assert AlertRule.from_dict(rule.to_dict()).to_dict() == rule.to_dict()

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValueError):
            AlertCondition.from_dict({"metric": "ccu", "operator": "between", "value": 1})

    def test_unknown_metric_rejected(self):
        with pytest.raises(ValueError):
            AlertCondition.from_dict({"metric": "wishlists", "operator": "gt", "value": 1})


class TestValidation:
    def _rule(self, **fields):
        defaults = {
            "id": "r1",
            "name": "rule",
            "conditions": [AlertCondition(AlertMetric.CCU, AlertOperator.GTE, 1)],
        }
        defaults.update(fields)
        return AlertRule(**defaults)

    def test_valid(self):
        rule = self._rule()
        assert validate_rule(rule) is rule

    def test_no_conditions(self):
        with pytest.raises(RuleValidationError):
            validate_rule(self._rule(conditions=[]))

    def test_negative_cooldown(self):
        with pytest.raises(RuleValidationError):
            validate_rule(self._rule(cooldown_minutes=-1))

    def test_scoped_without_targets(self):
        with pytest.raises(RuleValidationError):
            validate_rule(self._rule(target_type=TargetType.GAME))

    def test_non_positive_window(self):
        condition = AlertCondition(AlertMetric.CCU, AlertOperator.CHANGE_UP, 10, time_window_minutes=0)
        # 0 is treated as "no window" by from_dict, but is rejected when set directly
        with pytest.raises(RuleValidationError):
            validate_rule(self._rule(conditions=[condition]))


class TestTemplates:
    def test_catalogue(self):
        assert set(ALERT_RULE_TEMPLATES) == {
            "ccu_spike", "ccu_drop", "ccu_threshold", "review_spike",
            "rating_drop", "price_drop", "competitor_update", "sale_start",
        }

    @pytest.mark.parametrize("template_id", list(ALERT_RULE_TEMPLATES))
    def test_templates_produce_valid_rules(self, template_id):
        rule = rule_from_template(template_id)
        assert validate_rule(rule) is rule

    def test_overrides(self):
        rule = rule_from_template(
            "ccu_spike",
            target_type=TargetType.GAME,
            target_ids=["730"],
            channels=[AlertChannel.SLACK],
            priority=None,
        )
        assert rule.target_ids == ["730"]
        assert rule.channels == [AlertChannel.SLACK]
        assert rule.priority == AlertPriority.HIGH
        assert rule.cooldown_minutes == 60

    def test_unknown_template(self):
        with pytest.raises(KeyError):
            rule_from_template("nope")
