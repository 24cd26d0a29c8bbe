"""Pytest fixtures for the Steam alert engine tests."""
import pytest
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

from alerts import (
    AlertChannel,
    AlertCondition,
    AlertMetric,
    AlertOperator,
    AlertPriority,
    AlertRule,
    ConditionLogic,
    TargetType,
)
from metrics import GameMetrics, MetricPoint


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time so results are deterministic."""
    return NOW


@pytest.fixture
def make_metrics() -> Callable[..., GameMetrics]:
    """
    Factory for GameMetrics.

    `ccu_history` is a list of (minutes_ago, value) pairs.
    """
    def _make(
        app_id: str = "730",
        name: str = "Counter-Strike 2",
        ccu: Optional[float] = None,
        ccu_history: List[Tuple[int, float]] = (),
        now: datetime = NOW,
        **fields,
    ) -> GameMetrics:
        data = {"app_id": app_id, "name": name, **fields}
        if ccu is not None:
            data["ccu"] = MetricPoint(value=ccu, timestamp=now)
        if ccu_history:
            data["history"] = {
                "ccu": [
                    MetricPoint(value=value, timestamp=now - timedelta(minutes=ago))
                    for ago, value in ccu_history
                ]
            }
        return GameMetrics(**data)
    return _make


@pytest.fixture
def make_rule() -> Callable[..., AlertRule]:
    """Factory for AlertRule with test-friendly defaults."""
    def _make(
        conditions: List[AlertCondition] = None,
        logic: ConditionLogic = ConditionLogic.AND,
        **fields,
    ) -> AlertRule:
        defaults = {
            "id": "rule_test",
            "name": "CCU target",
            "conditions": conditions or [AlertCondition(AlertMetric.CCU, AlertOperator.GTE, 10000)],
            "condition_logic": logic,
            "target_type": TargetType.GLOBAL,
            "channels": [AlertChannel.IN_APP, AlertChannel.SLACK, AlertChannel.DISCORD],
            "priority": AlertPriority.HIGH,
            "cooldown_minutes": 60,
        }
        defaults.update(fields)
        return AlertRule(**defaults)
    return _make


@pytest.fixture
def metrics_map(make_metrics) -> Dict[str, GameMetrics]:
    return {
        "730": make_metrics(app_id="730", name="Counter-Strike 2", ccu=12000),
        "570": make_metrics(app_id="570", name="Dota 2", ccu=8000),
    }
