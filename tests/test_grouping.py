"""
Tests for burst grouping.
"""
import pytest
from datetime import timedelta

from alerts import (
    AlertChannel,
    AlertData,
    AlertGrouper,
    AlertMessage,
    AlertPriority,
    group_alerts,
)

from conftest import NOW


def _message(minutes: float, rule_id="rule_a", target_id="730", value=12000.0, id=None):
    ts = NOW + timedelta(minutes=minutes)
    return AlertMessage(
        id=id or f"alert_{rule_id}_{target_id}_{minutes}",
        rule_id=rule_id,
        rule_name="CCU target",
        title="[Counter-Strike 2] CCU target",
        body="Concurrent users reached 12,000.",
        data=AlertData(metric="ccu", current_value=value, triggered_at=ts, threshold=10000),
        priority=AlertPriority.HIGH,
        channels=[AlertChannel.IN_APP],
        created_at=ts,
        target_id=target_id,
    )


class TestGroupAlerts:
    def test_single_message_unchanged(self):
        message = _message(0)
        assert group_alerts([message]) == [message]
        assert group_alerts([message])[0] is message

    def test_burst_merges_into_one(self):
        messages = [_message(m, value=10000 + m) for m in (0, 1, 2, 3, 4)]

        grouped = group_alerts(messages, window_minutes=5)

        assert len(grouped) == 1
        merged = grouped[0]
        audit = merged.data.additional_info["grouped_alerts"]
        assert len(audit) == 5
        assert [a["id"] for a in audit] == [m.id for m in messages]
        assert [a["value"] for a in audit] == [10000, 10001, 10002, 10003, 10004]
        assert merged.data.additional_info["grouped_count"] == 5
        assert merged.title == "[Counter-Strike 2] CCU target (5 times)"
        assert "5 times" in merged.body
        assert merged.id == messages[0].id

    def test_four_minutes_apart_merge(self):
        assert len(group_alerts([_message(0), _message(4)], window_minutes=5)) == 1

    def test_six_minutes_apart_stay_separate(self):
        grouped = group_alerts([_message(0), _message(6)], window_minutes=5)
        assert len(grouped) == 2
        assert all("grouped_alerts" not in m.data.additional_info for m in grouped)

    def test_gap_measured_from_previous_message(self):
        # each step is within the window even though the span is not
        grouped = group_alerts([_message(m) for m in (0, 4, 8, 12)], window_minutes=5)
        assert len(grouped) == 1

    def test_unsorted_input(self):
        grouped = group_alerts([_message(4), _message(0), _message(20)], window_minutes=5)
        assert len(grouped) == 2
        first = grouped[0].data.additional_info["grouped_alerts"]
        assert [a["triggered_at"] for a in first] == [
            NOW.isoformat(), (NOW + timedelta(minutes=4)).isoformat()
        ]

    def test_partitions_by_rule_and_target(self):
        messages = [
            _message(0, rule_id="a", target_id="730"),
            _message(1, rule_id="a", target_id="570"),
            _message(2, rule_id="b", target_id="730"),
            _message(3, rule_id="a", target_id=None),
            _message(4, rule_id="a", target_id=None),
        ]

        grouped = group_alerts(messages, window_minutes=5)

        assert len(grouped) == 4
        merged_global = [m for m in grouped if m.target_id is None]
        assert len(merged_global) == 1
        assert merged_global[0].data.additional_info["grouped_count"] == 2

    def test_underscored_ids_stay_apart(self):
        # "rule_a" + "b_1" and "rule_a_b" + "1" are different pairs
        first = _message(0, rule_id="rule_a", target_id="b_1")
        second = _message(1, rule_id="rule_a_b", target_id="1")

        grouped = group_alerts([first, second], window_minutes=5)

        assert sorted(m.rule_id for m in grouped) == ["rule_a", "rule_a_b"]
        assert first.group_key == ("rule_a", "b_1")

    def test_originals_untouched(self):
        messages = [_message(0), _message(1)]
        group_alerts(messages)
        assert messages[0].title == "[Counter-Strike 2] CCU target"
        assert messages[0].data.additional_info == {}

    def test_grouper_window(self):
        messages = [_message(0), _message(8)]
        assert len(AlertGrouper(window_minutes=10).group(messages)) == 1
        assert len(AlertGrouper(window_minutes=5).group(messages)) == 2

    def test_empty(self):
        assert group_alerts([]) == []
