"""
Alert Grouping
Collapses bursts of the same rule firing for the same target.

Runs over a complete batch; re-group the whole batch each tick.
"""

from dataclasses import replace
from datetime import timedelta
from typing import Dict, List, Tuple

from .models import AlertMessage, as_utc


def merge_group(messages: List[AlertMessage]) -> AlertMessage:
    """
    Merge a time-ordered cluster into its first message.

    Every original id, trigger time and value is kept in
    data.additional_info["grouped_alerts"].
    """
    if len(messages) == 1:
        return messages[0]

    first = messages[0]
    count = len(messages)

    data = replace(
        first.data,
        additional_info={
            **first.data.additional_info,
            "grouped_count": count,
            "grouped_alerts": [
                {
                    "id": m.id,
                    "triggered_at": as_utc(m.data.triggered_at).isoformat(),
                    "value": m.data.current_value,
                }
                for m in messages
            ],
        },
    )

    return replace(
        first,
        title=f"{first.title} ({count} times)",
        body=f"{first.body} - occurred {count} times recently",
        data=data,
    )


def group_alerts(messages: List[AlertMessage], window_minutes: float = 5) -> List[AlertMessage]:
    """
    Deduplicate messages per (rule, target).

    Within a partition, a message joins the current cluster when it
    arrives no more than `window_minutes` after the previous one.
    """
    partitions: Dict[Tuple[str, str], List[AlertMessage]] = {}
    for message in messages:
        partitions.setdefault(message.group_key, []).append(message)

    window = timedelta(minutes=window_minutes)
    result: List[AlertMessage] = []

    for partition in partitions.values():
        if len(partition) == 1:
            result.append(partition[0])
            continue

        ordered = sorted(partition, key=lambda m: as_utc(m.created_at))
        cluster = [ordered[0]]

        for message in ordered[1:]:
            gap = as_utc(message.created_at) - as_utc(cluster[-1].created_at)
            if gap <= window:
                cluster.append(message)
            else:
                result.append(merge_group(cluster))
                cluster = [message]

        result.append(merge_group(cluster))

    return result


class AlertGrouper:
    def __init__(self, window_minutes: float = 5):
        self.window_minutes = window_minutes

    def group(self, messages: List[AlertMessage]) -> List[AlertMessage]:
        return group_alerts(messages, self.window_minutes)
