"""
Dashboard statistics, derived from a dispute collection.

Pure functions only: everything here is recomputed from the live dispute
set on every snapshot and never written back to the store.
"""

import math
from typing import Dict, Iterable, List, Sequence

from dispute_desk.core.time_utils import MONTH_ABBREVIATIONS, month_label, parse_timestamp
from dispute_desk.models.dispute import DisputeStatus
from dispute_desk.schemas.dispute import (
    DISPUTE_STATUSES,
    DashboardSummary,
    Dispute,
    DisputeStatistics,
    MonthlyTrendPoint,
    StatusChartPoint,
)

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR


def status_counts(disputes: Iterable[Dispute]) -> Dict[str, int]:
    """Count per recognized status; every status is present, zero-filled."""
    counts = {status: 0 for status in DISPUTE_STATUSES}
    for dispute in disputes:
        if dispute.is_recognized_status:
            counts[dispute.status] += 1
    return counts


def monthly_trend(disputes: Iterable[Dispute]) -> List[MonthlyTrendPoint]:
    """
    Group by short month name of createdAt, sub-counted by status.

    Disputes without a parsable createdAt fall in no bucket. Months are
    merged across years and returned in calendar order.
    """
    buckets: Dict[str, Dict[str, int]] = {}
    for dispute in disputes:
        created_at = parse_timestamp(dispute.created_at)
        if created_at is None:
            continue
        bucket = buckets.setdefault(
            month_label(created_at), {status: 0 for status in DISPUTE_STATUSES}
        )
        if dispute.is_recognized_status:
            bucket[dispute.status] += 1

    return [
        MonthlyTrendPoint(month=month, counts=buckets[month])
        for month in MONTH_ABBREVIATIONS
        if month in buckets
    ]


def average_resolution_time(disputes: Iterable[Dispute]) -> float:
    """Mean minutes from createdAt to resolvedAt over Resolved disputes; 0 if none."""
    durations = []
    for dispute in disputes:
        if dispute.status != DisputeStatus.RESOLVED.value:
            continue
        created_at = parse_timestamp(dispute.created_at)
        resolved_at = parse_timestamp(dispute.resolved_at)
        if created_at is None or resolved_at is None:
            continue
        durations.append((resolved_at - created_at).total_seconds() / 60)

    if not durations:
        return 0
    return sum(durations) / len(durations)


def format_duration(total_minutes: float) -> str:
    if total_minutes < MINUTES_PER_HOUR:
        return f"{round(total_minutes)} minutes"
    if total_minutes < MINUTES_PER_DAY:
        hours = math.floor(total_minutes / MINUTES_PER_HOUR)
        minutes = round(total_minutes % MINUTES_PER_HOUR)
        return f"{hours} hr {minutes} min"
    days = math.floor(total_minutes / MINUTES_PER_DAY)
    hours = round((total_minutes % MINUTES_PER_DAY) / MINUTES_PER_HOUR)
    return f"{days} days {hours} hrs"


def statistics(disputes: Sequence[Dispute]) -> DisputeStatistics:
    return DisputeStatistics(
        total_disputes=len(disputes),
        status_counts=status_counts(disputes),
        average_resolution_minutes=average_resolution_time(disputes),
    )


def summarize(disputes: Sequence[Dispute]) -> DashboardSummary:
    """Everything the dashboard charts and quick stats panel render."""
    counts = status_counts(disputes)
    average = average_resolution_time(disputes)
    return DashboardSummary(
        total_disputes=len(disputes),
        status_counts=counts,
        average_resolution_minutes=average,
        status_data=[StatusChartPoint(name=name, value=value) for name, value in counts.items()],
        trend_data=monthly_trend(disputes),
        average_resolution_display=format_duration(average) if average > 0 else "N/A",
    )
