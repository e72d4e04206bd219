"""Aggregate liquidation requests into an analytics report."""

from datetime import datetime
from typing import Dict, List, Optional

from shared.dates import month_key, month_label, months_ago, parse_timestamp, to_iso, utcnow
from shared.validators import VALID_STATUSES
from liquidations.models import LiquidationRequest
from analytics.models import (
    AnalyticsReport,
    CategoryRollup,
    MonthlyTrend,
    RequesterRollup,
    StatusShare
)

UNCATEGORIZED = 'Uncategorized'

UNKNOWN_REQUESTER = 'Unknown'

TOP_N = 5

TREND_MONTHS = 6


def _top(rollups: Dict[str, object], key_attr: str) -> List:
    # Highest amount first; equal amounts in ascending key order
    ordered = sorted(rollups.values(), key=lambda r: getattr(r, key_attr))
    ordered.sort(key=lambda r: r.amount, reverse=True)
    return ordered[:TOP_N]


def month_buckets(now: datetime) -> List[MonthlyTrend]:
    """Empty trend buckets for the current month and the five before it, oldest first."""
    buckets = []
    for offset in range(TREND_MONTHS - 1, -1, -1):
        month = months_ago(now, offset)
        buckets.append(MonthlyTrend(month=month_key(month), label=month_label(month)))
    return buckets


def build_report(
    requests: List[LiquidationRequest],
    privileged: bool,
    now: Optional[datetime] = None,
    days: Optional[int] = None,
    category: Optional[str] = None
) -> AnalyticsReport:
    """
    Build an analytics report from already-fetched requests.

    Args:
        requests: Requests to aggregate
        privileged: Whether the viewer is an approver or admin; only then
            are requester rollups computed
        now: Reference time for the monthly trend (defaults to current time)
        days: Trailing window the requests were fetched for, echoed back
        category: Category filter the requests were fetched with, echoed back

    Returns:
        Analytics report
    """
    now = now or utcnow()

    total_requests = len(requests)
    total_amount = 0.0
    status_counts = {status: 0 for status in VALID_STATUSES}
    categories: Dict[str, CategoryRollup] = {}
    requesters: Dict[str, RequesterRollup] = {}

    trends = month_buckets(now)
    trends_by_key = {trend.month: trend for trend in trends}

    for request in requests:
        amount = request.total_amount or 0.0
        total_amount += amount

        status = request.status.value
        if status in status_counts:
            status_counts[status] += 1

        label = request.category or UNCATEGORIZED
        rollup = categories.setdefault(label, CategoryRollup(category=label))
        rollup.count += 1
        rollup.amount += amount

        submitted = parse_timestamp(request.submitted_date)
        if submitted is not None:
            trend = trends_by_key.get(month_key(submitted))
            if trend is not None:
                trend.count += 1
                trend.amount += amount

        if privileged:
            requester = requesters.get(request.user_id)
            if requester is None:
                requester = RequesterRollup(
                    user_id=request.user_id,
                    name=request.requester_name or UNKNOWN_REQUESTER,
                    email=request.requester_email
                )
                requesters[request.user_id] = requester
            requester.count += 1
            requester.amount += amount

    breakdown = [
        StatusShare(
            status=status,
            count=count,
            percentage=(count / total_requests * 100) if total_requests > 0 else 0.0
        )
        for status, count in status_counts.items()
    ]

    return AnalyticsReport(
        total_requests=total_requests,
        total_amount=total_amount,
        average_amount=total_amount / total_requests if total_requests > 0 else 0.0,
        pending_requests=status_counts['pending'],
        approved_requests=status_counts['approved'],
        rejected_requests=status_counts['rejected'],
        processing_requests=status_counts['processing'],
        top_categories=_top(categories, 'category'),
        monthly_trends=trends,
        status_breakdown=breakdown,
        top_requesters=_top(requesters, 'user_id') if privileged else [],
        days=days,
        category=category,
        generated_at=to_iso(now)
    )
