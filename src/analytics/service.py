"""Analytics service: fetch the viewer's window of requests and aggregate."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from shared.dates import to_iso, utcnow
from shared.validators import validate_analytics_range
from liquidations.models import RequesterProfile
from liquidations.repository import LiquidationRepository
from analytics.aggregator import build_report
from analytics.models import AnalyticsReport

logger = logging.getLogger(__name__)


class AnalyticsService:
    """Builds analytics reports over the requests a viewer can see."""

    def __init__(self, repository: LiquidationRepository):
        self.repository = repository

    def get_report(
        self,
        viewer: RequesterProfile,
        days: int = 30,
        category: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> AnalyticsReport:
        """
        Build the report for a trailing window.

        Regular users only aggregate their own requests; approvers and admins
        aggregate everyone's.

        Args:
            viewer: Profile of the signed-in user
            days: Trailing window in days (7, 30, 90 or 365)
            category: Optional category equality filter ('all' disables)
            now: Reference time (defaults to current time)

        Returns:
            Analytics report

        Raises:
            ValidationError: If days is not an offered range
            DatabaseError: If the fetch fails
        """
        days = validate_analytics_range(days)
        now = now or utcnow()
        if category == 'all':
            category = None

        requests = self.repository.list_requests(
            viewer,
            start_date=to_iso(now - timedelta(days=days)),
            end_date=to_iso(now),
            category=category or None
        )

        report = build_report(
            requests,
            privileged=viewer.is_privileged,
            now=now,
            days=days,
            category=category
        )

        logger.info(
            f"Built {days}-day report for {viewer.user_id}: "
            f"{report.total_requests} requests, {report.total_amount:.2f} total"
        )
        return report
