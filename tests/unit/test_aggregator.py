"""Unit tests for the analytics aggregator."""

import pytest
from datetime import datetime, timezone
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from analytics.aggregator import build_report
from liquidations.models import LiquidationRequest, RequesterProfile

NOW = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_request(request_id, amount, status='pending', category='', user_id='user1',
                 submitted_date='2024-03-10T09:00:00+00:00', requester=None):
    return LiquidationRequest(
        request_id=request_id,
        user_id=user_id,
        title=f'Request {request_id}',
        category=category,
        total_amount=amount,
        status=status,
        submitted_date=submitted_date,
        requester=requester
    )


class TestBuildReport:
    """Test cases for build_report."""

    def test_totals_and_status_breakdown(self):
        """Three requests: one pending, two approved."""
        requests = [
            make_request('r1', 100, 'pending'),
            make_request('r2', 200, 'approved'),
            make_request('r3', 300, 'approved')
        ]

        report = build_report(requests, privileged=False, now=NOW)

        assert report.total_requests == 3
        assert report.total_amount == 600
        assert report.average_amount == 200
        assert report.approved_requests == 2
        assert report.pending_requests == 1
        assert report.rejected_requests == 0

        shares = {share.status: share.percentage for share in report.status_breakdown}
        assert shares['pending'] == pytest.approx(33.33, abs=0.01)
        assert shares['approved'] == pytest.approx(66.67, abs=0.01)
        assert shares['rejected'] == 0
        assert shares['processing'] == 0

    def test_status_breakdown_fixed_order(self):
        report = build_report([make_request('r1', 10, 'processing')], privileged=False, now=NOW)

        assert [share.status for share in report.status_breakdown] == [
            'pending', 'approved', 'rejected', 'processing'
        ]

    def test_percentages_sum_to_100(self):
        statuses = ['pending', 'approved', 'rejected', 'processing', 'approved', 'pending', 'approved']
        requests = [make_request(f'r{i}', 10 * i, status) for i, status in enumerate(statuses)]

        report = build_report(requests, privileged=False, now=NOW)

        assert sum(share.percentage for share in report.status_breakdown) == pytest.approx(100.0)

    def test_empty_input(self):
        report = build_report([], privileged=True, now=NOW)

        assert report.total_requests == 0
        assert report.total_amount == 0
        assert report.average_amount == 0
        assert report.top_categories == []
        assert report.top_requesters == []
        assert all(share.percentage == 0 for share in report.status_breakdown)
        assert len(report.monthly_trends) == 6

    def test_category_rollup(self):
        """Travel (2 requests, 200) ranks above meals (1 request, 30)."""
        requests = [
            make_request('r1', 50, category='travel'),
            make_request('r2', 150, category='travel'),
            make_request('r3', 30, category='meals')
        ]

        report = build_report(requests, privileged=False, now=NOW)

        assert [(c.category, c.count, c.amount) for c in report.top_categories] == [
            ('travel', 2, 200),
            ('meals', 1, 30)
        ]

    def test_empty_category_is_uncategorized(self):
        report = build_report([make_request('r1', 10, category='')], privileged=False, now=NOW)

        assert report.top_categories[0].category == 'Uncategorized'

    def test_category_rollup_top_five(self):
        requests = [make_request(f'r{i}', 10 * i, category=f'cat{i}') for i in range(1, 8)]

        report = build_report(requests, privileged=False, now=NOW)

        assert [c.category for c in report.top_categories] == ['cat7', 'cat6', 'cat5', 'cat4', 'cat3']

    def test_category_ties_ordered_by_name(self):
        requests = [
            make_request('r1', 40, category='supplies'),
            make_request('r2', 40, category='meals'),
            make_request('r3', 40, category='travel')
        ]

        report = build_report(requests, privileged=False, now=NOW)

        assert [c.category for c in report.top_categories] == ['meals', 'supplies', 'travel']

    def test_monthly_trend_buckets(self):
        """Six buckets ending with the current month; older requests are dropped."""
        requests = [
            make_request('r1', 100, submitted_date='2024-03-01T00:00:00+00:00'),
            make_request('r2', 50, submitted_date='2024-03-14T10:00:00+00:00'),
            make_request('r3', 20, submitted_date='2023-10-31T23:00:00+00:00'),
            make_request('r4', 999, submitted_date='2023-09-30T23:00:00+00:00')
        ]

        report = build_report(requests, privileged=False, now=NOW)

        assert [t.month for t in report.monthly_trends] == [
            '2023-10', '2023-11', '2023-12', '2024-01', '2024-02', '2024-03'
        ]
        assert report.monthly_trends[0].label == 'Oct 2023'
        assert report.monthly_trends[-1].label == 'Mar 2024'
        assert (report.monthly_trends[-1].count, report.monthly_trends[-1].amount) == (2, 150)
        assert (report.monthly_trends[0].count, report.monthly_trends[0].amount) == (1, 20)
        # Dropped from the trend only
        assert report.total_amount == 1169

    def test_monthly_trend_end_of_month(self):
        """Month arithmetic clamps the day instead of skipping short months."""
        now = datetime(2024, 8, 31, tzinfo=timezone.utc)

        report = build_report([], privileged=False, now=now)

        assert [t.month for t in report.monthly_trends] == [
            '2024-03', '2024-04', '2024-05', '2024-06', '2024-07', '2024-08'
        ]

    def test_requesters_only_for_privileged(self):
        requests = [make_request('r1', 10, user_id='u1')]

        report = build_report(requests, privileged=False, now=NOW)

        assert report.top_requesters == []

    def test_requester_rollup(self):
        alice = RequesterProfile(user_id='u1', full_name='Alice', email='alice@example.com')
        requests = [
            make_request('r1', 100, user_id='u1', requester=alice),
            make_request('r2', 50, user_id='u1', requester=alice),
            make_request('r3', 500, user_id='u2'),
            make_request('r4', 150, user_id='u3')
        ]

        report = build_report(requests, privileged=True, now=NOW)

        assert [(r.user_id, r.name, r.count, r.amount) for r in report.top_requesters] == [
            ('u2', 'Unknown', 1, 500),
            ('u1', 'Alice', 2, 150),
            ('u3', 'Unknown', 1, 150)
        ]
        assert report.top_requesters[1].email == 'alice@example.com'

    def test_requester_ties_ordered_by_user_id(self):
        """Equal totals come out in ascending user_id order, whatever the input order."""
        requests = [
            make_request('r1', 80, user_id='u-zed'),
            make_request('r2', 40, user_id='u-bob'),
            make_request('r3', 40, user_id='u-bob'),
            make_request('r4', 80, user_id='u-amy'),
            make_request('r5', 300, user_id='u-max'),
            make_request('r6', 80, user_id='u-cat'),
            make_request('r7', 80, user_id='u-dan')
        ]

        report = build_report(requests, privileged=True, now=NOW)

        assert [r.user_id for r in report.top_requesters] == [
            'u-max', 'u-amy', 'u-bob', 'u-cat', 'u-dan'
        ]

    def test_echoes_window(self):
        report = build_report([], privileged=False, now=NOW, days=90, category='travel')

        assert report.days == 90
        assert report.category == 'travel'
        assert report.generated_at == '2024-03-15T12:00:00+00:00'
