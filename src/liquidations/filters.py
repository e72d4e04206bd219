"""Client-side search, filter and sort over fetched liquidation requests."""

from datetime import datetime, timedelta
from typing import Any, List, Optional

from shared.dates import months_ago, parse_timestamp
from liquidations.models import LiquidationRequest

ALL = 'all'

DATE_BUCKETS = ['all', 'today', 'week', 'month', 'quarter']

SORT_ORDERS = ['asc', 'desc']

# 'user_name' sorts on the requester's full name rather than a header field
SORTABLE_FIELDS = [
    'title',
    'description',
    'category',
    'currency',
    'status',
    'total_amount',
    'submitted_date',
    'approved_date',
    'user_name'
]


def matches_search(request: LiquidationRequest, term: str) -> bool:
    """Case-insensitive substring match on title, description, category and requester."""
    if not term:
        return True

    needle = term.lower()
    haystacks = (request.title, request.description, request.category, request.requester_name)
    return any(needle in (value or '').lower() for value in haystacks)


def date_bucket_start(bucket: str, now: datetime) -> Optional[datetime]:
    """
    Earliest submission time admitted by a date bucket.

    Args:
        bucket: One of DATE_BUCKETS
        now: Reference time (aware UTC)

    Returns:
        Lower bound, or None for 'all'
    """
    if bucket == 'today':
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if bucket == 'week':
        return now - timedelta(days=7)
    if bucket == 'month':
        return months_ago(now, 1)
    if bucket == 'quarter':
        return months_ago(now, 3)
    return None


def filter_requests(
    requests: List[LiquidationRequest],
    now: datetime,
    search: str = '',
    status: str = ALL,
    category: str = ALL,
    date_bucket: str = ALL
) -> List[LiquidationRequest]:
    """Keep the requests that satisfy every active predicate."""
    since = date_bucket_start(date_bucket, now)
    kept = []

    for request in requests:
        if not matches_search(request, search):
            continue
        if status != ALL and request.status.value != status:
            continue
        if category != ALL and request.category != category:
            continue
        if since is not None:
            submitted = parse_timestamp(request.submitted_date)
            if submitted is None or submitted < since:
                continue
        kept.append(request)

    return kept


def sort_value(request: LiquidationRequest, field: str) -> Any:
    """Comparable value of a request for a sort field."""
    if field == 'user_name':
        value = request.requester_name
    else:
        value = getattr(request, field)

    if hasattr(value, 'value'):
        value = value.value
    if isinstance(value, str):
        return value.lower()
    return value


def sort_requests(
    requests: List[LiquidationRequest],
    field: str,
    order: str = 'desc'
) -> List[LiquidationRequest]:
    """
    Sort requests on one field.

    Strings compare case-insensitively. Rows with a missing value always come
    last, whatever the direction. The sort is stable.
    """
    present = [r for r in requests if sort_value(r, field) not in (None, '')]
    missing = [r for r in requests if sort_value(r, field) in (None, '')]

    present.sort(key=lambda r: sort_value(r, field), reverse=(order == 'desc'))
    return present + missing
