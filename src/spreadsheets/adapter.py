"""Map liquidation requests and analytics reports to and from workbooks."""

import uuid
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from shared.dates import parse_timestamp, to_iso
from shared.exceptions import ValidationError
from shared.validators import validate_money, validate_status
from liquidations.models import LiquidationRequest
from analytics.models import AnalyticsReport
from spreadsheets.workbook import numbered_rows, write_workbook

logger = logging.getLogger(__name__)

REQUESTS_SHEET = 'Liquidations'

IMPORT_DEFAULT_TITLE = 'Imported Request'


def export_filename(prefix: str, today: date) -> str:
    return f"{prefix}_{today.isoformat()}.xlsx"


def _display_date(value: Optional[str]) -> str:
    parsed = parse_timestamp(value)
    return parsed.date().isoformat() if parsed else ''


def request_row(request: LiquidationRequest) -> Dict[str, Any]:
    """Export row of a single request."""
    return {
        'Request ID': request.request_id,
        'Title': request.title,
        'Description': request.description,
        'Amount': request.total_amount,
        'Currency': request.currency,
        'Status': request.status.value,
        'Category': request.category,
        'Submitted Date': _display_date(request.submitted_date),
        'Approved Date': _display_date(request.approved_date),
        'Requester': request.requester_name,
        'Email': request.requester_email,
        'Notes': request.notes,
        'Items Count': len(request.items)
    }


def export_requests(requests: List[LiquidationRequest], today: date) -> Tuple[str, bytes]:
    """
    Export requests to a single-sheet workbook.

    Args:
        requests: Rows to export, in display order
        today: Date used in the filename

    Returns:
        Tuple of (filename, xlsx bytes)
    """
    content = write_workbook({REQUESTS_SHEET: [request_row(request) for request in requests]})
    return export_filename('liquidations', today), content


def report_sheets(report: AnalyticsReport, privileged: bool) -> Dict[str, List[Dict[str, Any]]]:
    """Sheets of an analytics report; 'Top Requesters' only for reviewers."""
    sheets = {
        'Summary': [
            {'Metric': 'Total Requests', 'Value': report.total_requests},
            {'Metric': 'Total Amount', 'Value': report.total_amount},
            {'Metric': 'Average Amount', 'Value': round(report.average_amount, 2)},
            {'Metric': 'Pending Requests', 'Value': report.pending_requests},
            {'Metric': 'Approved Requests', 'Value': report.approved_requests},
            {'Metric': 'Rejected Requests', 'Value': report.rejected_requests}
        ],
        'Top Categories': [
            {'Category': rollup.category, 'Requests': rollup.count, 'Amount': rollup.amount}
            for rollup in report.top_categories
        ],
        'Monthly Trends': [
            {'Month': trend.label, 'Requests': trend.count, 'Amount': trend.amount}
            for trend in report.monthly_trends
        ],
        'Status Breakdown': [
            {'Status': share.status, 'Count': share.count, 'Percentage': round(share.percentage, 1)}
            for share in report.status_breakdown
        ]
    }

    if privileged:
        sheets['Top Requesters'] = [
            {'Name': rollup.name, 'Email': rollup.email, 'Requests': rollup.count, 'Amount': rollup.amount}
            for rollup in report.top_requesters
        ]

    return sheets


def export_report(report: AnalyticsReport, privileged: bool, today: date) -> Tuple[str, bytes]:
    """
    Export an analytics report to a multi-sheet workbook.

    Returns:
        Tuple of (filename, xlsx bytes)
    """
    content = write_workbook(report_sheets(report, privileged))
    return export_filename('liquidation_analytics', today), content


def _text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def parse_import(
    content: bytes,
    filename: str,
    user_id: str,
    now: datetime
) -> List[LiquidationRequest]:
    """
    Turn the first sheet of an uploaded workbook into new requests.

    Columns are matched by the export headers. Missing values default to
    'Imported Request', an empty description and category, amount 0, 'USD'
    and 'pending'. Every imported request is owned by ``user_id`` and carries
    no items.

    Args:
        content: Uploaded file bytes (.xlsx or .csv)
        filename: Original filename
        user_id: Owner of the imported requests
        now: Submission time stamped on every row

    Returns:
        List of requests ready to insert

    Raises:
        ValidationError: If the file is unreadable or a row holds an invalid
            status or amount
    """
    rows = numbered_rows(content, filename)
    submitted = to_iso(now)
    requests = []

    for row_number, row in rows:
        try:
            status = validate_status(_text(row.get('Status')) or 'pending')
            amount = validate_money(row.get('Amount'), 'Amount')
        except ValidationError as e:
            raise ValidationError(f"Row {row_number}: {e.message}")

        requests.append(LiquidationRequest(
            request_id=str(uuid.uuid4()),
            user_id=user_id,
            title=_text(row.get('Title')) or IMPORT_DEFAULT_TITLE,
            description=_text(row.get('Description')),
            category=_text(row.get('Category')),
            currency=_text(row.get('Currency')) or 'USD',
            notes=_text(row.get('Notes')),
            total_amount=amount,
            status=status,
            submitted_date=submitted
        ))

    logger.info(f"Parsed {len(requests)} requests from {filename}")
    return requests
