"""Lambda handler for analytics operations."""

import os
import logging
from typing import Dict, Any

from shared.context import PortalContext
from shared.dates import parse_timestamp
from shared.events import get_user_claims, query_params
from shared.exceptions import PortalError
from shared.response import success_response, error_response, file_response, unauthorized_response
from auth.profiles import ProfileService
from liquidations.repository import LiquidationRepository
from analytics.service import AnalyticsService
from spreadsheets.adapter import export_report

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

portal = PortalContext.from_env()


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for analytics operations.

    Handles:
    - GET /analytics - Report for a trailing window (?days=30&category=all)
    - GET /analytics/export - Same report as a multi-sheet xlsx

    Args:
        event: Lambda event
        context: Lambda context

    Returns:
        API Gateway response
    """
    try:
        # Log request
        logger.info(f"Request: {event.get('httpMethod')} {event.get('path')}")

        claims = get_user_claims(event)
        if not claims['user_id']:
            return unauthorized_response()

        portal.start()

        http_method = event.get('httpMethod')
        path = event.get('path')

        if path == '/analytics' and http_method == 'GET':
            return handle_report(event, claims)
        elif path == '/analytics/export' and http_method == 'GET':
            return handle_export(event, claims)
        else:
            return error_response("Route not found", status_code=404)

    except PortalError as e:
        logger.error(f"Application error: {str(e)}")
        return error_response(e.message, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        return error_response("Internal server error", status_code=500)


def load_report(event: Dict[str, Any], claims: Dict[str, Any]):
    viewer = ProfileService(portal).get_or_create(claims['user_id'], claims['email'], claims['name'])
    params = query_params(event)

    report = AnalyticsService(LiquidationRepository(portal)).get_report(
        viewer,
        days=params.get('days', 30),
        category=params.get('category')
    )
    return viewer, report


def handle_report(event: Dict[str, Any], claims: Dict[str, Any]) -> Dict[str, Any]:
    """Handle analytics report."""
    _, report = load_report(event, claims)
    return success_response(data=report)


def handle_export(event: Dict[str, Any], claims: Dict[str, Any]) -> Dict[str, Any]:
    """Handle analytics export."""
    viewer, report = load_report(event, claims)
    filename, content = export_report(report, viewer.is_privileged, today=parse_timestamp(report.generated_at).date())

    logger.info(f"Exported analytics report for {viewer.user_id}")
    return file_response(content, filename)