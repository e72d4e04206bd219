"""Lambda handler for liquidation request operations."""

import os
import logging
from typing import Dict, Any

from shared.context import PortalContext
from shared.events import decode_base64, get_user_claims, parse_body, query_params
from shared.exceptions import NotFoundError, PortalError, ValidationError
from shared.response import (
    success_response,
    error_response,
    file_response,
    unauthorized_response
)
from shared.validators import validate_required_fields
from auth.profiles import ProfileService
from liquidations.form import RequestForm
from liquidations.models import LiquidationRequest, RequesterProfile, RequestStatus
from liquidations.repository import LiquidationRepository
from liquidations.view import RequestListView
from receipts.upload import ReceiptUploadService

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

portal = PortalContext.from_env()

COLLECTION_PATH = '/liquidations'


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for liquidation request operations.

    Handles:
    - GET /liquidations - List visible requests (search, filter, sort)
    - GET /liquidations/pending-count - Count visible pending requests
    - GET /liquidations/export - Export the filtered list as xlsx
    - POST /liquidations/import - Import requests from xlsx/csv
    - POST /liquidations/bulk-status - Set status on many requests
    - POST /liquidations/bulk-delete - Delete many requests
    - POST /liquidations - Create request with items
    - GET /liquidations/{id} - Get request with items
    - PUT /liquidations/{id} - Replace request header and items
    - PATCH /liquidations/{id} - Update a single field

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
        viewer = ProfileService(portal).get_or_create(claims['user_id'], claims['email'], claims['name'])
        repository = LiquidationRepository(portal)

        http_method = event.get('httpMethod')
        path = (event.get('path') or '').rstrip('/')

        if path == COLLECTION_PATH and http_method == 'GET':
            return handle_list(event, repository, viewer)
        elif path == COLLECTION_PATH and http_method == 'POST':
            return handle_create(event, repository, viewer)
        elif path == f'{COLLECTION_PATH}/pending-count' and http_method == 'GET':
            return handle_pending_count(repository, viewer)
        elif path == f'{COLLECTION_PATH}/export' and http_method == 'GET':
            return handle_export(event, repository, viewer)
        elif path == f'{COLLECTION_PATH}/import' and http_method == 'POST':
            return handle_import(event, repository, viewer)
        elif path == f'{COLLECTION_PATH}/bulk-status' and http_method == 'POST':
            return handle_bulk_status(event, repository, viewer)
        elif path == f'{COLLECTION_PATH}/bulk-delete' and http_method == 'POST':
            return handle_bulk_delete(event, repository, viewer)
        elif path.startswith(f'{COLLECTION_PATH}/') and http_method == 'GET':
            return handle_get(event, repository, viewer)
        elif path.startswith(f'{COLLECTION_PATH}/') and http_method == 'PUT':
            return handle_update(event, repository, viewer)
        elif path.startswith(f'{COLLECTION_PATH}/') and http_method == 'PATCH':
            return handle_patch(event, repository, viewer)
        else:
            return error_response("Route not found", status_code=404)

    except PortalError as e:
        logger.error(f"Application error: {str(e)}")
        return error_response(e.message, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        return error_response("Internal server error", status_code=500)


def build_view(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> RequestListView:
    """
    Fetch the viewer's rows and apply the predicates from the query string.

    Query parameters: search, status, category, date, sort_by, sort_order.

    Raises:
        PortalError: If the fetch fails or a predicate is invalid
    """
    view = RequestListView(repository, viewer)
    if not view.refresh():
        raise view.last_error

    params = query_params(event)
    if params.get('search'):
        view.set_search(params['search'])
    if params.get('status'):
        view.set_status_filter(params['status'])
    if params.get('category'):
        view.set_category_filter(params['category'])
    if params.get('date'):
        view.set_date_filter(params['date'])
    if params.get('sort_by'):
        view.set_sort(params['sort_by'], params.get('sort_order'))
    elif params.get('sort_order'):
        view.set_sort(view.sort_by, params['sort_order'])

    return view


def select(view: RequestListView, body: Dict[str, Any]) -> None:
    """Select the requested ids that the viewer can see."""
    validate_required_fields(body, ['ids'])
    ids = body['ids']
    if not isinstance(ids, list) or not ids:
        raise ValidationError("ids must be a non-empty list")

    known = {row.request_id for row in view.rows}
    for request_id in ids:
        if request_id in known and request_id not in view.selected:
            view.toggle_selection(request_id)

    if not view.selected:
        raise NotFoundError("Liquidation request not found")


def load_request(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> LiquidationRequest:
    """
    Load the request named in the path, if the viewer may see it.

    Raises:
        NotFoundError: If missing or owned by someone else (non-reviewers)
    """
    path_params = event.get('pathParameters') or {}
    request_id = path_params.get('id') or (event.get('path') or '').rstrip('/').rsplit('/', 1)[-1]

    request = repository.get_request(request_id)
    if request.user_id != viewer.user_id and not viewer.is_privileged:
        raise NotFoundError("Liquidation request not found")

    return request


def handle_list(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """Handle list requests."""
    view = build_view(event, repository, viewer)

    return success_response(data={
        'liquidations': view.visible,
        'count': len(view.visible),
        'total': len(view.rows),
        'categories': view.categories
    })


def handle_pending_count(repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """Handle pending count (dashboard badge)."""
    count = repository.count_by_status(RequestStatus.PENDING.value, viewer)
    return success_response(data={'count': count})


def handle_export(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """Handle export of the filtered list."""
    view = build_view(event, repository, viewer)
    filename, content = view.export_workbook()

    logger.info(f"Exported {len(view.visible)} requests for {viewer.user_id}")
    return file_response(content, filename)


def handle_import(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """
    Handle spreadsheet import.

    Body: ``file_data`` (base64) and ``filename`` (.xlsx or .csv).
    """
    body = parse_body(event)
    validate_required_fields(body, ['file_data', 'filename'])
    content = decode_base64(body['file_data'], 'spreadsheet')

    view = RequestListView(repository, viewer)
    imported = view.import_workbook(content, body['filename'])
    if view.last_error is not None and not imported:
        raise view.last_error

    return success_response(
        data={'imported': imported},
        message=f"Imported {imported} records successfully",
        status_code=201
    )


def handle_bulk_status(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """Handle bulk status update; body holds ``ids`` and ``status``."""
    body = parse_body(event)
    validate_required_fields(body, ['status'])

    view = build_view(event, repository, viewer)
    select(view, body)
    updated = list(view.selected)

    if not view.bulk_update_status(body['status']):
        raise view.last_error

    return success_response(data={'updated': updated}, message=f"Updated {len(updated)} items")


def handle_bulk_delete(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """Handle bulk delete; body holds ``ids``."""
    body = parse_body(event)

    view = build_view(event, repository, viewer)
    select(view, body)
    deleted = list(view.selected)

    if not view.bulk_delete():
        raise view.last_error

    return success_response(data={'deleted': deleted}, message=f"Deleted {len(deleted)} items")


def handle_get(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """Handle get request details."""
    request = load_request(event, repository, viewer)
    return success_response(data=request)


def handle_create(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """Handle create request with items."""
    body = parse_body(event)

    form = RequestForm(repository, viewer.user_id, receipts=ReceiptUploadService(portal))
    saved = form.apply_payload(body).submit()

    return success_response(data=saved, message=form.notifications[-1].description, status_code=201)


def handle_update(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """Handle full update: header fields and the complete item list."""
    request = load_request(event, repository, viewer)
    body = parse_body(event)

    form = RequestForm(repository, viewer.user_id, editing=request, receipts=ReceiptUploadService(portal))
    saved = form.apply_payload(body).submit()

    return success_response(data=saved, message=form.notifications[-1].description)


def handle_patch(event: Dict[str, Any], repository: LiquidationRepository, viewer: RequesterProfile) -> Dict[str, Any]:
    """Handle inline edit of one field; body holds ``field`` and ``value``."""
    request = load_request(event, repository, viewer)
    body = parse_body(event)
    validate_required_fields(body, ['field', 'value'])

    view = RequestListView(repository, viewer)
    view.start_edit(request.request_id, body['field'])
    view.set_edit_value(body['value'])
    if not view.commit_edit():
        raise view.last_error

    return success_response(data=repository.get_request(request.request_id), message="Updated successfully")
