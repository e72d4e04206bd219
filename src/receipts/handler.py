"""Lambda entry point for receipt uploads from the request form."""

import os
import logging
from typing import Dict, Any

from shared.context import PortalContext
from shared.events import decode_base64, get_user_claims, parse_body
from shared.exceptions import PortalError
from shared.response import success_response, error_response, unauthorized_response
from shared.validators import validate_required_fields
from receipts.upload import ReceiptUploadService

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

portal = PortalContext.from_env()


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Store a receipt image or PDF for a liquidation item.

    Handles:
    - POST /receipts/upload - Upload a receipt; the returned URL goes on the item

    Args:
        event: Lambda event
        context: Lambda context

    Returns:
        API Gateway response
    """
    try:
        # Log request
        logger.info(f"Request: {event.get('httpMethod')} {event.get('path')}")

        user_id = get_user_claims(event)['user_id']
        if not user_id:
            return unauthorized_response()

        portal.start()

        http_method = event.get('httpMethod')
        path = event.get('path')

        if path == '/receipts/upload' and http_method == 'POST':
            return handle_upload(event, user_id)
        else:
            return error_response("Route not found", status_code=404)

    except PortalError as e:
        logger.error(f"Application error: {str(e)}")
        return error_response(e.message, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        return error_response("Internal server error", status_code=500)


def handle_upload(event: Dict[str, Any], user_id: str) -> Dict[str, Any]:
    """
    Decode and store one receipt for the caller.

    Body: ``file_data`` (base64, data URL prefix allowed), ``filename`` and an
    optional ``content_type``.
    """
    body = parse_body(event)
    validate_required_fields(body, ['file_data', 'filename'])

    content = decode_base64(body['file_data'], 'receipt')

    receipt = ReceiptUploadService(portal).upload_receipt(
        user_id=user_id,
        content=content,
        filename=body['filename'],
        content_type=body.get('content_type')
    )

    return success_response(
        data=receipt,
        message="Receipt uploaded successfully",
        status_code=201
    )
