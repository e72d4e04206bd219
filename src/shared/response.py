"""API Gateway proxy responses for the portal handlers."""

import base64
import json
from typing import Any, Dict, Optional
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization,X-Amz-Date,X-Api-Key",
    "Access-Control-Allow-Methods": "GET,POST,PUT,PATCH,OPTIONS"
}

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ERROR_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT"
}


class PortalEncoder(json.JSONEncoder):
    """Serializes DynamoDB numbers, timestamps, enums and pydantic models."""

    def default(self, obj):
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode='json')
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        return super().default(obj)


def _json(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json", **CORS_HEADERS},
        "body": json.dumps(body, cls=PortalEncoder)
    }


def success_response(data: Any = None, message: Optional[str] = None, status_code: int = 200) -> Dict[str, Any]:
    """
    Wrap a payload in the ``{"success": true, "data": ...}`` envelope.

    Args:
        data: Anything PortalEncoder can serialize
        message: Toast text for the front end
        status_code: HTTP status code

    Returns:
        Lambda proxy response dictionary
    """
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return _json(status_code, body)


def error_response(message: str, status_code: int = 500) -> Dict[str, Any]:
    """
    Wrap a failure in the ``{"success": false, "error": {...}}`` envelope.

    The error code is derived from the status; anything unlisted is
    reported as ``ERROR_<status>``.
    """
    code = ERROR_CODES.get(status_code, f"ERROR_{status_code}")
    return _json(status_code, {"success": False, "error": {"message": message, "code": code}})


def unauthorized_response(message: str = "Unauthorized") -> Dict[str, Any]:
    return error_response(message, status_code=401)


def file_response(content: bytes, filename: str, content_type: str = XLSX_CONTENT_TYPE) -> Dict[str, Any]:
    """
    Return a file download.

    The body is base64 encoded; API Gateway decodes it when binary media
    types are enabled for the API.
    """
    return {
        "statusCode": 200,
        "headers": {
            "Content-Type": content_type,
            "Content-Disposition": f'attachment; filename="{filename}"',
            **CORS_HEADERS
        },
        "body": base64.b64encode(content).decode('ascii'),
        "isBase64Encoded": True
    }
