"""Helpers for reading API Gateway proxy events."""

import base64
import json
from typing import Any, Dict, Optional

from .exceptions import ValidationError


def get_user_claims(event: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """
    Extract user information from Cognito authorizer claims.

    Args:
        event: Lambda event

    Returns:
        Dictionary with user_id (sub claim), email and name
    """
    request_context = event.get('requestContext') or {}
    authorizer = request_context.get('authorizer') or {}
    claims = authorizer.get('claims') or {}

    return {
        'user_id': claims.get('sub'),
        'email': claims.get('email'),
        'name': claims.get('name')
    }


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse the JSON body of a request.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    raw = event.get('body') or '{}'
    if event.get('isBase64Encoded'):
        raw = base64.b64decode(raw).decode('utf-8')

    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON body")

    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")

    return body


def query_params(event: Dict[str, Any]) -> Dict[str, str]:
    return event.get('queryStringParameters') or {}


def bearer_token(event: Dict[str, Any]) -> Optional[str]:
    """Access token from the Authorization header, without the Bearer prefix."""
    headers = event.get('headers') or {}
    value = headers.get('Authorization') or headers.get('authorization')
    if not value:
        return None
    if value.lower().startswith('bearer '):
        value = value[7:]
    return value.strip() or None


def decode_base64(data: str, label: str = 'file') -> bytes:
    """
    Decode base64 content, accepting an optional data URL prefix.

    Raises:
        ValidationError: If the content is not valid base64
    """
    if not data:
        raise ValidationError(f"Missing {label} data")

    if data.startswith('data:'):
        data = data.split(',', 1)[-1]

    try:
        return base64.b64decode(data, validate=True)
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid base64 {label} data")
