"""Lambda handler for authentication operations."""

import os
import logging
from typing import Dict, Any

from shared.context import PortalContext
from shared.events import bearer_token, get_user_claims, parse_body
from shared.exceptions import AuthenticationError, PortalError
from shared.messages import user_message
from shared.response import success_response, error_response, unauthorized_response
from shared.validators import validate_required_fields
from auth.profiles import ProfileService

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO'))

# Clients are created on the first invocation and reused by the container
portal = PortalContext.from_env()


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for authentication operations.

    Handles:
    - POST /auth/register - Register new user
    - POST /auth/login - Sign in user
    - POST /auth/logout - Sign out user
    - GET /auth/me - Current user's profile

    Args:
        event: Lambda event
        context: Lambda context

    Returns:
        API Gateway response
    """
    try:
        # Log request
        logger.info(f"Request: {event.get('httpMethod')} {event.get('path')}")

        portal.start()

        http_method = event.get('httpMethod')
        path = event.get('path')

        if path == '/auth/register' and http_method == 'POST':
            return handle_register(event)
        elif path == '/auth/login' and http_method == 'POST':
            return handle_login(event)
        elif path == '/auth/logout' and http_method == 'POST':
            return handle_logout(event)
        elif path == '/auth/me' and http_method == 'GET':
            return handle_me(event)
        else:
            return error_response("Route not found", status_code=404)

    except PortalError as e:
        logger.error(f"Application error: {str(e)}")
        return error_response(e.message, status_code=e.status_code)
    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        return error_response("Internal server error", status_code=500)


def handle_register(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle user registration.

    The requester profile is created here when the identity service returns
    the new user's id, otherwise on first login.
    """
    body = parse_body(event)
    validate_required_fields(body, ['email', 'password', 'full_name'])

    with portal.open_session() as sessions:
        try:
            result = sessions.sign_up(body['email'], body['password'], body['full_name'])
        except PortalError as e:
            logger.error(f"Registration error: {str(e)}")
            return error_response(user_message(e), status_code=e.status_code)

    ProfileService(portal).get_or_create(result['user_sub'], result['email'], result['name'])

    logger.info(f"User registered successfully: {result['email']}")

    return success_response(
        data={
            'user_id': result['user_sub'],
            'email': result['email'],
            'full_name': result['name'],
            'user_confirmed': result['user_confirmed']
        },
        message="Account created successfully. Please check your email to verify your account.",
        status_code=201
    )


def handle_login(event: Dict[str, Any]) -> Dict[str, Any]:
    """Handle user login; returns the tokens and the requester profile."""
    body = parse_body(event)
    validate_required_fields(body, ['email', 'password'])

    with portal.open_session() as sessions:
        try:
            session = sessions.sign_in(body['email'], body['password'])
        except AuthenticationError as e:
            return error_response(user_message(e), status_code=e.status_code)

    profile = ProfileService(portal).get_or_create(session.user_id, session.email, session.name)

    logger.info(f"User logged in successfully: {session.email}")

    return success_response(
        data={
            'user': profile,
            'tokens': {
                'access_token': session.access_token,
                'id_token': session.id_token,
                'refresh_token': session.refresh_token,
                'expires_in': session.expires_in,
                'token_type': 'Bearer'
            }
        },
        message="Login successful"
    )


def handle_logout(event: Dict[str, Any]) -> Dict[str, Any]:
    """Handle user logout by invalidating the caller's access token."""
    access_token = bearer_token(event)
    if not access_token:
        return unauthorized_response()

    portal.identity.sign_out(access_token)

    logger.info("User logged out")
    return success_response(message="Signed out successfully")


def handle_me(event: Dict[str, Any]) -> Dict[str, Any]:
    """Return the caller's profile, creating it if absent."""
    claims = get_user_claims(event)
    if not claims['user_id']:
        return unauthorized_response()

    profile = ProfileService(portal).get_or_create(
        claims['user_id'],
        claims['email'],
        claims['name']
    )
    return success_response(data=profile)
