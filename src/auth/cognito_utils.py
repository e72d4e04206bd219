"""Cognito user pool access for portal accounts."""

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from shared.exceptions import AuthenticationError, ConflictError, PortalError, ValidationError

logger = logging.getLogger(__name__)

# Cognito error code -> (portal error, message shown to the caller)
ERROR_MAP = {
    'UsernameExistsException': (ConflictError, "User already registered"),
    'InvalidPasswordException': (ValidationError, "Password does not meet requirements"),
    'InvalidParameterException': (ValidationError, "Invalid email or parameters"),
    'NotAuthorizedException': (AuthenticationError, "Invalid login credentials"),
    'UserNotFoundException': (AuthenticationError, "Invalid login credentials"),
    'UserNotConfirmedException': (AuthenticationError, "Email not confirmed"),
}


def _portal_error(action: str, error: ClientError) -> PortalError:
    code = error.response['Error']['Code']
    detail = error.response['Error'].get('Message', code)
    logger.error(f"Cognito {action} failed: {code}")

    error_class, message = ERROR_MAP.get(code, (AuthenticationError, f"{action.capitalize()} failed"))
    if error_class is ValidationError:
        message = f"{message}: {detail}"
    return error_class(message)


class CognitoClient:
    """
    Sign-up, sign-in and token checks against one user pool app client.

    The app client must allow the USER_PASSWORD_AUTH flow. Failures are raised
    as portal errors; see ERROR_MAP.
    """

    def __init__(self, client_id: Optional[str], user_pool_id: Optional[str] = None,
                 endpoint_url: Optional[str] = None):
        self.client_id = client_id
        self.user_pool_id = user_pool_id
        self.client = boto3.client('cognito-idp', **({'endpoint_url': endpoint_url} if endpoint_url else {}))

    def sign_up(self, email: str, password: str, name: str) -> Dict[str, Any]:
        """
        Create an account; the display name is stored as the ``name`` attribute.

        Returns:
            ``user_sub`` (the portal user id) and ``user_confirmed``
        """
        attributes = [{'Name': 'email', 'Value': email}, {'Name': 'name', 'Value': name}]
        try:
            response = self.client.sign_up(
                ClientId=self.client_id, Username=email, Password=password, UserAttributes=attributes
            )
        except ClientError as e:
            raise _portal_error('registration', e)

        logger.info(f"Registered {email} as {response['UserSub']}")
        return {'user_sub': response['UserSub'], 'user_confirmed': response['UserConfirmed']}

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Exchange email and password for the session tokens."""
        try:
            response = self.client.initiate_auth(
                ClientId=self.client_id,
                AuthFlow='USER_PASSWORD_AUTH',
                AuthParameters={'USERNAME': email, 'PASSWORD': password}
            )
        except ClientError as e:
            raise _portal_error('sign in', e)

        tokens = response['AuthenticationResult']
        logger.info(f"{email} signed in")
        return {
            'access_token': tokens['AccessToken'],
            'id_token': tokens['IdToken'],
            'refresh_token': tokens.get('RefreshToken'),
            'expires_in': tokens['ExpiresIn'],
            'token_type': tokens['TokenType']
        }

    def sign_out(self, access_token: str) -> None:
        """Revoke every token issued to the session's user."""
        try:
            self.client.global_sign_out(AccessToken=access_token)
        except ClientError as e:
            raise _portal_error('sign out', e)
        logger.info("Session revoked")

    def get_user(self, access_token: str) -> Dict[str, Any]:
        """Resolve an access token to the account's sub, email and name."""
        try:
            response = self.client.get_user(AccessToken=access_token)
        except ClientError as e:
            raise _portal_error('token check', e)

        attributes = {attr['Name']: attr['Value'] for attr in response['UserAttributes']}
        return {
            'username': response['Username'],
            'user_sub': attributes.get('sub'),
            'email': attributes.get('email'),
            'name': attributes.get('name')
        }
