"""Error taxonomy shared by the portal services and handlers.

Every error carries the HTTP status the handlers answer with.
"""


class PortalError(Exception):
    """Root of the portal errors."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(PortalError):
    """Bad input: form fields, filters, uploaded files."""

    status_code = 400


class AuthenticationError(PortalError):
    """Missing, expired or rejected credentials."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class AuthorizationError(PortalError):
    """The caller's role does not allow the action."""

    status_code = 403

    def __init__(self, message: str = "Not allowed for your role"):
        super().__init__(message)


class NotFoundError(PortalError):
    status_code = 404

    def __init__(self, message: str = "Liquidation request not found"):
        super().__init__(message)


class ConflictError(PortalError):
    """An account with the same email already exists."""

    status_code = 409

    def __init__(self, message: str = "User already registered"):
        super().__init__(message)


class DatabaseError(PortalError):
    """A DynamoDB call failed."""

    def __init__(self, message: str = "Database error"):
        super().__init__(message)


class StorageError(PortalError):
    """An S3 call failed."""

    def __init__(self, message: str = "Receipt storage error"):
        super().__init__(message)
