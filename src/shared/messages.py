"""User-facing messages and notifications."""

from typing import Optional, Tuple

from pydantic import BaseModel

from .exceptions import PortalError

# Known failure causes, matched by substring against the raw error text
KNOWN_CAUSES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (
        ('already registered', 'already been registered', 'already exists'),
        "This email is already registered. Try signing in instead."
    ),
    (
        ('invalid email', 'valid email address'),
        "Please enter a valid email address."
    ),
    (
        ('password',),
        "Password must be at least 6 characters long."
    ),
    (
        ('database error saving',),
        "Account creation failed. Please try again or contact support."
    ),
    (
        ('email not confirmed', 'not confirmed'),
        "Please check your email and click the confirmation link."
    ),
)


class Notification(BaseModel):
    """Transient notification shown to the user."""

    title: str
    description: str
    variant: str = "default"  # default, destructive


def success(description: str) -> Notification:
    """Build a success notification."""
    return Notification(title="Success", description=description)


def failure(description: str) -> Notification:
    """Build an error notification."""
    return Notification(title="Error", description=description, variant="destructive")


def user_message(error: Exception, default: Optional[str] = None) -> str:
    """
    Map an error to the text shown to the user.

    Known causes are recognized by substring; anything else falls back to the
    error's own message, then to the default.

    Args:
        error: Raised exception
        default: Message used when the error carries no text

    Returns:
        User-facing message
    """
    raw = error.message if isinstance(error, PortalError) else str(error)
    lowered = raw.lower()

    for needles, message in KNOWN_CAUSES:
        if any(needle in lowered for needle in needles):
            return message

    return raw or default or "Something went wrong. Please try again."
