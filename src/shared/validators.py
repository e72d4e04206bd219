"""Input checks shared by the forms, filters and upload paths.

Each validator returns the normalized value or raises ValidationError with
a message that can be shown to the user as is.
"""

import re
from pathlib import PurePath
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import ValidationError


# Request lifecycle states
VALID_STATUSES = ["pending", "approved", "rejected", "processing"]

# Trailing windows offered by the analytics dashboard (days)
VALID_ANALYTICS_RANGES = [7, 30, 90, 365]

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

MIN_PASSWORD_LENGTH = 6


def validate_email(email: Optional[str]) -> str:
    """Lower-cased, trimmed address of the form ``local@domain.tld``."""
    email = (email or '').strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address")
    return email


def validate_password(password: Optional[str]) -> str:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    return password


def validate_full_name(name: Optional[str]) -> str:
    """Validate a display name."""
    if not name or not name.strip():
        raise ValidationError("Full name is required")

    return name.strip()


def validate_status(status: str) -> str:
    """
    Validate request status.

    Args:
        status: Status to validate

    Returns:
        Validated status

    Raises:
        ValidationError: If status is invalid
    """
    if not status:
        raise ValidationError("Status is required")

    status = str(status).strip().lower()

    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}"
        )

    return status


def validate_choice(value: str, choices: Sequence[str], label: str) -> str:
    """
    Validate that a value is one of a fixed set of choices.

    Args:
        value: Value to validate
        choices: Allowed values
        label: Human-readable name of the field, used in the error message

    Returns:
        Validated value

    Raises:
        ValidationError: If the value is not allowed
    """
    if value not in choices:
        raise ValidationError(
            f"Invalid {label}. Must be one of: {', '.join(choices)}"
        )

    return value


def validate_analytics_range(days: Any) -> int:
    """Validate the analytics trailing window in days."""
    try:
        days = int(days)
    except (ValueError, TypeError):
        raise ValidationError("Date range must be a number of days")

    if days not in VALID_ANALYTICS_RANGES:
        raise ValidationError(
            f"Invalid date range. Must be one of: {', '.join(str(d) for d in VALID_ANALYTICS_RANGES)}"
        )

    return days


def validate_quantity(quantity: Any) -> int:
    """
    Validate item quantity.

    Raises:
        ValidationError: If quantity is not a positive integer
    """
    if isinstance(quantity, bool):
        raise ValidationError("Quantity must be a whole number")

    try:
        as_float = float(quantity)
    except (ValueError, TypeError):
        raise ValidationError("Quantity must be a whole number")

    if not as_float.is_integer():
        raise ValidationError("Quantity must be a whole number")

    if as_float < 1:
        raise ValidationError("Quantity must be at least 1")

    return int(as_float)


def validate_money(value: Any, label: str = "Amount") -> float:
    """
    Validate a non-negative monetary value.

    Args:
        value: Value to validate
        label: Field name used in error messages

    Returns:
        Validated value as float

    Raises:
        ValidationError: If value is invalid or negative
    """
    if value is None or value == '':
        return 0.0

    if isinstance(value, bool):
        raise ValidationError(f"Invalid {label.lower()} format")

    try:
        money = float(value)
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid {label.lower()} format")

    if money != money or money in (float('inf'), float('-inf')):
        raise ValidationError(f"Invalid {label.lower()} format")

    if money < 0:
        raise ValidationError(f"{label} cannot be negative")

    return money


def validate_required_fields(data: Dict[str, Any], required_fields: List[str]) -> None:
    """
    Reject a request body that lacks any of ``required_fields``.

    A key present with a null value counts as missing; empty strings pass.
    """
    missing = [name for name in required_fields if data.get(name) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def validate_file_extension(filename: Optional[str], allowed_extensions: List[str]) -> str:
    """
    Check an upload's extension against an allow list such as ``['.pdf', '.png']``.

    Returns:
        The extension, lower-cased and without the dot
    """
    suffix = PurePath(filename or '').suffix.lower()
    if suffix not in {ext.lower() for ext in allowed_extensions}:
        raise ValidationError(f"Invalid file type. Allowed types: {', '.join(allowed_extensions)}")
    return suffix[1:]


def validate_file_size(size_bytes: int, max_size_mb: int = 5) -> int:
    if size_bytes == 0:
        raise ValidationError("File is empty")
    if size_bytes > max_size_mb * 1024 * 1024:
        raise ValidationError(f"File is larger than the {max_size_mb}MB limit")
    return size_bytes


def sanitize_string(value: Any, max_length: Optional[int] = None) -> str:
    """
    Trim a free-text field; None reads as empty.

    Raises:
        ValidationError: If the value is not text or is longer than ``max_length``
    """
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError("Text value expected")

    value = value.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"Text is longer than {max_length} characters")
    return value
