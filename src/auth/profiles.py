"""Requester profile service."""

import logging
from typing import Optional

from shared.dates import utcnow, to_iso
from liquidations.models import RequesterProfile, UserRole

logger = logging.getLogger(__name__)


class ProfileService:
    """Reads and lazily creates requester profiles."""

    def __init__(self, portal):
        """
        Initialize profile service.

        Args:
            portal: Started PortalContext
        """
        self.profiles_table = portal.profiles_table

    def get_profile(self, user_id: str) -> Optional[RequesterProfile]:
        row = self.profiles_table.get_item({'user_id': user_id})
        return RequesterProfile.from_row(row) if row else None

    def get_or_create(
        self,
        user_id: str,
        email: Optional[str] = None,
        full_name: Optional[str] = None
    ) -> RequesterProfile:
        """
        Return the user's profile, creating it on first sight.

        New profiles get the 'user' role. The display name falls back to the
        local part of the email, then to 'User'.

        Args:
            user_id: Identity of the user (Cognito sub)
            email: Email from the identity service
            full_name: Display name from the identity service

        Returns:
            Requester profile
        """
        profile = self.get_profile(user_id)
        if profile:
            return profile

        email = email or ''
        name = (full_name or '').strip() or (email.split('@')[0] if email else '') or 'User'

        profile = RequesterProfile(
            user_id=user_id,
            full_name=name,
            email=email,
            role=UserRole.USER,
            created_at=to_iso(utcnow())
        )
        self.profiles_table.put_item(profile.to_row())

        logger.info(f"Created profile for user {user_id}")
        return profile
