"""Session tracking on top of the identity service."""

import logging
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel

from shared.validators import validate_email, validate_password, validate_full_name

logger = logging.getLogger(__name__)

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'


class Session(BaseModel):
    """Authenticated session bound to a user identity."""

    user_id: str
    email: str
    name: Optional[str] = None
    access_token: str
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


SessionListener = Callable[[str, Optional[Session]], None]


class Subscription:
    """Handle returned by SessionManager.subscribe."""

    def __init__(self, manager: 'SessionManager', listener: SessionListener):
        self._manager = manager
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._manager._remove(self)


class SessionManager:
    """
    Tracks the current session and notifies subscribers of changes.

    Subscribers receive ``(event, session)`` where event is SIGNED_IN or
    SIGNED_OUT. Every subscription must be released with ``unsubscribe()`` or
    by closing the manager.
    """

    def __init__(self, identity, on_close: Optional[Callable[['SessionManager'], None]] = None):
        self.identity = identity
        self._on_close = on_close
        self.current: Optional[Session] = None
        self._listeners: List[SessionListener] = []
        self._subscriptions: List[Subscription] = []

    def subscribe(self, listener: SessionListener) -> Subscription:
        self._listeners.append(listener)
        subscription = Subscription(self, listener)
        self._subscriptions.append(subscription)
        return subscription

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def sign_up(self, email: str, password: str, full_name: str) -> Dict[str, object]:
        """
        Register a new identity after local validation.

        Raises:
            ValidationError: If email, password or name fail local checks
        """
        full_name = validate_full_name(full_name)
        email = validate_email(email)
        password = validate_password(password)

        result = self.identity.sign_up(email, password, full_name)
        return {**result, 'email': email, 'name': full_name}

    def sign_in(self, email: str, password: str) -> Session:
        """Sign in and make the resulting session current."""
        email = validate_email(email)
        tokens = self.identity.sign_in(email, password)
        user = self.identity.get_user(tokens['access_token'])

        self.current = Session(
            user_id=user['user_sub'],
            email=user.get('email') or email,
            name=user.get('name'),
            access_token=tokens['access_token'],
            id_token=tokens.get('id_token'),
            refresh_token=tokens.get('refresh_token'),
            expires_in=tokens.get('expires_in')
        )

        self._notify(SIGNED_IN, self.current)
        return self.current

    def sign_out(self) -> None:
        """Invalidate the current session, if any."""
        if self.current is None:
            return

        self.identity.sign_out(self.current.access_token)
        self.current = None
        self._notify(SIGNED_OUT, None)

    def close(self) -> None:
        """Release every subscription and detach from the owning context."""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()

        if self._on_close is not None:
            on_close, self._on_close = self._on_close, None
            on_close(self)

    def __enter__(self) -> 'SessionManager':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _remove(self, subscription: Subscription) -> None:
        if subscription._listener in self._listeners:
            self._listeners.remove(subscription._listener)
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def _notify(self, event: str, session: Optional[Session]) -> None:
        logger.info(f"Session event: {event}")
        for listener in list(self._listeners):
            listener(event, session)
