"""Process-wide handle on the hosted services, passed explicitly to services."""

import logging
from typing import List, Optional

from .config import PortalSettings
from .dynamodb import DynamoDBClient
from .s3 import S3Client
from auth.cognito_utils import CognitoClient
from auth.session import SessionManager

logger = logging.getLogger(__name__)


class PortalContext:
    """
    Holds the row store, object store and identity clients.

    Clients are created on the first ``start()`` and dropped by ``stop()``,
    which also closes every session manager opened through the context.
    """

    def __init__(self, settings: PortalSettings):
        self.settings = settings
        self.requests_table: Optional[DynamoDBClient] = None
        self.items_table: Optional[DynamoDBClient] = None
        self.profiles_table: Optional[DynamoDBClient] = None
        self.receipts_bucket: Optional[S3Client] = None
        self.identity: Optional[CognitoClient] = None
        self._sessions: List[SessionManager] = []
        self._started = False

    @classmethod
    def from_env(cls) -> 'PortalContext':
        return cls(PortalSettings.from_env())

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> 'PortalContext':
        """Create the service clients; repeated calls are no-ops."""
        if self._started:
            return self

        settings = self.settings
        self.requests_table = DynamoDBClient(settings.requests_table, settings.endpoint_url)
        self.items_table = DynamoDBClient(settings.items_table, settings.endpoint_url)
        self.profiles_table = DynamoDBClient(settings.profiles_table, settings.endpoint_url)
        self.receipts_bucket = S3Client(
            settings.receipts_bucket,
            endpoint_url=settings.endpoint_url,
            public_base_url=settings.receipts_public_base_url
        )
        self.identity = CognitoClient(
            settings.cognito_client_id,
            settings.cognito_user_pool_id,
            endpoint_url=settings.endpoint_url
        )

        self._started = True
        logger.info("Portal context started")
        return self

    def open_session(self) -> SessionManager:
        """Open a session manager whose listeners are released on stop()."""
        if not self._started:
            self.start()

        manager = SessionManager(self.identity, on_close=self._forget_session)
        self._sessions.append(manager)
        return manager

    def stop(self) -> None:
        """Close open sessions and drop the clients."""
        for manager in list(self._sessions):
            manager.close()

        self.requests_table = None
        self.items_table = None
        self.profiles_table = None
        self.receipts_bucket = None
        self.identity = None

        if self._started:
            logger.info("Portal context stopped")
        self._started = False

    @property
    def open_sessions(self) -> int:
        return len(self._sessions)

    def _forget_session(self, manager: SessionManager) -> None:
        if manager in self._sessions:
            self._sessions.remove(manager)

    def __enter__(self) -> 'PortalContext':
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
