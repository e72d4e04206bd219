"""Environment-driven settings for the liquidation portal."""

import os
from typing import Optional

from pydantic import BaseModel, Field


class PortalSettings(BaseModel):
    """Names of the hosted resources the portal talks to."""

    requests_table: str = Field('liquidation-requests', description="Liquidation requests table")
    items_table: str = Field('liquidation-items', description="Liquidation items table")
    profiles_table: str = Field('user-profiles', description="Requester profiles table")
    receipts_bucket: str = Field('liquidation-receipts', description="Receipts bucket")
    receipts_public_base_url: Optional[str] = Field(None, description="Public base URL for receipts")
    cognito_client_id: Optional[str] = None
    cognito_user_pool_id: Optional[str] = None
    endpoint_url: Optional[str] = Field(None, description="LocalStack endpoint, when enabled")
    log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'PortalSettings':
        """Build settings from the Lambda environment."""
        endpoint_url = os.environ.get('LOCALSTACK_ENDPOINT')
        if os.environ.get('USE_LOCALSTACK', 'false').lower() != 'true':
            endpoint_url = None

        defaults = cls()
        return cls(
            requests_table=os.environ.get('LIQUIDATIONS_TABLE', defaults.requests_table),
            items_table=os.environ.get('LIQUIDATION_ITEMS_TABLE', defaults.items_table),
            profiles_table=os.environ.get('USER_PROFILES_TABLE', defaults.profiles_table),
            receipts_bucket=os.environ.get('RECEIPTS_BUCKET', defaults.receipts_bucket),
            receipts_public_base_url=os.environ.get('RECEIPTS_PUBLIC_BASE_URL'),
            cognito_client_id=os.environ.get('COGNITO_CLIENT_ID'),
            cognito_user_pool_id=os.environ.get('COGNITO_USER_POOL_ID'),
            endpoint_url=endpoint_url,
            log_level=os.environ.get('LOG_LEVEL', 'INFO')
        )
