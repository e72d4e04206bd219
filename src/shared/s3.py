"""Receipts bucket access."""

import logging
from typing import Dict, Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import StorageError

logger = logging.getLogger(__name__)


class S3Client:
    """
    Writes objects to one bucket and resolves their public URLs.

    Objects are readable anonymously, so URLs are stable and never signed.
    ``public_base_url`` points at a CDN or website endpoint in front of the
    bucket; without it the URL is built from the client endpoint.
    """

    def __init__(self, bucket_name: str, endpoint_url: Optional[str] = None,
                 public_base_url: Optional[str] = None):
        self.bucket_name = bucket_name
        self.public_base_url = public_base_url
        self.s3 = boto3.client('s3', **({'endpoint_url': endpoint_url} if endpoint_url else {}))

    def upload_file(
        self,
        file_content: bytes,
        key: str,
        content_type: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """
        Store bytes under ``key``, encrypted at rest.

        Args:
            file_content: Object body
            key: Object key inside the bucket
            content_type: MIME type served back to browsers
            metadata: User metadata stored with the object

        Returns:
            The key that was written

        Raises:
            StorageError: If botocore or S3 rejects the write
        """
        params = {
            'Bucket': self.bucket_name,
            'Key': key,
            'Body': file_content,
            'ServerSideEncryption': 'AES256',
            'ContentType': content_type or 'application/octet-stream',
            'Metadata': metadata or {}
        }

        try:
            self.s3.put_object(**params)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"put_object to {self.bucket_name}/{key} failed: {e}")
            raise StorageError(f"Failed to store {key}: {e}")

        logger.info(f"Stored {len(file_content)} bytes at s3://{self.bucket_name}/{key}")
        return key

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{quote(key)}"

        endpoint = self.s3.meta.endpoint_url.rstrip('/')
        return f"{endpoint}/{self.bucket_name}/{quote(key)}"
