"""Receipt upload utilities."""

import uuid
from typing import Dict, Optional
from urllib.parse import quote
import logging

from shared.dates import utcnow, to_iso
from shared.validators import validate_file_extension, validate_file_size

logger = logging.getLogger(__name__)

# Allowed receipt extensions
ALLOWED_EXTENSIONS = ['.png', '.jpg', '.jpeg', '.gif', '.pdf']

# Maximum file size (5MB)
MAX_FILE_SIZE_MB = 5

CONTENT_TYPES = {
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'gif': 'image/gif',
    'pdf': 'application/pdf'
}


class ReceiptUploadService:
    """Stores receipt files in the object store and returns their public URL."""

    def __init__(self, portal):
        """
        Initialize upload service.

        Args:
            portal: Started PortalContext
        """
        self.s3_client = portal.receipts_bucket

    def upload_receipt(
        self,
        user_id: str,
        content: bytes,
        filename: str,
        content_type: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Upload a receipt file.

        Args:
            user_id: Owner of the receipt
            content: Raw file bytes
            filename: Original filename
            content_type: MIME type; derived from the extension when omitted

        Returns:
            Dictionary with s3_key and receipt_url

        Raises:
            ValidationError: If the extension or size is not allowed
            StorageError: If the upload fails
        """
        extension = validate_file_extension(filename, ALLOWED_EXTENSIONS)
        validate_file_size(len(content), MAX_FILE_SIZE_MB)

        # Generate S3 key with user prefix
        s3_key = f"receipts/{user_id}/{uuid.uuid4()}.{extension}"

        self.s3_client.upload_file(
            file_content=content,
            key=s3_key,
            content_type=content_type or CONTENT_TYPES[extension],
            metadata={
                'user_id': user_id,
                # S3 metadata must be ASCII
                'original_filename': quote(filename),
                'uploaded_at': to_iso(utcnow())
            }
        )

        logger.info(f"Receipt uploaded to S3: {s3_key}")

        return {
            's3_key': s3_key,
            'receipt_url': self.s3_client.public_url(s3_key)
        }
