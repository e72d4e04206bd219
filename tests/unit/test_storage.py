"""Unit tests for the receipts bucket client and upload service."""

import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError, ParamValidationError
import sys
import os

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from shared.s3 import S3Client
from shared.exceptions import StorageError
from receipts.upload import ReceiptUploadService


class TestS3Client:
    """Test cases for S3Client."""

    @pytest.fixture
    def bucket(self):
        with patch('shared.s3.boto3'):
            client = S3Client('receipts', public_base_url='https://cdn.example.com')
            client.s3 = Mock()
            yield client

    def test_parameter_errors_become_storage_errors(self, bucket):
        bucket.s3.put_object.side_effect = ParamValidationError(report='Non ascii characters found')

        with pytest.raises(StorageError):
            bucket.upload_file(b'%PDF-1.4', 'receipts/u1/r.pdf', metadata={'original_filename': 'año'})

    def test_client_errors_become_storage_errors(self, bucket):
        bucket.s3.put_object.side_effect = ClientError(
            {'Error': {'Code': 'AccessDenied', 'Message': 'denied'}}, 'PutObject'
        )

        with pytest.raises(StorageError, match="receipts/u1/r.pdf"):
            bucket.upload_file(b'%PDF-1.4', 'receipts/u1/r.pdf')

    def test_public_url_quotes_key(self, bucket):
        assert bucket.public_url('receipts/u1/a b.pdf') == 'https://cdn.example.com/receipts/u1/a%20b.pdf'


class TestReceiptUploadService:
    """Test cases for ReceiptUploadService."""

    def test_non_ascii_filename_is_stored_as_ascii_metadata(self):
        bucket = Mock()
        bucket.public_url.side_effect = lambda key: f'https://cdn.example.com/{key}'
        service = ReceiptUploadService(Mock(receipts_bucket=bucket))

        receipt = service.upload_receipt('u1', b'%PDF-1.4', 'recibo_año.pdf')

        metadata = bucket.upload_file.call_args[1]['metadata']
        assert metadata['original_filename'] == 'recibo_a%C3%B1o.pdf'
        assert all(value.isascii() for value in metadata.values())
        assert receipt['s3_key'].endswith('.pdf')
        assert bucket.upload_file.call_args[1]['content_type'] == 'application/pdf'
