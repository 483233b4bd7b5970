"""Shared fixtures: an in-memory S3 bucket (moto) and the service on top of it."""

import os
from io import BytesIO
from typing import Callable, Final

import boto3
import pypdfium2 as pdfium
import pytest
from fastapi.testclient import TestClient
from moto import mock_aws

# moto needs credentials to sign requests; never reach a real account
os.environ['AWS_ACCESS_KEY_ID'] = 'testing'
os.environ['AWS_SECRET_ACCESS_KEY'] = 'testing'
os.environ['AWS_SECURITY_TOKEN'] = 'testing'
os.environ['AWS_SESSION_TOKEN'] = 'testing'
os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'

from app import app  # noqa: E402
from services.pdf_service import PdfService, set_pdf_service  # noqa: E402
from services.storage import BlobStore  # noqa: E402

TEST_BUCKET: Final = 'pdf-test'
TEST_PREFIX: Final = 'pdf/'
PDF_TYPE: Final = 'application/pdf'


@pytest.fixture
def s3_client():
    """Mock S3 service with the test bucket created.

    Yields:
        boto3 S3 client bound to the moto backend.
    """
    with mock_aws():
        client = boto3.client('s3', region_name='us-east-1')
        client.create_bucket(Bucket=TEST_BUCKET)
        yield client


@pytest.fixture
def store(s3_client) -> BlobStore:
    return BlobStore(s3_client, TEST_BUCKET, prefix=TEST_PREFIX)


@pytest.fixture
def put_raw(s3_client) -> Callable[..., None]:
    """Write an object straight into the bucket, bypassing the service."""
    def _put(name: str, content: bytes = b'%PDF-1.4 test', content_type: str = PDF_TYPE) -> None:
        s3_client.put_object(
            Bucket=TEST_BUCKET,
            Key=f'{TEST_PREFIX}{name}',
            Body=content,
            ContentType=content_type,
        )
    return _put


@pytest.fixture
def stored_names(s3_client) -> Callable[[], list[str]]:
    """Names currently stored under the PDF prefix, sorted."""
    def _names() -> list[str]:
        resp = s3_client.list_objects_v2(Bucket=TEST_BUCKET, Prefix=TEST_PREFIX)
        return sorted(o['Key'][len(TEST_PREFIX):] for o in resp.get('Contents', []))
    return _names


@pytest.fixture
def service(store) -> PdfService:
    svc = PdfService(store, max_file_size=5242880, supported_types=[PDF_TYPE])
    svc.initialize()
    return svc


@pytest.fixture
def three_files(service) -> PdfService:
    """Service holding a.pdf, b.pdf and c.pdf at positions 1, 2 and 3."""
    for name in ('a.pdf', 'b.pdf', 'c.pdf'):
        service.upload(f'content of {name}'.encode(), name, PDF_TYPE, 20)
    return service


@pytest.fixture
def client(service):
    set_pdf_service(service)
    yield TestClient(app)
    set_pdf_service(None)


@pytest.fixture
def pdf_bytes() -> bytes:
    """A valid one-page PDF."""
    doc = pdfium.PdfDocument.new()
    doc.new_page(200, 300)
    buf = BytesIO()
    doc.save(buf)
    doc.close()
    return buf.getvalue()
