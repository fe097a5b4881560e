"""
Pytest Configuration and Shared Fixtures

Provides moto AWS mocking, sample form submissions, and test utilities.
"""

import os
from typing import Any

import boto3
import pytest
from moto import mock_aws

# Set test environment before importing application modules
os.environ["CONTACT_STORAGE_CONNECTION_STRING"] = (
    "AccessKeyId=testing;SecretAccessKey=testing;Region=us-west-2"
)
os.environ["CONTACT_S3_BUCKET_NAME"] = "test-contact-uploads"
os.environ["CONTACT_TO_EMAIL"] = "owner@example.com"
os.environ["CONTACT_SES_FROM_ADDRESS"] = "test@example.com"
os.environ["CONTACT_AWS_REGION"] = "us-west-2"
os.environ["AWS_DEFAULT_REGION"] = "us-west-2"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

from intake.config import get_settings  # noqa: E402
from tests.utils.form_generator import MockFormGenerator, MultipartFormBuilder  # noqa: E402

TEST_BUCKET = "test-contact-uploads"
TEST_SENDER = "test@example.com"
TEST_RECIPIENT = "owner@example.com"


# --- Settings Fixtures ---


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reload settings from the environment for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# --- AWS Mocking Fixtures ---


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    return {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "region_name": "us-west-2",
    }


@pytest.fixture
def mock_s3(aws_credentials):
    """Mocked S3 without the bucket; the handler creates it on first use."""
    with mock_aws():
        yield boto3.client("s3", **aws_credentials)


@pytest.fixture
def mock_s3_bucket(mock_s3):
    """Mocked S3 with the uploads bucket already present."""
    mock_s3.create_bucket(
        Bucket=TEST_BUCKET,
        CreateBucketConfiguration={"LocationConstraint": "us-west-2"},
    )
    yield mock_s3


@pytest.fixture
def mock_ses(aws_credentials):
    """Create a mocked SES client with verified identity."""
    with mock_aws():
        ses = boto3.client("ses", **aws_credentials)
        ses.verify_email_identity(EmailAddress=TEST_SENDER)
        yield ses


@pytest.fixture
def mock_aws_all(aws_credentials):
    """
    Mock all AWS services used by the Lambda.

    Provides S3 (no bucket yet) and SES with a verified sender.
    """
    with mock_aws():
        s3 = boto3.client("s3", **aws_credentials)
        ses = boto3.client("ses", **aws_credentials)
        ses.verify_email_identity(EmailAddress=TEST_SENDER)

        yield {
            "s3": s3,
            "ses": ses,
        }


# --- Form Fixtures ---


@pytest.fixture
def form_generator() -> MockFormGenerator:
    """Seeded generator for reproducible submissions."""
    return MockFormGenerator(seed=42)


@pytest.fixture
def contact_fields() -> dict[str, str]:
    """Contact details from a typical submission."""
    return {
        "firstname": "Éva",
        "lastname": "Kis",
        "phone": "+36201234567",
        "email": "e@x.hu",
        "desc": "Line1\nLine2",
    }


@pytest.fixture
def photo_bytes() -> bytes:
    """2KB of JPEG-looking content."""
    return b"\xff\xd8\xff\xe0" + b"\x00" * 2044


@pytest.fixture
def contact_form(contact_fields: dict[str, str], photo_bytes: bytes) -> MultipartFormBuilder:
    """Form with contact details and a single photo.jpg."""
    builder = MultipartFormBuilder()
    for name, value in contact_fields.items():
        builder.add_field(name, value)
    builder.add_file("images", "photo.jpg", photo_bytes, "image/jpeg")
    return builder


@pytest.fixture
def lambda_context() -> Any:
    """Minimal Lambda context."""

    class Context:
        aws_request_id = "req-0001"
        function_name = "contact-submission"

    return Context()
