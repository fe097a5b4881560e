"""
Integration test fixtures and configuration.

Integration tests run the Lambda handler against moto-mocked S3 and SES
to exercise the complete submission flow.
"""

from typing import Any, Callable, Dict, Generator

import boto3
import pytest
from moto import mock_aws

from tests.utils.form_generator import MultipartFormBuilder, build_api_gateway_event


REGION = "us-west-2"
BUCKET = "test-contact-uploads"
SENDER = "test@example.com"


@pytest.fixture
def integration_aws() -> Generator[Dict[str, Any], None, None]:
    """
    Fully mocked AWS environment for one test.

    The uploads bucket is not created; the handler creates it on
    first use. The SES sender identity is verified.
    """
    with mock_aws():
        s3 = boto3.client("s3", region_name=REGION)
        ses = boto3.client("ses", region_name=REGION)
        ses.verify_email_identity(EmailAddress=SENDER)

        yield {
            "s3": s3,
            "ses": ses,
            "bucket": BUCKET,
            "region": REGION,
        }


@pytest.fixture
def submit(lambda_context) -> Callable[[MultipartFormBuilder], Dict[str, Any]]:
    """Send a built form through the Lambda handler."""
    from lambdas.contact_submission.handler import lambda_handler

    def _submit(builder: MultipartFormBuilder, **event_kwargs: Any) -> Dict[str, Any]:
        event = build_api_gateway_event(builder.build(), builder.content_type, **event_kwargs)
        return lambda_handler(event, lambda_context)

    return _submit
