# Shared Tools
"""
Tool implementations for the contact submission Lambda.

Thin wrappers over boto3 that log each call and translate
botocore failures into UpstreamError subclasses.
"""

from intake.tools.email import (
    send_ses_email,
    validate_email_address,
)
from intake.tools.s3 import (
    build_s3_uri,
    ensure_bucket,
    get_object_url,
    upload_object,
)

__all__ = [
    # Email tools
    "send_ses_email",
    "validate_email_address",
    # S3 tools
    "build_s3_uri",
    "ensure_bucket",
    "get_object_url",
    "upload_object",
]
