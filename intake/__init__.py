# Shared Infrastructure for the Contact Intake Endpoint
"""
Shared infrastructure components for the contact submission Lambda.

This package provides:
- Configuration management
- Custom exceptions with HTTP status mapping
- Tool implementations for S3 and SES
"""

from intake.config import Settings, get_settings, parse_storage_connection_string
from intake.exceptions import (
    GENERIC_FAILURE_MESSAGE,
    ConfigurationError,
    ContactIntakeError,
    InvalidEmailFormatError,
    InvalidSubmissionError,
    S3Error,
    SESError,
    UpstreamError,
)

__all__ = [
    # Exceptions
    "GENERIC_FAILURE_MESSAGE",
    "ConfigurationError",
    "ContactIntakeError",
    "InvalidEmailFormatError",
    "InvalidSubmissionError",
    "S3Error",
    "SESError",
    "UpstreamError",
    # Config
    "Settings",
    "get_settings",
    "parse_storage_connection_string",
]
