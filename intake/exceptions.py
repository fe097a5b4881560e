"""
Custom Exceptions for the Contact Intake Endpoint

All exceptions carry the context needed for debugging and logging,
plus the HTTP status and plain-text message the caller receives.
"""

from dataclasses import dataclass
from typing import Any

# Body returned whenever the caller must not see internal detail
GENERIC_FAILURE_MESSAGE = "Szerverhiba."


class ContactIntakeError(Exception):
    """Base exception for the contact intake endpoint."""

    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = context
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    @property
    def public_message(self) -> str:
        """Plain-text message safe to return to the caller."""
        return self.message


@dataclass
class ConfigurationError(ContactIntakeError):
    """Required credential or setting is missing or unusable."""

    setting: str

    def __init__(self, setting: str, error_message: str | None = None) -> None:
        self.setting = setting
        super().__init__(
            f"Invalid configuration for '{setting}': {error_message or 'Unknown error'}",
            setting=setting,
        )

    @property
    def public_message(self) -> str:
        return GENERIC_FAILURE_MESSAGE


@dataclass
class InvalidSubmissionError(ContactIntakeError):
    """Submission violates a declared constraint (encoding, type, size, count)."""

    reason: str  # "malformed_form", "not_an_image", "too_large", "no_image"

    status_code = 400

    def __init__(self, message: str, reason: str, **context: Any) -> None:
        self.reason = reason
        super().__init__(message, reason=reason, **context)


@dataclass
class InvalidEmailFormatError(ContactIntakeError):
    """Email address format is invalid."""

    email_address: str

    status_code = 400

    def __init__(
        self,
        email_address: str,
        expected_pattern: str | None = None,
    ) -> None:
        self.email_address = email_address
        pattern_hint = f" Expected pattern: {expected_pattern}" if expected_pattern else ""
        super().__init__(
            f"Invalid email format: '{email_address}'.{pattern_hint}",
            email_address=email_address,
        )


class UpstreamError(ContactIntakeError):
    """Storage or email collaborator failed."""

    status_code = 502


@dataclass
class S3Error(UpstreamError):
    """S3 operation failed."""

    operation: str  # "head_bucket", "create_bucket", "upload", "presign"
    bucket: str
    key: str | None = None

    def __init__(
        self,
        operation: str,
        bucket: str,
        key: str | None = None,
        error_message: str | None = None,
    ) -> None:
        self.operation = operation
        self.bucket = bucket
        self.key = key
        super().__init__(
            f"S3 {operation} failed for s3://{bucket}/{key or '*'}: "
            f"{error_message or 'Unknown error'}",
            operation=operation,
            bucket=bucket,
            key=key,
        )


@dataclass
class SESError(UpstreamError):
    """SES email operation failed."""

    operation: str  # "send"
    recipient: str | None = None

    def __init__(
        self,
        operation: str,
        recipient: str | None = None,
        error_message: str | None = None,
    ) -> None:
        self.operation = operation
        self.recipient = recipient
        super().__init__(
            f"SES {operation} failed{f' for {recipient}' if recipient else ''}: "
            f"{error_message or 'Unknown error'}",
            operation=operation,
            recipient=recipient,
        )
