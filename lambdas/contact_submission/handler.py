"""
ContactSubmission Lambda Handler

Main entry point for the website contact form.
Receives a multipart/form-data POST, stores the attached images to S3
and emails the form contents with signed image links.

Trigger: API Gateway (REST or HTTP API) or a Lambda Function URL
Output: S3 objects + one SES notification email

Flow:
1. Check storage and recipient configuration
2. Decode the multipart body (validating images as they stream in)
3. Reject submissions without images
4. Upload each image and sign a 7-day read URL
5. Email the form fields and image links
6. Respond with a plain-text status
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

import structlog

from intake.config import Settings, get_settings
from intake.exceptions import (
    GENERIC_FAILURE_MESSAGE,
    ConfigurationError,
    ContactIntakeError,
    InvalidEmailFormatError,
    InvalidSubmissionError,
)
from intake.tools.email import validate_email_address
from intake.tools.s3 import ensure_bucket
from lambdas.contact_submission.attachment_handler import StoredAsset, store_attachments
from lambdas.contact_submission.multipart_parser import (
    MALFORMED_FORM_MESSAGE,
    parse_submission,
)
from lambdas.contact_submission.notification import send_submission_notification

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

log = structlog.get_logger()

SUCCESS_MESSAGE = "OK"
NO_IMAGE_MESSAGE = "Nincs kép."
METHOD_NOT_ALLOWED_MESSAGE = "Method Not Allowed"
RESPONSE_HEADERS = {"Content-Type": "text/plain; charset=utf-8"}


@dataclass
class SubmissionResult:
    """Outcome of a fully processed submission."""

    submission_id: str
    message_id: str
    assets: list[StoredAsset] = field(default_factory=list)


def _response(status_code: int, body: str) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": dict(RESPONSE_HEADERS),
        "body": body,
    }


def _get_header(event: dict[str, Any], name: str) -> str | None:
    """Case-insensitive header lookup (REST API keeps client casing)."""
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def _get_method(event: dict[str, Any]) -> str | None:
    """HTTP method from an HTTP API (v2) or REST API (v1) event."""
    http = (event.get("requestContext") or {}).get("http") or {}
    method = http.get("method") or event.get("httpMethod")
    return method.upper() if method else None


def _decode_body(event: dict[str, Any]) -> bytes:
    """
    Raw request body.

    Raises:
        InvalidSubmissionError: If a base64 body cannot be decoded
    """
    body = event.get("body") or b""

    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidSubmissionError(
                MALFORMED_FORM_MESSAGE,
                reason="malformed_form",
                detail="invalid base64 body",
            ) from e

    if isinstance(body, str):
        return body.encode("utf-8")
    return body


def _require_configuration(settings: Settings) -> None:
    """
    Fail fast on missing credentials before touching the request body.

    Raises:
        ConfigurationError: If storage or recipient configuration is unusable
    """
    settings.s3_config  # raises on a missing or malformed connection string

    if not settings.to_email:
        raise ConfigurationError(
            setting="to_email",
            error_message="Missing notification recipient",
        )

    try:
        validate_email_address(settings.to_email)
    except InvalidEmailFormatError as e:
        raise ConfigurationError(
            setting="to_email",
            error_message=e.message,
        ) from e


def process_submission(
    event: dict[str, Any],
    *,
    settings: Settings | None = None,
) -> SubmissionResult:
    """
    Run the full submission pipeline for one request.

    Args:
        event: API Gateway / Function URL event
        settings: Settings used by every step, storage and email clients
            included (default: cached environment settings)

    Returns:
        SubmissionResult with SES message ID and stored assets

    Raises:
        ConfigurationError: Missing storage or recipient configuration
        InvalidSubmissionError: Malformed form, non-image, oversize, no image
        UpstreamError: S3 or SES failure
    """
    settings = settings or get_settings()
    _require_configuration(settings)

    submission_id = uuid4().hex
    structlog.contextvars.bind_contextvars(submission_id=submission_id)

    submission = parse_submission(
        _decode_body(event),
        _get_header(event, "content-type"),
        image_field=settings.image_field_name,
        allowed_mime_types=settings.allowed_image_types,
        max_total_bytes=settings.max_total_upload_bytes,
    )

    if not submission.attachments:
        raise InvalidSubmissionError(NO_IMAGE_MESSAGE, reason="no_image")

    log.info(
        "submission_accepted",
        attachment_count=len(submission.attachments),
        total_bytes=submission.total_bytes,
    )

    bucket = ensure_bucket(settings.s3_bucket_name, settings=settings)
    assets = store_attachments(
        submission.attachments,
        submission_id=submission_id,
        bucket=bucket,
        prefix=settings.s3_key_prefix,
        expires_in=settings.presigned_url_expiry_seconds,
        settings=settings,
    )

    message_id = send_submission_notification(submission, assets, settings=settings)

    return SubmissionResult(
        submission_id=submission_id,
        message_id=message_id,
        assets=assets,
    )


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    AWS Lambda handler for contact form submissions.

    Args:
        event: API Gateway / Function URL event with a multipart body
        context: Lambda context

    Returns:
        Response dict with plain-text body
    """
    request_id = getattr(context, "aws_request_id", "local")

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    method = _get_method(event)

    log.info(
        "processing_contact_submission",
        method=method,
        content_length=_get_header(event, "content-length"),
        is_base64_encoded=bool(event.get("isBase64Encoded")),
    )

    if method is not None and method != "POST":
        log.warning("method_not_allowed", method=method)
        return _response(405, METHOD_NOT_ALLOWED_MESSAGE)

    try:
        settings = get_settings()
        logging.getLogger().setLevel(settings.log_level)
        result = process_submission(event, settings=settings)
    except ContactIntakeError as e:
        log.error(
            "contact_submission_failed",
            error_type=type(e).__name__,
            error=str(e),
            status_code=e.status_code,
            exc_info=True,
        )
        return _response(e.status_code, e.public_message)
    except Exception as e:
        log.error("lambda_handler_failed", error=str(e), exc_info=True)
        return _response(500, GENERIC_FAILURE_MESSAGE)
    finally:
        structlog.contextvars.clear_contextvars()

    log.info(
        "contact_submission_processed",
        request_id=request_id,
        submission_id=result.submission_id,
        message_id=result.message_id,
        assets=[asset.to_dict() for asset in result.assets],
    )

    return _response(200, SUCCESS_MESSAGE)
