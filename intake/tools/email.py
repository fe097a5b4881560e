"""
Email Tools

Tools for SES email delivery and address validation.
"""

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from email_validator import EmailNotValidError, validate_email
import structlog

from intake.config import Settings, get_settings
from intake.exceptions import InvalidEmailFormatError, SESError

log = structlog.get_logger()


def _get_client(settings: Settings):
    """Get SES client."""
    return boto3.client("ses", **settings.ses_config)


def _utf8(data: str) -> dict[str, str]:
    return {"Data": data, "Charset": "UTF-8"}


def send_ses_email(
    to_address: str,
    subject: str,
    body_text: str,
    *,
    body_html: str | None = None,
    reply_to: str | None = None,
    settings: Settings | None = None,
) -> str:
    """
    Send one notification email via SES.

    Sender identity and configuration set come from settings.

    Args:
        to_address: Recipient email address
        subject: Email subject
        body_text: Plain text body
        body_html: Optional HTML alternative
        reply_to: Optional Reply-To address (must be ASCII)
        settings: Settings to build the client from (default: environment)

    Returns:
        SES message ID

    Raises:
        SESError: If send fails
    """
    settings = settings or get_settings()
    client = _get_client(settings)

    message_body = {"Text": _utf8(body_text)}
    if body_html:
        message_body["Html"] = _utf8(body_html)

    send_params = {
        "Source": settings.ses_source,
        "Destination": {"ToAddresses": [to_address]},
        "Message": {"Subject": _utf8(subject), "Body": message_body},
    }

    if reply_to:
        send_params["ReplyToAddresses"] = [reply_to]

    if settings.ses_configuration_set:
        send_params["ConfigurationSetName"] = settings.ses_configuration_set

    log.info(
        "sending_ses_email",
        to=to_address,
        subject=subject[:50],
        reply_to=reply_to,
    )

    try:
        response = client.send_email(**send_params)
    except ClientError as e:
        error = e.response["Error"]
        error_message = f"{error['Code']}: {error['Message']}"
        log.error("ses_send_failed", to=to_address, error_message=error_message)
        raise SESError(
            operation="send",
            recipient=to_address,
            error_message=error_message,
        ) from e
    except BotoCoreError as e:
        log.error("ses_send_failed", to=to_address, error_message=str(e))
        raise SESError(
            operation="send",
            recipient=to_address,
            error_message=str(e),
        ) from e

    message_id = response["MessageId"]
    log.info("ses_email_sent", message_id=message_id, to=to_address)

    return message_id


def validate_email_address(email: str, *, ascii_only: bool = False) -> str:
    """
    Validate an email address format.

    Uses email-validator library for RFC compliance.

    Args:
        email: Email address to validate
        ascii_only: Reject internationalized local parts and return the
            domain in Punycode, as SES header fields require

    Returns:
        Normalized email address

    Raises:
        InvalidEmailFormatError: If invalid
    """
    try:
        result = validate_email(
            email,
            check_deliverability=False,
            allow_smtputf8=not ascii_only,
        )
    except EmailNotValidError as e:
        raise InvalidEmailFormatError(
            email_address=email,
            expected_pattern="RFC 5321" if not ascii_only else "RFC 5321, ASCII local part",
        ) from e
    return result.ascii_email if ascii_only else result.normalized
