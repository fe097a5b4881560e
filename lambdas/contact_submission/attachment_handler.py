"""
Attachment Handler Module

Stores submitted images to S3 one at a time and signs a read-only URL
for each, producing the links embedded in the notification email.
"""

import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from intake.config import Settings
from intake.tools.s3 import get_object_url, upload_object
from lambdas.contact_submission.multipart_parser import Attachment

log = structlog.get_logger()

UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")
MAX_FILENAME_LENGTH = 200


@dataclass(frozen=True)
class StoredAsset:
    """
    An uploaded image and its signed link.

    Note on filenames:
        - `display_name`: Original filename, shown as the link text
        - `s3_key`: Timestamped key with every unsafe character replaced
    """

    display_name: str
    access_url: str
    s3_key: str
    content_type: str
    size_bytes: int

    def to_dict(self) -> dict:
        """Convert to dictionary for logging."""
        return {
            "display_name": self.display_name,
            "s3_key": self.s3_key,
            "content_type": self.content_type,
            "size_bytes": self.size_bytes,
        }


def _sanitize_filename(filename: str) -> str:
    """
    Sanitize filename for use in an S3 key and URL.

    - Replaces every character outside [A-Za-z0-9_.-] with '_'
    - Limits length, keeping the extension
    """
    safe_name = UNSAFE_KEY_CHARS.sub("_", filename)

    if len(safe_name) > MAX_FILENAME_LENGTH:
        suffix = os.path.splitext(safe_name)[1][:20]
        safe_name = f"{safe_name[:150]}{suffix}"

    return safe_name


def _build_s3_key(filename: str, prefix: str = "") -> str:
    """
    Build S3 key for an uploaded image.

    Format: {prefix}{timestamp}_{sanitized filename}

    The microsecond timestamp keeps keys distinct when the same
    filename is submitted repeatedly.
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
    return f"{prefix}{timestamp}_{_sanitize_filename(filename)}"


def _ascii_metadata(value: str) -> str:
    """S3 user metadata must be ASCII."""
    return value.encode("ascii", errors="backslashreplace").decode("ascii")


def store_attachment(
    attachment: Attachment,
    *,
    submission_id: str,
    bucket: str,
    prefix: str = "",
    expires_in: int,
    settings: Settings | None = None,
) -> StoredAsset:
    """
    Upload one attachment and sign a read URL for it.

    Args:
        attachment: Accepted image from the form
        submission_id: Identifier of the submission, stored as metadata
        bucket: Target S3 bucket
        prefix: S3 key prefix
        expires_in: Lifetime of the signed URL in seconds
        settings: Storage configuration (default: environment)

    Returns:
        StoredAsset with the original name and the signed URL

    Raises:
        S3Error: If upload or signing fails
    """
    s3_key = _build_s3_key(attachment.filename, prefix)

    log.info(
        "storing_attachment",
        filename=attachment.filename,
        bucket=bucket,
        key=s3_key,
        content_type=attachment.mime_type,
        size_bytes=attachment.size_bytes,
    )

    upload_object(
        attachment.content,
        s3_key,
        content_type=attachment.mime_type,
        metadata={
            "submission_id": submission_id,
            "original_filename": _ascii_metadata(attachment.filename),
        },
        bucket=bucket,
        settings=settings,
    )

    access_url = get_object_url(
        s3_key,
        expires_in=expires_in,
        bucket=bucket,
        settings=settings,
    )

    return StoredAsset(
        display_name=attachment.filename,
        access_url=access_url,
        s3_key=s3_key,
        content_type=attachment.mime_type,
        size_bytes=attachment.size_bytes,
    )


def store_attachments(
    attachments: list[Attachment],
    *,
    submission_id: str,
    bucket: str,
    prefix: str = "",
    expires_in: int,
    settings: Settings | None = None,
) -> list[StoredAsset]:
    """
    Store all attachments sequentially, in receipt order.

    The first failure aborts the loop. Objects uploaded before it
    stay in the bucket.

    Returns:
        StoredAsset list in the same order as the attachments

    Raises:
        S3Error: If any upload or signing fails
    """
    stored: list[StoredAsset] = []

    for attachment in attachments:
        try:
            asset = store_attachment(
                attachment,
                submission_id=submission_id,
                bucket=bucket,
                prefix=prefix,
                expires_in=expires_in,
                settings=settings,
            )
        except Exception:
            log.error(
                "attachment_processing_failed",
                filename=attachment.filename,
                stored_count=len(stored),
                orphaned_keys=[asset.s3_key for asset in stored],
            )
            raise
        stored.append(asset)

    log.info(
        "attachments_processed",
        stored_count=len(stored),
        total_bytes=sum(asset.size_bytes for asset in stored),
    )

    return stored
