"""
S3 Tools

Tools for storing submitted images in S3 and issuing
time-limited read access to them.
"""

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
import structlog

from intake.config import Settings, get_settings
from intake.exceptions import S3Error

log = structlog.get_logger()

_MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}


def _get_client(settings: Settings):
    """Get S3 client signing with SigV4 (required for presigned URLs)."""
    return boto3.client(
        "s3",
        config=Config(signature_version="s3v4"),
        **settings.s3_config,
    )


def build_s3_uri(bucket: str, key: str) -> str:
    """Format an s3:// URI for logging."""
    return f"s3://{bucket}/{key}"


def ensure_bucket(
    bucket: str | None = None,
    *,
    settings: Settings | None = None,
) -> str:
    """
    Create the bucket if it does not exist yet.

    Args:
        bucket: Override bucket name (default: from settings)
        settings: Settings to build the client from (default: environment)

    Returns:
        Bucket name

    Raises:
        S3Error: If the bucket cannot be checked or created
    """
    settings = settings or get_settings()
    client = _get_client(settings)
    bucket_name = bucket or settings.s3_bucket_name

    try:
        client.head_bucket(Bucket=bucket_name)
        return bucket_name
    except ClientError as e:
        error_code = e.response["Error"]["Code"]
        if error_code not in _MISSING_BUCKET_CODES:
            log.error("s3_head_bucket_failed", bucket=bucket_name, error=str(e))
            raise S3Error(
                operation="head_bucket",
                bucket=bucket_name,
                error_message=str(e),
            ) from e
    except BotoCoreError as e:
        log.error("s3_head_bucket_failed", bucket=bucket_name, error=str(e))
        raise S3Error(
            operation="head_bucket",
            bucket=bucket_name,
            error_message=str(e),
        ) from e

    log.info("creating_bucket", bucket=bucket_name, region=client.meta.region_name)

    create_params = {"Bucket": bucket_name}
    # us-east-1 rejects an explicit LocationConstraint
    if client.meta.region_name != "us-east-1":
        create_params["CreateBucketConfiguration"] = {
            "LocationConstraint": client.meta.region_name,
        }

    try:
        client.create_bucket(**create_params)
    except ClientError as e:
        # Lost a race with a concurrent invocation
        if e.response["Error"]["Code"] == "BucketAlreadyOwnedByYou":
            return bucket_name
        log.error("s3_create_bucket_failed", bucket=bucket_name, error=str(e))
        raise S3Error(
            operation="create_bucket",
            bucket=bucket_name,
            error_message=str(e),
        ) from e
    except BotoCoreError as e:
        log.error("s3_create_bucket_failed", bucket=bucket_name, error=str(e))
        raise S3Error(
            operation="create_bucket",
            bucket=bucket_name,
            error_message=str(e),
        ) from e

    log.info("bucket_created", bucket=bucket_name)
    return bucket_name


def upload_object(
    content: bytes,
    key: str,
    *,
    content_type: str,
    metadata: dict[str, str] | None = None,
    bucket: str | None = None,
    settings: Settings | None = None,
) -> str:
    """
    Upload bytes to S3 under an exact key.

    Args:
        content: Object body
        key: Object key (already sanitized by the caller)
        content_type: MIME type served back on GET
        metadata: Optional user metadata (ASCII values only)
        bucket: Override bucket name
        settings: Settings to build the client from

    Returns:
        S3 URI of the uploaded object

    Raises:
        S3Error: If upload fails
    """
    settings = settings or get_settings()
    client = _get_client(settings)
    bucket_name = bucket or settings.s3_bucket_name

    log.info(
        "uploading_object",
        bucket=bucket_name,
        key=key,
        content_type=content_type,
        size_bytes=len(content),
    )

    put_params = {
        "Bucket": bucket_name,
        "Key": key,
        "Body": content,
        "ContentType": content_type,
    }

    if metadata:
        put_params["Metadata"] = metadata

    try:
        client.put_object(**put_params)
    except (ClientError, BotoCoreError) as e:
        log.error(
            "s3_upload_failed",
            bucket=bucket_name,
            key=key,
            error=str(e),
        )
        raise S3Error(
            operation="upload",
            bucket=bucket_name,
            key=key,
            error_message=str(e),
        ) from e

    s3_uri = build_s3_uri(bucket_name, key)
    log.info("object_uploaded", s3_uri=s3_uri)

    return s3_uri


def get_object_url(
    key: str,
    *,
    expires_in: int | None = None,
    bucket: str | None = None,
    settings: Settings | None = None,
) -> str:
    """
    Generate a presigned, read-only URL for one object.

    Args:
        key: Object key
        expires_in: URL lifetime in seconds (default: from settings)
        bucket: Override bucket name
        settings: Settings to build the client from

    Returns:
        Object URL with the signed query string appended

    Raises:
        S3Error: If signing fails
    """
    settings = settings or get_settings()
    client = _get_client(settings)
    bucket_name = bucket or settings.s3_bucket_name
    lifetime = expires_in or settings.presigned_url_expiry_seconds

    try:
        url = client.generate_presigned_url(
            "get_object",
            Params={"Bucket": bucket_name, "Key": key},
            ExpiresIn=lifetime,
        )
    except (ClientError, BotoCoreError) as e:
        log.error(
            "presign_failed",
            bucket=bucket_name,
            key=key,
            error=str(e),
        )
        raise S3Error(
            operation="presign",
            bucket=bucket_name,
            key=key,
            error_message=str(e),
        ) from e

    log.debug(
        "presigned_url_generated",
        s3_uri=build_s3_uri(bucket_name, key),
        expires_in=lifetime,
    )

    return url
