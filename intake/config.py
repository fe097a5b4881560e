"""
Configuration Management

Pydantic-settings based configuration for the contact intake endpoint.
All settings can be overridden via environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from intake.exceptions import ConfigurationError

# Connection string keys -> boto3 client keyword arguments
_CONNECTION_STRING_KEYS = {
    "accesskeyid": "aws_access_key_id",
    "secretaccesskey": "aws_secret_access_key",
    "sessiontoken": "aws_session_token",
    "region": "region_name",
    "endpointurl": "endpoint_url",
}
_REQUIRED_CONNECTION_KEYS = ("aws_access_key_id", "aws_secret_access_key")


def parse_storage_connection_string(value: str) -> dict[str, str]:
    """
    Parse a storage connection string into boto3 client arguments.

    Format: AccessKeyId=...;SecretAccessKey=...[;SessionToken=...][;Region=...][;EndpointUrl=...]

    Keys are case-insensitive. Values may contain '='.

    Raises:
        ConfigurationError: If a segment is malformed, a key is unknown,
            or the access key pair is incomplete
    """
    config: dict[str, str] = {}

    for segment in value.split(";"):
        segment = segment.strip()
        if not segment:
            continue

        name, sep, item = segment.partition("=")
        if not sep or not item.strip():
            raise ConfigurationError(
                setting="storage_connection_string",
                error_message=f"Malformed segment '{name.strip()}'",
            )

        key = _CONNECTION_STRING_KEYS.get(name.strip().lower())
        if key is None:
            raise ConfigurationError(
                setting="storage_connection_string",
                error_message=f"Unknown key '{name.strip()}'",
            )
        config[key] = item.strip()

    missing = [key for key in _REQUIRED_CONNECTION_KEYS if key not in config]
    if missing:
        raise ConfigurationError(
            setting="storage_connection_string",
            error_message=f"Missing {', '.join(missing)}",
        )

    return config


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with CONTACT_ and are case-insensitive.
    Example: CONTACT_S3_BUCKET_NAME=my-uploads
    """

    model_config = SettingsConfigDict(
        env_prefix="CONTACT_",
        env_file=[".env.local", ".env"],  # Try .env.local first
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    storage_connection_string: str | None = Field(
        default=None,
        description="Object storage credential (AccessKeyId=...;SecretAccessKey=...)",
    )
    s3_bucket_name: str = Field(
        default="uploads",
        description="S3 bucket receiving uploaded images",
    )
    s3_key_prefix: str = Field(
        default="",
        description="Prefix for uploaded image keys",
    )
    s3_endpoint_url: str | None = Field(
        default=None,
        description="S3 endpoint URL (for local development)",
    )
    presigned_url_expiry_seconds: int = Field(
        default=7 * 24 * 60 * 60,
        ge=1,
        le=7 * 24 * 60 * 60,  # SigV4 maximum
        description="Lifetime of the signed read URLs in the notification",
    )

    # Form Configuration
    image_field_name: str = Field(
        default="images",
        description="Multipart field name carrying image attachments",
    )
    allowed_image_types: list[str] = Field(
        default=["image/jpeg", "image/png", "image/webp", "image/gif"],
        description="Accepted declared MIME types for attachments",
    )
    max_total_upload_bytes: int = Field(
        default=50 * 1024 * 1024,
        ge=1,
        description="Cap on the summed size of all attachments in one submission",
    )

    # SES Configuration
    to_email: str | None = Field(
        default=None,
        description="Recipient of the submission notification",
    )
    ses_from_address: str = Field(
        default="weboldal@example.com",
        description="From address for notification emails",
    )
    ses_from_name: str = Field(
        default="Weboldal",
        description="Display name for notification emails",
    )
    notification_subject: str = Field(
        default="Új űrlap beküldés",
        description="Subject line of the notification email",
    )
    ses_configuration_set: str | None = Field(
        default=None,
        description="SES configuration set for tracking",
    )
    ses_endpoint_url: str | None = Field(
        default=None,
        description="SES endpoint URL (use 'mock' for local)",
    )
    ses_access_key_id: str | None = Field(
        default=None,
        description="SES API access key id (default credential chain if unset)",
    )
    ses_secret_access_key: str | None = Field(
        default=None,
        description="SES API secret access key",
    )

    # AWS Configuration
    aws_region: str = Field(
        default="eu-central-1",
        description="AWS region",
    )

    # Application Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    @property
    def s3_config(self) -> dict:
        """
        S3 client configuration.

        Raises:
            ConfigurationError: If the storage connection string is missing or invalid
        """
        if not self.storage_connection_string:
            raise ConfigurationError(
                setting="storage_connection_string",
                error_message="Missing storage connection string",
            )

        config = {"region_name": self.aws_region}
        if self.s3_endpoint_url and self.s3_endpoint_url != "mock":
            config["endpoint_url"] = self.s3_endpoint_url
        config.update(parse_storage_connection_string(self.storage_connection_string))
        return config

    @property
    def ses_config(self) -> dict:
        """SES client configuration."""
        config = {"region_name": self.aws_region}
        if self.ses_endpoint_url and self.ses_endpoint_url != "mock":
            config["endpoint_url"] = self.ses_endpoint_url
        if self.ses_access_key_id and self.ses_secret_access_key:
            config["aws_access_key_id"] = self.ses_access_key_id
            config["aws_secret_access_key"] = self.ses_secret_access_key
        return config

    @property
    def ses_source(self) -> str:
        """Sender identity with display name."""
        if self.ses_from_name:
            return f"{self.ses_from_name} <{self.ses_from_address}>"
        return self.ses_from_address


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are loaded only once per container.
    Call get_settings.cache_clear() in tests after changing the environment.
    """
    return Settings()
