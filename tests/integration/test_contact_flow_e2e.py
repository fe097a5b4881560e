"""
End-to-end tests for the contact submission flow.

Each test posts a multipart form through the Lambda handler and checks
the resulting S3 objects, signed URLs, and SES notification.
"""

from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest

from intake.tools.email import send_ses_email
from tests.utils.form_generator import PNG_BYTES, MultipartFormBuilder

NOTIFICATION_SEND = "lambdas.contact_submission.notification.send_ses_email"


def sent_email_count(ses) -> int:
    """Number of emails moto recorded as sent."""
    return int(ses.get_send_quota()["SentLast24Hours"])


def list_keys(s3, bucket: str) -> list:
    """Object keys in the bucket, or [] if it does not exist."""
    try:
        response = s3.list_objects_v2(Bucket=bucket)
    except s3.exceptions.NoSuchBucket:
        return []
    return [obj["Key"] for obj in response.get("Contents", [])]


@pytest.mark.integration
class TestSuccessfulSubmission:
    """A valid form ends in stored images and one email."""

    def test_single_image_flow(self, integration_aws, submit, contact_form, photo_bytes):
        """Test Kis Éva's submission with one photo end to end."""
        s3 = integration_aws["s3"]
        bucket = integration_aws["bucket"]

        with patch(NOTIFICATION_SEND, wraps=send_ses_email) as send_spy:
            response = submit(contact_form)

        assert response["statusCode"] == 200
        assert response["body"] == "OK"

        # Bucket created and image stored with its declared type
        keys = list_keys(s3, bucket)
        assert len(keys) == 1
        assert keys[0].endswith("_photo.jpg")

        head = s3.head_object(Bucket=bucket, Key=keys[0])
        assert head["ContentType"] == "image/jpeg"
        assert head["ContentLength"] == len(photo_bytes)
        assert len(head["Metadata"]["submission_id"]) == 32

        stored = s3.get_object(Bucket=bucket, Key=keys[0])["Body"].read()
        assert stored == photo_bytes

        # Exactly one notification
        assert sent_email_count(integration_aws["ses"]) == 1
        send_spy.assert_called_once()

        kwargs = send_spy.call_args.kwargs
        assert kwargs["to_address"] == "owner@example.com"
        assert kwargs["reply_to"] == "e@x.hu"

        html = kwargs["body_html"]
        assert "Kis Éva" in html
        assert "Line1<br>Line2" in html
        assert html.count("<li>") == 1
        assert ">photo.jpg</a>" in html

        # Signed URL for the stored key, valid for 7 days
        href = html.split('href="', 1)[1].split('"', 1)[0]
        url = urlparse(href)
        query = parse_qs(url.query)
        assert url.path.endswith(keys[0])
        assert query["X-Amz-Expires"] == ["604800"]
        assert "X-Amz-Signature" in query

    def test_multiple_images_keep_order(self, integration_aws, submit):
        """Test three images become three objects and three ordered links."""
        builder = MultipartFormBuilder()
        builder.add_field("lastname", "Kis")
        builder.add_field("firstname", "Éva")
        builder.add_file("images", "elso.jpg", b"\xff\xd8" + b"1" * 100, "image/jpeg")
        builder.add_file("images", "masodik.png", PNG_BYTES, "image/png")
        builder.add_file("images", "harmadik.webp", b"RIFF" + b"3" * 100, "image/webp")

        with patch(NOTIFICATION_SEND, wraps=send_ses_email) as send_spy:
            response = submit(builder)

        assert response["statusCode"] == 200

        s3 = integration_aws["s3"]
        bucket = integration_aws["bucket"]
        keys = list_keys(s3, bucket)
        assert len(keys) == 3

        content_types = {
            key.rsplit("_", 1)[1]: s3.head_object(Bucket=bucket, Key=key)["ContentType"]
            for key in keys
        }
        assert content_types == {
            "elso.jpg": "image/jpeg",
            "masodik.png": "image/png",
            "harmadik.webp": "image/webp",
        }

        html = send_spy.call_args.kwargs["body_html"]
        assert html.count("<li>") == 3
        assert html.index("elso.jpg") < html.index("masodik.png") < html.index("harmadik.webp")

    def test_repeated_filename_distinct_keys(self, integration_aws, submit):
        """Test the same filename twice does not overwrite."""
        builder = MultipartFormBuilder()
        builder.add_file("images", "photo.jpg", b"a" * 10, "image/jpeg")
        builder.add_file("images", "photo.jpg", b"b" * 10, "image/jpeg")

        response = submit(builder)

        assert response["statusCode"] == 200
        assert len(list_keys(integration_aws["s3"], integration_aws["bucket"])) == 2

    def test_existing_bucket_reused(self, integration_aws, submit, contact_form):
        s3 = integration_aws["s3"]
        bucket = integration_aws["bucket"]
        s3.create_bucket(
            Bucket=bucket,
            CreateBucketConfiguration={"LocationConstraint": integration_aws["region"]},
        )
        s3.put_object(Bucket=bucket, Key="existing.jpg", Body=b"x")

        response = submit(contact_form)

        assert response["statusCode"] == 200
        assert "existing.jpg" in list_keys(s3, bucket)
        assert len(list_keys(s3, bucket)) == 2

    def test_generated_submission(self, integration_aws, submit, form_generator):
        """Test a randomized realistic submission."""
        builder = form_generator.submission(image_count=2, size_bytes=4096)

        response = submit(builder)

        assert response["statusCode"] == 200
        assert len(list_keys(integration_aws["s3"], integration_aws["bucket"])) == 2
        assert sent_email_count(integration_aws["ses"]) == 1


@pytest.mark.integration
class TestRejectedSubmission:
    """Invalid forms store nothing and send nothing."""

    def test_non_image_rejected(self, integration_aws, submit):
        builder = MultipartFormBuilder()
        builder.add_field("lastname", "Kis")
        builder.add_file("images", "a.jpg", b"\xff\xd8jpeg", "image/jpeg")
        builder.add_file("images", "doc.pdf", b"%PDF-1.4", "application/pdf")

        response = submit(builder)

        assert response["statusCode"] == 400
        assert response["body"] == "Nem kép."
        assert list_keys(integration_aws["s3"], integration_aws["bucket"]) == []
        assert sent_email_count(integration_aws["ses"]) == 0

    def test_no_image_rejected(self, integration_aws, submit):
        builder = MultipartFormBuilder()
        builder.add_field("lastname", "Kis")
        builder.add_field("desc", "Nincs mellékelve kép")

        response = submit(builder)

        assert response["statusCode"] == 400
        assert response["body"] == "Nincs kép."
        assert list_keys(integration_aws["s3"], integration_aws["bucket"]) == []
        assert sent_email_count(integration_aws["ses"]) == 0

    def test_oversize_rejected(self, integration_aws, submit, monkeypatch):
        monkeypatch.setenv("CONTACT_MAX_TOTAL_UPLOAD_BYTES", "1000")
        builder = MultipartFormBuilder()
        builder.add_file("images", "a.jpg", b"a" * 600, "image/jpeg")
        builder.add_file("images", "b.jpg", b"b" * 600, "image/jpeg")

        response = submit(builder)

        assert response["statusCode"] == 400
        assert response["body"] == "Túl nagy fájl."
        assert list_keys(integration_aws["s3"], integration_aws["bucket"]) == []

    def test_truncated_body_rejected(self, integration_aws, lambda_context, contact_form):
        from lambdas.contact_submission.handler import lambda_handler
        from tests.utils.form_generator import build_api_gateway_event

        event = build_api_gateway_event(
            contact_form.build(closed=False), contact_form.content_type
        )

        response = lambda_handler(event, lambda_context)

        assert response["statusCode"] == 400
        assert response["body"] == "Hibás űrlap."
        assert sent_email_count(integration_aws["ses"]) == 0


@pytest.mark.integration
class TestUpstreamFailure:
    """Collaborator failures after upload."""

    def test_unverified_sender_leaves_uploaded_images(
        self, integration_aws, submit, contact_form, monkeypatch
    ):
        """Test an SES rejection returns 502 and keeps the stored object."""
        monkeypatch.setenv("CONTACT_SES_FROM_ADDRESS", "unverified@example.org")

        response = submit(contact_form)

        assert response["statusCode"] == 502
        assert "SES send failed" in response["body"]
        assert len(list_keys(integration_aws["s3"], integration_aws["bucket"])) == 1
        assert sent_email_count(integration_aws["ses"]) == 0


@pytest.mark.integration
class TestSubmitterAddress:
    """The submitter's email only ever reaches SES in an accepted form."""

    @pytest.mark.parametrize("email", ["kis@példa.hu", "éva@x.hu"])
    def test_internationalized_email_still_delivers(self, integration_aws, submit, photo_bytes, email):
        builder = MultipartFormBuilder()
        builder.add_field("lastname", "Kis")
        builder.add_field("email", email)
        builder.add_file("images", "photo.jpg", photo_bytes, "image/jpeg")

        with patch(NOTIFICATION_SEND, wraps=send_ses_email) as send_spy:
            response = submit(builder)

        assert response["statusCode"] == 200
        reply_to = send_spy.call_args.kwargs["reply_to"]
        assert reply_to is None or reply_to.isascii()
        assert sent_email_count(integration_aws["ses"]) == 1


@pytest.mark.integration
class TestSettingsOverride:
    """Explicit settings drive the whole pipeline."""

    def test_override_without_environment_credentials(
        self, integration_aws, contact_form, monkeypatch
    ):
        from intake.config import Settings
        from lambdas.contact_submission.handler import process_submission
        from tests.utils.form_generator import build_api_gateway_event

        monkeypatch.delenv("CONTACT_STORAGE_CONNECTION_STRING")
        settings = Settings(
            storage_connection_string="AccessKeyId=testing;SecretAccessKey=testing;Region=us-west-2",
            s3_bucket_name="override-uploads",
        )
        event = build_api_gateway_event(contact_form.build(), contact_form.content_type)

        result = process_submission(event, settings=settings)

        assert len(result.assets) == 1
        assert len(list_keys(integration_aws["s3"], "override-uploads")) == 1
        assert list_keys(integration_aws["s3"], integration_aws["bucket"]) == []
        assert sent_email_count(integration_aws["ses"]) == 1
