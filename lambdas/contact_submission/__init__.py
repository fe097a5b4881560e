"""
ContactSubmission Lambda

Handles website contact form POSTs with image attachments.
Stores the images to S3 and emails the form with signed image links.

Flow:
    Browser form (multipart/form-data)
    → API Gateway / Function URL
    → This Lambda
    → S3 (images) + SES (notification)
"""

from lambdas.contact_submission.attachment_handler import (
    StoredAsset,
    store_attachment,
    store_attachments,
)
from lambdas.contact_submission.handler import (
    SubmissionResult,
    lambda_handler,
    process_submission,
)
from lambdas.contact_submission.multipart_parser import (
    Attachment,
    Submission,
    parse_submission,
)
from lambdas.contact_submission.notification import (
    render_notification_html,
    render_notification_text,
    send_submission_notification,
)

__all__ = [
    "Attachment",
    "StoredAsset",
    "Submission",
    "SubmissionResult",
    "lambda_handler",
    "parse_submission",
    "process_submission",
    "render_notification_html",
    "render_notification_text",
    "send_submission_notification",
    "store_attachment",
    "store_attachments",
]
