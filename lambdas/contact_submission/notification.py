"""
Notification Module

Renders the submission notification (HTML and plain text) and sends it
to the configured recipient through SES.
"""

import structlog
from jinja2 import Environment, StrictUndefined
from markupsafe import Markup, escape

from intake.config import Settings
from intake.exceptions import InvalidEmailFormatError
from intake.tools.email import send_ses_email, validate_email_address
from lambdas.contact_submission.attachment_handler import StoredAsset
from lambdas.contact_submission.multipart_parser import Submission

log = structlog.get_logger()

# Form fields rendered in the notification, in display order
NOTIFICATION_FIELDS = ("lastname", "firstname", "phone", "email", "desc")

HTML_TEMPLATE = """\
<p><b>Név:</b> {{ lastname }} {{ firstname }}</p>
<p><b>Telefon:</b> {{ phone }}</p>
<p><b>Email:</b> {{ email }}</p>
<p><b>Leírás:</b><br>{{ desc | nl2br }}</p>
<p><b>Képek:</b></p>
<ul>{% for asset in assets %}<li><a href="{{ asset.access_url | safe }}">{{ asset.display_name }}</a></li>{% endfor %}</ul>
"""

TEXT_TEMPLATE = """\
Név: {{ lastname }} {{ firstname }}
Telefon: {{ phone }}
Email: {{ email }}
Leírás:
{{ desc }}

Képek:
{% for asset in assets %}- {{ asset.display_name }}: {{ asset.access_url }}
{% endfor %}"""


def _normalize_newlines(value: str) -> str:
    return value.replace("\r\n", "\n").replace("\r", "\n")


def nl2br(value: str) -> Markup:
    """Escape a value and turn its line breaks into <br>."""
    return escape(_normalize_newlines(value)).replace("\n", Markup("<br>"))


_html_env = Environment(autoescape=True, undefined=StrictUndefined)
_html_env.filters["nl2br"] = nl2br
_html_template = _html_env.from_string(HTML_TEMPLATE)
_text_template = Environment(autoescape=False, undefined=StrictUndefined).from_string(TEXT_TEMPLATE)


def _template_vars(submission: Submission, assets: list[StoredAsset]) -> dict:
    variables = {name: submission.get_field(name) for name in NOTIFICATION_FIELDS}
    variables["assets"] = assets
    return variables


def render_notification_html(
    submission: Submission,
    assets: list[StoredAsset],
) -> str:
    """
    Render the HTML body.

    Field values and display names are HTML-escaped; signed URLs are
    used as-is for the link targets.
    """
    return _html_template.render(**_template_vars(submission, assets))


def render_notification_text(
    submission: Submission,
    assets: list[StoredAsset],
) -> str:
    """Render the plain-text alternative body."""
    variables = _template_vars(submission, assets)
    variables["desc"] = _normalize_newlines(variables["desc"])
    return _text_template.render(**variables)


def _reply_to_for(submission: Submission) -> str | None:
    """Submitter's address when SES accepts it as Reply-To (ASCII, Punycode domain)."""
    email = submission.get_field("email").strip()
    if not email:
        return None

    try:
        return validate_email_address(email, ascii_only=True)
    except InvalidEmailFormatError:
        log.info("reply_to_skipped_invalid_address", email=email)
        return None


def send_submission_notification(
    submission: Submission,
    assets: list[StoredAsset],
    *,
    settings: Settings,
) -> str:
    """
    Send the notification email for one submission.

    Args:
        submission: Decoded form
        assets: Uploaded images with signed URLs, in receipt order
        settings: Recipient, sender and subject configuration

    Returns:
        SES message ID

    Raises:
        SESError: If send fails
    """
    log.info(
        "sending_submission_notification",
        to=settings.to_email,
        link_count=len(assets),
    )

    return send_ses_email(
        to_address=settings.to_email,
        subject=settings.notification_subject,
        body_text=render_notification_text(submission, assets),
        body_html=render_notification_html(submission, assets),
        reply_to=_reply_to_for(submission),
        settings=settings,
    )
