"""
Multipart Parser Module

Decodes a multipart/form-data contact form into text fields and image
attachments, validating attachments while their bytes stream in.

python-multipart drives the decode through callbacks. The callbacks only
update a SubmissionCollector; a validation failure moves the collector to
REJECTED, the rest of the body is drained, and parse_submission raises
the first recorded error once the whole body has been consumed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable

import structlog
from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from intake.exceptions import InvalidSubmissionError

log = structlog.get_logger()

# Client-facing messages
MALFORMED_FORM_MESSAGE = "Hibás űrlap."
NOT_AN_IMAGE_MESSAGE = "Nem kép."
FILE_TOO_LARGE_MESSAGE = "Túl nagy fájl."

DEFAULT_FILE_CONTENT_TYPE = "application/octet-stream"
CHUNK_SIZE = 64 * 1024


@dataclass
class Attachment:
    """One accepted image from the form."""

    filename: str
    mime_type: str
    content: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.content)


@dataclass
class Submission:
    """Decoded form: text fields plus image attachments in receipt order."""

    fields: dict[str, str] = field(default_factory=dict)
    attachments: list[Attachment] = field(default_factory=list)

    def get_field(self, name: str) -> str:
        """Field value, or empty string when the form omitted it."""
        return self.fields.get(name, "")

    @property
    def total_bytes(self) -> int:
        return sum(attachment.size_bytes for attachment in self.attachments)


class CollectorState(str, Enum):
    """Lifecycle of a SubmissionCollector."""

    COLLECTING = "COLLECTING"
    REJECTED = "REJECTED"
    COMPLETE = "COMPLETE"


class PartKind(str, Enum):
    """How the bytes of the current part are treated."""

    FIELD = "FIELD"          # text field, stored by name
    IMAGE = "IMAGE"          # file under the image field, validated and kept
    DISCARDED = "DISCARDED"  # file under any other field, drained


def _decode(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


class SubmissionCollector:
    """
    Accumulates python-multipart callbacks into a Submission.

    Holds every per-request accumulator (fields, attachments, running
    byte total) so nothing is captured from an enclosing scope.
    """

    def __init__(
        self,
        *,
        image_field: str,
        allowed_mime_types: Iterable[str],
        max_total_bytes: int,
    ) -> None:
        self.image_field = image_field
        self.allowed_mime_types = frozenset(t.lower() for t in allowed_mime_types)
        self.max_total_bytes = max_total_bytes

        self.state = CollectorState.COLLECTING
        self.error: InvalidSubmissionError | None = None
        self.ended = False
        self.total_bytes = 0
        self.fields: dict[str, str] = {}
        self.attachments: list[Attachment] = []

        self._reset_part()

    def _reset_part(self) -> None:
        self._header_name = bytearray()
        self._header_value = bytearray()
        self._headers: dict[bytes, bytes] = {}
        self._part_kind = PartKind.DISCARDED
        self._part_name = ""
        self._part_filename = ""
        self._part_mime_type = ""
        self._chunks: list[bytes] = []

    def callbacks(self) -> dict[str, Callable]:
        """Callback table for MultipartParser."""
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_end": self.on_end,
        }

    @property
    def rejected(self) -> bool:
        return self.state == CollectorState.REJECTED

    def reject(self, error: InvalidSubmissionError) -> None:
        """Record the first failure; later ones are ignored."""
        if self.rejected:
            return
        self.state = CollectorState.REJECTED
        self.error = error
        self._chunks = []
        log.info(
            "submission_rejected_while_parsing",
            reason=error.reason,
            total_bytes=self.total_bytes,
        )

    # --- parser callbacks ---

    def on_part_begin(self) -> None:
        self._reset_part()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_name += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[bytes(self._header_name).lower()] = bytes(self._header_value)
        self._header_name = bytearray()
        self._header_value = bytearray()

    def on_headers_finished(self) -> None:
        disposition, options = parse_options_header(
            self._headers.get(b"content-disposition", b"")
        )
        if disposition.lower() != b"form-data" or b"name" not in options:
            self.reject(
                InvalidSubmissionError(
                    MALFORMED_FORM_MESSAGE,
                    reason="malformed_form",
                    detail="part without form-data name",
                )
            )
            return

        self._part_name = _decode(options[b"name"])

        if b"filename" not in options:
            self._part_kind = PartKind.FIELD
            return

        if self._part_name != self.image_field:
            self._part_kind = PartKind.DISCARDED
            return

        self._part_kind = PartKind.IMAGE
        self._part_filename = _decode(options[b"filename"])
        mime_type, _ = parse_options_header(self._headers.get(b"content-type", b""))
        self._part_mime_type = (
            _decode(mime_type).lower() if mime_type else DEFAULT_FILE_CONTENT_TYPE
        )

        if self._part_mime_type not in self.allowed_mime_types:
            self.reject(
                InvalidSubmissionError(
                    NOT_AN_IMAGE_MESSAGE,
                    reason="not_an_image",
                    filename=self._part_filename,
                    mime_type=self._part_mime_type,
                )
            )

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if self.rejected or self._part_kind == PartKind.DISCARDED:
            return

        chunk = data[start:end]

        if self._part_kind == PartKind.IMAGE:
            self.total_bytes += len(chunk)
            if self.total_bytes > self.max_total_bytes:
                self.reject(
                    InvalidSubmissionError(
                        FILE_TOO_LARGE_MESSAGE,
                        reason="too_large",
                        filename=self._part_filename,
                        max_total_bytes=self.max_total_bytes,
                    )
                )
                return

        self._chunks.append(chunk)

    def on_part_end(self) -> None:
        if self.rejected:
            return

        if self._part_kind == PartKind.FIELD:
            self.fields[self._part_name] = _decode(b"".join(self._chunks))
        elif self._part_kind == PartKind.IMAGE:
            attachment = Attachment(
                filename=self._part_filename,
                mime_type=self._part_mime_type,
                content=b"".join(self._chunks),
            )
            self.attachments.append(attachment)
            log.debug(
                "attachment_received",
                filename=attachment.filename,
                mime_type=attachment.mime_type,
                size_bytes=attachment.size_bytes,
            )

        self._chunks = []

    def on_end(self) -> None:
        self.ended = True

    # --- completion ---

    def finish(self) -> Submission:
        """
        Close the collector once the body has been drained.

        Raises:
            InvalidSubmissionError: The first rejection, or malformed_form
                if the closing boundary never arrived
        """
        if not self.rejected and not self.ended:
            self.reject(
                InvalidSubmissionError(
                    MALFORMED_FORM_MESSAGE,
                    reason="malformed_form",
                    detail="body ended before closing boundary",
                )
            )

        if self.error is not None:
            raise self.error

        self.state = CollectorState.COMPLETE
        return Submission(fields=dict(self.fields), attachments=list(self.attachments))


def parse_submission(
    body: bytes,
    content_type: str | None,
    *,
    image_field: str,
    allowed_mime_types: Iterable[str],
    max_total_bytes: int,
    chunk_size: int = CHUNK_SIZE,
) -> Submission:
    """
    Decode a multipart/form-data body into a Submission.

    Args:
        body: Raw request body
        content_type: Request Content-Type header (must carry a boundary)
        image_field: Field name of the image attachments
        allowed_mime_types: Accepted declared MIME types
        max_total_bytes: Cap on the summed size of all attachments
        chunk_size: Bytes fed to the parser per write

    Returns:
        Submission with fields and attachments in receipt order

    Raises:
        InvalidSubmissionError: Unparseable body, disallowed type or oversize
    """
    if not content_type:
        raise InvalidSubmissionError(
            MALFORMED_FORM_MESSAGE,
            reason="malformed_form",
            detail="missing content type",
        )

    media_type, params = parse_options_header(content_type)
    boundary = params.get(b"boundary")

    if media_type.lower() != b"multipart/form-data" or not boundary:
        raise InvalidSubmissionError(
            MALFORMED_FORM_MESSAGE,
            reason="malformed_form",
            content_type=content_type,
        )

    collector = SubmissionCollector(
        image_field=image_field,
        allowed_mime_types=allowed_mime_types,
        max_total_bytes=max_total_bytes,
    )
    parser = MultipartParser(boundary, collector.callbacks())

    log.debug("parsing_multipart_body", size_bytes=len(body))

    try:
        for offset in range(0, len(body), chunk_size):
            parser.write(body[offset:offset + chunk_size])
        parser.finalize()
    except MultipartParseError as e:
        collector.reject(
            InvalidSubmissionError(
                MALFORMED_FORM_MESSAGE,
                reason="malformed_form",
                detail=str(e),
            )
        )

    submission = collector.finish()

    log.info(
        "multipart_body_parsed",
        field_names=sorted(submission.fields),
        attachment_count=len(submission.attachments),
        total_bytes=submission.total_bytes,
    )

    return submission
