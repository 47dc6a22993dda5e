"""Raw RFC 2822 / MIME text to :class:`Message` tree.

The parser never raises on malformed input: unreadable header lines are
skipped, a missing boundary degrades to a single leaf, and a missing
blank line means an empty body.  Every such case is reported through
:mod:`mailtree.diagnostics` on the root message.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from . import diagnostics
from .body import Body
from .config import MailSettings
from .envelope import split_envelope
from .header import Header

if TYPE_CHECKING:
    from .message import Message

logger = structlog.get_logger()

_HEADER_BODY_RE = re.compile(r"\r?\n[ \t]*\r?\n")
_LEADING_BLANK_LINE_RE = re.compile(r"\A[ \t]*\r?\n")


class MimeParser:
    """Stateless parser: raw message text → :class:`Message`."""

    def __init__(self, settings: MailSettings | None = None) -> None:
        self._settings = settings

    def parse(self, raw: str | bytes) -> Message:
        from .message import Message

        message = Message(settings=self._settings)
        self.parse_into(message, raw)
        return message

    def parse_into(self, message: Message, raw: str | bytes) -> None:
        """Populate an empty *message* from *raw*."""
        if isinstance(raw, str):
            raw = raw.encode("utf-8", errors="surrogateescape")
        message.raw_source = raw.strip()
        text = raw.decode("utf-8", errors="surrogateescape").lstrip()

        envelope, text = split_envelope(text)
        message.envelope = envelope
        self._parse_entity(message, text, root=message)
        logger.debug(
            "message_parsed",
            fields=len(message.header),
            parts=len(message.parts),
            envelope=envelope is not None,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _parse_entity(self, message: Message, text: str, *, root: Message) -> None:
        header_text, body_text = _split_header_body(text)
        message.header = Header.parse(header_text, warnings_to=root)

        content_type = message.header.get("Content-Type")
        if content_type is not None and content_type.raw_value and content_type.value.is_multipart:
            boundary = content_type.value.params.get("boundary")
            if not boundary:
                diagnostics.warn(
                    root,
                    "multipart_without_boundary",
                    "Multipart message has no boundary; treating body as a single part",
                    content_type=content_type.raw_value,
                )
            else:
                sections = _split_multipart(body_text, boundary)
                if sections:
                    for section in sections:
                        part = message.add_part()
                        self._parse_entity(part, section, root=root)
                    return

        message.body = Body(body_text, message._transfer_encoding())


def _split_header_body(text: str) -> tuple[str, str]:
    """Split at the first blank line.  No blank line means no body."""
    leading = _LEADING_BLANK_LINE_RE.match(text)
    if leading:
        return "", text[leading.end():]
    match = _HEADER_BODY_RE.search(text)
    if not match:
        return text, ""
    return text[:match.start()], text[match.end():]


def _split_multipart(text: str, boundary: str) -> list[str]:
    """Return the sections between ``--boundary`` delimiter lines.

    The preamble and epilogue are dropped.  The line break before a
    delimiter belongs to the delimiter, not to the preceding section.
    """
    delimiter = re.compile(
        r"(?:\r?\n)?^--" + re.escape(boundary) + r"(--)?[ \t]*\r?$",
        re.MULTILINE,
    )
    sections: list[str] = []
    start: int | None = None
    for match in delimiter.finditer(text):
        if start is not None:
            sections.append(text[start:match.start()])
        if match.group(1):
            return sections
        start = match.end()
        if text.startswith("\n", start):
            start += 1
    if start is not None:
        sections.append(text[start:])
    return sections


def read(path: str | os.PathLike[str], *, settings: MailSettings | None = None) -> Message:
    """Parse the message stored in the file at *path*."""
    return MimeParser(settings=settings).parse(Path(path).read_bytes())
