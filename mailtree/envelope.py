"""mbox envelope-line extraction.

A message stored in an mbox file starts with ``From <addr> <date>``
(no colon).  The line is not part of the RFC 2822 header block, so it is
split off before header tokenising and exposed separately.
"""

from __future__ import annotations

import email.utils
import re
from dataclasses import dataclass
from datetime import datetime

_ENVELOPE_RE = re.compile(r"\AFrom ([^\r\n]*)(?:\r\n|\r|\n|\Z)")


@dataclass
class Envelope:
    """The parsed ``From `` line of an mbox entry."""

    raw: str
    from_address: str | None
    date: datetime | None


def split_envelope(text: str) -> tuple[Envelope | None, str]:
    """Strip a leading envelope line from *text*.

    Returns ``(envelope, rest)``.  When there is no envelope line the
    envelope is ``None`` and *text* is returned unchanged.  Parts of the
    line that cannot be interpreted degrade to ``None``.
    """
    match = _ENVELOPE_RE.match(text)
    if not match:
        return None, text
    raw = match.group(1).strip()
    address, _, date_text = raw.partition(" ")
    envelope = Envelope(
        raw=raw,
        from_address=address or None,
        date=_parse_envelope_date(date_text),
    )
    return envelope, text[match.end():]


def _parse_envelope_date(text: str) -> datetime | None:
    """Parse the asctime-style date of an envelope line (naive, as written)."""
    text = text.strip()
    if not text:
        return None
    try:
        return datetime.strptime(text, "%a %b %d %H:%M:%S %Y")
    except ValueError:
        pass
    try:
        return email.utils.parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
