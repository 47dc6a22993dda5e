"""Leaf body content.

The canonical representation is the *encoded* form: bytes exactly as
they travel on the wire under ``encoding``.  ``decoded`` views are pure
functions of (content, encoding) and are recomputed on demand.
"""

from __future__ import annotations

from .codecs import get_encoding, is_ascii, text_to_lf, to_crlf


def to_bytes(content: str | bytes) -> bytes:
    if isinstance(content, bytes):
        return content
    return content.encode("utf-8", errors="surrogateescape")


class Body:
    """Raw content plus the transfer encoding it is represented in."""

    def __init__(self, content: str | bytes = b"", encoding: str | None = None) -> None:
        self._raw = to_bytes(content)
        self.encoding = encoding

    @classmethod
    def from_decoded(cls, content: str | bytes, encoding: str | None) -> Body:
        """Build a body by applying *encoding* to decoded content."""
        return cls(get_encoding(encoding).encode(to_bytes(content)), encoding)

    @property
    def raw(self) -> bytes:
        return self._raw

    @property
    def transfer_encoding(self) -> str:
        return get_encoding(self.encoding).name

    def is_empty(self) -> bool:
        return not self._raw.strip()

    def is_ascii(self) -> bool:
        """True when the decoded content is pure US-ASCII."""
        return is_ascii(self.decoded_bytes())

    def encoded(self) -> str:
        """Wire text with CRLF line endings (untouched for ``binary``)."""
        codec = get_encoding(self.encoding)
        data = to_crlf(self._raw) if codec.line_oriented else self._raw
        return data.decode("utf-8", errors="surrogateescape")

    def decoded_bytes(self) -> bytes:
        """Content with the transfer encoding removed, byte for byte."""
        return get_encoding(self.encoding).decode(self._raw)

    def decoded(self, charset: str | None = None) -> str:
        """Decoded content as text with LF line endings."""
        data = self.decoded_bytes()
        try:
            text = data.decode(charset or "utf-8", errors="replace")
        except LookupError:
            text = data.decode("utf-8", errors="replace")
        return text_to_lf(text)

    def __str__(self) -> str:
        return self.decoded()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            return self.decoded() == text_to_lf(other)
        if isinstance(other, bytes):
            return self.decoded_bytes() == other
        if isinstance(other, Body):
            return self.encoded() == other.encoded()
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Body({self._raw[:40]!r}, encoding={self.encoding!r})"
