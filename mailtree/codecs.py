"""Content-transfer-encoding codecs and RFC 2047 header-word helpers.

All functions here are stateless.  Transfer encodings are looked up by
name through :func:`get_encoding`; unknown names resolve to an identity
codec so undecodable input passes through untouched.
"""

from __future__ import annotations

import base64
import binascii
import quopri
import re
from abc import ABC, abstractmethod
from email.errors import HeaderParseError
from email.header import Header, decode_header, make_header

import structlog

logger = structlog.get_logger()

_LINE_BREAK_RE = re.compile(rb"\r\n|\r|\n")
_HARD_BREAK_RE = re.compile(rb"(\r\n|\n)")
_TEXT_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


# ------------------------------------------------------------------
# Line endings
# ------------------------------------------------------------------


def to_crlf(data: bytes) -> bytes:
    """Normalise every line break in *data* to CRLF."""
    return _LINE_BREAK_RE.sub(b"\r\n", data)


def text_to_lf(text: str) -> str:
    return _TEXT_LINE_BREAK_RE.sub("\n", text)


def is_ascii(data: bytes | str) -> bool:
    return data.isascii()


# ------------------------------------------------------------------
# Transfer encodings
# ------------------------------------------------------------------


class TransferEncoding(ABC):
    """A Content-Transfer-Encoding scheme."""

    name: str = ""
    # Whether the wire form is line-oriented text (CRLF normalised).
    line_oriented: bool = True

    @abstractmethod
    def encode(self, data: bytes) -> bytes:
        """Apply the encoding to raw content."""

    @abstractmethod
    def decode(self, data: bytes) -> bytes:
        """Remove the encoding from wire content."""


class IdentityEncoding(TransferEncoding):
    """7bit, 8bit and unknown encodings: content is stored as-is."""

    def __init__(self, name: str = "7bit") -> None:
        self.name = name

    def encode(self, data: bytes) -> bytes:
        return data

    def decode(self, data: bytes) -> bytes:
        return data


class BinaryEncoding(IdentityEncoding):
    """``binary``: no transformation at all, line endings included."""

    line_oriented = False

    def __init__(self) -> None:
        super().__init__("binary")

    def encode(self, data: bytes) -> bytes:
        return data


class QuotedPrintableEncoding(TransferEncoding):
    """RFC 2045 quoted-printable."""

    name = "quoted-printable"

    def encode(self, data: bytes) -> bytes:
        # Line breaks are kept as they are; a bare CR inside a line becomes =0D.
        pieces = _HARD_BREAK_RE.split(data)
        for index in range(0, len(pieces), 2):
            pieces[index] = binascii.b2a_qp(pieces[index], istext=False)
        return b"".join(pieces)

    def decode(self, data: bytes) -> bytes:
        return quopri.decodestring(data)


class Base64Encoding(TransferEncoding):
    """RFC 2045 base64, wrapped at 76 characters."""

    name = "base64"

    def encode(self, data: bytes) -> bytes:
        return base64.encodebytes(data)

    def decode(self, data: bytes) -> bytes:
        compact = re.sub(rb"[^A-Za-z0-9+/=]", b"", data)
        compact = compact.rstrip(b"=")
        compact += b"=" * (-len(compact) % 4)
        try:
            return base64.b64decode(compact)
        except binascii.Error:
            logger.warning("base64_decode_failed", length=len(data))
            return data


_ENCODINGS: dict[str, TransferEncoding] = {
    "7bit": IdentityEncoding("7bit"),
    "8bit": IdentityEncoding("8bit"),
    "binary": BinaryEncoding(),
    "quoted-printable": QuotedPrintableEncoding(),
    "base64": Base64Encoding(),
}


def get_encoding(name: str | None) -> TransferEncoding:
    """Look up a transfer encoding by (case-insensitive) name.

    ``None`` and unrecognised names resolve to an identity codec.
    """
    if not name:
        return _ENCODINGS["7bit"]
    key = name.strip().lower()
    return _ENCODINGS.get(key) or IdentityEncoding(key)


def supported_encodings() -> list[str]:
    return list(_ENCODINGS.keys())


def encode(data: bytes, encoding: str | None) -> bytes:
    return get_encoding(encoding).encode(data)


def decode(data: bytes, encoding: str | None) -> bytes:
    return get_encoding(encoding).decode(data)


# ------------------------------------------------------------------
# RFC 2047 header words
# ------------------------------------------------------------------


def unescape_surrogates(text: str, fallback: str = "latin-1") -> str:
    """Recover text from raw 8-bit bytes smuggled in via ``surrogateescape``.

    The bytes are read as UTF-8 when they form valid UTF-8, otherwise as
    *fallback*.  Text without surrogates is returned unchanged.
    """
    if text.isascii():
        return text
    try:
        data = text.encode("utf-8", errors="surrogateescape")
    except UnicodeEncodeError:
        return text.encode("utf-8", errors="replace").decode("utf-8")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode(fallback)


def decode_words(value: str) -> str:
    """Decode RFC 2047 encoded-words in a header value.

    Raw 8-bit header bytes are recovered with :func:`unescape_surrogates`.
    Values whose encoded-words cannot be decoded are returned as-is.
    """
    value = unescape_surrogates(value)
    if "=?" not in value:
        return value
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, LookupError, UnicodeDecodeError, ValueError):
        return value


def encode_words(
    value: str,
    *,
    charset: str = "utf-8",
    header_name: str | None = None,
    line_length: int = 78,
) -> str:
    """Encode *value* as RFC 2047 encoded-words if it is not pure ASCII.

    The result may span several lines separated by ``CRLF`` + space.
    """
    value = unescape_surrogates(value)
    if value.isascii():
        return value
    header = Header(value, charset, maxlinelen=line_length, header_name=header_name)
    return header.encode(linesep="\r\n")
