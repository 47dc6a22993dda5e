"""Header field grammar.

Each well-known header name maps to a :class:`FieldSpec` that says how
its value is parsed into a structured form, how it is rendered back to
text, and whether the name may repeat in a header block.  Unknown names
fall through to an unstructured, repeatable spec.
"""

from __future__ import annotations

import email.utils
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import quote, unquote_to_bytes

from .codecs import decode_words, encode_words
from .errors import InvalidFieldValueError


class FieldKind(str, Enum):
    """Grammar used to interpret a header value."""

    ADDRESS_LIST = "address_list"
    MAILBOX = "mailbox"
    DATE_TIME = "date_time"
    MESSAGE_ID = "message_id"
    MESSAGE_ID_LIST = "message_id_list"
    CONTENT_TYPE = "content_type"
    CONTENT_DISPOSITION = "content_disposition"
    KEYWORDS = "keywords"
    RECEIVED = "received"
    TOKEN = "token"
    UNSTRUCTURED = "unstructured"


@dataclass(frozen=True)
class FieldSpec:
    """Lookup-table entry describing one header name."""

    name: str
    kind: FieldKind
    repeatable: bool = False

    @property
    def key(self) -> str:
        return self.name.lower()


_SPECS = (
    FieldSpec("Return-Path", FieldKind.UNSTRUCTURED),
    FieldSpec("Received", FieldKind.RECEIVED, repeatable=True),
    FieldSpec("Date", FieldKind.DATE_TIME),
    FieldSpec("From", FieldKind.ADDRESS_LIST),
    FieldSpec("Sender", FieldKind.MAILBOX),
    FieldSpec("Reply-To", FieldKind.ADDRESS_LIST),
    FieldSpec("To", FieldKind.ADDRESS_LIST),
    FieldSpec("Cc", FieldKind.ADDRESS_LIST),
    FieldSpec("Bcc", FieldKind.ADDRESS_LIST),
    FieldSpec("Message-ID", FieldKind.MESSAGE_ID),
    FieldSpec("In-Reply-To", FieldKind.MESSAGE_ID_LIST),
    FieldSpec("References", FieldKind.MESSAGE_ID_LIST),
    FieldSpec("Subject", FieldKind.UNSTRUCTURED),
    FieldSpec("Comments", FieldKind.UNSTRUCTURED, repeatable=True),
    FieldSpec("Keywords", FieldKind.KEYWORDS, repeatable=True),
    FieldSpec("Resent-Date", FieldKind.DATE_TIME),
    FieldSpec("Resent-From", FieldKind.ADDRESS_LIST),
    FieldSpec("Resent-Sender", FieldKind.ADDRESS_LIST),
    FieldSpec("Resent-To", FieldKind.ADDRESS_LIST),
    FieldSpec("Resent-Cc", FieldKind.ADDRESS_LIST),
    FieldSpec("Resent-Bcc", FieldKind.ADDRESS_LIST),
    FieldSpec("Resent-Message-ID", FieldKind.MESSAGE_ID),
    FieldSpec("Mime-Version", FieldKind.TOKEN),
    FieldSpec("Content-Type", FieldKind.CONTENT_TYPE),
    FieldSpec("Content-Transfer-Encoding", FieldKind.TOKEN),
    FieldSpec("Content-Description", FieldKind.UNSTRUCTURED),
    FieldSpec("Content-Disposition", FieldKind.CONTENT_DISPOSITION),
    FieldSpec("Content-ID", FieldKind.UNSTRUCTURED),
    FieldSpec("Content-Location", FieldKind.UNSTRUCTURED),
)

FIELD_SPECS: dict[str, FieldSpec] = {spec.key: spec for spec in _SPECS}


def canonical_key(name: str) -> str:
    """Normalise a header name for lookup: ``content_type`` == ``Content-Type``."""
    return str(name).strip().lower().replace("_", "-")


def field_spec(name: str) -> FieldSpec:
    key = canonical_key(name)
    spec = FIELD_SPECS.get(key)
    if spec is not None:
        return spec
    return FieldSpec(str(name).strip(), FieldKind.UNSTRUCTURED, repeatable=True)


def display_name(name: str) -> str:
    """Header name to store when a field is created programmatically."""
    return field_spec(name).name


# ------------------------------------------------------------------
# Shared tokenising helpers
# ------------------------------------------------------------------

_QUOTED_PAIR_RE = re.compile(r"\\(.)")
_PARAM_RE = re.compile(r'\s*([^\s=;]+)\s*=\s*("(?:\\.|[^"\\])*"|[^;]*)')
_TSPECIALS = set('()<>@,;:\\"/[]?= \t')


def unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return _QUOTED_PAIR_RE.sub(r"\1", value[1:-1])
    return value


def quote_value(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def split_outside_quotes(text: str, separator: str) -> list[str]:
    """Split *text* on *separator*, ignoring separators inside quoted strings."""
    parts: list[str] = []
    current: list[str] = []
    in_quotes = False
    escaped = False
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\" and in_quotes:
            current.append(char)
            escaped = True
        elif char == '"':
            current.append(char)
            in_quotes = not in_quotes
        elif char == separator and not in_quotes:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def parse_parameters(text: str) -> dict[str, str]:
    """Parse ``; name=value`` pairs, collapsing RFC 2231 continuations."""
    plain: dict[str, str] = {}
    extended: dict[str, dict[int, tuple[str, bool]]] = {}
    for segment in split_outside_quotes(text, ";"):
        match = _PARAM_RE.match(segment)
        if not match:
            continue
        name = match.group(1).lower()
        raw = match.group(2).strip()
        if "*" not in name:
            plain[name] = unquote(raw)
            continue
        base, _, rest = name.partition("*")
        encoded = rest.endswith("*") or rest == ""
        index_text = rest.rstrip("*")
        index = int(index_text) if index_text.isdigit() else 0
        extended.setdefault(base, {})[index] = (unquote(raw), encoded)

    for base, segments in extended.items():
        plain[base] = _collapse_rfc2231(segments)
    return plain


def _collapse_rfc2231(segments: dict[int, tuple[str, bool]]) -> str:
    charset = "us-ascii"
    chunks: list[bytes] = []
    for index in sorted(segments):
        value, encoded = segments[index]
        if index == 0 and encoded and value.count("'") >= 2:
            charset, _, value = value.split("'", 2)
            charset = charset or "us-ascii"
        chunks.append(unquote_to_bytes(value) if encoded else value.encode("utf-8"))
    data = b"".join(chunks)
    try:
        return data.decode(charset, errors="replace")
    except LookupError:
        return data.decode("utf-8", errors="replace")


def render_parameter(name: str, value: str, *, quoted: bool) -> str:
    if not value.isascii():
        return f"{name}*=utf-8''{quote(value, safe='')}"
    if quoted or not value or any(char in _TSPECIALS for char in value):
        return f"{name}={quote_value(value)}"
    return f"{name}={value}"


def parse_date(text: str) -> datetime | None:
    """Parse an RFC 2822 date into an aware datetime (``None`` if unparseable)."""
    if not text:
        return None
    try:
        parsed = email.utils.parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    return email.utils.format_datetime(value)


# ------------------------------------------------------------------
# Structured values
# ------------------------------------------------------------------


@dataclass
class Address:
    """A single mailbox: address plus optional display name."""

    address: str
    display_name: str = ""

    def __str__(self) -> str:
        if not self.display_name:
            return self.address
        name = self.display_name
        if any(char in name for char in ',.;:@<>()[]"\\'):
            name = quote_value(name)
        return f"{name} <{self.address}>"

    def encoded(self) -> str:
        if self.display_name and not self.display_name.isascii():
            return email.utils.formataddr((self.display_name, self.address), charset="utf-8")
        return str(self)


@dataclass
class AddressList:
    addresses: list[Address] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> AddressList:
        pairs = email.utils.getaddresses([text])
        return cls([
            Address(address=addr, display_name=decode_words(name))
            for name, addr in pairs
            if addr
        ])

    @classmethod
    def coerce(cls, value: Any) -> AddressList:
        if isinstance(value, AddressList):
            return value
        if isinstance(value, Address):
            return cls([value])
        if isinstance(value, Sequence) and not isinstance(value, str):
            addresses: list[Address] = []
            for item in value:
                addresses.extend(cls.coerce(item).addresses)
            return cls(addresses)
        return cls.parse(str(value))

    @property
    def emails(self) -> list[str]:
        return [a.address for a in self.addresses]

    def to_text(self) -> str:
        return ", ".join(str(a) for a in self.addresses)

    def encoded(self) -> str:
        return ", ".join(a.encoded() for a in self.addresses)


@dataclass
class DateTimeValue:
    """A parsed date plus the text it came from."""

    date_time: datetime | None
    text: str

    @classmethod
    def parse(cls, text: str) -> DateTimeValue:
        return cls(parse_date(text), text)

    @classmethod
    def coerce(cls, value: Any) -> DateTimeValue:
        if isinstance(value, DateTimeValue):
            return value
        if isinstance(value, datetime):
            text = format_date(value)
            return cls(parse_date(text), text)
        return cls.parse(str(value))

    def to_text(self) -> str:
        return self.text


@dataclass
class MessageIds:
    """One or more msg-ids, stored without angle brackets."""

    ids: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> MessageIds:
        bracketed = re.findall(r"<([^<>]*)>", text)
        if bracketed:
            return cls([i.strip() for i in bracketed if i.strip()])
        return cls([token.strip("<>") for token in text.split() if token.strip("<>")])

    @classmethod
    def coerce(cls, value: Any) -> MessageIds:
        if isinstance(value, MessageIds):
            return value
        if isinstance(value, Sequence) and not isinstance(value, str):
            ids: list[str] = []
            for item in value:
                ids.extend(cls.parse(str(item)).ids)
            return cls(ids)
        return cls.parse(str(value))

    def to_text(self) -> str:
        return " ".join(f"<{i}>" for i in self.ids)


@dataclass
class ContentType:
    """``main/sub; name=value; ...``"""

    main_type: str
    sub_type: str
    params: dict[str, str] = field(default_factory=dict)

    @property
    def mime_type(self) -> str:
        if not self.sub_type:
            return self.main_type
        return f"{self.main_type}/{self.sub_type}"

    @property
    def is_multipart(self) -> bool:
        return self.main_type == "multipart"

    @classmethod
    def parse(cls, text: str) -> ContentType:
        head, _, rest = text.partition(";")
        main, _, sub = head.strip().partition("/")
        return cls(main.strip().lower(), sub.strip().lower(), parse_parameters(rest))

    @classmethod
    def coerce(cls, value: Any) -> ContentType:
        if isinstance(value, ContentType):
            return value
        if isinstance(value, str):
            return cls.parse(value)
        if isinstance(value, Sequence) and len(value) == 3:
            main, sub, params = value
            if not isinstance(params, Mapping):
                raise InvalidFieldValueError(
                    "Content-Type parameters must be a mapping of name to value"
                )
            return cls(
                str(main).lower(),
                str(sub).lower(),
                {str(k).lower(): str(v) for k, v in params.items()},
            )
        raise InvalidFieldValueError(
            "Content-Type must be a string or a [main, sub, params] sequence"
        )

    def to_text(self) -> str:
        rendered = [self.mime_type]
        rendered.extend(render_parameter(k, v, quoted=False) for k, v in self.params.items())
        return "; ".join(rendered)

    def encoded(self) -> str:
        lines = [self.mime_type]
        lines.extend(render_parameter(k, v, quoted=True) for k, v in self.params.items())
        return ";\r\n\t".join(lines)


@dataclass
class ContentDisposition:
    """``attachment; filename=...`` style value."""

    disposition_type: str
    params: dict[str, str] = field(default_factory=dict)

    @property
    def filename(self) -> str | None:
        return self.params.get("filename")

    @property
    def is_attachment(self) -> bool:
        return self.disposition_type == "attachment"

    @classmethod
    def parse(cls, text: str) -> ContentDisposition:
        head, _, rest = text.partition(";")
        return cls(head.strip().lower(), parse_parameters(rest))

    @classmethod
    def coerce(cls, value: Any) -> ContentDisposition:
        if isinstance(value, ContentDisposition):
            return value
        if isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 2:
            kind, params = value
            return cls(str(kind).lower(), {str(k).lower(): str(v) for k, v in dict(params).items()})
        return cls.parse(str(value))

    def to_text(self) -> str:
        rendered = [self.disposition_type]
        rendered.extend(render_parameter(k, v, quoted=False) for k, v in self.params.items())
        return "; ".join(rendered)

    def encoded(self) -> str:
        lines = [self.disposition_type]
        lines.extend(render_parameter(k, v, quoted=True) for k, v in self.params.items())
        return ";\r\n\t".join(lines)


@dataclass
class Keywords:
    words: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> Keywords:
        words = [unquote(decode_words(part)) for part in split_outside_quotes(text, ",")]
        return cls([w for w in words if w])

    @classmethod
    def coerce(cls, value: Any) -> Keywords:
        if isinstance(value, Keywords):
            return value
        if isinstance(value, Sequence) and not isinstance(value, str):
            return cls([str(v) for v in value])
        return cls.parse(str(value))

    def to_text(self) -> str:
        return ", ".join(quote_value(w) if "," in w or '"' in w else w for w in self.words)


@dataclass
class ReceivedValue:
    """``info; date-time`` trace entry."""

    info: str
    date_time: datetime | None
    date_text: str = ""

    @classmethod
    def parse(cls, text: str) -> ReceivedValue:
        info, separator, date_text = text.rpartition(";")
        if not separator:
            return cls(text.strip(), None, "")
        date_text = date_text.strip()
        return cls(info.strip(), parse_date(date_text), date_text)

    @classmethod
    def coerce(cls, value: Any) -> ReceivedValue:
        if isinstance(value, ReceivedValue):
            return value
        return cls.parse(str(value))

    def to_text(self) -> str:
        if not self.date_text:
            return self.info
        return f"{self.info}; {self.date_text}"


_STRUCTURED: dict[FieldKind, Any] = {
    FieldKind.ADDRESS_LIST: AddressList,
    FieldKind.MAILBOX: AddressList,
    FieldKind.DATE_TIME: DateTimeValue,
    FieldKind.MESSAGE_ID: MessageIds,
    FieldKind.MESSAGE_ID_LIST: MessageIds,
    FieldKind.CONTENT_TYPE: ContentType,
    FieldKind.CONTENT_DISPOSITION: ContentDisposition,
    FieldKind.KEYWORDS: Keywords,
    FieldKind.RECEIVED: ReceivedValue,
}


# ------------------------------------------------------------------
# Folding
# ------------------------------------------------------------------


def fold(name: str, value: str, line_length: int = 78) -> str:
    """Fold *value* at spaces so ``name: value`` lines stay under *line_length*.

    Continuation lines start with the whitespace the line was broken at.
    Words longer than the limit are never split.
    """
    if "\r\n" in value or len(name) + 2 + len(value) <= line_length:
        return value
    words = value.split(" ")
    lines: list[str] = []
    current = words[0]
    offset = len(name) + 2
    for word in words[1:]:
        if current.strip() and offset + len(current) + 1 + len(word) > line_length:
            lines.append(current)
            current = " " + word
            offset = 0
        else:
            current = f"{current} {word}"
    lines.append(current)
    return "\r\n".join(lines)


def unfold(value: str) -> str:
    """Remove folding line breaks, keeping the whitespace that follows them."""
    return re.sub(r"\r?\n(?=[ \t])", "", value)


# ------------------------------------------------------------------
# Field
# ------------------------------------------------------------------

_UNSET = object()


class Field:
    """One logical header entry.

    ``raw_value`` is the unfolded text as supplied or parsed.  The
    structured interpretation in :attr:`value` is derived lazily and
    cached; assigning to :attr:`value` regenerates ``raw_value``.
    """

    def __init__(self, name: str, value: Any = "") -> None:
        self.spec = field_spec(name)
        self.name = str(name).strip()
        self._value: Any = _UNSET
        if isinstance(value, str):
            self._raw = unfold(value).strip()
        else:
            self.value = value

    @property
    def key(self) -> str:
        return canonical_key(self.name)

    @property
    def kind(self) -> FieldKind:
        return self.spec.kind

    @property
    def raw_value(self) -> str:
        return self._raw

    @raw_value.setter
    def raw_value(self, text: str) -> None:
        self._raw = unfold(text).strip()
        self._value = _UNSET

    @property
    def value(self) -> Any:
        """Structured value for this field's grammar (decoded text if unstructured)."""
        if self._value is _UNSET:
            structured = _STRUCTURED.get(self.kind)
            if structured is None:
                self._value = self.decoded()
            else:
                self._value = structured.parse(self._raw)
        return self._value

    @value.setter
    def value(self, new: Any) -> None:
        structured = _STRUCTURED.get(self.kind)
        if structured is None:
            self._raw = "" if new is None else str(new).strip()
            self._value = _UNSET
            return
        coerced = structured.coerce(new)
        self._raw = coerced.to_text()
        self._value = coerced

    def decoded(self) -> str:
        """The value with RFC 2047 encoded-words decoded."""
        return decode_words(self._raw)

    def encoded(self, *, line_length: int = 78, charset: str = "utf-8") -> str:
        """Wire form ``Name: value\\r\\n`` with folding and encoded-words."""
        return f"{self.name}: {self._wire_value(line_length, charset)}\r\n"

    def _wire_value(self, line_length: int, charset: str) -> str:
        kind = self.kind
        if kind in (FieldKind.CONTENT_TYPE, FieldKind.CONTENT_DISPOSITION):
            return self.value.encoded()
        if kind in (FieldKind.MESSAGE_ID, FieldKind.MESSAGE_ID_LIST):
            if not self.value.ids:
                return self._raw
            return fold(self.name, self.value.to_text(), line_length)
        if kind in (FieldKind.ADDRESS_LIST, FieldKind.MAILBOX):
            if self._raw.isascii():
                return fold(self.name, self._raw, line_length)
            return fold(self.name, self.value.encoded(), line_length)
        if self._raw.isascii():
            return fold(self.name, self._raw, line_length)
        return encode_words(
            self.decoded(), charset=charset, header_name=self.name, line_length=line_length
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return NotImplemented
        if self.key != other.key:
            return False
        if self._raw == other._raw:
            return True
        # Parameter layout (folding, quoting, order) is not significant.
        if self.kind in (FieldKind.CONTENT_TYPE, FieldKind.CONTENT_DISPOSITION):
            return self.value == other.value
        return False

    __hash__ = None  # type: ignore[assignment]

    def __str__(self) -> str:
        return self.decoded()

    def __repr__(self) -> str:
        return f"Field({self.name!r}, {self._raw!r})"
