"""The message tree.

A :class:`Message` is both the root of a mail and every MIME part inside
it.  Its content is a tagged union: either a leaf :class:`Body` or a
:class:`PartList` of child messages, never both.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping, MutableSequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, overload

from .attachment import AttachmentSpec
from .body import Body
from .config import MailSettings, get_settings
from .envelope import Envelope
from .errors import AmbiguousDecodeError, InvalidFieldValueError
from .fields import (
    ContentDisposition,
    ContentType,
    Field,
    FieldKind,
    FieldSpec,
    canonical_key,
    field_spec,
    format_date,
)
from .header import Header
from .report import DeliveryStatus, parse_delivery_status
from .tokens import TokenSource, default_token_source

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class PartList(MutableSequence["Message"]):
    """Ordered children of a multipart message.

    A part belongs to exactly one container: inserting it here detaches it
    from its previous parent.
    """

    def __init__(self, owner: Message) -> None:
        self._owner = owner
        self._items: list[Message] = []

    @overload
    def __getitem__(self, index: int) -> Message: ...

    @overload
    def __getitem__(self, index: slice) -> list[Message]: ...

    def __getitem__(self, index: int | slice) -> Message | list[Message]:
        return self._items[index]

    def __setitem__(self, index: int, part: Message) -> None:  # type: ignore[override]
        old = self._items[index]
        if old is part:
            return
        self._owner._adopt(part)
        position = next(i for i, item in enumerate(self._items) if item is old)
        self._items[position] = part
        old._parent = None

    def __delitem__(self, index: int) -> None:  # type: ignore[override]
        self._items[index]._parent = None
        del self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def insert(self, index: int, part: Message) -> None:
        self._owner._adopt(part)
        self._items.insert(index, part)

    def detach(self, part: Message) -> None:
        """Remove *part* by identity (equality is structural)."""
        for index, item in enumerate(self._items):
            if item is part:
                del self._items[index]
                part._parent = None
                return

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PartList):
            return self._items == other._items
        if isinstance(other, list):
            return self._items == other
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"PartList({self._items!r})"


class _FieldAccessor:
    """Typed property over one well-known header field."""

    def __init__(self, name: str) -> None:
        self.spec = field_spec(name)

    def __get__(self, message: Message | None, owner: type | None = None) -> Any:
        if message is None:
            return self
        return message._read_field(self.spec)

    def __set__(self, message: Message, value: Any) -> None:
        message[self.spec.name] = value


class Message:
    """An RFC 2822 message or MIME part.

    Construct empty, from raw text (``Message(raw)``), or through
    :class:`mailtree.builder.MessageBuilder`.  Header fields are reachable
    by index (``message["content_type"]`` returns the :class:`Field`) and
    through typed properties (``message.content_type`` returns its text).
    """

    # ------------------------------------------------------------------
    # Typed header accessors
    # ------------------------------------------------------------------

    to = _FieldAccessor("To")
    from_ = _FieldAccessor("From")
    cc = _FieldAccessor("Cc")
    bcc = _FieldAccessor("Bcc")
    sender = _FieldAccessor("Sender")
    reply_to = _FieldAccessor("Reply-To")
    resent_from = _FieldAccessor("Resent-From")
    resent_to = _FieldAccessor("Resent-To")
    resent_cc = _FieldAccessor("Resent-Cc")
    resent_bcc = _FieldAccessor("Resent-Bcc")
    resent_sender = _FieldAccessor("Resent-Sender")
    resent_date = _FieldAccessor("Resent-Date")
    resent_message_id = _FieldAccessor("Resent-Message-ID")
    subject = _FieldAccessor("Subject")
    comments = _FieldAccessor("Comments")
    keywords = _FieldAccessor("Keywords")
    date = _FieldAccessor("Date")
    message_id = _FieldAccessor("Message-ID")
    in_reply_to = _FieldAccessor("In-Reply-To")
    references = _FieldAccessor("References")
    received = _FieldAccessor("Received")
    return_path = _FieldAccessor("Return-Path")
    content_type = _FieldAccessor("Content-Type")
    content_transfer_encoding = _FieldAccessor("Content-Transfer-Encoding")
    content_description = _FieldAccessor("Content-Description")
    content_disposition = _FieldAccessor("Content-Disposition")
    content_id = _FieldAccessor("Content-ID")
    mime_version = _FieldAccessor("Mime-Version")

    def __init__(
        self,
        source: str | bytes | None = None,
        *,
        settings: MailSettings | None = None,
        token_source: TokenSource | None = None,
    ) -> None:
        self._settings = settings
        self._tokens = token_source
        self._parent: Message | None = None
        self._content: Body | PartList = Body()
        self.header = Header()
        self.raw_source: bytes = b""
        self.envelope: Envelope | None = None
        self.warnings: list[str] = []
        if source is not None:
            from .parser import MimeParser

            MimeParser(settings=settings).parse_into(self, source)

    @classmethod
    def parse(cls, source: str | bytes, **kwargs: Any) -> Message:
        return cls(source, **kwargs)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def settings(self) -> MailSettings:
        if self._settings is not None:
            return self._settings
        if self._parent is not None:
            return self._parent.settings
        return get_settings()

    @property
    def token_source(self) -> TokenSource:
        if self._tokens is not None:
            return self._tokens
        if self._parent is not None:
            return self._parent.token_source
        return default_token_source

    @property
    def parent(self) -> Message | None:
        return self._parent

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    def __getitem__(self, name: str) -> Field | None:
        return self.header.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        key = canonical_key(name)
        if key == "body":
            self.body = value
            return
        self.header.set(name, value)
        self._field_changed(key)

    def __delitem__(self, name: str) -> None:
        self.header.delete(name)
        self._field_changed(canonical_key(name))

    def __contains__(self, name: object) -> bool:
        return name in self.header

    @property
    def header_fields(self) -> list[Field]:
        return self.header.fields

    def _field_changed(self, key: str) -> None:
        if key == "content-transfer-encoding" and isinstance(self._content, Body):
            self._content.encoding = self._transfer_encoding()

    def _transfer_encoding(self) -> str | None:
        found = self.header.get("Content-Transfer-Encoding")
        if found is None or not found.raw_value:
            return None
        return found.raw_value.lower()

    def _read_field(self, spec: FieldSpec) -> Any:
        fields = self.header.get_all(spec.name)
        if not fields:
            return None
        first = fields[0]
        kind = spec.kind
        if kind is FieldKind.ADDRESS_LIST:
            return first.value.emails
        if kind is FieldKind.MAILBOX:
            emails = first.value.emails
            return emails[0] if emails else None
        if kind is FieldKind.DATE_TIME:
            return first.value.date_time
        if kind is FieldKind.MESSAGE_ID:
            ids = first.value.ids
            return ids[0] if ids else None
        if kind is FieldKind.MESSAGE_ID_LIST:
            return list(first.value.ids)
        if kind is FieldKind.KEYWORDS:
            return [word for f in fields for word in f.value.words]
        if kind is FieldKind.RECEIVED:
            return first.value
        return first.decoded()

    # ------------------------------------------------------------------
    # Presence / defaults
    # ------------------------------------------------------------------

    @property
    def has_message_id(self) -> bool:
        return "Message-ID" in self.header

    @property
    def has_date(self) -> bool:
        return "Date" in self.header

    @property
    def has_mime_version(self) -> bool:
        return "Mime-Version" in self.header

    @property
    def has_content_type(self) -> bool:
        return "Content-Type" in self.header

    @property
    def has_charset(self) -> bool:
        return "charset" in self.content_type_parameters

    @property
    def has_content_transfer_encoding(self) -> bool:
        return "Content-Transfer-Encoding" in self.header

    def add_message_id(self, value: str | None = None) -> None:
        """Set the Message-ID, generating ``<token@host.mail>`` if *value* is omitted."""
        if value is None:
            value = f"<{self.token_source.token()}@{self.settings.message_id_host()}>"
        self["Message-ID"] = value

    def add_date(self, value: str | datetime | None = None) -> None:
        if value is None:
            value = format_date(datetime.now().astimezone())
        self["Date"] = value

    def add_mime_version(self, value: str | None = None) -> None:
        self["Mime-Version"] = value or "1.0"

    # ------------------------------------------------------------------
    # Content-Type helpers
    # ------------------------------------------------------------------

    def _content_type_value(self) -> ContentType | None:
        found = self.header.get("Content-Type")
        if found is None or not found.raw_value:
            return None
        return found.value

    @property
    def mime_type(self) -> str | None:
        value = self._content_type_value()
        return value.mime_type if value else None

    @property
    def main_type(self) -> str | None:
        value = self._content_type_value()
        return value.main_type if value else None

    @property
    def sub_type(self) -> str | None:
        value = self._content_type_value()
        return value.sub_type if value else None

    @property
    def content_type_parameters(self) -> dict[str, str]:
        value = self._content_type_value()
        return dict(value.params) if value else {}

    def set_content_type_parameter(self, name: str, value: str) -> None:
        current = self._content_type_value()
        if current is None:
            current = ContentType("text", "plain")
        params = dict(current.params)
        params[name.lower()] = value
        self["Content-Type"] = ContentType(current.main_type, current.sub_type, params)

    @property
    def charset(self) -> str | None:
        return self.content_type_parameters.get("charset")

    @charset.setter
    def charset(self, value: str) -> None:
        self.set_content_type_parameter("charset", value)

    @property
    def boundary(self) -> str | None:
        return self.content_type_parameters.get("boundary")

    def ensure_boundary(self) -> str:
        """Return the boundary, generating and persisting one if missing."""
        existing = self.boundary
        if existing:
            return existing
        boundary = f"--==_mailtree_{self.token_source.token()}"
        self.set_content_type_parameter("boundary", boundary)
        return boundary

    @property
    def is_multipart(self) -> bool:
        if isinstance(self._content, PartList):
            return True
        return self.main_type == "multipart"

    # ------------------------------------------------------------------
    # Body and parts
    # ------------------------------------------------------------------

    @property
    def body(self) -> Body | None:
        """The leaf body; ``None`` for a multipart container."""
        return self._content if isinstance(self._content, Body) else None

    @body.setter
    def body(self, value: str | bytes | Body | None) -> None:
        if isinstance(self._content, PartList):
            if value is None or value == "":
                return
            part = Message()
            part["Content-Type"] = "text/plain"
            self._content.append(part)
            part.body = value
            return
        if isinstance(value, Body):
            encoding = self._transfer_encoding()
            if encoding is not None:
                value.encoding = encoding
            elif value.encoding:
                self.header.set("Content-Transfer-Encoding", value.encoding)
            self._content = value
            return
        self._content = Body(b"" if value is None else value, self._transfer_encoding())

    @property
    def parts(self) -> PartList | list[Message]:
        """Child parts (live list); empty for a leaf."""
        if isinstance(self._content, PartList):
            return self._content
        return []

    def walk(self) -> Iterator[Message]:
        """Yield this message and every descendant, depth first."""
        yield self
        for part in self.parts:
            yield from part.walk()

    def _adopt(self, part: Message) -> None:
        ancestor: Message | None = self
        while ancestor is not None:
            if ancestor is part:
                raise InvalidFieldValueError("A message cannot contain itself")
            ancestor = ancestor._parent
        if part._parent is not None and isinstance(part._parent._content, PartList):
            part._parent._content.detach(part)
        part._parent = self

    def _container(self, subtype: str) -> PartList:
        """Turn this message into a multipart container if it is a leaf.

        A non-empty leaf body moves into a first part, taking the
        Content-Type and Content-Transfer-Encoding with it.
        """
        if isinstance(self._content, PartList):
            if self.main_type != "multipart":
                self["Content-Type"] = f"multipart/{subtype}"
            self.ensure_boundary()
            return self._content

        body = self._content
        parts = PartList(self)
        if not body.is_empty():
            first = Message()
            current = self.header.get("Content-Type")
            if current is not None and current.raw_value and self.main_type != "multipart":
                first["Content-Type"] = current.raw_value
            else:
                first["Content-Type"] = "text/plain"
            encoding = self.header.get("Content-Transfer-Encoding")
            if encoding is not None:
                first["Content-Transfer-Encoding"] = encoding.raw_value
                self.header.delete("Content-Transfer-Encoding")
            first._content = body
            parts.append(first)
        self._content = parts
        if self.main_type != "multipart":
            self["Content-Type"] = f"multipart/{subtype}"
        self.ensure_boundary()
        return parts

    def add_part(self, part: Message | None = None) -> Message:
        """Append *part* (a new empty one if omitted) and return it."""
        if part is None:
            part = Message()
        self._container("mixed").append(part)
        return part

    def _mixed_container(self) -> PartList:
        parts = self._container("mixed")
        if self.sub_type == "mixed":
            return parts
        if len(parts) == 0:
            self["Content-Type"] = "multipart/mixed"
            self.ensure_boundary()
            return parts
        inner = Message()
        inner["Content-Type"] = self.header.get("Content-Type").raw_value
        for child in list(parts):
            inner._container("mixed").append(child)
        self["Content-Type"] = "multipart/mixed"
        self.ensure_boundary()
        parts.append(inner)
        return parts

    @property
    def text_part(self) -> Message | None:
        """First ``text/plain`` leaf that is not an attachment, or ``None``.

        Reading never adds a part; use :meth:`find_or_create_part` or assign
        to this property to create one.
        """
        return self._find_leaf("text/plain")

    @text_part.setter
    def text_part(self, part: Message) -> None:
        self._set_alternative(part, "text/plain")

    @property
    def html_part(self) -> Message | None:
        """First ``text/html`` leaf that is not an attachment, or ``None``.

        Like :attr:`text_part`, reading never adds a part.
        """
        return self._find_leaf("text/html")

    @html_part.setter
    def html_part(self, part: Message) -> None:
        self._set_alternative(part, "text/html")

    def find_or_create_part(self, mime_type: str) -> Message:
        """Return the first *mime_type* leaf, adding an empty one if there is none.

        A new part promotes this message to ``multipart/alternative``
        unless it is already multipart.
        """
        found = self._find_leaf(mime_type)
        if found is not None:
            return found
        part = Message()
        part["Content-Type"] = mime_type
        self._set_alternative(part, mime_type)
        return part

    def _find_leaf(self, mime_type: str) -> Message | None:
        for part in self.parts:
            if part.is_multipart:
                found = part._find_leaf(mime_type)
                if found is not None:
                    return found
            elif part.mime_type == mime_type and not part.is_attachment:
                return part
        return None

    def _set_alternative(self, part: Message, mime_type: str) -> None:
        if not part.has_content_type:
            part["Content-Type"] = mime_type
        parts = self._container("alternative")
        for index, existing in enumerate(parts):
            if not existing.is_multipart and existing.mime_type == mime_type:
                parts[index] = part
                return
        parts.append(part)

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def add_file(
        self,
        source: str | os.PathLike[str] | Mapping[str, Any] | AttachmentSpec | None = None,
        content: bytes | str | None = None,
        *,
        filename: str | None = None,
        mime_type: str | None = None,
    ) -> Message:
        """Attach a file and return the new part.

        *source* is a path (read here unless *content* is given), a
        mapping/``AttachmentSpec`` with ``filename``, ``content`` and
        optional ``mime_type``, or omitted in favour of the keywords.
        """
        spec = _attachment_spec(source, content, filename, mime_type)
        part = Message()
        main, _, sub = spec.resolved_mime_type.partition("/")
        part["Content-Type"] = [main, sub, {"name": spec.filename}]
        part["Content-Disposition"] = ContentDisposition("attachment", {"filename": spec.filename})
        part["Content-Transfer-Encoding"] = "base64"
        part._content = Body.from_decoded(spec.content, "base64")
        self._mixed_container().append(part)
        return part

    @property
    def filename(self) -> str | None:
        disposition = self.header.get("Content-Disposition")
        if disposition is not None and disposition.raw_value:
            name = disposition.value.filename
            if name:
                return name
        return self.content_type_parameters.get("name")

    @property
    def is_attachment(self) -> bool:
        disposition = self.header.get("Content-Disposition")
        if disposition is not None and disposition.raw_value and disposition.value.is_attachment:
            return True
        return self.filename is not None

    @property
    def attachments(self) -> list[Message]:
        """Attachment leaves in depth-first order."""
        found: list[Message] = []
        for part in self.parts:
            if isinstance(part._content, PartList):
                found.extend(part.attachments)
            elif part.is_attachment:
                found.append(part)
        return found

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    @property
    def from_addrs(self) -> list[str]:
        return self.from_ or []

    @property
    def to_addrs(self) -> list[str]:
        return self.to or []

    @property
    def cc_addrs(self) -> list[str]:
        return self.cc or []

    @property
    def bcc_addrs(self) -> list[str]:
        return self.bcc or []

    @property
    def destinations(self) -> list[str]:
        return self.to_addrs + self.cc_addrs + self.bcc_addrs

    # ------------------------------------------------------------------
    # Envelope
    # ------------------------------------------------------------------

    @property
    def envelope_from(self) -> str | None:
        return self.envelope.from_address if self.envelope else None

    @property
    def envelope_date(self) -> datetime | None:
        return self.envelope.date if self.envelope else None

    @property
    def raw_envelope(self) -> str | None:
        return self.envelope.raw if self.envelope else None

    # ------------------------------------------------------------------
    # Delivery-status reports
    # ------------------------------------------------------------------

    @property
    def is_multipart_report(self) -> bool:
        return self.mime_type == "multipart/report"

    @property
    def is_delivery_status_report(self) -> bool:
        report_type = self.content_type_parameters.get("report-type", "")
        return self.is_multipart_report and report_type.lower() == "delivery-status"

    @property
    def delivery_status_part(self) -> Message | None:
        for part in self.walk():
            if part is not self and part.mime_type == "message/delivery-status":
                return part
        return None

    @property
    def delivery_status(self) -> DeliveryStatus | None:
        part = self.delivery_status_part
        if part is None or part.body is None:
            return None
        return parse_delivery_status(part.body.decoded())

    def _status_field(self, name: str) -> str | None:
        status = self.delivery_status
        return getattr(status, name) if status else None

    @property
    def action(self) -> str | None:
        return self._status_field("action")

    @property
    def final_recipient(self) -> str | None:
        return self._status_field("final_recipient")

    @property
    def error_status(self) -> str | None:
        return self._status_field("error_status")

    @property
    def diagnostic_code(self) -> str | None:
        return self._status_field("diagnostic_code")

    @property
    def remote_mta(self) -> str | None:
        return self._status_field("remote_mta")

    @property
    def is_bounced(self) -> bool:
        status = self.delivery_status
        return status.bounced if status else False

    @property
    def is_retryable(self) -> bool:
        status = self.delivery_status
        return status.retryable if status else False

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def encoded(self) -> str:
        """Wire-format text.  Materialises defaulted headers on the message."""
        from .encoder import MessageEncoder

        return MessageEncoder(settings=self.settings, token_source=self.token_source).encode(self)

    def to_bytes(self) -> bytes:
        return self.encoded().encode("utf-8", errors="surrogateescape")

    def decoded(self) -> str | bytes:
        """Leaf content without transfer encoding.

        ``str`` for text (or untyped) content, ``bytes`` otherwise.
        Raises :class:`AmbiguousDecodeError` on a multipart message.
        """
        if self.is_multipart or not isinstance(self._content, Body):
            raise AmbiguousDecodeError()
        if self.main_type in (None, "text"):
            return self._content.decoded(self.charset)
        return self._content.decoded_bytes()

    def __str__(self) -> str:
        return self.encoded()

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def _comparable_fields(self) -> list[Field]:
        return [f for f in self.header if f.key != "message-id"]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        mine, theirs = self.message_id, other.message_id
        if mine is not None and theirs is not None and mine != theirs:
            return False
        if self._comparable_fields() != other._comparable_fields():
            return False
        if isinstance(self._content, Body) and isinstance(other._content, Body):
            return self._content.encoded() == other._content.encoded()
        if isinstance(self._content, PartList) and isinstance(other._content, PartList):
            return list(self._content) == list(other._content)
        return False

    __hash__ = None  # type: ignore[assignment]

    def _sort_key(self) -> datetime:
        return self.date or _EPOCH

    def __lt__(self, other: Message) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __gt__(self, other: Message) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self._sort_key() > other._sort_key()

    def __repr__(self) -> str:
        return f"<Message {self.mime_type or 'text/plain'} fields={self.header.names()!r}>"


def _attachment_spec(
    source: Any,
    content: bytes | str | None,
    filename: str | None,
    mime_type: str | None,
) -> AttachmentSpec:
    if isinstance(source, AttachmentSpec):
        return source
    if isinstance(source, Mapping):
        return AttachmentSpec.model_validate(dict(source))
    if source is not None and content is None:
        path = Path(source)
        return AttachmentSpec(
            filename=filename or path.name,
            content=path.read_bytes(),
            mime_type=mime_type,
        )
    name = filename or (os.fspath(source) if source is not None else None)
    if name is None or content is None:
        raise InvalidFieldValueError("add_file needs a path, or a filename with content")
    return AttachmentSpec(filename=name, content=content, mime_type=mime_type)

