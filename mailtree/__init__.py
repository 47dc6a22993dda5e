"""mailtree: RFC 2822 / MIME message parsing, modelling and encoding.

Public API re-exported here for convenience::

    from mailtree import Message, MessageBuilder, read
"""

from .attachment import AttachmentSpec
from .body import Body
from .builder import MessageBuilder
from .config import MailSettings, get_settings
from .encoder import MessageEncoder
from .envelope import Envelope
from .errors import AmbiguousDecodeError, InvalidFieldValueError, MailError
from .fields import Field, FieldKind
from .header import Header
from .message import Message, PartList
from .parser import MimeParser, read
from .report import DeliveryStatus
from .tokens import RandomTokenSource, SequentialTokenSource, TokenSource

__all__ = [
    "AmbiguousDecodeError",
    "AttachmentSpec",
    "Body",
    "DeliveryStatus",
    "Envelope",
    "Field",
    "FieldKind",
    "Header",
    "InvalidFieldValueError",
    "MailError",
    "MailSettings",
    "Message",
    "MessageBuilder",
    "MessageEncoder",
    "MimeParser",
    "PartList",
    "RandomTokenSource",
    "SequentialTokenSource",
    "TokenSource",
    "get_settings",
    "read",
]
