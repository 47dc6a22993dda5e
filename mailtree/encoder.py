""":class:`Message` tree to wire text.

Encoding materialises deferred headers on the message itself: a
generated Message-ID, Date, Mime-Version, Content-Type and
Content-Transfer-Encoding are stored permanently, so encoding twice
yields the same text unless the message is mutated in between.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from . import diagnostics
from .config import MailSettings, get_settings
from .tokens import TokenSource, default_token_source

if TYPE_CHECKING:
    from .message import Message

logger = structlog.get_logger()

CHARSET_WARNING = (
    "Non US-ASCII detected and no charset defined. "
    "Defaulting to UTF-8, set your own if this is incorrect."
)
TRANSFER_ENCODING_WARNING = (
    "Non US-ASCII detected and no content-transfer-encoding defined. "
    "Defaulting to 8bit, set your own if this is incorrect."
)


class MessageEncoder:
    """Renders a message tree with CRLF line endings."""

    def __init__(
        self,
        settings: MailSettings | None = None,
        token_source: TokenSource | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._tokens = token_source or default_token_source

    def encode(self, message: Message) -> str:
        text = self._encode_entity(message, root=message, top_level=True)
        logger.debug(
            "message_encoded",
            message_id=message.message_id,
            parts=len(message.parts),
            size=len(text),
        )
        return text

    # ------------------------------------------------------------------
    # Defaults
    # ------------------------------------------------------------------

    def apply_defaults(self, message: Message, *, root: Message, top_level: bool) -> None:
        """Store every missing mandatory header on *message*."""
        if top_level:
            if not message.has_message_id:
                message.add_message_id(
                    f"<{self._tokens.token()}@{self._settings.message_id_host()}>"
                )
            if not message.has_date:
                message.add_date()

        if message.body is None:
            if message.main_type != "multipart":
                message["Content-Type"] = "multipart/mixed"
            if not message.boundary:
                message.set_content_type_parameter(
                    "boundary", f"--==_mailtree_{self._tokens.token()}"
                )
        else:
            self._apply_leaf_defaults(message, root=root)

        if top_level and not message.has_mime_version:
            has_mime_field = any(f.key.startswith("content-") for f in message.header)
            if has_mime_field or message.is_multipart:
                message.add_mime_version()

    def _apply_leaf_defaults(self, message: Message, *, root: Message) -> None:
        body = message.body
        assert body is not None
        ascii_only = body.is_ascii()
        charset_explicit = message.has_charset
        attachment = message.is_attachment

        if not message.has_content_type:
            message["Content-Type"] = "text/plain"
            if not attachment:
                if ascii_only:
                    message.charset = self._settings.ascii_charset
                else:
                    message.charset = self._settings.default_charset
                    diagnostics.warn(root, "charset_defaulted", CHARSET_WARNING)
        elif message.main_type == "text" and not charset_explicit and not attachment and not ascii_only:
            message.charset = self._settings.default_charset
            diagnostics.warn(root, "charset_defaulted", CHARSET_WARNING)

        if not message.has_content_transfer_encoding:
            if ascii_only:
                message["Content-Transfer-Encoding"] = "7bit"
            else:
                message["Content-Transfer-Encoding"] = "8bit"
                if not charset_explicit:
                    diagnostics.warn(
                        root, "transfer_encoding_defaulted", TRANSFER_ENCODING_WARNING
                    )

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _encode_entity(self, message: Message, *, root: Message, top_level: bool) -> str:
        self.apply_defaults(message, root=root, top_level=top_level)
        out = [
            message.header.encoded(
                line_length=self._settings.line_length,
                charset=self._settings.default_charset,
            ),
            "\r\n",
        ]
        body = message.body
        if body is not None:
            out.append(body.encoded())
            return "".join(out)

        boundary = message.boundary
        for part in message.parts:
            out.append(f"--{boundary}\r\n")
            out.append(self._encode_entity(part, root=root, top_level=False))
            out.append("\r\n")
        out.append(f"--{boundary}--\r\n")
        return "".join(out)
