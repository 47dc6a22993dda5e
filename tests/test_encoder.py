"""Tests for mailtree.encoder."""

from __future__ import annotations

import re

import pytest

from tests.conftest import _build_alternative_email

from mailtree.config import MailSettings
from mailtree.encoder import CHARSET_WARNING, TRANSFER_ENCODING_WARNING, MessageEncoder
from mailtree.message import Message
from mailtree.tokens import SequentialTokenSource

NON_ASCII_BODY = "This is NOT plain text ASCII　− かきくけこ"


@pytest.fixture
def encoder(settings: MailSettings, tokens: SequentialTokenSource) -> MessageEncoder:
    return MessageEncoder(settings=settings, token_source=tokens)


def _simple_message() -> Message:
    message = Message()
    message.from_ = "mikel@test.lindsaar.net"
    message.to = "you@test.lindsaar.net"
    message.subject = "This is a test email"
    message.body = "This is a body of the email"
    return message


def _part(body: str) -> Message:
    part = Message()
    part.body = body
    return part


class TestRequiredFields:
    def test_message_id_generated_and_persisted(self, encoder: MessageEncoder):
        message = _simple_message()
        assert not message.has_message_id
        text = encoder.encode(message)
        assert "Message-ID: <token1@test.host.mail>\r\n" in text
        assert message.has_message_id
        assert message.message_id == "token1@test.host.mail"

    def test_explicit_message_id_preserved(self, encoder: MessageEncoder):
        message = _simple_message()
        message.add_message_id("<ThisIsANonUniqueMessageId@me.com>")
        assert "Message-ID: <ThisIsANonUniqueMessageId@me.com>\r\n" in encoder.encode(message)

    def test_date_generated_and_persisted(self, encoder: MessageEncoder):
        message = _simple_message()
        text = encoder.encode(message)
        assert re.search(
            r"Date: \w{3}, [\s\d]\d \w{3} \d{4} \d{2}:\d{2}:\d{2} [-+]\d{4}\r\n", text
        )
        assert message.has_date

    def test_explicit_date_preserved(self, encoder: MessageEncoder):
        message = _simple_message()
        message.add_date("Mon, 24 Nov 1997 14:22:01 -0800")
        assert "Date: Mon, 24 Nov 1997 14:22:01 -0800\r\n" in encoder.encode(message)

    def test_mime_version_injected(self, encoder: MessageEncoder):
        message = _simple_message()
        assert not message.has_mime_version
        assert "Mime-Version: 1.0\r\n" in encoder.encode(message)
        assert message.has_mime_version

    def test_explicit_mime_version_preserved(self, encoder: MessageEncoder):
        message = _simple_message()
        message.add_mime_version("3.0 (This is an unreal version number)")
        text = encoder.encode(message)
        assert "Mime-Version: 3.0 (This is an unreal version number)\r\n" in text

    def test_encoding_is_idempotent(self, encoder: MessageEncoder):
        message = _simple_message()
        assert encoder.encode(message) == encoder.encode(message)

    def test_empty_message_still_encodes(self, encoder: MessageEncoder):
        message = Message()
        text = encoder.encode(message)
        assert text.endswith("\r\n\r\n")
        assert message.body is not None


class TestCharsetAndTransferEncoding:
    def test_ascii_body_defaults(self, encoder: MessageEncoder):
        message = Message()
        message.body = "This is plain text US-ASCII"
        text = encoder.encode(message)
        assert 'Content-Type: text/plain;\r\n\tcharset="US-ASCII"\r\n' in text
        assert "Content-Transfer-Encoding: 7bit\r\n" in text
        assert message.warnings == []

    def test_attachment_gets_no_charset(self, encoder: MessageEncoder):
        message = Message()
        message.body = "This is plain text US-ASCII"
        message.content_disposition = 'attachment; filename="foo.jpg"'
        text = encoder.encode(message)
        assert "Content-Type: text/plain\r\n" in text
        assert message.charset is None

    def test_non_ascii_without_content_type(self, encoder: MessageEncoder):
        message = Message()
        message.body = NON_ASCII_BODY
        message.content_transfer_encoding = "8bit"
        text = encoder.encode(message)
        assert 'Content-Type: text/plain;\r\n\tcharset="UTF-8"\r\n' in text
        assert message.warnings == [CHARSET_WARNING]

    def test_non_ascii_without_charset_parameter(self, encoder: MessageEncoder):
        message = Message()
        message.body = NON_ASCII_BODY
        message.content_type = "text/plain"
        message.content_transfer_encoding = "8bit"
        encoder.encode(message)
        assert message.charset == "UTF-8"
        assert message.warnings == [CHARSET_WARNING]

    def test_explicit_charset_no_warning(self, encoder: MessageEncoder):
        message = Message()
        message.body = NON_ASCII_BODY
        message.content_transfer_encoding = "8bit"
        message.content_type = "text/plain; charset=UTF-8"
        encoder.encode(message)
        assert message.warnings == []

    def test_non_ascii_defaults_to_8bit(self, encoder: MessageEncoder):
        message = Message()
        message.body = NON_ASCII_BODY
        message.content_type = "text/plain"
        text = encoder.encode(message)
        assert "Content-Transfer-Encoding: 8bit\r\n" in text
        assert message.warnings == [CHARSET_WARNING, TRANSFER_ENCODING_WARNING]

    def test_non_ascii_with_explicit_charset_defaults_to_8bit_quietly(self, encoder: MessageEncoder):
        message = Message()
        message.body = NON_ASCII_BODY
        message.content_type = "text/plain; charset=utf-8"
        text = encoder.encode(message)
        assert "Content-Transfer-Encoding: 8bit\r\n" in text
        assert message.warnings == []

    def test_body_is_emitted_raw_under_8bit(self, encoder: MessageEncoder):
        message = Message()
        message.body = NON_ASCII_BODY
        message.content_type = "text/plain; charset=utf-8"
        assert encoder.encode(message).endswith(NON_ASCII_BODY)


class TestMultipartEncoding:
    def test_parts_and_closing_delimiter(
        self, encoder: MessageEncoder, tokens: SequentialTokenSource
    ):
        message = Message(token_source=tokens)
        message.add_part().body = "This is a part"
        message.add_part().body = "This is another part"
        text = encoder.encode(message)
        boundary = message.boundary
        assert boundary == "--==_mailtree_token1"
        assert text.count(f"--{boundary}\r\n") == 2
        assert text.endswith(f"--{boundary}--\r\n")
        assert "This is a part\r\n--" in text

    def test_parts_get_no_message_id_or_date(self, encoder: MessageEncoder):
        message = Message()
        message.subject = "FooBar"
        message.text_part = _part("This is Text")
        message.html_part = _part("<b>This is HTML</b>")
        encoder.encode(message)
        assert message.has_message_id
        for part in message.parts:
            assert part.message_id is None
            assert not part.has_date

    def test_content_type_boundary_in_header(self, encoder: MessageEncoder):
        message = Message()
        message.text_part = _part("This is Text")
        message.html_part = _part("<b>This is HTML</b>")
        text = encoder.encode(message)
        assert re.search(
            r'Content-Type: multipart/alternative;\s+boundary="' + re.escape(message.boundary) + '"',
            text,
        )
        assert f"{message.boundary}--" in text

    def test_round_trip(self, encoder: MessageEncoder):
        original = Message(_build_alternative_email())
        reparsed = Message(encoder.encode(original))
        assert reparsed == original
        assert reparsed.parts[0].decoded() == "This is the plain text with a soft break"

    def test_header_lines_are_folded(self, encoder: MessageEncoder):
        message = _simple_message()
        message.subject = " ".join(["word"] * 40)
        text = encoder.encode(message)
        header_block = text.split("\r\n\r\n", 1)[0]
        assert all(len(line) <= 78 for line in header_block.split("\r\n"))
        assert Message(text).subject == message.subject


class TestMessageEncoded:
    def test_uses_message_settings_and_tokens(self, settings: MailSettings):
        message = Message(settings=settings, token_source=SequentialTokenSource("id"))
        message.body = "hello"
        assert "Message-ID: <id1@test.host.mail>\r\n" in message.encoded()
        assert str(message) == message.encoded()
        assert message.to_bytes() == message.encoded().encode("utf-8")

    def test_raw_latin1_subject_is_reencoded(self):
        message = Message(b"From: bob@example.com\r\nSubject: caf\xe9\r\n\r\nbody\r\n")
        assert message.subject == "café"
        assert "Non US-ASCII characters found in header 'Subject'" in message.warnings
        text = message.encoded()
        assert text.isascii()
        assert message.to_bytes().isascii()
        assert Message(text).subject == "café"
