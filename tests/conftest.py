"""Shared test fixtures for the mailtree test suite."""

from __future__ import annotations

from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import pytest

from mailtree.config import MailSettings
from mailtree.tokens import SequentialTokenSource


@pytest.fixture
def settings() -> MailSettings:
    return MailSettings(hostname="test.host")


@pytest.fixture
def tokens() -> SequentialTokenSource:
    return SequentialTokenSource()


# ------------------------------------------------------------------
# Sample EML builders
# ------------------------------------------------------------------


def _build_basic_email() -> bytes:
    return b"To: mikel\r\nFrom: bob\r\nSubject: Hello!\r\n\r\nemail message\r\n"


def _build_plain_email(
    *,
    subject: str = "Test Subject",
    from_addr: str = "sender@example.com",
    to_addr: str = "recipient@example.com",
    body: str = "Hello, World!",
    message_id: str = "<test-001@example.com>",
    cc: str | None = None,
    bcc: str | None = None,
) -> bytes:
    """Build a simple plain-text email as raw bytes."""
    msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_addr
    msg["Message-ID"] = message_id
    msg["Date"] = "Mon, 02 Jun 2025 12:00:00 +0000"
    if cc:
        msg["Cc"] = cc
    if bcc:
        msg["Bcc"] = bcc
    return msg.as_bytes()


def _build_multipart_email(
    *,
    body_text: str = "Plain body",
    body_html: str = "<p>HTML body</p>",
    attachments: list[tuple[str, str, bytes]] | None = None,
) -> bytes:
    """Build a multipart email with text, HTML, and optional attachments."""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = "Multipart Email"
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = "<multi-001@example.com>"
    msg["Date"] = "Mon, 02 Jun 2025 12:00:00 +0000"

    alt = MIMEMultipart("alternative")
    alt.attach(MIMEText(body_text, "plain"))
    alt.attach(MIMEText(body_html, "html"))
    msg.attach(alt)

    for filename, content_type, payload in attachments or []:
        maintype, subtype = content_type.split("/", 1)
        part = MIMEBase(maintype, subtype)
        part.set_payload(payload)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=filename)
        msg.attach(part)

    return msg.as_bytes()


def _build_envelope_email() -> bytes:
    """An mbox entry: envelope line followed by a base64 text message."""
    return (
        b"From jamis_buck@byu.edu Mon May  2 16:07:05 2005\r\n"
        b"Mime-Version: 1.0 (Apple Message framework v622)\r\n"
        b"Content-Transfer-Encoding: base64\r\n"
        b"Message-Id: <d3b8cf8e49f04480850c28713a1f473e@37signals.com>\r\n"
        b"Content-Type: text/plain; charset=US-ASCII; format=flowed\r\n"
        b"To: willard15georgina@jamis.backpackit.com\r\n"
        b"From: Jamis Buck <jamis@37signals.com>\r\n"
        b"Subject: Envelope test\r\n"
        b"Date: Mon, 2 May 2005 16:07:05 -0600\r\n"
        b"\r\n"
        b"aGVsbG8gd29ybGQ=\r\n"
    )


def _build_incorrect_header_email() -> bytes:
    return (
        b"Return-Path: <xxx@xxx.xxx>\r\n"
        b"quite Delivered-To: xxx@xxx.xxx\r\n"
        b"Received: by 10.100.1.1 with SMTP id x; Wed, 21 May 2008 07:53:06 -0700\r\n"
        b"From: test@lindsaar.net\r\n"
        b"To: raasdnil@gmail.com\r\n"
        b"Subject: Testing\r\n"
        b"\r\n"
        b"body\r\n"
    )


def _build_non_ascii_header_email() -> bytes:
    return (
        "From: test@lindsaar.net\r\n"
        "To: raasdnil@gmail.com\r\n"
        "Subject: Grüße aus Köln\r\n"
        "\r\n"
        "body\r\n"
    ).encode("utf-8")


def _build_alternative_email() -> bytes:
    """multipart/alternative with text/plain and text/enriched children."""
    return (
        b"From: test@lindsaar.net\r\n"
        b"To: raasdnil@gmail.com\r\n"
        b"Subject: Alternative\r\n"
        b"Mime-Version: 1.0\r\n"
        b'Content-Type: multipart/alternative; boundary="Apple-Mail-13-196941151"\r\n'
        b"\r\n"
        b"This is a preamble\r\n"
        b"--Apple-Mail-13-196941151\r\n"
        b"Content-Type: text/plain; charset=ISO-8859-1\r\n"
        b"Content-Transfer-Encoding: quoted-printable\r\n"
        b"\r\n"
        b"This is the plain text =\r\n"
        b"with a soft break\r\n"
        b"--Apple-Mail-13-196941151\r\n"
        b"Content-Type: text/enriched; charset=ISO-8859-1\r\n"
        b"Content-Transfer-Encoding: 7bit\r\n"
        b"\r\n"
        b"<bold>enriched</bold>\r\n"
        b"--Apple-Mail-13-196941151--\r\n"
        b"This is an epilogue\r\n"
    )


def _build_attachment_email() -> bytes:
    """A text body plus one attachment named through Content-Disposition."""
    return (
        b"From: test@lindsaar.net\r\n"
        b"To: raasdnil@gmail.com\r\n"
        b"Subject: Attachment\r\n"
        b"Mime-Version: 1.0\r\n"
        b'Content-Type: multipart/mixed; boundary="----=_Part_1"\r\n'
        b"\r\n"
        b"------=_Part_1\r\n"
        b"Content-Type: text/plain; charset=US-ASCII\r\n"
        b"\r\n"
        b"See attached.\r\n"
        b"------=_Part_1\r\n"
        b"Content-Type: application/x-ruby\r\n"
        b"Content-Transfer-Encoding: base64\r\n"
        b'Content-Disposition: attachment; filename="hello.rb"\r\n'
        b"\r\n"
        b"aGVsbG8=\r\n"
        b"------=_Part_1--\r\n"
    )


def _build_nested_attachment_email() -> bytes:
    """A signed message whose first attachment sits one level deeper."""
    return (
        b"From: test@lindsaar.net\r\n"
        b"To: raasdnil@gmail.com\r\n"
        b"Subject: Nested\r\n"
        b"Mime-Version: 1.0\r\n"
        b'Content-Type: multipart/signed; protocol="application/pkcs7-signature";\r\n'
        b'\tmicalg=sha1; boundary="outer"\r\n'
        b"\r\n"
        b"--outer\r\n"
        b'Content-Type: multipart/mixed; boundary="inner"\r\n'
        b"\r\n"
        b"--inner\r\n"
        b"Content-Type: text/plain; charset=US-ASCII\r\n"
        b"\r\n"
        b"Cover attached.\r\n"
        b"--inner\r\n"
        b'Content-Type: image/png; name="byo-ror-cover.png"\r\n'
        b"Content-Transfer-Encoding: base64\r\n"
        b"Content-Disposition: inline\r\n"
        b"\r\n"
        b"iVBORw0KGgo=\r\n"
        b"--inner--\r\n"
        b"\r\n"
        b"--outer\r\n"
        b"Content-Type: application/pkcs7-signature; name=smime.p7s\r\n"
        b"Content-Transfer-Encoding: base64\r\n"
        b"Content-Disposition: attachment; filename=smime.p7s\r\n"
        b"\r\n"
        b"MIAGCSqGSIb3DQEHAqCAMIACAQExCzAJBgUrDgMCGgUA\r\n"
        b"--outer--\r\n"
    )


def _build_report_email(
    *,
    action: str,
    status: str,
    final_recipient: str,
    diagnostic_code: str,
    remote_mta: str,
) -> bytes:
    """A multipart/report delivery-status notification."""
    return (
        "From: MAILER-DAEMON@mail.example.com\r\n"
        "To: sender@example.com\r\n"
        "Subject: Delivery Status Notification\r\n"
        "Mime-Version: 1.0\r\n"
        'Content-Type: multipart/report; report-type=delivery-status; boundary="dsn"\r\n'
        "\r\n"
        "--dsn\r\n"
        "Content-Type: text/plain\r\n"
        "\r\n"
        "This is a delivery status notification.\r\n"
        "--dsn\r\n"
        "Content-Type: message/delivery-status\r\n"
        "\r\n"
        "Reporting-MTA: dns; mail.example.com\r\n"
        "Arrival-Date: Mon, 2 Jun 2025 12:00:00 +0000\r\n"
        "\r\n"
        f"Final-Recipient: {final_recipient}\r\n"
        f"Action: {action}\r\n"
        f"Status: {status}\r\n"
        f"Remote-MTA: {remote_mta}\r\n"
        f"Diagnostic-Code: {diagnostic_code}\r\n"
        "\r\n"
        "--dsn\r\n"
        "Content-Type: text/rfc822-headers\r\n"
        "\r\n"
        "Subject: original\r\n"
        "--dsn--\r\n"
    ).encode("utf-8")


def _build_report_422() -> bytes:
    return _build_report_email(
        action="delayed",
        status="4.2.2",
        final_recipient="RFC822; fraser@oooooooo.com.au",
        diagnostic_code="SMTP; 452 4.2.2 <fraser@oooooooo.com.au>... Mailbox full",
        remote_mta="DNS; mail.oooooooo.com.au",
    )


def _build_report_530() -> bytes:
    return _build_report_email(
        action="failed",
        status="5.3.0",
        final_recipient="RFC822; edwin@zzzzzzz.com",
        diagnostic_code="SMTP; 553 5.3.0 <edwin@zzzzzzz.com>... Unknown E-Mail Address",
        remote_mta="DNS; mail.zzzzzz.com",
    )


@pytest.fixture
def basic_eml_bytes() -> bytes:
    return _build_basic_email()


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return _build_plain_email()


@pytest.fixture
def multipart_eml_bytes() -> bytes:
    return _build_multipart_email(
        attachments=[
            ("report.pdf", "application/pdf", b"%PDF-1.4 fake pdf content"),
            ("data.csv", "text/csv", b"col1,col2\na,b\n"),
        ],
    )


@pytest.fixture
def png_file(tmp_path):
    path = tmp_path / "test.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR fake image data")
    return path
