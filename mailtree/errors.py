"""Exceptions raised by mailtree.

Parsing never raises: malformed input degrades to a partial model plus
warnings.  The exceptions below are reserved for caller mistakes.
"""

from __future__ import annotations


class MailError(Exception):
    """Base class for all mailtree errors."""


class AmbiguousDecodeError(MailError):
    """Raised when ``decoded()`` is called on a multipart message."""

    def __init__(self) -> None:
        super().__init__(
            "Can not decode an entire message, try calling decoded() on the "
            "various fields and body or parts if it is a multipart message."
        )


class InvalidFieldValueError(MailError, ValueError):
    """Raised when a structured value assigned to a field has the wrong shape."""
