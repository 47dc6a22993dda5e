"""Delivery-status (bounce) view over ``multipart/report`` messages.

The ``message/delivery-status`` part carries field blocks in its body: one
per-message block followed by per-recipient blocks, separated by blank
lines.  They are read with the same header grammar as a message header.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from .codecs import text_to_lf
from .header import Header

_BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")


class DeliveryStatus(BaseModel):
    """Read-only summary of an RFC 3464 delivery-status notification."""

    reporting_mta: str | None = Field(default=None, description="Reporting-MTA field")
    original_recipient: str | None = Field(default=None, description="Original-Recipient field")
    final_recipient: str | None = Field(default=None, description="Final-Recipient field")
    action: str | None = Field(default=None, description="failed, delayed, delivered, relayed or expanded")
    error_status: str | None = Field(default=None, description="Status code (x.y.z)")
    diagnostic_code: str | None = Field(default=None, description="Diagnostic-Code field")
    remote_mta: str | None = Field(default=None, description="Remote-MTA field")

    @property
    def bounced(self) -> bool:
        return (self.action or "").lower() == "failed"

    @property
    def retryable(self) -> bool:
        """True for transient (4.x.x) failures."""
        return (self.error_status or "").startswith("4")


def parse_delivery_status(text: str) -> DeliveryStatus:
    """Parse the body of a ``message/delivery-status`` part.

    Per-message fields come first; the first per-recipient block wins for
    recipient-level fields.
    """
    blocks = [Header.parse(block) for block in _BLOCK_SPLIT_RE.split(text_to_lf(text).strip()) if block.strip()]

    def first(name: str) -> str | None:
        for block in blocks:
            found = block.get(name)
            if found is not None:
                return found.decoded() or None
        return None

    return DeliveryStatus(
        reporting_mta=first("Reporting-MTA"),
        original_recipient=first("Original-Recipient"),
        final_recipient=first("Final-Recipient"),
        action=(first("Action") or "").lower() or None,
        error_status=first("Status"),
        diagnostic_code=first("Diagnostic-Code"),
        remote_mta=first("Remote-MTA"),
    )
