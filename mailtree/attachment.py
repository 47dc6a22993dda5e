"""Attachment input model and MIME type inference."""

from __future__ import annotations

import mimetypes
from pathlib import PurePath

from pydantic import BaseModel, Field, field_validator

DEFAULT_MIME_TYPE = "application/octet-stream"


def guess_mime_type(filename: str) -> str:
    """Infer a MIME type from a filename extension."""
    return mimetypes.guess_type(filename)[0] or DEFAULT_MIME_TYPE


class AttachmentSpec(BaseModel):
    """A file to attach: bytes supplied by the caller plus naming metadata."""

    filename: str = Field(description="Filename presented to the recipient")
    content: bytes = Field(description="Raw (unencoded) file content")
    mime_type: str | None = Field(
        default=None,
        description="MIME type; inferred from the filename extension when omitted",
    )

    @field_validator("filename")
    @classmethod
    def _basename_only(cls, value: str) -> str:
        return PurePath(value).name or value

    @field_validator("content", mode="before")
    @classmethod
    def _text_to_bytes(cls, value: object) -> object:
        if isinstance(value, str):
            return value.encode("utf-8")
        return value

    @property
    def resolved_mime_type(self) -> str:
        return self.mime_type or guess_mime_type(self.filename)
