"""Library configuration loaded from environment variables.

Uses pydantic-settings so hosts embedding the library can tune defaults
without code changes.  Example: ``MAILTREE_HOSTNAME=mx1.example.com``.
"""

from __future__ import annotations

import socket
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MailSettings(BaseSettings):
    """Defaults applied when messages are encoded."""

    model_config = SettingsConfigDict(env_prefix="MAILTREE_")

    # --- Generated headers --------------------------------------------------
    hostname: str | None = Field(
        default=None,
        description="Host name used in generated Message-IDs (None = local host name)",
    )
    message_id_suffix: str = Field(
        default=".mail",
        description="Suffix appended to the host part of generated Message-IDs",
    )

    # --- Charsets -----------------------------------------------------------
    default_charset: str = Field(
        default="UTF-8",
        description="Charset injected when a body contains non US-ASCII bytes",
    )
    ascii_charset: str = Field(
        default="US-ASCII",
        description="Charset injected for pure US-ASCII bodies without a Content-Type",
    )

    # --- Wire format --------------------------------------------------------
    line_length: int = Field(
        default=78,
        ge=20,
        description="Preferred maximum header line length before folding",
    )

    def message_id_host(self) -> str:
        """Return the domain part used for generated Message-IDs."""
        host = self.hostname or socket.gethostname()
        return f"{host}{self.message_id_suffix}"


@lru_cache
def get_settings() -> MailSettings:
    """Return the process-wide settings instance."""
    return MailSettings()
