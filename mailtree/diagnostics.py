"""Side channel for non-fatal parse and encode anomalies.

Every warning is logged through structlog and recorded on the message it
concerns, so callers can inspect anomalies without a log sink.
"""

from __future__ import annotations

from typing import Any, Protocol

import structlog

logger = structlog.get_logger()


class _HasWarnings(Protocol):
    warnings: list[str]


def warn(target: _HasWarnings | None, event: str, text: str, **context: Any) -> None:
    """Emit *text* as a warning for *target* under the structlog *event* name."""
    logger.warning(event, detail=text, **context)
    if target is not None:
        target.warnings.append(text)
