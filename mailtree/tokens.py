"""Random token sources for generated Message-IDs and MIME boundaries.

The source is injectable so tests can produce reproducible output.
"""

from __future__ import annotations

import itertools
import secrets
from typing import Protocol


class TokenSource(Protocol):
    """Anything that can hand out collision-resistant tokens."""

    def token(self) -> str: ...


class RandomTokenSource:
    """Default source backed by :mod:`secrets`."""

    def __init__(self, nbytes: int = 16) -> None:
        self._nbytes = nbytes

    def token(self) -> str:
        return secrets.token_hex(self._nbytes)


class SequentialTokenSource:
    """Deterministic source: ``<prefix>1``, ``<prefix>2``, ..."""

    def __init__(self, prefix: str = "token") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)

    def token(self) -> str:
        return f"{self._prefix}{next(self._counter)}"


default_token_source: TokenSource = RandomTokenSource()
