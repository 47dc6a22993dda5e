"""Ordered, case-insensitive header model."""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import Any

from . import diagnostics
from .fields import Field, canonical_key, display_name, field_spec

_FIELD_LINE_RE = re.compile(r"^([!-9;-~]+)[ \t]*:(.*)$", re.DOTALL)
_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")


class Header:
    """Ordered list of :class:`Field` entries.

    Lookup is case-insensitive and ``content_type`` addresses the same
    field as ``Content-Type``.  Assigning to a singleton name replaces the
    existing field, assigning to a repeatable name appends, and assigning
    ``None``, ``""`` or an empty list deletes every field with that name.
    A field parsed with an empty value is kept: "absent" and "present but
    empty" differ.
    """

    def __init__(self, fields: list[Field] | None = None) -> None:
        self._fields: list[Field] = list(fields or [])

    @classmethod
    def parse(cls, text: str, *, warnings_to: Any = None) -> Header:
        """Tokenise a raw header block.

        Lines that cannot be split into ``name: value`` are skipped with a
        warning, as are their continuation lines.  Non US-ASCII values are
        kept as-is with a warning.
        """
        header = cls()
        current: list[str] | None = None
        logical: list[tuple[str, list[str]]] = []
        for line in _LINE_SPLIT_RE.split(text):
            if not line.strip():
                continue
            if line[0] in " \t":
                if current is not None:
                    current.append(line)
                continue
            match = _FIELD_LINE_RE.match(line)
            if match is None:
                diagnostics.warn(
                    warnings_to,
                    "header_line_ignored",
                    f"Could not parse (and so ignoring) '{line}'",
                    line=line,
                )
                current = None
                continue
            current = [match.group(2)]
            logical.append((match.group(1), current))

        for name, pieces in logical:
            value = "\r\n".join(pieces)
            if not value.isascii():
                diagnostics.warn(
                    warnings_to,
                    "header_non_ascii",
                    f"Non US-ASCII characters found in header '{name}'",
                    field=name,
                )
            header._fields.append(Field(name, value))
        return header

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> Field | None:
        """First field called *name*, or ``None`` if absent."""
        key = canonical_key(name)
        for f in self._fields:
            if f.key == key:
                return f
        return None

    def get_all(self, name: str) -> list[Field]:
        key = canonical_key(name)
        return [f for f in self._fields if f.key == key]

    @property
    def fields(self) -> list[Field]:
        """All fields in insertion order (a copy)."""
        return list(self._fields)

    def names(self) -> list[str]:
        return [f.name for f in self._fields]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set(self, name: str, value: Any) -> Field | None:
        """Assign *value* to *name* following singleton/repeatable rules.

        Returns the new field, or ``None`` when the assignment deleted.
        """
        if (
            value is None
            or (isinstance(value, str) and not value.strip())
            or (isinstance(value, (list, tuple)) and not value)
        ):
            self.delete(name)
            return None
        if isinstance(value, Field):
            new = value
        else:
            new = Field(display_name(name), value)
        if field_spec(name).repeatable:
            self._fields.append(new)
            return new
        key = canonical_key(name)
        for index, existing in enumerate(self._fields):
            if existing.key == key:
                self._fields[index] = new
                self._fields = [
                    f for i, f in enumerate(self._fields) if i <= index or f.key != key
                ]
                return new
        self._fields.append(new)
        return new

    def add(self, name: str, value: Any) -> Field:
        """Append a field regardless of repeatability."""
        new = value if isinstance(value, Field) else Field(display_name(name), value)
        self._fields.append(new)
        return new

    def delete(self, name: str) -> int:
        """Remove every field called *name*; return how many were removed."""
        key = canonical_key(name)
        before = len(self._fields)
        self._fields = [f for f in self._fields if f.key != key]
        return before - len(self._fields)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def encoded(self, *, line_length: int = 78, charset: str = "utf-8") -> str:
        return "".join(
            f.encoded(line_length=line_length, charset=charset) for f in self._fields
        )

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------

    def __getitem__(self, name: str) -> Field | None:
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        self.delete(name)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __iter__(self) -> Iterator[Field]:
        return iter(list(self._fields))

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Header):
            return NotImplemented
        return self._fields == other._fields

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Header({self.names()!r})"
