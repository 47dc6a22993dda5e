"""Declarative construction of message trees.

    builder = MessageBuilder({"from": "mikel@test.lindsaar.net", "subject": "Hi"})
    builder.text_part(body="plain text")
    builder.html_part({"content_type": "text/html; charset=UTF-8", "body": "<h1>Hi</h1>"})
    builder.add_file("report.pdf")
    message = builder.build()

Calls are recorded and replayed in order against a fresh :class:`Message`
on every :meth:`MessageBuilder.build`, so one builder can produce many
identical messages.  ``part``, ``text_part`` and ``html_part`` return the
sub-builder for the new part.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from .config import MailSettings
from .message import Message
from .tokens import TokenSource

Step = Callable[[Message], None]


class MessageBuilder:
    """Records field assignments, parts and attachments for later replay."""

    def __init__(self, fields: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._steps: list[Step] = []
        self.set(fields, **kwargs)

    # ------------------------------------------------------------------
    # Fields
    # ------------------------------------------------------------------

    def set(self, fields: Mapping[str, Any] | None = None, **kwargs: Any) -> MessageBuilder:
        """Assign several fields at once.

        Keys follow header naming (``content_type`` == ``Content-Type``); a
        trailing underscore is dropped so ``from_=`` works as a keyword.
        ``body`` sets the body and ``headers`` is a mapping of custom
        headers.
        """
        merged: dict[str, Any] = dict(fields or {})
        merged.update(kwargs)
        for name, value in merged.items():
            if name == "headers":
                for custom, custom_value in dict(value).items():
                    self.header(custom, custom_value)
            else:
                self.header(name, value)
        return self

    def header(self, name: str, value: Any) -> MessageBuilder:
        name = name.rstrip("_")

        def step(message: Message) -> None:
            message[name] = value

        self._steps.append(step)
        return self

    def body(self, value: str | bytes) -> MessageBuilder:
        return self.header("body", value)

    # ------------------------------------------------------------------
    # Parts
    # ------------------------------------------------------------------

    def part(self, fields: Mapping[str, Any] | str | None = None, **kwargs: Any) -> MessageBuilder:
        """Add a child part; a plain string is taken as its body."""
        if isinstance(fields, str):
            fields = {"body": fields}
        child = MessageBuilder(fields, **kwargs)
        self._steps.append(lambda message: child.apply(message.add_part()))
        return child

    def text_part(self, fields: Mapping[str, Any] | None = None, **kwargs: Any) -> MessageBuilder:
        return self._alternative("text/plain", fields, kwargs)

    def html_part(self, fields: Mapping[str, Any] | None = None, **kwargs: Any) -> MessageBuilder:
        return self._alternative("text/html", fields, kwargs)

    def _alternative(
        self,
        mime_type: str,
        fields: Mapping[str, Any] | None,
        kwargs: dict[str, Any],
    ) -> MessageBuilder:
        child = MessageBuilder(fields, **kwargs)
        self._steps.append(lambda message: child.apply(message.find_or_create_part(mime_type)))
        return child

    def add_file(self, *args: Any, **kwargs: Any) -> MessageBuilder:
        """Record :meth:`Message.add_file` with the same arguments."""
        self._steps.append(lambda message: message.add_file(*args, **kwargs))
        return self

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def apply(self, message: Message) -> Message:
        for step in self._steps:
            step(message)
        return message

    def build(
        self,
        *,
        settings: MailSettings | None = None,
        token_source: TokenSource | None = None,
    ) -> Message:
        return self.apply(Message(settings=settings, token_source=token_source))
