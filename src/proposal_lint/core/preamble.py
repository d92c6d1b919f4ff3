"""Preamble splitting and parsing.

A proposal starts with a preamble: ``name: value`` lines fenced by two
lines containing exactly ``---``. Everything after the second fence is the
Markdown body.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional
import re

from .snippets import Level, Message, Snippet

# Only `\n` terminates a fence line; `---\r\n` does not match.
_MARKER = re.compile(r"(^|\n)---(\n|$)")

MISSING_DELIMITER = "missing delimiter `:` in preamble field"


class SplitError(Exception):
    """The document is not fenced by `---` lines."""


class LeadingGarbage(SplitError):
    """Text appeared before the first delimiter."""

    def __init__(self) -> None:
        super().__init__("text found before the opening `---`")


class MissingStart(SplitError):
    """The first delimiter was not found."""

    def __init__(self) -> None:
        super().__init__("missing opening `---`")


class MissingEnd(SplitError):
    """The second delimiter was not found."""

    def __init__(self) -> None:
        super().__init__("missing closing `---`")


class ParseErrors(Exception):
    """One or more preamble lines could not be parsed."""

    def __init__(self, errors: list[Message]):
        super().__init__(f"{len(errors)} malformed preamble field(s)")
        self.errors = errors


def split(text: str) -> tuple[str, str]:
    """
    Divide a document into its preamble and body.

    Returns:
        Tuple of (preamble_text, body_text), without the fences.

    Raises:
        MissingStart, MissingEnd, LeadingGarbage
    """
    markers = _MARKER.finditer(text)

    start = next(markers, None)
    if start is None:
        raise MissingStart()

    end = next(markers, None)
    if end is None:
        raise MissingEnd()

    if start.start() != 0:
        raise LeadingGarbage()

    return text[start.end():end.start()], text[end.end():]


@dataclass(frozen=True)
class Field:
    """
    One ``name: value`` line of a preamble.

    Holds offsets into the preamble buffer rather than copies of the text;
    ``name``, ``value`` and ``source`` slice the shared buffer on access.
    """
    line_start: int
    buffer: str = field(repr=False, compare=False)
    begin: int = 0
    colon: int = 0
    end: int = 0

    @property
    def name(self) -> str:
        """Text before the first colon."""
        return self.buffer[self.begin:self.colon]

    @property
    def value(self) -> str:
        """Text after the first colon, leading whitespace included."""
        return self.buffer[self.colon + 1:self.end]

    @property
    def source(self) -> str:
        """The whole line."""
        return self.buffer[self.begin:self.end]


class Preamble:
    """Ordered preamble fields with last-write-wins lookup by name."""

    def __init__(self, fields: Optional[list[Field]] = None):
        self._fields: list[Field] = []
        self._by_name: dict[str, int] = {}
        for item in fields or []:
            self._push(item)

    def _push(self, item: Field) -> None:
        self._by_name[item.name] = len(self._fields)
        self._fields.append(item)

    @classmethod
    def parse(cls, origin: Optional[str], text: str) -> "Preamble":
        """
        Parse preamble text (usually from ``split``).

        Either every line parses and a Preamble is returned, or ParseErrors
        is raised with one message per bad line. Successful lines seen
        before or after a failure are discarded.
        """
        fields: list[Field] = []
        errors: list[Message] = []

        begin = 0
        for index, line in enumerate(text.split("\n")):
            line_start = index + 2  # Lines start at one, plus the opening `---`
            end = begin + len(line)
            colon = line.find(":")

            if colon < 0:
                errors.append(
                    Level.ERROR.title(MISSING_DELIMITER).add_snippet(
                        Snippet(line, line_start=line_start, origin=origin, fold=False)
                    )
                )
            elif not errors:
                fields.append(Field(line_start, text, begin, begin + colon, end))

            begin = end + 1

        if errors:
            raise ParseErrors(errors)

        return cls(fields)

    def fields(self) -> Iterator[Field]:
        """Every field in source order, duplicates included."""
        return iter(self._fields)

    def by_name(self, name: str) -> Optional[Field]:
        """The last field with this name, or None."""
        index = self._by_name.get(name)
        return None if index is None else self._fields[index]

    def by_index(self, index: int) -> Optional[Field]:
        """The field at this zero-based position, or None."""
        if 0 <= index < len(self._fields):
            return self._fields[index]
        return None

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Preamble({[f.name for f in self._fields]!r})"
