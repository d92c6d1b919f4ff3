"""Diagnostic model: messages, snippets and annotations.

A ``Message`` is the unit handed to a reporter. It carries a level, an
optional id (the slug of the rule that produced it), a title, any number of
source ``Snippet``s and any number of footer messages. Snippets point at a
piece of source text, and ``Annotation``s mark byte ranges inside it.

Annotation ranges are UTF-8 byte offsets into the snippet source, so they
survive serialization unchanged. Rules should build them from character
positions with ``Level.span_utf8`` so a range never splits a code point.

The builder methods (``with_id``, ``add_snippet``, ``add_footer``, ...)
mutate in place and return ``self`` so calls can be chained.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional


class Level(Enum):
    """Severity of a message or annotation."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    NOTE = "note"
    HELP = "help"     # Footer suggestions only

    def title(self, title: str) -> "Message":
        """Start a new message at this level."""
        return Message(level=self, title=title)

    def span(self, start: int, end: int) -> "Annotation":
        """Annotate the byte range ``start..end``."""
        return Annotation(range=(start, end), level=self)

    def span_utf8(self, text: str, start: int, length: int) -> "Annotation":
        """Annotate ``length`` characters of ``text`` starting at character ``start``."""
        return self.span(*char_span_to_bytes(text, start, length))


def char_to_byte(text: str, index: int) -> int:
    """Byte offset of character ``index`` in the UTF-8 encoding of ``text``."""
    index = max(0, min(index, len(text)))
    return len(text[:index].encode("utf-8"))


def ceil_char_boundary(data: bytes, index: int) -> int:
    """Smallest code point boundary in ``data`` that is >= ``index``."""
    if index >= len(data):
        return len(data)
    if index <= 0:
        return 0
    # UTF-8 continuation bytes look like 0b10xxxxxx
    while index < len(data) and (data[index] & 0xC0) == 0x80:
        index += 1
    return index


def char_span_to_bytes(text: str, start: int, length: int) -> tuple[int, int]:
    """Convert a character span of ``text`` into a byte range."""
    begin = char_to_byte(text, start)
    end = char_to_byte(text, start + length)
    return begin, end


@dataclass
class Annotation:
    """A labelled byte range inside a snippet's source."""
    range: tuple[int, int]
    level: Level
    label: Optional[str] = None

    def with_label(self, label: str) -> "Annotation":
        self.label = label
        return self

    @property
    def start(self) -> int:
        return self.range[0]

    @property
    def end(self) -> int:
        return self.range[1]

    def to_dict(self) -> dict[str, Any]:
        return {
            "range": {"start": self.range[0], "end": self.range[1]},
            "level": self.level.value,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Annotation":
        span = data["range"]
        return cls(
            range=(span["start"], span["end"]),
            level=Level(data["level"]),
            label=data.get("label"),
        )


@dataclass
class Snippet:
    """A piece of source text, with the line it starts on."""
    source: str
    line_start: int = 1
    origin: Optional[str] = None
    annotations: list[Annotation] = field(default_factory=list)
    fold: bool = False

    def at_line(self, line_start: int) -> "Snippet":
        self.line_start = line_start
        return self

    def with_origin(self, origin: Optional[str]) -> "Snippet":
        """Set the origin; ``None`` leaves the snippet without one."""
        self.origin = origin
        return self

    def add_annotation(self, annotation: Annotation) -> "Snippet":
        self.annotations.append(annotation)
        return self

    def add_annotations(self, annotations: Iterable[Annotation]) -> "Snippet":
        self.annotations.extend(annotations)
        return self

    def folded(self, fold: bool = True) -> "Snippet":
        self.fold = fold
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "line_start": self.line_start,
            "origin": self.origin,
            "fold": self.fold,
            "annotations": [a.to_dict() for a in self.annotations],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snippet":
        return cls(
            source=data["source"],
            line_start=data.get("line_start", 1),
            origin=data.get("origin"),
            annotations=[Annotation.from_dict(a) for a in data.get("annotations", [])],
            fold=data.get("fold", False),
        )


@dataclass
class Message:
    """A complete diagnostic."""
    level: Level
    title: str
    id: Optional[str] = None
    snippets: list[Snippet] = field(default_factory=list)
    footer: list["Message"] = field(default_factory=list)

    def with_id(self, id: str) -> "Message":
        self.id = id
        return self

    def add_snippet(self, snippet: Snippet) -> "Message":
        self.snippets.append(snippet)
        return self

    def add_snippets(self, snippets: Iterable[Snippet]) -> "Message":
        self.snippets.extend(snippets)
        return self

    def add_footer(self, footer: "Message") -> "Message":
        self.footer.append(footer)
        return self

    def add_footers(self, footers: Iterable["Message"]) -> "Message":
        self.footer.extend(footers)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dict."""
        return {
            "level": self.level.value,
            "id": self.id,
            "title": self.title,
            "snippets": [s.to_dict() for s in self.snippets],
            "footer": [f.to_dict() for f in self.footer],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        """Create from a dict produced by ``to_dict``. Raises KeyError on missing fields."""
        return cls(
            level=Level(data["level"]),
            title=data["title"],
            id=data.get("id"),
            snippets=[Snippet.from_dict(s) for s in data.get("snippets", [])],
            footer=[cls.from_dict(f) for f in data.get("footer", [])],
        )


# ============================================================================
# Plain-text rendering
# ============================================================================

_LABEL_PREFIX = {Level.INFO: "info: ", Level.NOTE: "note: ", Level.HELP: "help: "}


def render(message: Message) -> str:
    """
    Render a message as plain text.

    The layout follows rustc-style diagnostics: a header line, then each
    snippet with a line-number gutter and marker lines under annotated
    text, then footers. No trailing newline.
    """
    width = _gutter_width(message)
    pad = " " * width

    header = message.level.value
    if message.id:
        header += f"[{message.id}]"
    lines = [f"{header}: {message.title}"]

    origin_line = _origin_line(message)
    if origin_line:
        lines.append(f"{pad}--> {origin_line}")

    for snippet in message.snippets:
        lines.append(f"{pad} |")
        lines.extend(_render_snippet(snippet, width))

    if message.snippets:
        lines.append(f"{pad} |")

    for footer in message.footer:
        lines.append(f"{pad} = {footer.level.value}: {footer.title}")

    return "\n".join(lines)


def _gutter_width(message: Message) -> int:
    widest = 1
    for snippet in message.snippets:
        last = snippet.line_start + max(snippet.source.count("\n"), 0)
        widest = max(widest, len(str(last)))
    return widest


def _origin_line(message: Message) -> Optional[str]:
    for snippet in message.snippets:
        if snippet.origin is None:
            continue
        line, column = snippet.line_start, 1
        if snippet.annotations:
            first = min(snippet.annotations, key=lambda a: a.start)
            line, column = _line_column(snippet, first.start)
        return f"{snippet.origin}:{line}:{column}"
    return None


def _line_column(snippet: Snippet, offset: int) -> tuple[int, int]:
    """1-based line and column of byte ``offset`` in the snippet source."""
    data = snippet.source.encode("utf-8")
    offset = ceil_char_boundary(data, offset)
    before = data[:offset].decode("utf-8")
    line = snippet.line_start + before.count("\n")
    column = len(before) - (before.rfind("\n") + 1) + 1
    return line, column


def _render_snippet(snippet: Snippet, width: int) -> list[str]:
    pad = " " * width
    out: list[str] = []

    # (text, byte start, byte end) for each source line
    spans = []
    offset = 0
    for text in snippet.source.split("\n"):
        size = len(text.encode("utf-8"))
        spans.append((text, offset, offset + size))
        offset += size + 1

    annotated = set()
    for index, (_, begin, end) in enumerate(spans):
        if any(_touches(a, begin, end) for a in snippet.annotations):
            annotated.add(index)

    visible = set(range(len(spans)))
    if snippet.fold and annotated:
        visible = {
            i for i in range(len(spans))
            if any(abs(i - a) <= 1 for a in annotated)
        }

    elided = False
    for index, (text, begin, end) in enumerate(spans):
        if index not in visible:
            if not elided:
                out.append("...")
                elided = True
            continue
        elided = False

        number = str(snippet.line_start + index).rjust(width)
        out.append(f"{number} | {text}".rstrip())

        markers = sorted(
            (a for a in snippet.annotations if _touches(a, begin, end)),
            key=lambda a: (a.start, a.end),
        )
        for annotation in markers:
            out.append(f"{pad} | {_marker(annotation, text, begin, end)}".rstrip())

    return out


def _touches(annotation: Annotation, begin: int, end: int) -> bool:
    if annotation.start == annotation.end:
        return begin <= annotation.start <= end
    return annotation.start < end + 1 and annotation.end > begin


def _marker(annotation: Annotation, text: str, begin: int, end: int) -> str:
    data = text.encode("utf-8")
    local_start = max(annotation.start, begin) - begin
    local_end = min(annotation.end, end) - begin

    column = len(data[:ceil_char_boundary(data, local_start)].decode("utf-8"))
    stop = len(data[:ceil_char_boundary(data, local_end)].decode("utf-8"))
    count = max(stop - column, 1)

    char = "^" if annotation.level is Level.ERROR else "-"
    marker = " " * column + char * count

    # Only label the line the annotation ends on
    if annotation.label and annotation.end <= end + 1:
        marker += " " + _LABEL_PREFIX.get(annotation.level, "") + annotation.label
    return marker
