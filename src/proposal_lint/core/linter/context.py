"""Views of a document handed to rules and modifiers.

``FetchContext`` is what rules see during discovery: the parsed document,
plus a way to declare which other documents they will need. ``Context`` is
what they see while linting: the same document, the resolved cross
references, the reporter, and the level to report at.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Optional, Union, TYPE_CHECKING

from markdown_it.tree import SyntaxTreeNode

from proposal_lint.core.preamble import Preamble, split
from proposal_lint.core.snippets import Level, Message, Snippet
from proposal_lint.core.tree import block_map, parse_body

from .cache import ResourceCache, base_dir, path_key, proposal_key
from .errors import ResourceKey
from .models import LintSettings

if TYPE_CHECKING:
    from .reporters import Reporter


@dataclass(frozen=True)
class Document:
    """A parsed but unresolved document."""
    source: str
    body_source: str
    preamble: Preamble
    body: SyntaxTreeNode
    origin: Optional[str] = None
    path: Optional[Path] = None
    body_line: int = 0  # Zero-based line of `source` where the body starts


def parse_document(
    source: str,
    origin: Optional[str] = None,
    path: Optional[PurePath] = None,
) -> Document:
    """
    Split and parse a document.

    Raises:
        SplitError: The `---` fences are missing or misplaced.
        ParseErrors: Some preamble lines are malformed.
    """
    preamble_source, body_source = split(source)
    preamble = Preamble.parse(origin, preamble_source)

    # `---`, the preamble lines, then `---`
    body_line = preamble_source.count("\n") + 3

    return Document(
        source=source,
        body_source=body_source,
        preamble=preamble,
        body=parse_body(body_source),
        origin=origin,
        path=Path(path) if path is not None else None,
        body_line=body_line,
    )


class FetchContext:
    """Discovery-time view: read the document, declare dependencies."""

    def __init__(self, document: Document):
        self._document = document
        self._paths: set[str] = set()
        self._proposals: set[int] = set()

    @property
    def preamble(self) -> Preamble:
        return self._document.preamble

    @property
    def body(self) -> SyntaxTreeNode:
        return self._document.body

    @property
    def body_source(self) -> str:
        return self._document.body_source

    @property
    def origin(self) -> Optional[str]:
        return self._document.origin

    def fetch(self, path: Union[str, PurePath]) -> None:
        """Ask for the document at ``path``, relative to this document."""
        self._paths.add(path_key(base_dir(self._document.path), path))

    def fetch_proposal(self, number: int) -> None:
        """Ask for a sibling proposal by number."""
        self._proposals.add(int(number))

    def requested(self) -> set[ResourceKey]:
        """Everything asked for so far, as cache keys."""
        keys: set[ResourceKey] = set(self._paths)
        keys.update(proposal_key(self._document.path, n) for n in self._proposals)
        return keys


class Context:
    """Lint-time view of a resolved document."""

    def __init__(
        self,
        document: Document,
        resources: ResourceCache,
        reporter: "Reporter",
        annotation_level: Level = Level.ERROR,
        settings: Optional[LintSettings] = None,
    ):
        self._document = document
        self._resources = resources
        self._reporter = reporter
        self._annotation_level = annotation_level
        self._settings = settings or LintSettings(annotation_level).freeze()

    def __repr__(self) -> str:
        return f"Context(origin={self.origin!r}, level={self._annotation_level.value})"

    @property
    def document(self) -> Document:
        return self._document

    @property
    def preamble(self) -> Preamble:
        return self._document.preamble

    @property
    def body(self) -> SyntaxTreeNode:
        return self._document.body

    @property
    def source(self) -> str:
        return self._document.source

    @property
    def body_source(self) -> str:
        return self._document.body_source

    @property
    def origin(self) -> Optional[str]:
        return self._document.origin

    @property
    def annotation_level(self) -> Level:
        return self._annotation_level

    @property
    def settings(self) -> LintSettings:
        return self._settings

    def report(self, message: Message) -> None:
        """Send a finished message to the reporter. ReportError propagates."""
        self._reporter.report(message)

    # ------------------------------------------------------------------
    # Cross references
    # ------------------------------------------------------------------

    def eip(self, path: Union[str, PurePath]) -> "Context":
        """
        The document at ``path`` (relative to this one), as requested during
        discovery.

        Raises:
            FetchError: It could not be read or parsed.
            UndeclaredResource: It was never requested.
        """
        key = path_key(base_dir(self._document.path), path)
        return self._resolved(key)

    def proposal(self, number: int) -> "Context":
        """The sibling proposal ``number``, as requested during discovery."""
        return self._resolved(proposal_key(self._document.path, int(number)))

    def _resolved(self, key: ResourceKey) -> "Context":
        document = self._resources.lookup(key)
        return Context(
            document,
            self._resources,
            self._reporter,
            self._annotation_level,
            self._settings,
        )

    # ------------------------------------------------------------------
    # Locating text
    # ------------------------------------------------------------------

    def line_index(self, line: int) -> int:
        """Offset in ``source`` of the first character of 1-based ``line``."""
        if line < 1:
            raise ValueError(f"line numbers start at 1, got {line}")
        index = 0
        for _ in range(line - 1):
            found = self.source.find("\n", index)
            if found < 0:
                raise ValueError(f"line {line} is past the end of the document")
            index = found + 1
        return index

    def line(self, line: int) -> str:
        """Text of 1-based ``line``, without its line ending."""
        start = self.line_index(line)
        end = self.source.find("\n", start)
        return self.source[start:] if end < 0 else self.source[start:end]

    def node_line(self, node: SyntaxTreeNode) -> int:
        """1-based document line a body node starts on."""
        span = block_map(node)
        first = span[0] if span else 0
        return first + self._document.body_line + 1

    def ast_lines(self, node: SyntaxTreeNode) -> str:
        """The full document lines a body node spans."""
        span = block_map(node)
        if span is None:
            return self.line(self._document.body_line + 1)

        first, past_last = span
        past_last = max(past_last, first + 1)
        start = self.line_index(first + self._document.body_line + 1)

        end = start
        for _ in range(past_last - first):
            found = self.source.find("\n", end)
            if found < 0:
                end = len(self.source)
                break
            end = found + 1

        return self.source[start:end].rstrip("\n")

    def ast_snippet(
        self,
        node: SyntaxTreeNode,
        level: Optional[Level] = None,
        label: Optional[str] = None,
    ) -> Snippet:
        """
        A folded snippet of the lines ``node`` spans, annotated at the node.

        Inline nodes are annotated where their text first appears in those
        lines; block nodes are annotated as a whole.
        """
        level = level or self._annotation_level
        source = self.ast_lines(node)

        start, length = 0, len(source)
        needle = node.content if node.type in ("text", "code_inline") else ""
        if needle:
            found = source.find(needle)
            if found >= 0:
                start, length = found, len(needle)

        annotation = level.span_utf8(source, start, length)
        if label is not None:
            annotation.with_label(label)

        return (
            Snippet(source, line_start=self.node_line(node), origin=self.origin)
            .folded(True)
            .add_annotation(annotation)
        )
