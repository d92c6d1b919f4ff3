"""Markdown body parsing and tree traversal.

Bodies are parsed with markdown-it-py into a ``SyntaxTreeNode`` tree. Rules
walk the tree with a ``Visitor``: ``walk`` calls ``enter_<kind>`` on the way
down and ``depart_<kind>`` on the way up, where ``<kind>`` is one of the
names in ``NODE_KINDS``. Returning ``Next.SKIP_CHILDREN`` from an enter
callback skips the node's subtree and its depart callback.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Iterator, Optional

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from mdit_py_plugins.footnote import footnote_plugin


class Next(Enum):
    """What the walker does after entering a node."""
    TRAVERSE_CHILDREN = "traverse_children"
    SKIP_CHILDREN = "skip_children"


# markdown-it node type -> visitor callback suffix
NODE_KINDS: dict[str, str] = {
    "root": "document",
    "blockquote": "block_quote",
    "bullet_list": "list",
    "ordered_list": "list",
    "list_item": "item",
    "code_block": "code_block",
    "fence": "code_block",
    "html_block": "html_block",
    "paragraph": "paragraph",
    "heading": "heading",
    "hr": "thematic_break",
    "table": "table",
    "thead": "table_section",
    "tbody": "table_section",
    "tr": "table_row",
    "th": "table_cell",
    "td": "table_cell",
    "footnote_block": "footnote_block",
    "footnote": "footnote_definition",
    "footnote_anchor": "footnote_anchor",
    "inline": "inline",
    "text": "text",
    "softbreak": "soft_break",
    "hardbreak": "line_break",
    "code_inline": "code",
    "html_inline": "html_inline",
    "em": "emph",
    "strong": "strong",
    "s": "strikethrough",
    "link": "link",
    "image": "image",
    "footnote_ref": "footnote_reference",
}


@lru_cache(maxsize=1)
def markdown_parser() -> MarkdownIt:
    """
    CommonMark with tables, strikethrough, footnotes and autolinks.

    Bare ``http(s)://`` URLs and email addresses become link nodes.
    Scheme-less domains (``eip-20.md``, ``www.example.com``) stay plain text.
    """
    parser = (
        MarkdownIt("commonmark", {"linkify": True})
        .enable(["table", "strikethrough", "linkify"])
        .use(footnote_plugin)
    )
    parser.linkify.set({"fuzzy_link": False})
    return parser


def parse_body(source: str) -> SyntaxTreeNode:
    """Parse a Markdown body into a tree. Line maps are relative to ``source``."""
    return SyntaxTreeNode(markdown_parser().parse(source))


def node_kind(node: SyntaxTreeNode) -> str:
    """Visitor name for a node, ``"other"`` for types without a dedicated callback."""
    return NODE_KINDS.get(node.type, "other")


def block_map(node: SyntaxTreeNode) -> Optional[tuple[int, int]]:
    """
    Zero-based ``(first, past_last)`` body lines of a node.

    Inline nodes carry no line information of their own, so the map of the
    closest ancestor that has one is returned.
    """
    current: Optional[SyntaxTreeNode] = node
    while current is not None and not current.is_root:
        if current.map:
            first, past_last = current.map
            return first, past_last
        current = current.parent
    return None


def descendants(node: SyntaxTreeNode) -> Iterator[SyntaxTreeNode]:
    """The node and everything below it, in preorder."""
    yield node
    for child in node.children:
        yield from descendants(child)


def text_content(node: SyntaxTreeNode) -> str:
    """Concatenated text of every text-like node below ``node``."""
    parts = []
    for item in descendants(node):
        if item.type in ("text", "code_inline"):
            parts.append(item.content)
        elif item.type in ("softbreak", "hardbreak"):
            parts.append("\n")
    return "".join(parts)


class Visitor:
    """
    Base class for tree visitors.

    Override only the callbacks you need. Every ``enter_*`` returns a
    ``Next``; returning None is treated as ``TRAVERSE_CHILDREN``.
    Exceptions raised by callbacks propagate out of ``walk``.
    """

    def enter(self, node: SyntaxTreeNode) -> Next:
        result = getattr(self, f"enter_{node_kind(node)}")(node)
        return Next.TRAVERSE_CHILDREN if result is None else result

    def depart(self, node: SyntaxTreeNode) -> None:
        getattr(self, f"depart_{node_kind(node)}")(node)

    # Block nodes

    def enter_document(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_block_quote(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_list(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_item(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_code_block(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_html_block(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_paragraph(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_heading(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_thematic_break(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_table(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_table_section(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_table_row(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_table_cell(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_footnote_block(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_footnote_definition(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_footnote_anchor(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    # Inline nodes

    def enter_inline(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_text(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_soft_break(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_line_break(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_code(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_html_inline(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_emph(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_strong(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_strikethrough(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_link(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_image(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_footnote_reference(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    def enter_other(self, node: SyntaxTreeNode) -> Next:
        return Next.TRAVERSE_CHILDREN

    # Departures

    def depart_document(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_block_quote(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_list(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_item(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_code_block(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_html_block(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_paragraph(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_heading(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_thematic_break(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_table(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_table_section(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_table_row(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_table_cell(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_footnote_block(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_footnote_definition(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_footnote_anchor(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_inline(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_text(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_soft_break(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_line_break(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_code(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_html_inline(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_emph(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_strong(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_strikethrough(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_link(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_image(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_footnote_reference(self, node: SyntaxTreeNode) -> None:
        pass

    def depart_other(self, node: SyntaxTreeNode) -> None:
        pass


def walk(node: SyntaxTreeNode, visitor: Visitor) -> None:
    """Preorder depth-first traversal of ``node`` with ``visitor``."""
    if visitor.enter(node) is Next.SKIP_CHILDREN:
        return

    for child in node.children:
        walk(child, visitor)

    visitor.depart(node)
