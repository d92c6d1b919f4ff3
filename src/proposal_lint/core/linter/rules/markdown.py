"""Markdown body linting rules."""
from enum import Enum
import re

from markdown_it.tree import SyntaxTreeNode

from proposal_lint.core.snippets import Level, Snippet
from proposal_lint.core.tree import Next, Visitor, descendants, walk

from ..context import Context, FetchContext
from ..errors import FetchError, InvalidRuleConfig
from . import Lint
from .preamble import status_choices, status_tiers, tier_of


class Mode(Enum):
    EXCLUDES = "excludes"


class Regex(Lint):
    """Prose in the body must not match a pattern (code and HTML are skipped)."""

    def __init__(self, mode: Mode, pattern: str, message: str):
        self.mode = Mode(mode)
        self.pattern = pattern
        self.message = message

    def lint(self, slug: str, ctx: Context) -> None:
        try:
            compiled = re.compile(self.pattern)
        except re.error as e:
            raise InvalidRuleConfig(f"invalid pattern `{self.pattern}`: {e}") from e

        walk(ctx.body, _ExcludesVisitor(ctx, slug, compiled, self))


class _ExcludesVisitor(Visitor):
    """Reports every prose node that matches the pattern."""

    def __init__(self, ctx: Context, slug: str, compiled: re.Pattern, rule: Regex):
        self.ctx = ctx
        self.slug = slug
        self.compiled = compiled
        self.rule = rule

    def check(self, node: SyntaxTreeNode, text: str) -> Next:
        if not text or not self.compiled.search(text):
            return Next.TRAVERSE_CHILDREN

        self.ctx.report(
            self.ctx.annotation_level.title(self.rule.message)
            .with_id(self.slug)
            .add_snippet(self.ctx.ast_snippet(node))
            .add_footer(Level.INFO.title(f"the pattern in question: `{self.rule.pattern}`"))
        )
        return Next.TRAVERSE_CHILDREN

    def enter_code(self, node: SyntaxTreeNode) -> Next:
        return Next.SKIP_CHILDREN

    def enter_code_block(self, node: SyntaxTreeNode) -> Next:
        return Next.SKIP_CHILDREN

    def enter_html_inline(self, node: SyntaxTreeNode) -> Next:
        return Next.SKIP_CHILDREN

    def enter_html_block(self, node: SyntaxTreeNode) -> Next:
        return Next.SKIP_CHILDREN

    def enter_text(self, node: SyntaxTreeNode) -> Next:
        return self.check(node, node.content)

    def enter_link(self, node: SyntaxTreeNode) -> Next:
        return self.check(node, str(node.attrs.get("title") or ""))

    def enter_image(self, node: SyntaxTreeNode) -> Next:
        return self.check(node, str(node.attrs.get("title") or ""))

    def enter_footnote_definition(self, node: SyntaxTreeNode) -> Next:
        return self.check(node, str(node.meta.get("label") or ""))

    def enter_footnote_reference(self, node: SyntaxTreeNode) -> Next:
        return self.check(node, str(node.meta.get("label") or ""))


class LinkStatus(Lint):
    """Linked proposals must be at least as advanced as the linking one."""

    def __init__(
        self,
        status: str,
        flow: list[list[str]],
        pattern: str = r"(?i)(?:eip|erc)-([0-9]+)\.md$",
    ):
        self.status = status
        self.flow = [list(tier) for tier in flow]
        self.pattern = pattern

    def _links(self, ctx) -> list[tuple[SyntaxTreeNode, str]]:
        """(link node, proposal path) for every link to a proposal file."""
        compiled = re.compile(self.pattern)
        found = []
        for node in descendants(ctx.body):
            if node.type != "link":
                continue
            match = compiled.search(str(node.attrs.get("href", "")))
            if match:
                found.append((node, f"eip-{int(match.group(1))}.md"))
        return found

    def find_resources(self, ctx: FetchContext) -> None:
        for _, path in self._links(ctx):
            ctx.fetch(path)

    def lint(self, slug: str, ctx: Context) -> None:
        level = ctx.annotation_level
        tiers = status_tiers(self.flow)
        my_tier = tier_of(tiers, ctx, self.status)
        lowest = None

        for node, path in self._links(ctx):
            line = _link_line(ctx, node)
            snippet = Snippet(ctx.line(line), line_start=line, origin=ctx.origin)

            try:
                other = ctx.eip(path)
            except FetchError as e:
                ctx.report(
                    level.title(f"unable to read file `{path}`: {e}")
                    .with_id(slug)
                    .add_snippet(snippet)
                )
                continue

            their_tier = tier_of(tiers, other, self.status)
            if lowest is None or their_tier < lowest:
                lowest = their_tier

            if their_tier >= my_tier:
                continue

            status = ctx.preamble.by_name(self.status)
            current = status.value.strip() if status else "<missing>"
            message = (
                level.title(
                    f"proposal `{path}` is not stable enough for a "
                    f"`{self.status}` of `{current}`"
                )
                .with_id(slug)
                .add_snippet(snippet)
            )

            choices = status_choices(tiers, lowest)
            if choices:
                message.add_footer(
                    Level.HELP.title(
                        f"because of this link, this proposal's `{self.status}` "
                        f"must be one of: `{choices}`"
                    )
                )

            ctx.report(message)


def _link_line(ctx: Context, node: SyntaxTreeNode) -> int:
    """Document line holding a link's target, within its enclosing block."""
    first = ctx.node_line(node)
    href = str(node.attrs.get("href", ""))
    for index, text in enumerate(ctx.ast_lines(node).split("\n")):
        if href and href in text:
            return first + index
    return first
