"""Preamble linting rules."""
from typing import Optional
import re

from proposal_lint.core.preamble import Field
from proposal_lint.core.snippets import Level, Snippet

from ..context import Context, FetchContext
from ..errors import FetchError
from . import Lint

# References like `EIP-1559` or `erc-20` inside a header value
PROPOSAL_REF = re.compile(r"(?i)\b(?:eip|erc)-([0-9]+)\b")

DIGITS = re.compile(r"[0-9]+")


def status_tiers(flow: list[list[str]]) -> dict[str, int]:
    """Map each status to its 1-based tier in ``flow``."""
    tiers = {}
    for tier, values in enumerate(flow, 1):
        for value in values:
            tiers[value] = tier
    return tiers


def tier_of(tiers: dict[str, int], ctx: Context, status: str) -> int:
    """Tier of a document's status header; 0 when missing or unknown."""
    field = ctx.preamble.by_name(status)
    if field is None:
        return 0
    return tiers.get(field.value.strip(), 0)


def status_choices(tiers: dict[str, int], ceiling: int) -> str:
    """Sorted statuses at or below ``ceiling``, formatted for a footer."""
    return "`, `".join(sorted(v for v, t in tiers.items() if t <= ceiling))


def field_snippet(field: Field, ctx: Context) -> Snippet:
    return Snippet(field.source, line_start=field.line_start, origin=ctx.origin)


def _numbers(value: str) -> list[int]:
    """Comma separated integers in a header value; other items are ignored."""
    numbers = []
    for item in value.split(","):
        item = item.strip()
        if DIGITS.fullmatch(item):
            numbers.append(int(item))
    return numbers


class NoDuplicates(Lint):
    """Preamble headers must be defined at most once."""

    def lint(self, slug: str, ctx: Context) -> None:
        defined: dict[str, Field] = {}

        for field in ctx.preamble.fields():
            original = defined.setdefault(field.name, field)
            if original is field:
                continue

            message = (
                ctx.annotation_level
                .title(f"preamble header `{original.name}` defined multiple times")
                .with_id(slug)
                .add_snippet(
                    field_snippet(original, ctx).add_annotation(
                        Level.INFO
                        .span_utf8(original.source, 0, len(original.source))
                        .with_label("first defined here")
                    )
                )
                .add_snippet(
                    field_snippet(field, ctx).add_annotation(
                        ctx.annotation_level
                        .span_utf8(field.source, 0, len(field.source))
                        .with_label("redefined here")
                    )
                )
            )
            ctx.report(message)


class Trim(Lint):
    """Preamble values must start with one space and carry no extra whitespace."""

    def lint(self, slug: str, ctx: Context) -> None:
        level = ctx.annotation_level
        no_space = []

        for field in ctx.preamble.fields():
            value = field.value
            if not value:
                continue

            if value.startswith(" "):
                value = value[1:]
            else:
                no_space.append(field)

            if value.strip() == value:
                continue

            name_count = len(field.name)
            ctx.report(
                level.title(f"preamble header `{field.name}` has extra whitespace")
                .with_id(slug)
                .add_snippet(
                    field_snippet(field, ctx).add_annotation(
                        level.span_utf8(field.source, name_count + 1, len(field.value))
                        .with_label("value has extra whitespace")
                    )
                )
            )

        if no_space:
            message = level.title("preamble header values must begin with a space").with_id(slug)
            for field in no_space:
                message.add_snippet(
                    field_snippet(field, ctx).add_annotation(
                        level.span_utf8(field.source, len(field.name) + 1, 1)
                        .with_label("space required here")
                    )
                )
            ctx.report(message)


class Required(Lint):
    """The preamble must define every listed header."""

    def __init__(self, names: list[str]):
        self.names = list(names)

    def lint(self, slug: str, ctx: Context) -> None:
        missing = [n for n in self.names if ctx.preamble.by_name(n) is None]
        if not missing:
            return

        label = "preamble is missing header(s): `{}`".format("`, `".join(missing))
        ctx.report(
            ctx.annotation_level.title(label)
            .with_id(slug)
            .add_snippet(Snippet(ctx.line(1), line_start=1, origin=ctx.origin, fold=True))
        )


class RequiresStatus(Lint):
    """Required proposals must be at least as advanced as the requiring one."""

    def __init__(self, requires: str, status: str, flow: list[list[str]]):
        self.requires = requires
        self.status = status
        self.flow = [list(tier) for tier in flow]

    def find_resources(self, ctx: FetchContext) -> None:
        field = ctx.preamble.by_name(self.requires)
        if field is None:
            return

        for number in _numbers(field.value):
            ctx.fetch(f"eip-{number}.md")

    def lint(self, slug: str, ctx: Context) -> None:
        field = ctx.preamble.by_name(self.requires)
        if field is None:
            return

        level = ctx.annotation_level
        tiers = status_tiers(self.flow)
        my_tier = tier_of(tiers, ctx, self.status)
        lowest: Optional[int] = None
        too_unstable = []

        offset = 0
        for item in field.value.split(","):
            # Offsets are relative to the whole line, past `name:`
            start = len(field.name) + 1 + offset
            offset += len(item) + 1

            if not DIGITS.fullmatch(item.strip()):
                continue
            key = f"eip-{int(item.strip())}.md"

            try:
                other = ctx.eip(key)
            except FetchError as e:
                ctx.report(
                    level.title(f"unable to read file `{key}`: {e}")
                    .with_id(slug)
                    .add_snippet(
                        field_snippet(field, ctx).add_annotation(
                            level.span_utf8(field.source, start, len(item))
                            .with_label("required from here")
                        )
                    )
                )
                continue

            their_tier = tier_of(tiers, other, self.status)
            if lowest is None or their_tier < lowest:
                lowest = their_tier

            if their_tier >= my_tier:
                continue

            too_unstable.append(
                level.span_utf8(field.source, start, len(item))
                .with_label("has a less advanced status")
            )

        if not too_unstable:
            return

        status = ctx.preamble.by_name(self.status)
        current = status.value.strip() if status else "<missing>"
        message = (
            level.title(
                f"preamble header `{self.requires}` contains items not stable "
                f"enough for a `{self.status}` of `{current}`"
            )
            .with_id(slug)
            .add_snippet(field_snippet(field, ctx).add_annotations(too_unstable))
        )

        choices = status_choices(tiers, lowest or 0)
        if choices:
            message.add_footer(
                Level.HELP.title(
                    f"valid `{self.status}` values for this proposal are: `{choices}`"
                )
            )

        ctx.report(message)


class ProposalRef(Lint):
    """Proposal references in a header must use the target's category prefix."""

    def __init__(self, name: str, prefix: str = "eip-", suffix: str = ".md"):
        self.name = name
        self.prefix = prefix
        self.suffix = suffix

    def _path(self, number: int) -> str:
        return f"{self.prefix}{number}{self.suffix}"

    def find_resources(self, ctx: FetchContext) -> None:
        field = ctx.preamble.by_name(self.name)
        if field is None:
            return

        for match in PROPOSAL_REF.finditer(field.value):
            ctx.fetch(self._path(int(match.group(1))))

    def lint(self, slug: str, ctx: Context) -> None:
        field = ctx.preamble.by_name(self.name)
        if field is None:
            return

        level = ctx.annotation_level
        name_count = len(field.name)

        for match in PROPOSAL_REF.finditer(field.value):
            start = name_count + 1 + match.start()
            length = match.end() - match.start()
            path = self._path(int(match.group(1)))

            try:
                other = ctx.eip(path)
            except FetchError as e:
                title = f"unable to read file `{path}`: {e}"
            else:
                category_field = other.preamble.by_name("category")
                category = category_field.value.strip() if category_field else None
                prefix = "ERC" if category == "ERC" else "EIP"

                if match.group(0).startswith(prefix):
                    continue

                if category is None:
                    category_msg = "without a `category`"
                else:
                    category_msg = f"with a `category` of `{category}`"
                title = (
                    f"references to proposals {category_msg} "
                    f"must use a prefix of `{prefix}`"
                )

            ctx.report(
                level.title(title)
                .with_id(slug)
                .add_snippet(
                    field_snippet(field, ctx).add_annotation(
                        level.span_utf8(field.source, start, length)
                        .with_label("referenced here")
                    )
                )
            )
