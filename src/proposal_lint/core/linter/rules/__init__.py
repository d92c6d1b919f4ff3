"""Lint rules for proposal preambles and Markdown bodies."""
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..context import Context, FetchContext


class Lint:
    """
    Base class for rules.

    A rule is registered under a slug. During discovery the engine calls
    ``find_resources`` so the rule can ask for other documents; once those
    are fetched it calls ``lint``, which reports findings through
    ``ctx.report``. Raise ``LintError`` when the rule itself cannot work.
    """

    def find_resources(self, ctx: "FetchContext") -> None:
        pass

    def lint(self, slug: str, ctx: "Context") -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items())
        return f"{type(self).__name__}({fields})"


from . import preamble, markdown  # noqa: E402

# Proposal status tiers, least to most advanced
STATUS_FLOW = [
    ["Draft", "Stagnant"],
    ["Review"],
    ["Last Call"],
    ["Final", "Withdrawn", "Living"],
]

REQUIRED_HEADERS = [
    "eip",
    "title",
    "description",
    "author",
    "discussions-to",
    "status",
    "type",
    "created",
]


def default_lints() -> dict[str, Lint]:
    """Fresh instances of every shipped rule, keyed by slug."""
    return {
        # Preamble rules
        "preamble-no-dup": preamble.NoDuplicates(),
        "preamble-trim": preamble.Trim(),
        "preamble-req": preamble.Required(REQUIRED_HEADERS),
        "preamble-requires-status": preamble.RequiresStatus(
            requires="requires",
            status="status",
            flow=STATUS_FLOW,
        ),
        "preamble-refs-title": preamble.ProposalRef("title"),
        "preamble-refs-description": preamble.ProposalRef("description"),

        # Markdown rules
        "markdown-re-eip-dash": markdown.Regex(
            mode=markdown.Mode.EXCLUDES,
            pattern=r"(?i)eip[\s]*[0-9]+",
            message="proposals must be referenced with the form `EIP-N` (not `EIPN` or `EIP N`)",
        ),
        "markdown-re-erc-dash": markdown.Regex(
            mode=markdown.Mode.EXCLUDES,
            pattern=r"(?i)erc[\s]*[0-9]+",
            message="proposals must be referenced with the form `ERC-N` (not `ERCN` or `ERC N`)",
        ),
        "markdown-link-status": markdown.LinkStatus(
            status="status",
            flow=STATUS_FLOW,
        ),
    }


def describe(lint: Lint) -> str:
    """First line of a rule's docstring."""
    return (type(lint).__doc__ or "No description").strip().split('\n')[0]


__all__ = [
    "Lint",
    "STATUS_FLOW",
    "REQUIRED_HEADERS",
    "default_lints",
    "describe",
    "preamble",
    "markdown",
]
