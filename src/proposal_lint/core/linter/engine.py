"""Lint engine - resolves cross references and runs rules.

A run processes each source in turn:

1. split and parse it (failures become diagnostics; no rule runs),
2. ask every active rule which other documents it needs,
3. fetch those concurrently, at most once per key per run,
4. apply modifiers to the document's settings, then freeze them,
5. run the rules in slug order.
"""
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Optional, Union
import asyncio
import logging

from proposal_lint.core.fetch import DefaultFetch, Fetch
from proposal_lint.core.preamble import MissingEnd, ParseErrors, SplitError
from proposal_lint.core.snippets import Level, Message, Snippet

from .cache import ResourceCache
from .context import Context, Document, FetchContext, parse_document
from .errors import (
    FetchError,
    LintError,
    LinterError,
    ModifierError,
    ResourceKey,
    describe_key,
)
from .modifiers import Modifier, default_modifiers
from .models import DocumentState, LintSettings, Registration, RuleFailure
from .reporters import Reporter
from .rules import Lint, default_lints, describe

logger = logging.getLogger(__name__)

# Raised by fetchers for unreadable or undecodable documents
READ_ERRORS = (OSError, UnicodeError)

CR_HELP = "found a carriage return (CR), use Unix-style line endings (LF) instead"


@dataclass
class Source:
    """Something to lint: in-memory text, or a path read through the fetcher."""
    origin: Optional[str] = None
    path: Optional[Path] = None
    text: Optional[str] = None


class Linter:
    """
    Builder and runner for a lint pass.

    Example:
        reporter = TextReporter()
        await Linter(reporter).check_slice(text, "eip-1.md").run()
        print(reporter.getvalue())
    """

    def __init__(
        self,
        reporter: Reporter,
        *,
        lints: Optional[dict[str, Lint]] = None,
        modifiers: Optional[list[Modifier]] = None,
        fetch: Optional[Fetch] = None,
        proposal_format: str = "eip-{}",
    ):
        self.reporter = reporter
        self.proposal_format = proposal_format
        self._fetch: Fetch = fetch if fetch is not None else DefaultFetch()
        self._modifiers: list[Modifier] = (
            list(modifiers) if modifiers is not None else default_modifiers()
        )
        self._lints: dict[str, Registration] = {}
        self._sources: list[Source] = []
        self._failures: list[RuleFailure] = []

        for slug, lint in (default_lints() if lints is None else lints).items():
            self.enable(slug, lint)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _register(self, slug: str, lint: Lint, level: Optional[Level]) -> "Linter":
        if slug in self._lints:
            raise ValueError(f"lint slug `{slug}` is already registered")
        self._lints[slug] = Registration(lint, level)
        return self

    def deny(self, slug: str, lint: Lint) -> "Linter":
        """Register a rule whose findings are errors."""
        return self._register(slug, lint, Level.ERROR)

    def warn(self, slug: str, lint: Lint) -> "Linter":
        """Register a rule whose findings are warnings."""
        return self._register(slug, lint, Level.WARNING)

    def enable(self, slug: str, lint: Lint) -> "Linter":
        """Register a rule reporting at the document's default level."""
        return self._register(slug, lint, None)

    def allow(self, slug: str) -> "Linter":
        """Unregister a rule. Raises KeyError for unknown slugs."""
        try:
            del self._lints[slug]
        except KeyError:
            raise KeyError(f"no lint registered under `{slug}`") from None
        return self

    def clear_lints(self) -> "Linter":
        self._lints.clear()
        return self

    def modify(self, modifier: Modifier) -> "Linter":
        """Append a modifier; later modifiers override earlier ones."""
        self._modifiers.append(modifier)
        return self

    def set_fetch(self, fetch: Fetch) -> "Linter":
        self._fetch = fetch
        return self

    def check_slice(self, source: str, origin: Optional[str] = None) -> "Linter":
        """Queue in-memory text for linting."""
        self._sources.append(Source(origin=origin, text=source))
        return self

    def check_file(self, path: Union[str, PurePath]) -> "Linter":
        """Queue a file, read through the fetcher when the run starts."""
        path = Path(path)
        self._sources.append(Source(origin=str(path), path=path))
        return self

    @property
    def lints(self) -> dict[str, Registration]:
        return dict(self._lints)

    @property
    def failures(self) -> list[RuleFailure]:
        """Rules that raised LintError during the last run."""
        return list(self._failures)

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    async def run(self) -> Reporter:
        """
        Lint every queued source.

        Returns:
            The reporter, for chaining.

        Raises:
            ValueError: No lints registered, or nothing to lint.
            LinterError: A source could not be read or a modifier failed.
            ReportError: The reporter failed.
        """
        if not self._lints:
            raise ValueError("no lints are enabled")
        if not self._sources:
            raise ValueError("no sources were given")

        self._failures = []
        cache = ResourceCache()
        lints = sorted(self._lints.items())

        logger.debug(f"Linting {len(self._sources)} source(s) with {len(lints)} lint(s)")

        for source in self._sources:
            text = await self._read_source(source)
            await self._process(source, text, lints, cache)

        return self.reporter

    async def _read_source(self, source: Source) -> str:
        if source.text is not None:
            return source.text

        try:
            return await self._fetch.fetch(source.path)
        except READ_ERRORS as e:
            raise LinterError(
                f"i/o error accessing `{source.path}`: {e}", source.origin
            ) from e

    def _state(self, origin: Optional[str], state: DocumentState) -> None:
        logger.debug(f"{origin or '<string>'}: {state.value}")

    async def _process(
        self,
        source: Source,
        text: str,
        lints: list[tuple[str, Registration]],
        cache: ResourceCache,
    ) -> None:
        origin = source.origin
        self._state(origin, DocumentState.UNPARSED)

        document = self._parse(text, source)
        if document is None:
            self._state(origin, DocumentState.PARSE_FAILED)
            return
        self._state(origin, DocumentState.PARSED)

        # Discovery
        self._state(origin, DocumentState.DISCOVERING)
        fetch_ctx = FetchContext(document)
        skipped: set[str] = set()
        for slug, registration in lints:
            try:
                registration.lint.find_resources(fetch_ctx)
            except LintError as e:
                self._rule_failed(slug, origin, "find_resources", e)
                skipped.add(slug)

        # Fetching
        self._state(origin, DocumentState.FETCHING)
        await self._fetch_all(fetch_ctx.requested(), cache)

        # Modifiers
        settings = LintSettings()
        modifier_ctx = Context(
            document, cache, self.reporter, settings.default_annotation_level, settings
        )
        for modifier in self._modifiers:
            try:
                modifier.modify(modifier_ctx, settings)
            except ModifierError as e:
                raise LinterError(f"modifier {modifier!r} failed: {e}", origin) from e
        settings.freeze()
        self._state(origin, DocumentState.MODIFIERS_APPLIED)

        # Linting
        self._state(origin, DocumentState.LINTING)
        for slug, registration in lints:
            if slug in skipped:
                continue

            level = registration.level or settings.default_annotation_level
            ctx = Context(document, cache, self.reporter, level, settings)
            try:
                registration.lint.lint(slug, ctx)
            except (LintError, FetchError) as e:
                self._rule_failed(slug, origin, "lint", e)

        self._state(origin, DocumentState.DONE)

    def _rule_failed(
        self, slug: str, origin: Optional[str], phase: str, error: Exception
    ) -> None:
        logger.error(f"Rule {slug} failed in {phase} for {origin}: {error}", exc_info=True)
        self._failures.append(RuleFailure(slug, origin, phase, error))

    def _parse(self, text: str, source: Source) -> Optional[Document]:
        """Parse a source, reporting why it failed. ReportError propagates."""
        # In-memory sources resolve references against their origin, if any
        path = source.path
        if path is None and source.origin is not None:
            path = Path(source.origin)

        try:
            return parse_document(text, source.origin, path)
        except SplitError as e:
            self.reporter.report(split_error_message(e, text, source.origin))
        except ParseErrors as e:
            for message in e.errors:
                self.reporter.report(message)
        return None

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def _fetch_all(self, keys: set[ResourceKey], cache: ResourceCache) -> None:
        """Fetch every key not cached yet, concurrently."""
        pending = sorted((k for k in keys if k not in cache), key=str)
        if not pending:
            return

        logger.debug(f"Fetching {len(pending)} document(s)")
        results = await asyncio.gather(*(self._fetch_one(k) for k in pending))

        for key, result in zip(pending, results):
            if isinstance(result, FetchError):
                logger.info(f"Could not load {describe_key(key)}: {result}")
            cache.store(key, result)

    async def _fetch_one(self, key: ResourceKey) -> Union[Document, FetchError]:
        if isinstance(key, tuple):
            return await self._fetch_proposal(*key)
        return await self._fetch_path(key, Path(key))

    async def _read(self, path: Path) -> Union[str, Exception]:
        """Text at ``path``, or the error that prevented reading it."""
        try:
            return await self._fetch.fetch(path)
        except READ_ERRORS as e:
            return e

    async def _fetch_path(self, key: ResourceKey, path: Path) -> Union[Document, FetchError]:
        text = await self._read(path)
        if isinstance(text, Exception):
            return FetchError(key, text)
        return self._parse_fetched(key, text, path)

    async def _fetch_proposal(self, root: str, number: int) -> Union[Document, FetchError]:
        """
        Load proposal ``number`` from ``root``.

        It may live at ``<name>.md`` or ``<name>/index.md``, but not both.
        Both candidates are requested together.
        """
        key = (root, number)
        name = self.proposal_format.format(number)
        candidates = [Path(root) / f"{name}.md", Path(root) / name / "index.md"]

        results = await asyncio.gather(*(self._read(c) for c in candidates))
        found = [
            (candidate, text)
            for candidate, text in zip(candidates, results)
            if not isinstance(text, Exception)
        ]

        if len(found) > 1:
            return FetchError(
                key,
                f"ambiguous proposal {number}: both `{candidates[0]}` and "
                f"`{candidates[1]}` exist",
            )
        if not found:
            return FetchError(key, results[0])

        path, text = found[0]
        return self._parse_fetched(key, text, path)

    def _parse_fetched(
        self, key: ResourceKey, text: str, path: Path
    ) -> Union[Document, FetchError]:
        # Only far enough to expose preamble and body; no discovery.
        try:
            return parse_document(text, str(path), path)
        except SplitError as e:
            return FetchError(key, f"malformed preamble: {e}")
        except ParseErrors as e:
            return FetchError(key, f"malformed preamble: {e}")


def split_error_message(error: SplitError, text: str, origin: Optional[str]) -> Message:
    """The single diagnostic reported for a document without valid fences."""
    if isinstance(error, MissingEnd):
        return Level.ERROR.title("preamble must be followed by a line containing `---` exactly")

    first_line = text.split("\n", 1)[0]
    if first_line.endswith("\r"):
        first_line = first_line[:-1]

    message = Level.ERROR.title("first line must be `---` exactly").add_snippet(
        Snippet(first_line, line_start=1, origin=origin, fold=False)
    )
    if text.encode("utf-8")[3:4] == b"\r":
        message.add_footer(Level.HELP.title(CR_HELP))
    return message


def get_available_rules() -> dict[str, str]:
    """
    Get the shipped rules with descriptions.

    Returns:
        Dict mapping slug to the first line of the rule's docstring
    """
    return {slug: describe(lint) for slug, lint in sorted(default_lints().items())}
