"""Tests for the lint engine: parsing, discovery, fetching, modifiers and ordering."""
import asyncio
import os

import pytest

from proposal_lint.core.fetch import FileSystemFetch
from proposal_lint.core.linter.cache import ResourceCache
from proposal_lint.core.linter.context import Context, parse_document
from proposal_lint.core.linter.engine import CR_HELP, Linter, get_available_rules
from proposal_lint.core.linter.errors import (
    FetchError,
    InvalidRuleConfig,
    LintError,
    LinterError,
    ModifierError,
    ReportError,
    UndeclaredResource,
)
from proposal_lint.core.linter.modifiers import Modifier, SetDefaultAnnotation
from proposal_lint.core.linter.reporters import JsonReporter, NullReporter, Reporter
from proposal_lint.core.linter.rules import STATUS_FLOW, Lint, default_lints
from proposal_lint.core.linter.rules.preamble import Required, RequiresStatus
from proposal_lint.core.preamble import MISSING_DELIMITER
from proposal_lint.core.snippets import Level


def _run(coro):
    """Run async coroutine synchronously (avoids pytest-asyncio dep)."""
    return asyncio.run(coro)


DOC = "---\nrequires: 20\nstatus: Last Call\n---\nHello\n"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Recorder(Lint):
    """Records calls; optionally reports one message per document."""

    def __init__(self, report: bool = False):
        self.calls = []
        self.report = report

    def find_resources(self, ctx):
        self.calls.append("find_resources")

    def lint(self, slug, ctx):
        self.calls.append(slug)
        if self.report:
            ctx.report(ctx.annotation_level.title(f"finding from {slug}").with_id(slug))


class NeedsPath(Lint):
    """Asks for a path and reads its status."""

    def __init__(self, path):
        self.path = path
        self.statuses = []

    def find_resources(self, ctx):
        ctx.fetch(self.path)

    def lint(self, slug, ctx):
        other = ctx.eip(self.path)
        self.statuses.append(other.preamble.by_name("status").value.strip())


class NeedsProposal(Lint):
    def __init__(self, number):
        self.number = number
        self.results = []

    def find_resources(self, ctx):
        ctx.fetch_proposal(self.number)

    def lint(self, slug, ctx):
        try:
            self.results.append(ctx.proposal(self.number).origin)
        except FetchError as e:
            self.results.append(e)


class Fails(Lint):
    def __init__(self, phase):
        self.phase = phase

    def find_resources(self, ctx):
        if self.phase == "find_resources":
            raise LintError("cannot discover")

    def lint(self, slug, ctx):
        raise LintError("cannot lint")


class Undeclared(Lint):
    def lint(self, slug, ctx):
        ctx.eip("eip-404.md")


class BrokenModifier(Modifier):
    def modify(self, ctx, settings):
        raise ModifierError("nope")


class BrokenReporter(Reporter):
    def report(self, message):
        raise ReportError("disk full")


class GatedFetch:
    """Holds every fetch until ``release`` is set; ``all_started`` fires once
    ``expected`` fetches are waiting."""

    def __init__(self, files, expected):
        self.files = {os.path.normpath(k): v for k, v in files.items()}
        self.expected = expected
        self.started = []
        self.cancelled = []
        self.all_started = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch(self, path):
        key = os.path.normpath(str(path))
        self.started.append(key)
        if len(self.started) == self.expected:
            self.all_started.set()

        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled.append(key)
            raise

        try:
            return self.files[key]
        except KeyError:
            raise FileNotFoundError(2, "No such file or directory", key) from None


class UndecodableFetch:
    async def fetch(self, path):
        return b"---\n\xff\n---\n".decode("utf-8")


def _lint(source, lints, fetch=None, modifiers=None, origin=None):
    reporter = JsonReporter()
    linter = Linter(reporter, lints=lints, fetch=fetch, modifiers=modifiers)
    linter.check_slice(source, origin)
    _run(linter.run())
    return reporter.reports, linter


# ---------------------------------------------------------------------------
# Parse failures
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("source", [
    "no preamble at all\n",
    "---\ntitle: never closed\n",
    "text first\n---\ntitle: x\n---\n",
])
def test_bad_fences_give_one_diagnostic_and_run_no_rules(source):
    rule = Recorder()
    reports, _ = _lint(source, {"recorder": rule})

    assert len(reports) == 1
    assert reports[0]["level"] == "error"
    assert rule.calls == []


def test_missing_start_message():
    reports, _ = _lint("hello\n", {"r": Recorder()}, origin="eip-1.md")

    assert reports[0]["title"] == "first line must be `---` exactly"
    snippet = reports[0]["snippets"][0]
    assert snippet["source"] == "hello"
    assert snippet["line_start"] == 1
    assert snippet["origin"] == "eip-1.md"
    assert reports[0]["footer"] == []


def test_carriage_return_gets_help_footer():
    reports, _ = _lint("---\r\ntitle: x\r\n---\r\n", {"r": Recorder()})

    assert reports[0]["title"] == "first line must be `---` exactly"
    assert reports[0]["snippets"][0]["source"] == "---"
    assert reports[0]["footer"][0]["title"] == CR_HELP
    assert reports[0]["footer"][0]["level"] == "help"


def test_missing_end_message():
    reports, _ = _lint("---\ntitle: x\n", {"r": Recorder()})
    assert reports[0]["title"] == (
        "preamble must be followed by a line containing `---` exactly"
    )


def test_field_errors_are_all_reported():
    rule = Recorder()
    reports, _ = _lint("---\ntitle: x\nbad\nworse\n---\n", {"r": rule})

    assert [r["title"] for r in reports] == [MISSING_DELIMITER, MISSING_DELIMITER]
    assert rule.calls == []


# ---------------------------------------------------------------------------
# Discovery and fetching
# ---------------------------------------------------------------------------


def test_shared_path_is_fetched_once(memory_fetch):
    fetch = memory_fetch({"eip-9.md": "---\nstatus: Final\n---\n"})
    first, second = NeedsPath("eip-9.md"), NeedsPath("./eip-9.md")

    _lint(DOC, {"a": first, "b": second}, fetch=fetch)

    assert fetch.calls == ["eip-9.md"]
    assert first.statuses == ["Final"]
    assert second.statuses == ["Final"]


def test_cache_is_shared_between_sources(memory_fetch):
    fetch = memory_fetch({"eip-9.md": "---\nstatus: Final\n---\n"})
    rule = NeedsPath("eip-9.md")

    linter = Linter(JsonReporter(), lints={"a": rule}, fetch=fetch)
    linter.check_slice(DOC, "eip-1.md").check_slice(DOC, "eip-2.md")
    _run(linter.run())

    assert fetch.calls == ["eip-9.md"]
    assert rule.statuses == ["Final", "Final"]


def test_paths_resolve_against_the_document(memory_fetch):
    fetch = memory_fetch({"EIPS/eip-9.md": "---\nstatus: Final\n---\n"})
    rule = NeedsPath("eip-9.md")

    _lint(DOC, {"a": rule}, fetch=fetch, origin="EIPS/eip-1.md")

    assert fetch.calls == ["EIPS/eip-9.md"]
    assert rule.statuses == ["Final"]


def test_unparseable_fetched_document_is_a_fetch_error(memory_fetch):
    fetch = memory_fetch({"eip-9.md": "not a proposal"})
    rule = NeedsPath("eip-9.md")

    _, linter = _lint(DOC, {"a": rule}, fetch=fetch)

    assert rule.statuses == []
    assert len(linter.failures) == 1
    assert isinstance(linter.failures[0].error, FetchError)
    assert "malformed preamble" in str(linter.failures[0].error)


def test_proposal_by_number(memory_fetch):
    fetch = memory_fetch({"eip-20.md": "---\nstatus: Draft\n---\n"})
    rule = NeedsProposal(20)

    _lint(DOC, {"a": rule}, fetch=fetch)

    assert rule.results == ["eip-20.md"]


def test_proposal_in_index_directory(memory_fetch):
    fetch = memory_fetch({"eip-20/index.md": "---\nstatus: Draft\n---\n"})
    rule = NeedsProposal(20)

    _lint(DOC, {"a": rule}, fetch=fetch, origin="eip-5/index.md")

    assert rule.results == ["eip-20/index.md"]


def test_ambiguous_proposal(memory_fetch):
    fetch = memory_fetch({
        "eip-20.md": "---\nstatus: Draft\n---\n",
        "eip-20/index.md": "---\nstatus: Draft\n---\n",
    })
    rule = NeedsProposal(20)

    _lint(DOC, {"a": rule}, fetch=fetch)

    assert isinstance(rule.results[0], FetchError)
    assert "ambiguous proposal 20" in str(rule.results[0])


def test_custom_proposal_format(memory_fetch):
    fetch = memory_fetch({"erc-20.md": "---\nstatus: Final\n---\n"})
    rule = NeedsProposal(20)

    linter = Linter(JsonReporter(), lints={"a": rule}, fetch=fetch, proposal_format="erc-{}")
    _run(linter.check_slice(DOC).run())

    assert rule.results == ["erc-20.md"]


def test_undecodable_proposal_is_a_fetch_error():
    rule = NeedsProposal(20)

    _, linter = _lint(DOC, {"a": rule}, fetch=UndecodableFetch())

    assert isinstance(rule.results[0], FetchError)
    assert linter.failures == []


def _gated_run(linter, fetch):
    """Run ``linter`` until every expected fetch is in flight, then release them."""
    async def scenario():
        task = asyncio.create_task(linter.run())
        await asyncio.wait_for(fetch.all_started.wait(), timeout=5)
        in_flight = sorted(fetch.started)
        fetch.release.set()
        await task
        return in_flight

    return _run(scenario())


def test_distinct_paths_are_fetched_concurrently():
    final = "---\nstatus: Final\n---\n"
    fetch = GatedFetch({"eip-2.md": final, "eip-3.md": final}, expected=2)
    first, second = NeedsPath("eip-2.md"), NeedsPath("eip-3.md")
    linter = Linter(NullReporter(), lints={"a": first, "b": second}, fetch=fetch)

    in_flight = _gated_run(linter.check_slice(DOC), fetch)

    assert in_flight == ["eip-2.md", "eip-3.md"]
    assert first.statuses == ["Final"]
    assert second.statuses == ["Final"]


def test_proposal_candidates_are_requested_together():
    fetch = GatedFetch({"eip-20.md": "---\nstatus: Draft\n---\n"}, expected=2)
    rule = NeedsProposal(20)
    linter = Linter(NullReporter(), lints={"a": rule}, fetch=fetch)

    in_flight = _gated_run(linter.check_slice(DOC), fetch)

    assert in_flight == ["eip-20.md", os.path.join("eip-20", "index.md")]
    assert rule.results == ["eip-20.md"]


def test_cancelling_during_fetch_cancels_fetches_and_reports_nothing():
    fetch = GatedFetch({}, expected=2)
    recorder = Recorder(report=True)
    reporter = JsonReporter()
    lints = {"a": NeedsPath("eip-2.md"), "b": NeedsPath("eip-3.md"), "c": recorder}
    linter = Linter(reporter, lints=lints, fetch=fetch).check_slice(DOC)

    async def scenario():
        task = asyncio.create_task(linter.run())
        await asyncio.wait_for(fetch.all_started.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    _run(scenario())

    assert sorted(fetch.cancelled) == ["eip-2.md", "eip-3.md"]
    assert recorder.calls == ["find_resources"]
    assert reporter.reports == []
    assert linter.failures == []


# ---------------------------------------------------------------------------
# End to end with the requires-status rule
# ---------------------------------------------------------------------------


def _requires_status():
    return {
        "preamble-requires-status": RequiresStatus("requires", "status", STATUS_FLOW),
    }


def test_requires_less_advanced_status(memory_fetch):
    fetch = memory_fetch({"eip-20.md": "---\nstatus: Draft\n---\n"})
    reports, _ = _lint(DOC, _requires_status(), fetch=fetch)

    assert len(reports) == 1
    report = reports[0]
    assert report["level"] == "error"
    assert report["id"] == "preamble-requires-status"
    assert report["title"] == (
        "preamble header `requires` contains items not stable enough "
        "for a `status` of `Last Call`"
    )

    snippet = report["snippets"][0]
    assert snippet["source"] == "requires: 20"
    assert snippet["line_start"] == 2
    annotation = snippet["annotations"][0]
    assert annotation["label"] == "has a less advanced status"
    span = annotation["range"]
    assert snippet["source"].encode()[span["start"]:span["end"]] == b" 20"

    assert report["footer"] == [{
        "level": "help",
        "id": None,
        "title": "valid `status` values for this proposal are: `Draft`, `Stagnant`",
        "snippets": [],
        "footer": [],
    }]


def test_requires_missing_file_does_not_stop_other_rules(memory_fetch):
    lints = _requires_status()
    lints["preamble-req"] = Required(["title"])

    reports, linter = _lint(DOC, lints, fetch=memory_fetch())

    assert [r["id"] for r in reports] == ["preamble-req", "preamble-requires-status"]
    assert reports[1]["title"].startswith("unable to read file `eip-20.md`: ")
    assert reports[1]["snippets"][0]["annotations"][0]["label"] == "required from here"
    assert linter.failures == []


def test_undecodable_required_file_does_not_stop_other_rules(tmp_path):
    (tmp_path / "eip-20.md").write_bytes(b"---\nstatus: Draft\n---\n\xff\xfe")
    path = tmp_path / "eip-1.md"
    path.write_text(DOC, encoding="utf-8")
    lints = _requires_status()
    lints["preamble-req"] = Required(["title"])

    reporter = JsonReporter()
    linter = Linter(reporter, lints=lints, fetch=FileSystemFetch()).check_file(path)
    _run(linter.run())

    reports = reporter.reports
    assert [r["id"] for r in reports] == ["preamble-req", "preamble-requires-status"]
    assert reports[1]["title"].startswith("unable to read file `eip-20.md`: ")
    assert "valid UTF-8" in reports[1]["title"]
    assert linter.failures == []


# ---------------------------------------------------------------------------
# Ordering, levels and modifiers
# ---------------------------------------------------------------------------


def test_lints_run_in_slug_order_regardless_of_registration():
    def run(order):
        reporter = JsonReporter()
        linter = Linter(reporter, lints={})
        for slug in order:
            linter.enable(slug, Recorder(report=True))
        _run(linter.check_slice(DOC).run())
        return reporter.to_json()

    forwards = run(["b-lint", "a-lint", "c-lint"])
    backwards = run(["c-lint", "a-lint", "b-lint"])

    assert forwards == backwards
    assert '"a-lint"' in forwards
    assert forwards.index("a-lint") < forwards.index("b-lint") < forwards.index("c-lint")


def test_registration_levels():
    reporter = JsonReporter()
    linter = Linter(reporter, lints={})
    linter.deny("a", Recorder(report=True))
    linter.warn("b", Recorder(report=True))
    linter.enable("c", Recorder(report=True))

    _run(linter.check_slice(DOC).run())

    assert [r["level"] for r in reporter.reports] == ["error", "warning", "error"]


def test_default_modifiers_downgrade_stagnant_proposals():
    source = "---\nstatus: Stagnant\n---\n"
    reporter = JsonReporter()
    linter = Linter(reporter, lints={})
    linter.deny("a", Recorder(report=True)).enable("b", Recorder(report=True))

    _run(linter.check_slice(source).run())

    assert [r["level"] for r in reporter.reports] == ["error", "warning"]


def test_last_matching_modifier_wins():
    modifiers = [
        SetDefaultAnnotation("status", "Draft", Level.WARNING),
        SetDefaultAnnotation("status", "Draft", Level.NOTE),
        SetDefaultAnnotation("status", "Final", Level.HELP),
    ]
    reports, _ = _lint(
        "---\nstatus: Draft\n---\n", {"a": Recorder(report=True)}, modifiers=modifiers
    )
    assert reports[0]["level"] == "note"


def test_modifier_error_is_fatal():
    linter = Linter(NullReporter(), lints={"a": Recorder()}, modifiers=[BrokenModifier()])
    linter.check_slice(DOC, "eip-1.md")

    with pytest.raises(LinterError) as exc:
        _run(linter.run())
    assert exc.value.origin == "eip-1.md"
    assert isinstance(exc.value.__cause__, ModifierError)


# ---------------------------------------------------------------------------
# Rule failures
# ---------------------------------------------------------------------------


def test_rule_failure_is_recorded_and_others_continue():
    other = Recorder(report=True)
    reports, linter = _lint(DOC, {"a-broken": Fails("lint"), "b-fine": other})

    assert [r["id"] for r in reports] == ["b-fine"]
    assert len(linter.failures) == 1
    failure = linter.failures[0]
    assert (failure.slug, failure.phase) == ("a-broken", "lint")
    assert failure.to_dict()["error"] == "cannot lint"


def test_discovery_failure_skips_lint_phase():
    reports, linter = _lint(DOC, {"a": Fails("find_resources")})

    assert reports == []
    assert [(f.slug, f.phase) for f in linter.failures] == [("a", "find_resources")]


def test_undeclared_lookup_is_a_rule_failure():
    _, linter = _lint(DOC, {"a": Undeclared()})
    assert isinstance(linter.failures[0].error, UndeclaredResource)


def test_invalid_rule_config_is_a_rule_failure():
    from proposal_lint.core.linter.rules.markdown import Mode, Regex

    _, linter = _lint(DOC, {"a": Regex(Mode.EXCLUDES, "(", "bad")})
    assert isinstance(linter.failures[0].error, InvalidRuleConfig)


def test_report_error_propagates():
    linter = Linter(BrokenReporter(), lints={"a": Recorder(report=True)})
    linter.check_slice(DOC)

    with pytest.raises(ReportError, match="report failed: disk full"):
        _run(linter.run())


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def test_run_needs_lints_and_sources():
    with pytest.raises(ValueError):
        _run(Linter(NullReporter(), lints={}).check_slice(DOC).run())
    with pytest.raises(ValueError):
        _run(Linter(NullReporter()).run())


def test_check_file_with_default_fetch_fails(tmp_path):
    path = tmp_path / "eip-1.md"
    path.write_text(DOC, encoding="utf-8")

    linter = Linter(NullReporter()).check_file(path)
    with pytest.raises(LinterError, match="i/o error accessing"):
        _run(linter.run())


def test_duplicate_and_unknown_slugs():
    linter = Linter(NullReporter(), lints={"a": Recorder()})

    with pytest.raises(ValueError):
        linter.deny("a", Recorder())
    with pytest.raises(KeyError):
        linter.allow("missing")

    linter.allow("a").warn("a", Recorder())
    assert linter.lints["a"].level is Level.WARNING


def test_default_lints_are_enabled():
    linter = Linter(NullReporter())
    assert set(linter.lints) == set(default_lints())
    assert all(r.level is None for r in linter.lints.values())
    assert linter.clear_lints().lints == {}


def test_get_available_rules():
    rules = get_available_rules()
    assert list(rules) == sorted(rules)
    assert rules["preamble-no-dup"] == "Preamble headers must be defined at most once."


# ---------------------------------------------------------------------------
# Context helpers
# ---------------------------------------------------------------------------


def test_context_locates_body_nodes():
    source = "---\ntitle: x\n---\n# Head\n\nsome text\nmore text\n"
    ctx = Context(parse_document(source), ResourceCache(), NullReporter())

    heading = ctx.body.children[0]
    paragraph = ctx.body.children[1]

    assert ctx.line(4) == "# Head"
    assert ctx.node_line(heading) == 4
    assert ctx.node_line(paragraph) == 6
    assert ctx.ast_lines(paragraph) == "some text\nmore text"
    assert ctx.line_index(2) == 4

    text = paragraph.children[0].children[0]
    snippet = ctx.ast_snippet(text, label="here")
    assert snippet.line_start == 6
    assert snippet.fold is True
    annotation = snippet.annotations[0]
    assert snippet.source.encode()[annotation.start:annotation.end] == b"some text"
    assert annotation.label == "here"
