"""Tests for configuration loading."""
import pytest

from proposal_lint.config import Config, ConfigError
from proposal_lint.core.linter.models import Severity
from proposal_lint.core.linter.modifiers import SetDefaultAnnotation
from proposal_lint.core.linter.reporters import NullReporter
from proposal_lint.core.snippets import Level


def test_defaults():
    config = Config.load()
    assert config.proposal_format == "eip-{}"
    assert config.output_format == "text"
    assert config.overrides == {}
    assert config.help_message("preamble-req").endswith("preamble-req/")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PROPOSAL_LINT_PROPOSAL_FORMAT", "erc-{}")
    monkeypatch.setenv("PROPOSAL_LINT_FORMAT", "json")
    monkeypatch.setenv("PROPOSAL_LINT_HELP_URL", "docs: {}")

    config = Config.load()

    assert config.proposal_format == "erc-{}"
    assert config.output_format == "json"
    assert config.help_message("x") == "docs: x"


def test_bad_format_env(monkeypatch):
    monkeypatch.setenv("PROPOSAL_LINT_FORMAT", "xml")
    with pytest.raises(ConfigError):
        Config.load()


def test_yaml_file(tmp_path):
    path = tmp_path / "lint.yaml"
    path.write_text(
        "proposal_format: erc-{}\n"
        "deny: [preamble-trim]\n"
        "warn: [preamble-req]\n"
        "allow: [markdown-link-status]\n"
        "modifiers:\n"
        "  - kind: set-default-annotation\n"
        "    name: status\n"
        "    value: Draft\n"
        "    annotation_level: note\n",
        encoding="utf-8",
    )

    config = Config.load(path)

    assert config.config_path == path
    assert config.proposal_format == "erc-{}"
    assert config.overrides == {
        "preamble-trim": Severity.DENY,
        "preamble-req": Severity.WARN,
        "markdown-link-status": Severity.ALLOW,
    }
    assert config.modifiers == [SetDefaultAnnotation("status", "Draft", Level.NOTE)]


def test_config_file_from_env(tmp_path, monkeypatch):
    path = tmp_path / "lint.yaml"
    path.write_text("proposal_format: x-{}\n", encoding="utf-8")
    monkeypatch.setenv("PROPOSAL_LINT_CONFIG", str(path))

    assert Config.load().proposal_format == "x-{}"


@pytest.mark.parametrize("text", [
    "deny: [unclosed\n",
    "- just\n- a list\n",
    "surprise: true\n",
    "deny: preamble-trim\n",
    "modifiers:\n  - kind: nope\n",
])
def test_malformed_files(tmp_path, text):
    path = tmp_path / "lint.yaml"
    path.write_text(text, encoding="utf-8")

    with pytest.raises(ConfigError):
        Config.load(path)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        Config.load(tmp_path / "nope.yaml")


def test_linter_applies_overrides():
    config = Config(overrides={
        "preamble-trim": Severity.DENY,
        "preamble-req": Severity.WARN,
        "markdown-link-status": Severity.ALLOW,
    })
    linter = config.linter(NullReporter())
    lints = linter.lints

    assert lints["preamble-trim"].level is Level.ERROR
    assert lints["preamble-req"].level is Level.WARNING
    assert lints["preamble-no-dup"].level is None
    assert "markdown-link-status" not in lints


def test_linter_without_defaults():
    config = Config(default_lints=False, overrides={"preamble-trim": Severity.WARN})
    assert list(config.linter(NullReporter()).lints) == ["preamble-trim"]


def test_linter_unknown_slug():
    with pytest.raises(ConfigError, match="unknown lint"):
        Config(overrides={"no-such-lint": Severity.DENY}).linter(NullReporter())
