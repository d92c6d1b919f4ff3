"""Proposal linter: resolution pipeline, rules, modifiers and reporters."""
from .context import Context, Document, FetchContext
from .engine import Linter, get_available_rules
from .errors import (
    FetchError,
    InvalidRuleConfig,
    LintError,
    LinterError,
    ModifierError,
    ReportError,
    UndeclaredResource,
)
from .models import DocumentState, LintSettings, RuleFailure, Severity
from .modifiers import Modifier, SetDefaultAnnotation, default_modifiers
from .reporters import (
    AdditionalHelpReporter,
    ConsoleReporter,
    CountReporter,
    JsonReporter,
    NullReporter,
    Reporter,
    TextReporter,
)
from .rules import Lint, default_lints

__all__ = [
    "Context",
    "Document",
    "FetchContext",
    "Linter",
    "get_available_rules",
    "FetchError",
    "InvalidRuleConfig",
    "LintError",
    "LinterError",
    "ModifierError",
    "ReportError",
    "UndeclaredResource",
    "DocumentState",
    "LintSettings",
    "RuleFailure",
    "Severity",
    "Modifier",
    "SetDefaultAnnotation",
    "default_modifiers",
    "AdditionalHelpReporter",
    "ConsoleReporter",
    "CountReporter",
    "JsonReporter",
    "NullReporter",
    "Reporter",
    "TextReporter",
    "Lint",
    "default_lints",
]
