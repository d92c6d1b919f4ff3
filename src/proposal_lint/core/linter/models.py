"""Data models for the linter."""
from dataclasses import FrozenInstanceError, dataclass
from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

from proposal_lint.core.snippets import Level

if TYPE_CHECKING:
    from .rules import Lint


class Severity(Enum):
    """How a registered rule's findings are reported."""
    DENY = "deny"     # Findings are errors
    WARN = "warn"     # Findings are warnings
    ALLOW = "allow"   # Rule does not run


class DocumentState(Enum):
    """Progress of one document through a run. Transitions only move forward."""
    UNPARSED = "unparsed"
    PARSE_FAILED = "parse_failed"
    PARSED = "parsed"
    DISCOVERING = "discovering"
    FETCHING = "fetching"
    MODIFIERS_APPLIED = "modifiers_applied"
    LINTING = "linting"
    DONE = "done"


@dataclass
class Registration:
    """A rule registered under a slug."""
    lint: "Lint"
    level: Optional[Level] = None  # None: use the document's default level


@dataclass
class LintSettings:
    """
    Per-document settings, mutated by modifiers before rules run.

    ``freeze()`` makes the instance read-only for the lint phase.
    """
    default_annotation_level: Level = Level.ERROR

    def __post_init__(self) -> None:
        object.__setattr__(self, "_frozen", False)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_frozen", False):
            raise FrozenInstanceError(f"cannot assign to field {name!r}")
        super().__setattr__(name, value)

    def freeze(self) -> "LintSettings":
        object.__setattr__(self, "_frozen", True)
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen  # type: ignore[attr-defined]


@dataclass
class RuleFailure:
    """A rule that raised LintError instead of finishing."""
    slug: str
    origin: Optional[str]
    phase: str  # "find_resources" or "lint"
    error: Exception

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "origin": self.origin,
            "phase": self.phase,
            "error": str(self.error),
        }
