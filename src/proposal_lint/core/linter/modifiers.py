"""Modifiers: content-driven changes to per-document lint settings.

Modifiers run after fetching and before any rule, in registration order.
Each may overwrite settings written by an earlier one, so the last
matching modifier wins.
"""
from dataclasses import dataclass
from typing import Any

from proposal_lint.core.snippets import Level

from .context import Context
from .errors import ModifierError
from .models import LintSettings


class Modifier:
    """Base class for modifiers. Raise ModifierError on failure."""

    def modify(self, ctx: Context, settings: LintSettings) -> None:
        raise NotImplementedError


@dataclass
class SetDefaultAnnotation(Modifier):
    """Change the default level when header ``name`` has exactly ``value``."""
    name: str
    value: str
    annotation_level: Level

    def modify(self, ctx: Context, settings: LintSettings) -> None:
        field = ctx.preamble.by_name(self.name)
        if field is None:
            return

        if field.value.strip() == self.value:
            settings.default_annotation_level = self.annotation_level


def default_modifiers() -> list[Modifier]:
    """Stagnant and withdrawn proposals only get warnings."""
    return [
        SetDefaultAnnotation("status", "Stagnant", Level.WARNING),
        SetDefaultAnnotation("status", "Withdrawn", Level.WARNING),
    ]


# kind -> modifier class, for configuration files
MODIFIER_KINDS = {
    "set-default-annotation": SetDefaultAnnotation,
}


def modifier_from_dict(data: dict[str, Any]) -> Modifier:
    """
    Build a modifier from its configuration mapping.

    Example:
        {"kind": "set-default-annotation", "name": "status",
         "value": "Draft", "annotation_level": "warning"}

    Raises:
        ModifierError: Unknown kind, missing keys or a bad level.
    """
    if not isinstance(data, dict):
        raise ModifierError(f"modifier must be a mapping, got {type(data).__name__}")

    kind = data.get("kind")
    if kind not in MODIFIER_KINDS:
        raise ModifierError(f"unknown modifier kind: {kind!r}")

    try:
        level = Level(str(data["annotation_level"]).lower())
        return MODIFIER_KINDS[kind](str(data["name"]), str(data["value"]), level)
    except KeyError as e:
        raise ModifierError(f"modifier `{kind}` is missing {e}") from e
    except ValueError as e:
        raise ModifierError(f"modifier `{kind}`: {e}") from e
