"""Configuration management with environment variable and YAML overrides."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional
import logging
import os

import yaml

from proposal_lint.core.fetch import Fetch
from proposal_lint.core.linter.engine import Linter
from proposal_lint.core.linter.errors import ModifierError
from proposal_lint.core.linter.models import Severity
from proposal_lint.core.linter.modifiers import (
    Modifier,
    default_modifiers,
    modifier_from_dict,
)
from proposal_lint.core.linter.reporters import Reporter
from proposal_lint.core.linter.rules import default_lints

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """The configuration file or an override is unusable."""


@dataclass
class Config:
    """Configuration for the proposal linter."""

    # Proposal file name stem, `{}` is the number
    proposal_format: str = "eip-{}"

    # Output format for the CLI: "text" or "json"
    output_format: str = "text"

    # Footer added the first time a rule reports; `{}` is the slug
    help_url: str = "see https://ethereum.github.io/eipw/{}/"

    # Start from the shipped rules
    default_lints: bool = True

    # slug -> severity, applied on top of the shipped rules
    overrides: dict[str, Severity] = field(default_factory=dict)

    # Extra modifiers, run after the default ones
    modifiers: list[Modifier] = field(default_factory=list)

    # YAML file the values above were read from, if any
    config_path: Optional[Path] = None

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """
        Load config from an optional YAML file, then environment overrides.

        Raises:
            ConfigError: The file is unreadable or malformed.
        """
        config = cls()

        if path is None and (val := os.environ.get("PROPOSAL_LINT_CONFIG")):
            path = Path(val).expanduser()
        if path is not None:
            config.update_from_file(path)

        # Override proposal file naming from env
        if val := os.environ.get("PROPOSAL_LINT_PROPOSAL_FORMAT"):
            config.proposal_format = val

        # Override output format from env
        if val := os.environ.get("PROPOSAL_LINT_FORMAT"):
            if val not in ("text", "json"):
                raise ConfigError(f"PROPOSAL_LINT_FORMAT must be text or json, got {val!r}")
            config.output_format = val

        # Override help footer from env
        if val := os.environ.get("PROPOSAL_LINT_HELP_URL"):
            config.help_url = val

        return config

    def update_from_file(self, path: Path) -> None:
        """Merge settings from a YAML file."""
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid YAML in {path}: {e}") from e

        self.config_path = Path(path)
        self.update(data or {})
        logger.debug(f"Loaded config from {path}")

    def update(self, data: Any) -> None:
        """Merge settings from a parsed mapping."""
        if not isinstance(data, dict):
            raise ConfigError("config must be a mapping")

        unknown = set(data) - {"proposal_format", "modifiers", "deny", "warn", "allow"}
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")

        if "proposal_format" in data:
            self.proposal_format = str(data["proposal_format"])

        for item in data.get("modifiers") or []:
            try:
                self.modifiers.append(modifier_from_dict(item))
            except ModifierError as e:
                raise ConfigError(str(e)) from e

        for key, severity in (
            ("deny", Severity.DENY),
            ("warn", Severity.WARN),
            ("allow", Severity.ALLOW),
        ):
            slugs = data.get(key) or []
            if not isinstance(slugs, list):
                raise ConfigError(f"`{key}` must be a list of lint slugs")
            for slug in slugs:
                self.overrides[str(slug)] = severity

    def linter(self, reporter: Reporter, fetch: Optional[Fetch] = None) -> Linter:
        """
        Build a Linter from this configuration.

        Raises:
            ConfigError: An override names an unknown slug.
        """
        available = default_lints()
        unknown = sorted(set(self.overrides) - set(available))
        if unknown:
            raise ConfigError(f"unknown lint(s): {', '.join(unknown)}")

        modifiers = default_modifiers() + list(self.modifiers)
        linter = Linter(
            reporter,
            lints=available if self.default_lints else {},
            modifiers=modifiers,
            fetch=fetch,
            proposal_format=self.proposal_format,
        )

        for slug, severity in sorted(self.overrides.items()):
            if slug in linter.lints:
                linter.allow(slug)
            if severity is Severity.DENY:
                linter.deny(slug, available[slug])
            elif severity is Severity.WARN:
                linter.warn(slug, available[slug])

        return linter

    def help_message(self, slug: str) -> str:
        return self.help_url.format(slug)
