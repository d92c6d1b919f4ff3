"""lint_proposal tool implementation."""
import logging
from pathlib import Path
from typing import Optional

from proposal_lint.config import Config, ConfigError
from proposal_lint.core.fetch import FileSystemFetch
from proposal_lint.core.linter import engine
from proposal_lint.core.linter.errors import LinterError, ReportError
from proposal_lint.core.linter.reporters import (
    AdditionalHelpReporter,
    CountReporter,
    JsonReporter,
    TextReporter,
)

logger = logging.getLogger(__name__)


async def run_lint(
    config: Config,
    path: Optional[Path] = None,
    source: Optional[str] = None,
    origin: Optional[str] = None,
    format: str = "json",
) -> dict:
    """Lint one file or one in-memory document and summarize the result."""
    output = JsonReporter() if format == "json" else TextReporter()
    reporter = CountReporter(AdditionalHelpReporter(output, config.help_message))

    linter = config.linter(reporter, fetch=FileSystemFetch())
    if path is not None:
        linter.check_file(path)
    else:
        linter.check_slice(source, origin)

    await linter.run()

    counts = reporter.counts
    if isinstance(output, JsonReporter):
        diagnostics = output.reports
    else:
        diagnostics = output.getvalue()

    return {
        "path": str(path) if path is not None else origin,
        "errors": counts.error,
        "warnings": counts.warning,
        "diagnostics": diagnostics,
        "rule_failures": [f.to_dict() for f in linter.failures],
    }


def register(mcp, config: Config):
    """Register lint tools with MCP server."""

    @mcp.tool()
    async def lint_proposal(path: str, format: str = "json") -> dict:
        """
        Lint a proposal document (preamble + Markdown body).

        Cross references (required proposals, linked proposals) are read
        from the proposal's directory.

        Args:
            path: Path to the .md file
            format: "json" for structured diagnostics, "text" for rendered text

        Returns:
            Dictionary with:
            - path (str): Path that was linted
            - errors (int): Error-level diagnostics
            - warnings (int): Warning-level diagnostics
            - diagnostics (list | str): Diagnostics in the requested format
            - rule_failures (list): Rules that could not run

        Example:
            {
                "path": "EIPS/eip-1559.md",
                "format": "json"
            }
        """
        file_path = Path(path).expanduser()

        if not file_path.exists():
            return {"error": f"File not found: {file_path}"}

        if format not in ("json", "text"):
            return {"error": f"Unknown format: {format}"}

        logger.info(f"Linting {file_path} (format={format})")

        try:
            result = await run_lint(config, path=file_path, format=format)
        except (ConfigError, LinterError, ReportError, ValueError) as e:
            logger.error(f"Lint failed: {e}", exc_info=True)
            return {"error": str(e)}

        logger.info(
            f"Lint complete: {result['errors']} errors, {result['warnings']} warnings"
        )
        return result

    @mcp.tool()
    async def lint_proposal_source(
        source: str,
        origin: str | None = None,
        format: str = "json"
    ) -> dict:
        """
        Lint proposal text that is not saved to disk.

        Relative cross references resolve against the directory of
        ``origin``, or the server's working directory.

        Args:
            source: Full document text, starting with `---`
            origin: Name to show in diagnostics, e.g. "EIPS/eip-1.md"
            format: "json" or "text"

        Returns:
            Same shape as lint_proposal.
        """
        if format not in ("json", "text"):
            return {"error": f"Unknown format: {format}"}

        try:
            return await run_lint(config, source=source, origin=origin, format=format)
        except (ConfigError, LinterError, ReportError, ValueError) as e:
            logger.error(f"Lint failed: {e}", exc_info=True)
            return {"error": str(e)}

    @mcp.tool()
    async def get_lint_rules() -> dict:
        """
        Get list of available lint rules with descriptions.

        Returns:
            Dictionary mapping rule slugs to their descriptions.

        Example response:
            {
                "rules": {
                    "preamble-no-dup": "Preamble headers must be defined at most once.",
                    ...
                }
            }
        """
        return {"rules": engine.get_available_rules()}
