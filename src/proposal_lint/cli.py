"""CLI for proposal-lint.

Lints proposal files from the terminal, without MCP.
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from proposal_lint import __version__
from proposal_lint.config import Config, ConfigError
from proposal_lint.core.fetch import FileSystemFetch
from proposal_lint.core.linter.engine import get_available_rules
from proposal_lint.core.linter.errors import LinterError, ReportError
from proposal_lint.core.linter.models import Severity
from proposal_lint.core.linter.reporters import (
    AdditionalHelpReporter,
    CountReporter,
    JsonReporter,
    TextReporter,
)

# Exit statuses
EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proposal-lint",
        description="Validate proposal documents (preamble + Markdown body)"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "sources", nargs="*", type=Path,
        help="Files to lint; directories are expanded to their *.md files"
    )
    parser.add_argument(
        "--format", choices=["text", "json"], default=None,
        help="Output format (default: text, or PROPOSAL_LINT_FORMAT)"
    )
    parser.add_argument(
        "--list-lints", action="store_true",
        help="List available lints and exit"
    )
    parser.add_argument(
        "--no-default-lints", action="store_true",
        help="Start with no lints; enable some with -D or -W"
    )
    parser.add_argument(
        "-D", "--deny", action="append", default=[], metavar="SLUG",
        help="Report findings of this lint as errors"
    )
    parser.add_argument(
        "-W", "--warn", action="append", default=[], metavar="SLUG",
        help="Report findings of this lint as warnings"
    )
    parser.add_argument(
        "-A", "--allow", action="append", default=[], metavar="SLUG",
        help="Disable this lint"
    )
    parser.add_argument(
        "-c", "--config", type=Path,
        help="YAML config file (default: PROPOSAL_LINT_CONFIG)"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log engine progress to stderr"
    )
    return parser


def collect_sources(paths: list[Path]) -> list[Path]:
    """Expand directories to their Markdown files, sorted."""
    sources = []
    for path in paths:
        if path.is_dir():
            sources.extend(sorted(path.glob("*.md")))
        else:
            sources.append(path)
    return sources


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)]
    )

    if args.list_lints:
        for slug, description in get_available_rules().items():
            print(f"{slug}: {description}")
        sys.exit(EXIT_OK)

    if not args.sources:
        parser.error("at least one source is required")

    sys.exit(asyncio.run(lint_command(args)))


async def lint_command(args) -> int:
    """Execute a lint run and return the exit status."""
    try:
        config = Config.load(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if args.no_default_lints:
        config.default_lints = False
    for slugs, severity in (
        (args.deny, Severity.DENY),
        (args.warn, Severity.WARN),
        (args.allow, Severity.ALLOW),
    ):
        for slug in slugs:
            config.overrides[slug] = severity

    output_format = args.format or config.output_format
    if output_format == "json":
        output = JsonReporter()
    else:
        output = TextReporter(sys.stdout)

    reporter = CountReporter(AdditionalHelpReporter(output, config.help_message))

    try:
        linter = config.linter(reporter, fetch=FileSystemFetch())
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    for source in collect_sources(args.sources):
        linter.check_file(source)

    try:
        await linter.run()
    except (ValueError, LinterError, ReportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    if isinstance(output, JsonReporter):
        print(output.to_json())

    for failure in linter.failures:
        print(
            f"Error: lint `{failure.slug}` failed on {failure.origin}: {failure.error}",
            file=sys.stderr
        )

    counts = reporter.counts
    if counts.error:
        print(f"validation failed with {counts.error} errors :(", file=sys.stderr)
    if linter.failures:
        return EXIT_FAILURE
    if counts.error:
        return EXIT_FINDINGS
    return EXIT_OK


if __name__ == "__main__":
    main()
