"""Proposal Lint MCP Server - Main entry point."""
import logging
import sys

from mcp.server.fastmcp import FastMCP

from proposal_lint import __version__
from proposal_lint.config import Config
from proposal_lint.tools import lint

# Configure logging to stderr (CRITICAL: stdout is reserved for JSON-RPC)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)]
)

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("proposal-lint")


def main():
    """Main entry point for the MCP server."""
    try:
        config = Config.load()

        logger.info(f"Proposal Lint v{__version__} starting...")
        logger.info(f"Proposal format: {config.proposal_format}")
        if config.config_path:
            logger.info(f"Config file: {config.config_path}")

        logger.info("Registering tools...")
        lint.register(mcp, config)
        logger.info("Tools registered: lint_proposal, lint_proposal_source, get_lint_rules")

        logger.info("Starting MCP server on stdio...")
        mcp.run(transport="stdio")

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
