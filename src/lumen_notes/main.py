#!/usr/bin/env python
"""Main entry point for the Lumen Notes MCP server."""
import argparse
import logging
import os
import sys
from pathlib import Path

from lumen_notes import __version__
from lumen_notes.config import config
from lumen_notes.observability import configure_logging
from lumen_notes.server.mcp_server import NotesMcpServer


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Lumen Notes MCP Server")
    parser.add_argument(
        "--database-path",
        help="SQLite database file path",
        type=str,
        default=os.environ.get("LUMEN_NOTES_DATABASE_PATH")
    )
    parser.add_argument(
        "--storage",
        help="Storage backend",
        choices=["sqlite", "memory"],
        default=None
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("LUMEN_NOTES_LOG_LEVEL", "INFO")
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.database_path:
        config.database_path = Path(args.database_path)
    if args.storage:
        config.storage_backend = args.storage


def main(argv=None):
    """Run the Lumen Notes MCP server."""
    args = parse_args(argv)
    update_config(args)

    # Console output goes to stderr; stdout carries the MCP protocol
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(level=log_level, console=True)
    except OSError as e:
        logging.basicConfig(level=log_level, stream=sys.stderr)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    logger.info(
        f"Starting Lumen Notes MCP server v{__version__} "
        f"(storage={config.storage_backend}, "
        f"database={config.get_absolute_path(config.database_path)})"
    )
    try:
        server = NotesMcpServer()
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
