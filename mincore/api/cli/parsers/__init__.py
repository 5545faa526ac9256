"""Argument parsers for mincore CLI commands."""

import argparse
from pathlib import Path
from typing import Any

from mincore.core.config.database_config import DatabaseConfig
from mincore.core.config.lookup_config import LookupConfig
from mincore.core.config.mirror_config import MirrorConfig
from mincore.version import __version__


def create_main_parser() -> argparse.ArgumentParser:
    """Create the top-level parser."""
    parser = argparse.ArgumentParser(
        prog="mincore",
        description="Mirror a volume-capped directory service through range queries",
    )
    parser.add_argument(
        "--version", action="version", version=f"mincore {__version__}"
    )
    return parser


def setup_subparsers(parser: argparse.ArgumentParser) -> Any:
    return parser.add_subparsers(dest="command", help="Available commands")


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Add the arguments every command shares."""
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file path",
    )

    DatabaseConfig.add_cli_arguments(parser)
    LookupConfig.add_cli_arguments(parser)
    MirrorConfig.add_cli_arguments(parser)


__all__: list[str] = ["create_main_parser", "setup_subparsers", "add_common_arguments"]
