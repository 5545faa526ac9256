"""CLI entry point for mincore."""

import argparse
import asyncio
import sys
from typing import Any

from loguru import logger
from pydantic import ValidationError

from mincore.core.config.config import Config
from mincore.core.exceptions import MincoreError


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI.

    Args:
        verbose: Whether to enable verbose logging
    """
    logger.remove()

    if verbose:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
                "<level>{message}</level>"
            ),
        )
    else:
        logger.add(
            sys.stderr,
            level="WARNING",
            format=(
                "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
                "<level>{message}</level>"
            ),
        )


def validate_args_and_config(args: argparse.Namespace) -> tuple[Any, list[str]]:
    """Validate command-line arguments and create config.

    Args:
        args: Parsed arguments to validate

    Returns:
        tuple: (config, validation_errors)
    """
    validation_errors: list[str] = []
    try:
        config = Config.from_cli_args(args)
    except ValidationError as e:
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            validation_errors.append(f"{location}: {error['msg']}")
        return None, validation_errors
    except ValueError as e:
        return None, [str(e)]

    if config.lookup.provider == "ldap" and not config.lookup.is_configured():
        validation_errors.append(
            "LDAP provider needs a URL. Set it via --url, "
            "MINCORE_LOOKUP__URL or the config file."
        )
    if config.lookup.volume_cap - config.mirror.buffer < 1:
        validation_errors.append(
            f"Buffer {config.mirror.buffer} must be below the volume cap "
            f"{config.lookup.volume_cap}"
        )

    return config, validation_errors


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the complete argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    # Import parsers dynamically to avoid early loading
    from .parsers import create_main_parser, setup_subparsers
    from .parsers.core_parser import add_core_subparser
    from .parsers.crawl_parser import add_crawl_subparser
    from .parsers.query_parser import add_query_subparser
    from .parsers.stale_parser import add_stale_subparser

    parser = create_main_parser()
    subparsers = setup_subparsers(parser)

    add_crawl_subparser(subparsers)
    add_core_subparser(subparsers)
    add_query_subparser(subparsers)
    add_stale_subparser(subparsers)

    return parser


async def async_main(argv: list[str] | None = None) -> None:
    """Async main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(getattr(args, "verbose", False))

    config, validation_errors = validate_args_and_config(args)

    if validation_errors:
        for error in validation_errors:
            logger.error(f"Error: {error}")
        sys.exit(1)

    try:
        if args.command == "crawl":
            from .commands.crawl import crawl_command

            await crawl_command(args, config)
        elif args.command == "core":
            from .commands.core import core_command

            await core_command(args, config)
        elif args.command == "query":
            from .commands.query import query_command

            await query_command(args, config)
        elif args.command == "stale":
            from .commands.stale import stale_command

            await stale_command(args, config)
        else:
            logger.error(f"Unknown command: {args.command}")
            sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except MincoreError as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        logger.exception("Full error details:")
        sys.exit(1)


def main() -> None:
    """Main entry point for the CLI."""
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
