"""Core command module - rebuilds the minimal core of a mirrored range."""

import argparse
import sys

from mincore.core.config.config import Config
from mincore.registry import create_services

from ..utils.rich_output import RichOutputFormatter


async def core_command(args: argparse.Namespace, config: Config) -> None:
    """Execute the core command.

    Args:
        args: Parsed command-line arguments
        config: Pre-validated configuration instance
    """
    formatter = RichOutputFormatter(verbose=args.verbose)
    services = await create_services(config)
    try:
        alphabets = services.alphabets
        attribute = args.attribute.lower()
        if attribute not in alphabets.attributes:
            formatter.error(f"Unknown attribute: {attribute}")
            sys.exit(1)

        start = alphabets.normalize(args.start) if args.start else alphabets.minimum(attribute)
        end = alphabets.normalize(args.end) if args.end else None

        splinters = services.core_builder.build(attribute, start or "", end)
        formatter.success(
            f"Core of {attribute} rebuilt with {len(splinters)} splinters "
            f"(cap {services.core_builder.splinter_cap})"
        )
        if args.show:
            formatter.splinters_table(splinters)
    finally:
        await services.close()
