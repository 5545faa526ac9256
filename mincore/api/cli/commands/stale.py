"""Stale command module - schedules old splinters for refresh."""

import argparse

from mincore.core.config.config import Config
from mincore.registry import create_services

from ..utils.rich_output import RichOutputFormatter


async def stale_command(args: argparse.Namespace, config: Config) -> None:
    formatter = RichOutputFormatter(verbose=args.verbose)
    services = await create_services(config)
    try:
        days = args.days if args.days is not None else config.mirror.staleness_days
        marked = services.coordinator.mark_stale(args.days)
        formatter.success(f"{marked} splinters older than {days:g} days marked due")
    finally:
        await services.close()
