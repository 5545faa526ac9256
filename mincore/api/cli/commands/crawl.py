"""Crawl command module - downloads remote ranges into the mirror."""

import argparse
import sys
import time

from mincore.core.config.config import Config
from mincore.core.models import CrawlOrder
from mincore.registry import Services, create_services
from mincore.services.batch_search_service import BatchSearchRequest, CoreBuildOrder
from mincore.version import __version__

from ..utils.rich_output import RichOutputFormatter, format_stats


def build_request(args: argparse.Namespace, services: Services) -> BatchSearchRequest:
    """Translate crawl arguments into a batch request.

    Raises:
        ValueError: If the attribute has no alphabet or the range is empty
    """
    alphabets = services.alphabets
    attribute = args.attribute.lower()
    if attribute not in alphabets.attributes:
        raise ValueError(f"Unknown attribute: {attribute}")

    if args.lodis is not None:
        value = alphabets.normalize(args.lodis) or ""
        field = alphabets.uniqueness_attribute
        lodis_field: str | None = attribute
    else:
        value = None
        field = attribute
        lodis_field = None

    start = alphabets.normalize(args.start) if args.start else alphabets.minimum(field)
    end = alphabets.normalize(args.end) if args.end else None
    if start is None or (end is not None and start >= end):
        raise ValueError(f"Empty range [{args.start!r}, {args.end!r})")

    order = CrawlOrder(
        field=field,
        start=start,
        end=end,
        volume_cap=services.volume_cap,
        step=services.config.mirror.scan_step(services.volume_cap),
        lodis_field=lodis_field,
        lodis_value=value,
    )
    core = None
    if args.core:
        if value is not None:
            core = CoreBuildOrder(attribute, start, end, lodis_value=value)
        else:
            core = CoreBuildOrder(field, start, end)
    return BatchSearchRequest(orders=[order], core=core)


async def crawl_command(args: argparse.Namespace, config: Config) -> None:
    """Execute the crawl command.

    Args:
        args: Parsed command-line arguments
        config: Pre-validated configuration instance
    """
    formatter = RichOutputFormatter(verbose=args.verbose)
    formatter.startup_info(__version__, str(config.database.get_db_path()), config)

    services = await create_services(config)
    try:
        try:
            request = build_request(args, services)
        except ValueError as e:
            formatter.error(str(e))
            sys.exit(1)

        order = request.orders[0]
        formatter.info(f"Crawling {order.spec} with {config.mirror.crawler}")
        started = time.perf_counter()
        response = await services.batch_service.run(request)
        formatter.metrics_panel(format_stats(response.metrics), time.perf_counter() - started)

        if not response.completed:
            reason = response.reason.value if response.reason else "unknown"
            remaining = response.continuation.orders if response.continuation else []
            if remaining:
                formatter.warning(
                    f"Crawl aborted ({reason}), resume with --start {remaining[0].start!r}"
                )
            else:
                formatter.warning(f"Crawl aborted ({reason}) with nothing left to resume")
            sys.exit(1)

        if response.splinters:
            formatter.success(f"Core rebuilt with {len(response.splinters)} splinters")
        formatter.success("Crawl complete")
    finally:
        await services.close()
