"""Query command module - answers lookups from a refreshed mirror."""

import argparse
import sys

from mincore.core.config.config import Config
from mincore.registry import create_services

from ..utils.rich_output import RichOutputFormatter


def parse_filters(terms: list[str]) -> dict[str, str]:
    """Parse ``attr=value`` terms.

    Raises:
        ValueError: If a term has no '=' or names an attribute twice
    """
    request: dict[str, str] = {}
    for term in terms:
        attribute, sep, value = term.partition("=")
        attribute = attribute.strip().lower()
        if not sep or not attribute:
            raise ValueError(f"Expected ATTR=VALUE, got {term!r}")
        if attribute in request:
            raise ValueError(f"Attribute given twice: {attribute}")
        request[attribute] = value
    return request


async def query_command(args: argparse.Namespace, config: Config) -> None:
    """Execute the query command.

    Exits with status 1 when the answer comes from a partially refreshed
    mirror.
    """
    formatter = RichOutputFormatter(verbose=args.verbose)
    try:
        request = parse_filters(args.filters)
    except ValueError as e:
        formatter.error(str(e))
        sys.exit(1)

    services = await create_services(config)
    try:
        response = await services.coordinator.refresh(request)
        formatter.verbose_info(
            f"{len(response.holes)} holes, {len(response.crawl_orders)} crawl orders, "
            f"{response.metrics.remote_calls} remote calls"
        )
        formatter.entries_table(response.entries, list(config.mirror.visible_attributes))

        if response.degraded:
            formatter.warning(
                f"Answer may be stale: {len(response.pending)} escalations unfinished"
            )
            sys.exit(1)
    finally:
        await services.close()
