"""Crawl command argument parser for mincore CLI."""

import argparse
from typing import Any, cast

from . import add_common_arguments


def add_crawl_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add crawl command subparser to the main parser.

    Args:
        subparsers: Subparsers object from the main argument parser

    Returns:
        The configured crawl subparser
    """
    crawl_parser = subparsers.add_parser(
        "crawl",
        help="Crawl a range of the remote namespace into the mirror",
        description=(
            "Download every remote entry in [start, end) on one attribute. "
            "With --lodis, crawl the uniqueness attribute among the entries "
            "whose attribute equals the given value."
        ),
    )
    crawl_parser.add_argument("attribute", help="Attribute to crawl")
    crawl_parser.add_argument(
        "--start", help="Inclusive range start (default: alphabet minimum)"
    )
    crawl_parser.add_argument(
        "--end", help="Exclusive range end (default: unbounded)"
    )
    crawl_parser.add_argument(
        "--lodis",
        metavar="VALUE",
        help="Crawl the uniqueness attribute within attribute=VALUE",
    )
    crawl_parser.add_argument(
        "--core",
        action="store_true",
        help="Rebuild the minimal core over the crawled range afterwards",
    )

    add_common_arguments(crawl_parser)

    return cast(argparse.ArgumentParser, crawl_parser)


__all__: list[str] = ["add_crawl_subparser"]
