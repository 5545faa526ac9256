"""Query command argument parser for mincore CLI."""

import argparse
from typing import Any, cast

from . import add_common_arguments


def add_query_subparser(subparsers: Any) -> argparse.ArgumentParser:
    """Add query command subparser to the main parser.

    Args:
        subparsers: Subparsers object from the main argument parser

    Returns:
        The configured query subparser
    """
    query_parser = subparsers.add_parser(
        "query",
        help="Answer a lookup from a freshly refreshed mirror",
        description=(
            "Refresh the due parts of the mirror a lookup touches, then "
            "answer it. A trailing '*' makes a value a prefix."
        ),
    )
    query_parser.add_argument(
        "filters",
        nargs="+",
        metavar="ATTR=VALUE",
        help="Lookup terms, e.g. sn=smith or givenname=jo*",
    )
    query_parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Answer before escalated crawls finish",
    )

    add_common_arguments(query_parser)

    return cast(argparse.ArgumentParser, query_parser)


__all__: list[str] = ["add_query_subparser"]
