"""Core command argument parser for mincore CLI."""

import argparse
from typing import Any, cast

from . import add_common_arguments


def add_core_subparser(subparsers: Any) -> argparse.ArgumentParser:
    core_parser = subparsers.add_parser(
        "core",
        help="Rebuild the minimal core of a mirrored range",
        description="Partition a mirrored range into optimally sized splinters",
    )
    core_parser.add_argument("attribute", help="Attribute to partition")
    core_parser.add_argument(
        "--start", help="Inclusive range start (default: alphabet minimum)"
    )
    core_parser.add_argument(
        "--end", help="Exclusive range end (default: unbounded)"
    )
    core_parser.add_argument(
        "--show",
        action="store_true",
        help="Print the resulting splinters",
    )

    add_common_arguments(core_parser)

    return cast(argparse.ArgumentParser, core_parser)


__all__: list[str] = ["add_core_subparser"]
