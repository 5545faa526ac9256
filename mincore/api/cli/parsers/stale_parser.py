"""Stale command argument parser for mincore CLI."""

import argparse
from typing import Any, cast

from . import add_common_arguments


def add_stale_subparser(subparsers: Any) -> argparse.ArgumentParser:
    stale_parser = subparsers.add_parser(
        "stale",
        help="Mark old splinters as due for refresh",
        description="Put every splinter older than the staleness age on the maintenance list",
    )
    stale_parser.add_argument(
        "--days",
        type=float,
        help="Staleness age in days (default: configured staleness)",
    )

    add_common_arguments(stale_parser)

    return cast(argparse.ArgumentParser, stale_parser)


__all__: list[str] = ["add_stale_subparser"]
