"""Shared utilities for mincore CLI commands."""

from .rich_output import RichOutputFormatter, format_stats

__all__ = [
    "RichOutputFormatter",
    "format_stats",
]
