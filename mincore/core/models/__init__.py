"""Core data models for mincore."""

from .crawl import (
    AbortReason,
    CrawlMetrics,
    CrawlOrder,
    CrawlResult,
    QueryOutcome,
    QueryResult,
)
from .entry import Entry
from .splinter import Hole, LodisScope, RangeSpec, Splinter, later_end

__all__ = [
    "AbortReason",
    "CrawlMetrics",
    "CrawlOrder",
    "CrawlResult",
    "Entry",
    "Hole",
    "LodisScope",
    "QueryOutcome",
    "QueryResult",
    "RangeSpec",
    "Splinter",
    "later_end",
]
