"""Query, crawl and metrics models."""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from mincore.core.filters.compiler import FilterSchema
from mincore.core.models.entry import Entry
from mincore.core.models.splinter import LodisScope, RangeSpec


class QueryOutcome(Enum):
    """Classification of one logical range query."""

    CONSISTENT = "consistent"  # the result holds every matching entry
    TRUNCATED = "truncated"  # the volume cap was hit
    BLOCKED = "blocked"  # every schema variant failed


class AbortReason(str, Enum):
    TIMEOUT = "timeout"
    BLOCKED = "blocked"


@dataclass
class CrawlMetrics:
    """Per-invocation counters, merged by the caller."""

    remote_calls: int = 0
    consistent_queries: int = 0
    truncated_queries: int = 0
    failed_queries: int = 0
    blocked_queries: int = 0
    iterations: int = 0
    lodis_entries: int = 0
    pause_time: float = 0.0
    response_time: float = 0.0

    def __iadd__(self, other: "CrawlMetrics") -> "CrawlMetrics":
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class QueryResult:
    """Outcome of one logical range query against the remote service."""

    spec: RangeSpec
    entries: list[Entry]
    outcome: QueryOutcome
    schema: FilterSchema | None = None
    lodis: LodisScope | None = None

    @property
    def consistent(self) -> bool:
        return self.outcome is QueryOutcome.CONSISTENT

    @property
    def blocked(self) -> bool:
        return self.outcome is QueryOutcome.BLOCKED


@dataclass
class CrawlResult:
    """Result of a crawl invocation.

    A finished crawl has ``reason is None``. An aborted one reports why and the
    lower bound from which the same crawl can be restarted.
    """

    metrics: CrawlMetrics = field(default_factory=CrawlMetrics)
    reason: AbortReason | None = None
    limit: str | None = None

    @property
    def completed(self) -> bool:
        return self.reason is None

    @property
    def blocked(self) -> bool:
        return self.reason is AbortReason.BLOCKED


@dataclass
class CrawlOrder:
    """Request to crawl ``[start, end)`` on ``field``.

    With ``lodis_value`` set, ``field`` is the uniqueness attribute crawled
    among the entries whose ``lodis_field`` equals ``lodis_value``.
    """

    field: str
    start: str
    end: str | None
    volume_cap: int
    step: int | None = None
    lodis_field: str | None = None
    lodis_value: str | None = None

    @property
    def lodis(self) -> LodisScope | None:
        if self.lodis_value is None or self.lodis_field is None:
            return None
        return LodisScope(self.lodis_field, self.lodis_value)

    @property
    def spec(self) -> RangeSpec:
        return RangeSpec(self.field, self.start, self.end)

    def follows(self, other: "CrawlOrder") -> bool:
        """Whether this order starts exactly where ``other`` ends."""
        return (
            self.field == other.field
            and self.lodis_field == other.lodis_field
            and self.lodis_value == other.lodis_value
            and other.end is not None
            and other.end == self.start
        )
