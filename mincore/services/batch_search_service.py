"""Batch search service for mincore - the crawl escalation path.

# FILE_CONTEXT: Runs crawl orders that could not be settled inline, followed
# by an optional persisting core build over the refreshed range.
# ROLE: Enforce one time budget across all orders and hand back a
# continuation request whenever work is left over.

## CONTINUATION
An aborted order resumes at the limit reported by its crawler; the orders
after it are carried over unchanged, and so is the core build. An order
blocked at an open range end has nothing left to resume and is dropped.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from loguru import logger

from mincore.core.exceptions import RemoteUnreachableError
from mincore.core.models import (
    AbortReason,
    CrawlMetrics,
    CrawlOrder,
    Splinter,
)
from mincore.services.base_crawler import BaseCrawler
from mincore.services.core_builder import MinimalCoreBuilder


@dataclass
class CoreBuildOrder:
    """Request for a persisting core build.

    With ``lodis_value`` set, ``[start, end)`` lies on the uniqueness
    attribute.
    """

    field: str
    start: str
    end: str | None
    lodis_value: str | None = None


@dataclass
class BatchSearchRequest:
    orders: list[CrawlOrder] = field(default_factory=list)
    core: CoreBuildOrder | None = None
    crawler: str | None = None
    time_budget: float | None = None


@dataclass
class BatchSearchResponse:
    metrics: CrawlMetrics
    reason: AbortReason | None = None
    continuation: BatchSearchRequest | None = None
    splinters: list[Splinter] = field(default_factory=list)

    @property
    def calls(self) -> int:
        return self.metrics.remote_calls

    @property
    def completed(self) -> bool:
        return self.reason is None

    @property
    def blocked(self) -> bool:
        return self.reason is AbortReason.BLOCKED


class BatchSearchService:
    """Executes crawl orders sequentially with the configured crawler."""

    def __init__(
        self,
        crawlers: dict[str, BaseCrawler],
        core_builder: MinimalCoreBuilder,
        default_crawler: str = "trench",
        time_budget: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize batch search service.

        Args:
            crawlers: Available crawlers keyed by name
            core_builder: Builder used for the trailing core build
            default_crawler: Crawler used when a request names none
            time_budget: Default remaining-time budget in seconds
            clock: Monotonic clock the budget is measured against
        """
        if default_crawler not in crawlers:
            raise ValueError(f"Unknown crawler: {default_crawler}")
        self._crawlers = crawlers
        self._core_builder = core_builder
        self._default_crawler = default_crawler
        self._time_budget = time_budget
        self._clock = clock

    def crawler(self, name: str | None = None) -> BaseCrawler:
        name = name or self._default_crawler
        try:
            return self._crawlers[name]
        except KeyError:
            raise ValueError(f"Unknown crawler: {name}") from None

    async def run(self, request: BatchSearchRequest) -> BatchSearchResponse:
        """Run every order of a request, then its core build."""
        crawler = self.crawler(request.crawler)
        budget = request.time_budget if request.time_budget is not None else self._time_budget
        deadline = self._clock() + budget if budget is not None else None
        metrics = CrawlMetrics()

        for position, order in enumerate(request.orders):
            try:
                result = await crawler.run(order, deadline=deadline, metrics=metrics)
            except RemoteUnreachableError as e:
                logger.error(f"Lookup service unreachable during {order.spec}: {e}")
                return self._abort(request, position, order.start, AbortReason.BLOCKED, metrics)

            if not result.completed:
                return self._abort(request, position, result.limit, result.reason, metrics)

        splinters: list[Splinter] = []
        if request.core is not None:
            core = request.core
            splinters = self._core_builder.build(
                core.field, core.start, core.end, core.lodis_value
            )

        logger.info(
            f"Batch of {len(request.orders)} orders finished with "
            f"{metrics.remote_calls} remote calls"
        )
        return BatchSearchResponse(metrics, splinters=splinters)

    def _abort(
        self,
        request: BatchSearchRequest,
        position: int,
        limit: str | None,
        reason: AbortReason,
        metrics: CrawlMetrics,
    ) -> BatchSearchResponse:
        order = request.orders[position]
        remaining = list(request.orders[position + 1 :])
        if limit is not None and (order.end is None or limit < order.end):
            remaining.insert(0, replace(order, start=limit))

        continuation = replace(request, orders=remaining)
        logger.warning(
            f"Batch aborted ({reason.value}) with {len(remaining)} orders left"
        )
        return BatchSearchResponse(metrics, reason=reason, continuation=continuation)
