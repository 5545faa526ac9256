"""Shared plumbing for the namespace crawlers."""

import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from loguru import logger

from mincore.core.alphabet import AlphabetSpace
from mincore.core.exceptions import StructuralInvariantError
from mincore.core.models import (
    CrawlMetrics,
    CrawlOrder,
    CrawlResult,
    LodisScope,
    QueryResult,
    RangeSpec,
)
from mincore.interfaces.mirror_store import LocalMirrorStore
from mincore.services.query_executor import RemoteQueryExecutor


class BaseCrawler(ABC):
    """Walks an attribute namespace with volume-limited queries.

    A crawl issues its remote calls strictly one after another; separate
    crawls may run concurrently.
    """

    name = "base"

    def __init__(
        self,
        store: LocalMirrorStore,
        executor: RemoteQueryExecutor,
        alphabets: AlphabetSpace,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self._executor = executor
        self._alphabets = alphabets
        self._clock = clock

    @property
    def uniqueness_attribute(self) -> str:
        return self._alphabets.uniqueness_attribute

    async def run(
        self,
        order: CrawlOrder,
        deadline: float | None = None,
        metrics: CrawlMetrics | None = None,
    ) -> CrawlResult:
        """Execute a crawl order."""
        logger.info(
            f"{self.name} crawl {order.spec}"
            + (f" within {order.lodis}" if order.lodis else "")
        )
        result = await self.crawl(
            order.spec,
            order.volume_cap,
            step=order.step,
            lodis=order.lodis,
            deadline=deadline,
            metrics=metrics,
        )
        if result.completed:
            logger.info(
                f"{self.name} crawl {order.spec} finished after "
                f"{result.metrics.remote_calls} remote calls"
            )
        else:
            logger.warning(
                f"{self.name} crawl {order.spec} aborted ({result.reason.value}) "
                f"at {result.limit!r}"
            )
        return result

    @abstractmethod
    async def crawl(
        self,
        spec: RangeSpec,
        volume_cap: int,
        step: int | None = None,
        lodis: LodisScope | None = None,
        deadline: float | None = None,
        metrics: CrawlMetrics | None = None,
    ) -> CrawlResult:
        """Mirror every entry of ``spec``.

        Args:
            spec: Range to crawl
            volume_cap: Maximum entries per remote call (g)
            step: Crawler-specific granularity
            lodis: Restrict a uniqueness-attribute crawl to one value
            deadline: Clock value after which the crawl aborts with a timeout
            metrics: Accumulator shared with the caller

        Returns:
            CrawlResult, carrying a restart point when aborted
        """
        ...

    def _commit(self, result: QueryResult) -> None:
        """Write a query result into the mirror.

        Consistent results replace the range; truncated ones only add what
        they prove to exist.
        """
        if result.consistent:
            self._store.replace_entries(
                result.spec, result.entries, result.lodis, delete_old=True
            )
        elif result.entries:
            self._store.replace_entries(
                result.spec, result.entries, result.lodis, delete_old=False
            )

    def _lodis_scope(self, spec: RangeSpec, value: str) -> LodisScope:
        if spec.attribute == self.uniqueness_attribute:
            raise StructuralInvariantError(
                f"Crawl of {spec} got stuck on the uniqueness attribute at {value!r}"
            )
        return LodisScope(spec.attribute, value)

    def _lodis_spec(self) -> RangeSpec:
        unique = self.uniqueness_attribute
        return RangeSpec(unique, self._alphabets.minimum(unique), None)

    def _timed_out(self, deadline: float | None) -> bool:
        return deadline is not None and self._clock() >= deadline

    @staticmethod
    def default_step(volume_cap: int) -> int:
        return max(1, math.ceil(volume_cap / 2))
