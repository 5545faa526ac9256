"""RANK-SHRINK crawler - median splitting of truncated ranges.

Fetches a whole range and, when the result is truncated, splits it around the
median of what came back. A median value shared by many of the returned
entries is peeled off into its own LODIS crawl on the uniqueness attribute.

Pending ranges live on an explicit stack ordered so the lowest range is always
processed next; everything below the range at the top of the stack is done,
which makes its start a valid restart point.
"""

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from mincore.core.alphabet import AlphabetSpace
from mincore.core.exceptions import StructuralInvariantError
from mincore.core.models import (
    AbortReason,
    CrawlMetrics,
    CrawlResult,
    Entry,
    LodisScope,
    RangeSpec,
)
from mincore.interfaces.mirror_store import LocalMirrorStore
from mincore.services.base_crawler import BaseCrawler
from mincore.services.query_executor import RemoteQueryExecutor


@dataclass(frozen=True)
class _Pending:
    spec: RangeSpec
    # Set for a LODIS crawl of the single value ``spec.start``
    lodis_value: str | None = None


class RankShrinkCrawler(BaseCrawler):
    """Median-split crawler."""

    name = "rank_shrink"

    def __init__(
        self,
        store: LocalMirrorStore,
        executor: RemoteQueryExecutor,
        alphabets: AlphabetSpace,
        density_divisor: int = 4,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(store, executor, alphabets, clock)
        if density_divisor < 1:
            raise ValueError("density_divisor must be at least 1")
        self._density_divisor = density_divisor

    def density_threshold(self, volume_cap: int) -> int:
        """Largest border multiplicity still handled by a two-way split."""
        return math.ceil(volume_cap / self._density_divisor)

    async def crawl(
        self,
        spec: RangeSpec,
        volume_cap: int,
        step: int | None = None,
        lodis: LodisScope | None = None,
        deadline: float | None = None,
        metrics: CrawlMetrics | None = None,
    ) -> CrawlResult:
        metrics = metrics if metrics is not None else CrawlMetrics()
        stack: list[_Pending] = [_Pending(spec)]

        while stack:
            metrics.iterations += 1
            item = stack.pop()

            if item.lodis_value is not None:
                sub = await self.crawl(
                    self._lodis_spec(),
                    volume_cap,
                    lodis=self._lodis_scope(spec, item.lodis_value),
                    deadline=deadline,
                    metrics=metrics,
                )
                if not sub.completed:
                    return CrawlResult(metrics, sub.reason, item.lodis_value)
            else:
                current = item.spec
                result = await self._executor.fetch(current, volume_cap, lodis, metrics)
                if result.blocked:
                    return CrawlResult(metrics, AbortReason.BLOCKED, current.end)

                self._commit(result)
                if not result.consistent:
                    # Pushed highest first so the lowest piece is popped next
                    stack.extend(reversed(self._split(current, result.entries, volume_cap)))

            if stack and self._timed_out(deadline):
                return CrawlResult(metrics, AbortReason.TIMEOUT, stack[-1].spec.start)

        return CrawlResult(metrics)

    def _split(
        self, spec: RangeSpec, entries: list[Entry], volume_cap: int
    ) -> list[_Pending]:
        """Ascending list of the pieces replacing a truncated range."""
        attribute = spec.attribute
        values = [entry.get(attribute) or "" for entry in entries]
        border = values[min(math.ceil(volume_cap / 2), len(values) - 1)]
        count = values.count(border)

        if count <= self.density_threshold(volume_cap) and border != spec.start:
            logger.debug(f"Two-way split of {spec} at {border!r}")
            return [
                _Pending(RangeSpec(attribute, spec.start, border)),
                _Pending(RangeSpec(attribute, border, spec.end)),
            ]

        upper = self._alphabets.after(border, attribute)
        if attribute == self.uniqueness_attribute:
            if count > 1:
                raise StructuralInvariantError(
                    f"{count} entries share {attribute}={border!r} in {spec}"
                )
            # The border is the range start; isolate it as an equality range
            pieces = [_Pending(RangeSpec(attribute, border, upper))]
        else:
            logger.debug(f"Three-way split of {spec} around dense {border!r}")
            pieces = [_Pending(RangeSpec(attribute, border, upper), border)]

        if border != spec.start:
            pieces.insert(0, _Pending(RangeSpec(attribute, spec.start, border)))
        if spec.end is None or upper < spec.end:
            pieces.append(_Pending(RangeSpec(attribute, upper, spec.end)))
        return pieces
