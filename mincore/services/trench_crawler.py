"""TRENCH crawler - walks a range guided by the local mirror.

# FILE_CONTEXT: Incremental crawler that sizes each remote query from what the
# mirror already holds, so a warm mirror is refreshed with few calls.

## LOOP
SCAN    read up to g+1 local entries from x_start; the bound is the value at
        position step-1, advanced past copies of x_start. Fewer than step
        entries means the rest of the range fits in one query.
EXTRACT fetch [x_start, bound) remotely and write the result.
        consistent   -> x_start = bound
        truncated    -> keep x_start, SCAN again with the new local entries
        blocked      -> abort with limit = bound

A value with more than g entries (LODIS) is crawled on the uniqueness
attribute restricted to that value, then stepped over with ``after``.
"""

from loguru import logger

from mincore.core.models import (
    AbortReason,
    CrawlMetrics,
    CrawlResult,
    LodisScope,
    RangeSpec,
)
from mincore.services.base_crawler import BaseCrawler


class TrenchCrawler(BaseCrawler):
    """Local-data-guided crawler."""

    name = "trench"

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
        step = min(step or self.default_step(volume_cap), volume_cap)
        attribute = spec.attribute
        x_start, x_end = spec.start, spec.end
        # Bound of the last truncated extract from x_start, if any
        truncated = False
        truncated_at: str | None = None

        while x_end is None or x_start < x_end:
            metrics.iterations += 1
            needs_lodis, bound = self._scan(
                attribute, x_start, x_end, volume_cap, step, lodis
            )

            if truncated and not needs_lodis:
                if bound is None or (truncated_at is not None and bound >= truncated_at):
                    # The truncated entries did not narrow the range
                    single = self._alphabets.after(x_start, attribute)
                    if truncated_at == single:
                        needs_lodis = True
                    else:
                        bound = single

            if needs_lodis:
                scope = self._lodis_scope(spec, x_start)
                logger.debug(f"LODIS on {attribute}={x_start!r}")
                sub = await self.crawl(
                    self._lodis_spec(),
                    volume_cap,
                    step=step,
                    lodis=scope,
                    deadline=deadline,
                    metrics=metrics,
                )
                if not sub.completed:
                    return CrawlResult(metrics, sub.reason, x_start)
                x_start = self._alphabets.after(x_start, attribute)
                truncated = False
                continue

            result = await self._executor.fetch(
                RangeSpec(attribute, x_start, bound), volume_cap, lodis, metrics
            )
            if result.blocked:
                return CrawlResult(metrics, AbortReason.BLOCKED, bound)

            self._commit(result)

            if result.consistent:
                truncated = False
                if bound is None:
                    break
                x_start = bound
            else:
                truncated = True
                truncated_at = bound

            if self._timed_out(deadline):
                return CrawlResult(metrics, AbortReason.TIMEOUT, x_start)

        return CrawlResult(metrics)

    def _scan(
        self,
        attribute: str,
        x_start: str,
        x_end: str | None,
        volume_cap: int,
        step: int,
        lodis: LodisScope | None,
    ) -> tuple[bool, str | None]:
        """Pick the next extract bound from the mirror.

        Returns:
            ``(needs_lodis, bound)``; the bound is ``None`` for an open range
            end and is meaningless when ``needs_lodis`` is set
        """
        local = self._store.scan(
            RangeSpec(attribute, x_start, x_end), volume_cap + 1, lodis
        )
        values = [entry.get(attribute) or "" for entry in local]
        if len(values) < step:
            return False, x_end

        idx = step - 1
        while idx < len(values) and values[idx] == x_start:
            idx += 1
        if idx < len(values):
            return False, values[idx]
        # More than g local copies of x_start
        if len(values) > volume_cap:
            return True, None
        return False, x_end
