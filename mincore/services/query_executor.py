"""Remote Query Executor for mincore - one logical range query per call.

# FILE_CONTEXT: Only path through which crawlers and the freshness coordinator
# talk to the remote lookup service.
# ROLE: Compile the range, issue the search, classify the outcome and retry
# with alternative filter phrasings when the engine gives up early.

## CLASSIFICATION
- complete response                  -> CONSISTENT
- incomplete with >= g entries       -> TRUNCATED (the volume cap was hit;
                                        rephrasing cannot help, the caller
                                        must subdivide the range)
- incomplete with < g entries        -> engine limit; retry with the next
                                        schema, BLOCKED once all are spent

## PAUSE
Every remote call is followed by a pause. It only delays the awaiting
coroutine, unrelated crawls keep running.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Sequence

from loguru import logger

from mincore.core.alphabet import AlphabetSpace
from mincore.core.exceptions import TruncationError
from mincore.core.filters import (
    RETRY_SCHEMAS,
    And,
    Equals,
    FilterSchema,
    RangeFilterCompiler,
    inclusive,
)
from mincore.core.models import (
    CrawlMetrics,
    Entry,
    LodisScope,
    QueryOutcome,
    QueryResult,
    RangeSpec,
)
from mincore.interfaces.lookup_provider import LookupProvider, LookupResponse


class RemoteQueryExecutor:
    """Issues range queries against the volume-limited lookup service."""

    def __init__(
        self,
        provider: LookupProvider,
        alphabets: AlphabetSpace,
        attributes: list[str],
        pause_seconds: float = 3.0,
        retry_schemas: Sequence[FilterSchema] = RETRY_SCHEMAS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize remote query executor.

        Args:
            provider: Remote lookup service
            alphabets: Attribute alphabets, also names the uniqueness attribute
            attributes: Attributes requested for every entry
            pause_seconds: Pause after each remote call
            retry_schemas: Alternative filter schemas tried after the default
            sleep: Coroutine used for pausing
        """
        self._provider = provider
        self._alphabets = alphabets
        self._compiler = RangeFilterCompiler(alphabets)
        self._attributes = list(attributes)
        self._pause = pause_seconds
        self._schemas = [FilterSchema.DEFAULT, *retry_schemas]
        self._sleep = sleep

    @property
    def uniqueness_attribute(self) -> str:
        return self._alphabets.uniqueness_attribute

    def build_filter(
        self,
        spec: RangeSpec,
        lodis: LodisScope | None = None,
        schema: FilterSchema = FilterSchema.DEFAULT,
    ) -> str:
        """Filter text for a range, optionally restricted to one LODIS value."""
        node = self._compiler.build(
            spec.attribute, inclusive(spec.start), spec.end, schema
        )
        if lodis is not None:
            node = And((node, Equals(lodis.field, lodis.value)))
        return node.to_ldap()

    async def fetch(
        self,
        spec: RangeSpec,
        volume_cap: int,
        lodis: LodisScope | None = None,
        metrics: CrawlMetrics | None = None,
    ) -> QueryResult:
        """Fetch every entry of a range, or find out that it cannot be done.

        Args:
            spec: Range to fetch
            volume_cap: Maximum entries per call (g)
            lodis: Restrict a uniqueness-attribute range to one value
            metrics: Accumulator updated with this query's cost

        Returns:
            QueryResult whose entries are sorted by ``(attribute, key)``

        Raises:
            RemoteUnreachableError: If the service cannot be reached
        """
        metrics = metrics if metrics is not None else CrawlMetrics()

        for attempt, schema in enumerate(self._schemas):
            filter_text = self.build_filter(spec, lodis, schema)
            response = await self._call(filter_text, volume_cap, metrics)
            entries = self._to_entries(response)

            try:
                if self._is_consistent(spec, response, entries, volume_cap):
                    metrics.consistent_queries += 1
                    if lodis is not None:
                        metrics.lodis_entries += len(entries)
                    logger.debug(
                        f"Consistent {spec} via {schema.value}: {len(entries)} entries"
                    )
                    return QueryResult(
                        spec, self._sorted(spec, entries), QueryOutcome.CONSISTENT,
                        schema, lodis,
                    )
            except TruncationError as e:
                metrics.truncated_queries += 1
                logger.debug(str(e))
                return QueryResult(
                    spec, self._sorted(spec, entries), QueryOutcome.TRUNCATED,
                    schema, lodis,
                )

            metrics.failed_queries += 1
            logger.warning(
                f"Engine limit on {spec} with schema {schema.value} "
                f"({len(entries)} entries, attempt {attempt + 1}/{len(self._schemas)})"
            )

        metrics.blocked_queries += 1
        logger.warning(f"Range {spec} is blocked: every filter schema failed")
        return QueryResult(spec, [], QueryOutcome.BLOCKED, None, lodis)

    async def _call(
        self, filter_text: str, volume_cap: int, metrics: CrawlMetrics
    ) -> LookupResponse:
        started = time.perf_counter()
        try:
            response = await self._provider.search(
                filter_text, self._attributes, volume_cap
            )
        finally:
            metrics.remote_calls += 1
            metrics.response_time += time.perf_counter() - started
        if self._pause > 0:
            await self._sleep(self._pause)
            metrics.pause_time += self._pause
        return response

    @staticmethod
    def _is_consistent(
        spec: RangeSpec,
        response: LookupResponse,
        entries: list[Entry],
        volume_cap: int,
    ) -> bool:
        if response.complete:
            return True
        if len(entries) >= volume_cap:
            raise TruncationError(spec, len(entries))
        return False

    def _to_entries(self, response: LookupResponse) -> list[Entry]:
        entries = []
        for raw in response.entries:
            try:
                entries.append(Entry.from_dict(raw, self.uniqueness_attribute))
            except ValueError as e:
                logger.warning(f"Skipping remote entry without key: {e}")
        return entries

    def _sorted(self, spec: RangeSpec, entries: list[Entry]) -> list[Entry]:
        return sorted(
            entries, key=lambda e: ((e.get(spec.attribute) or "").lower(), e.key)
        )
