"""Freshness coordinator for mincore - answers lookups from a refreshed mirror.

# FILE_CONTEXT: Entry point for user-facing reads. Refreshes only the parts of
# the mirror a request touches that are due, then answers from the mirror.
# ROLE: Turn due splinters into holes, rebuild each hole with a temporary
# core, fetch its navigators and escalate whatever could not be settled.
# CONCURRENCY: Holes of different attributes are refreshed concurrently;
# holes of one attribute run strictly in order under a per-attribute lock,
# since merging a hole with its successor assumes sequential processing.

## PIPELINE
1. request ranges      attr=value -> [v, after(v)), attr=prefix* -> [p, next(p)),
                       open-ended when p holds only maximal characters
2. due splinters       maintenance rows intersecting a request range
3. holes               adjacent due splinters merged; a LODIS splinter inside
                       a plain hole is part of it
4. temporary cores     a core reaching into the next hole merges the two,
                       otherwise the hole grows to the core's extent and its
                       maintenance rows are resolved
5. navigators          each temporary splinter is fetched once; unsettled
                       ones become crawl orders
6. settle              the old splinter straddling the hole end is trimmed,
                       then crawl orders plus a persisting core build are
                       escalated

A hole whose refresh could not be completed is still rebuilt locally so the
splinters keep tiling the namespace, and its splinters go back on the
maintenance list.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from loguru import logger

from mincore.core.alphabet import AlphabetSpace
from mincore.core.exceptions import RemoteUnreachableError
from mincore.core.models import (
    CrawlMetrics,
    CrawlOrder,
    Hole,
    LodisScope,
    RangeSpec,
    Splinter,
)
from mincore.interfaces.mirror_store import LocalMirrorStore
from mincore.services.batch_search_service import (
    BatchSearchRequest,
    BatchSearchResponse,
    BatchSearchService,
    CoreBuildOrder,
)
from mincore.services.core_builder import MinimalCoreBuilder
from mincore.services.query_executor import RemoteQueryExecutor

PREFIX_MARKER = "*"


class RefreshStatus(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"


@dataclass
class RefreshResponse:
    """Answer to a lookup request."""

    entries: list[dict[str, Any]]
    status: RefreshStatus
    metrics: CrawlMetrics
    holes: list[Hole] = field(default_factory=list)
    crawl_orders: list[CrawlOrder] = field(default_factory=list)
    # Continuations of escalations that were cut short
    pending: list[BatchSearchRequest] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.status is RefreshStatus.DEGRADED


@dataclass
class _RefreshContext:
    metrics: CrawlMetrics = field(default_factory=CrawlMetrics)
    service_available: bool = True
    degraded: bool = False
    crawl_orders: list[CrawlOrder] = field(default_factory=list)
    pending: list[BatchSearchRequest] = field(default_factory=list)


class FreshnessCoordinator:
    """Refreshes due parts of the mirror on demand and answers lookups."""

    def __init__(
        self,
        store: LocalMirrorStore,
        executor: RemoteQueryExecutor,
        core_builder: MinimalCoreBuilder,
        batch_service: BatchSearchService,
        alphabets: AlphabetSpace,
        volume_cap: int,
        visible_attributes: list[str],
        step: int | None = None,
        staleness_days: float = 3.0,
        wait_for_escalation: bool = True,
    ):
        """Initialize freshness coordinator.

        Args:
            store: Local mirror
            executor: Remote query executor used for navigators
            core_builder: Builder for temporary and persisting cores
            batch_service: Escalation path for crawl orders
            alphabets: Attribute alphabets
            volume_cap: Remote volume cap (G)
            visible_attributes: Attributes returned to the caller
            step: Step handed to escalated crawls
            staleness_days: Default age after which splinters become due
            wait_for_escalation: Await escalations before answering instead
                of running them in the background
        """
        self._store = store
        self._executor = executor
        self._core_builder = core_builder
        self._batch_service = batch_service
        self._alphabets = alphabets
        self._volume_cap = volume_cap
        self._visible = list(visible_attributes)
        self._step = step
        self._staleness_days = staleness_days
        self._wait = wait_for_escalation
        self._locks: dict[str, asyncio.Lock] = {}
        self._background: set[asyncio.Task] = set()

    # Public API

    def request_ranges(self, request: Mapping[str, str]) -> list[RangeSpec]:
        """Translate ``attribute -> value or prefix*`` into ranges."""
        ranges = []
        for attribute, raw in request.items():
            attribute = attribute.lower()
            if attribute not in self._alphabets.attributes:
                raise ValueError(f"Attribute '{attribute}' is not searchable")
            value = raw.lower()
            if value.endswith(PREFIX_MARKER):
                prefix = value[: -len(PREFIX_MARKER)]
                if not prefix:
                    ranges.append(RangeSpec(attribute, "", None))
                else:
                    end = self._prefix_end(prefix, attribute)
                    ranges.append(RangeSpec(attribute, prefix, end))
            else:
                value = self._alphabets.normalize(value) or ""
                ranges.append(
                    RangeSpec(attribute, value, self._alphabets.after(value, attribute))
                )
        return ranges

    def _prefix_end(self, prefix: str, attribute: str) -> str | None:
        # Extensions of an all-maximal prefix run to the end of the namespace
        if not prefix.strip(self._alphabets.alphabet(attribute).maximum):
            return None
        return self._alphabets.next(prefix, attribute)

    def find_due(self, ranges: list[RangeSpec]) -> list[Splinter]:
        """Maintenance rows intersecting any of the ranges."""
        due: dict[tuple[str, str, str], Splinter] = {}
        for spec in ranges:
            for splinter in self._store.find_due(spec.attribute, spec.start, spec.end):
                due.setdefault(splinter.sort_key(), splinter)
        return [due[key] for key in sorted(due)]

    def merge_holes(self, due: list[Splinter]) -> list[Hole]:
        """Merge due splinters into holes, ordered by ``(field, start, lodis_start)``."""
        holes: list[Hole] = []
        for splinter in sorted(due, key=Splinter.sort_key):
            hole = Hole(
                splinter.field,
                splinter.start,
                splinter.end,
                splinter.lodis_start,
                splinter.lodis_end,
                due=[splinter],
            )
            target = self._merge_target(holes, hole)
            if target is not None:
                target.absorb(hole)
            else:
                holes.append(hole)

        for hole in holes:
            logger.debug(f"Hole {hole} from {len(hole.due)} due splinters")
        return holes

    async def refresh(self, request: Mapping[str, str]) -> RefreshResponse:
        """Refresh what a request touches and answer it from the mirror.

        Raises:
            ValueError: If the request names an attribute without alphabet
            StoreError: If a mirror write fails
        """
        ranges = self.request_ranges(request)
        holes = self.merge_holes(self.find_due(ranges))
        ctx = _RefreshContext()

        by_field: dict[str, list[Hole]] = {}
        for hole in holes:
            by_field.setdefault(hole.field, []).append(hole)

        if by_field:
            logger.info(
                f"Refreshing {len(holes)} holes on {', '.join(sorted(by_field))}"
            )
            settled = await asyncio.gather(
                *(self._refresh_field(name, field_holes, ctx)
                  for name, field_holes in by_field.items())
            )
            holes = [hole for field_holes in settled for hole in field_holes]

        entries = [entry.visible(self._visible) for entry in self._store.select(ranges)]
        status = RefreshStatus.DEGRADED if ctx.degraded else RefreshStatus.OK
        if ctx.degraded:
            logger.warning("Answering from a partially refreshed mirror")
        return RefreshResponse(
            entries=entries,
            status=status,
            metrics=ctx.metrics,
            holes=holes,
            crawl_orders=ctx.crawl_orders,
            pending=ctx.pending,
        )

    def mark_stale(self, days: float | None = None) -> int:
        """Put splinters older than ``days`` back on the maintenance list."""
        days = self._staleness_days if days is None else days
        return self._store.mark_stale(datetime.now() - timedelta(days=days))

    async def drain(self) -> None:
        """Wait for escalations running in the background."""
        while self._background:
            await asyncio.gather(*list(self._background))

    # Pipeline

    async def _refresh_field(
        self, name: str, holes: list[Hole], ctx: _RefreshContext
    ) -> list[Hole]:
        async with self._field_lock(name):
            holes = self._plan_holes(holes)
            for hole in holes:
                orders, failed = await self._fetch_navigators(hole, ctx)
                await self._settle(hole, orders, failed, ctx)
        return holes

    def _plan_holes(self, holes: list[Hole]) -> list[Hole]:
        holes = list(holes)
        i = 0
        while i < len(holes):
            hole = holes[i]
            core = self._core_builder.build_temporary(*self._core_arguments(hole))
            last = core[-1]

            following = holes[i + 1] if i + 1 < len(holes) else None
            if following is not None and self._reaches(hole, last, following):
                logger.debug(f"Temporary core of {hole} reaches into {following}")
                hole.absorb(following)
                del holes[i + 1]
                continue

            self._extend(hole, last)
            hole.navigators = core
            if hole.is_lodis:
                resolved = self._store.resolve_maintenance(
                    hole.field, hole.start, None, hole.lodis_start, hole.lodis_end
                )
            else:
                resolved = self._store.resolve_maintenance(
                    hole.field, hole.start, hole.end
                )
            logger.debug(
                f"Hole {hole}: {len(core)} navigators, {resolved} maintenance rows resolved"
            )
            i += 1
        return holes

    async def _fetch_navigators(
        self, hole: Hole, ctx: _RefreshContext
    ) -> tuple[list[CrawlOrder], bool]:
        """Fetch every navigator of a hole.

        Returns:
            The merged crawl orders for unsettled navigators, and whether the
            remote service stopped answering
        """
        orders: list[CrawlOrder] = []
        for navigator in hole.navigators:
            if not ctx.service_available:
                return orders, True

            spec, lodis = self._navigator_query(navigator)
            try:
                result = await self._executor.fetch(
                    spec, self._volume_cap, lodis, ctx.metrics
                )
            except RemoteUnreachableError as e:
                logger.error(f"Lookup service unreachable while refreshing {hole}: {e}")
                ctx.service_available = False
                return orders, True

            if result.consistent:
                self._store.replace_entries(spec, result.entries, lodis, delete_old=True)
                continue

            if result.entries:
                self._store.replace_entries(spec, result.entries, lodis, delete_old=False)
            orders.append(
                CrawlOrder(
                    spec.attribute,
                    spec.start,
                    spec.end,
                    self._volume_cap,
                    self._step,
                    lodis.field if lodis else None,
                    lodis.value if lodis else None,
                )
            )
        return self._merge_orders(orders), False

    async def _settle(
        self,
        hole: Hole,
        orders: list[CrawlOrder],
        failed: bool,
        ctx: _RefreshContext,
    ) -> None:
        self._adjust_boundary(hole)

        if failed or (orders and not ctx.service_available):
            ctx.degraded = True
            self._rebuild(hole, stale=True)
            return

        if not orders:
            self._rebuild(hole)
            return

        ctx.crawl_orders.extend(orders)
        request = BatchSearchRequest(orders=orders, core=self._core_order(hole))
        logger.info(f"Escalating {len(orders)} crawl orders for {hole}")

        if self._wait:
            await self._escalate(hole, request, ctx)
        else:
            task = asyncio.create_task(self._escalate_locked(hole, request, ctx))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    def _field_lock(self, name: str) -> asyncio.Lock:
        return self._locks.setdefault(name, asyncio.Lock())

    async def _escalate_locked(
        self, hole: Hole, request: BatchSearchRequest, ctx: _RefreshContext
    ) -> BatchSearchResponse:
        # Background escalations rebuild the same splinters a later refresh reads
        async with self._field_lock(hole.field):
            return await self._escalate(hole, request, ctx)

    async def _escalate(
        self, hole: Hole, request: BatchSearchRequest, ctx: _RefreshContext
    ) -> BatchSearchResponse:
        response = await self._batch_service.run(request)
        ctx.metrics += response.metrics
        if not response.completed:
            if response.blocked:
                ctx.service_available = False
            ctx.degraded = True
            if response.continuation is not None:
                ctx.pending.append(response.continuation)
            self._rebuild(hole, stale=True)
        return response

    def _rebuild(self, hole: Hole, stale: bool = False) -> list[Splinter]:
        core = self._core_order(hole)
        splinters = self._core_builder.build(
            core.field, core.start, core.end, core.lodis_value
        )
        if stale:
            self._store.add_maintenance(splinters)
            logger.warning(f"Hole {hole} stays due")
        return splinters

    def _adjust_boundary(self, hole: Hole) -> None:
        """Trim the old splinter that sticks out above the hole."""
        if hole.is_lodis:
            if hole.lodis_end is None:
                return
            inside = [
                s for s in self._store.list_splinters(hole.field)
                if s.is_lodis and s.start == hole.start
                and hole.lodis_start <= s.lodis_start < hole.lodis_end
            ]
            if not inside:
                return
            old = inside[-1]
            if old.lodis_end is not None and old.lodis_end <= hole.lodis_end:
                return
            new = old.with_updates(lodis_start=hole.lodis_end)
        else:
            if hole.end is None:
                return
            inside = [
                s for s in self._store.list_splinters(hole.field)
                if not s.is_lodis and hole.start <= s.start < hole.end
            ]
            if not inside:
                return
            old = inside[-1]
            if old.end is not None and old.end <= hole.end:
                return
            new = old.with_updates(start=hole.end)

        new = self._store.recount(new)
        self._store.update_splinter_boundary(old, new)
        logger.debug(
            f"Splinter {old.field}:{old.start!r} now starts at the end of hole {hole}"
        )

    # Helpers

    def _merge_target(self, holes: list[Hole], hole: Hole) -> Hole | None:
        for candidate in reversed(holes):
            if candidate.field != hole.field:
                break
            if self._touches(candidate, hole):
                return candidate
        return None

    @staticmethod
    def _touches(first: Hole, second: Hole) -> bool:
        if not first.is_lodis and not second.is_lodis:
            return first.end is None or first.end >= second.start
        if not first.is_lodis:
            # A LODIS area inside a plain hole is rebuilt along with it
            return first.start <= second.start and (
                first.end is None or second.start < first.end
            )
        if second.is_lodis and first.start == second.start:
            return first.lodis_end is None or first.lodis_end >= second.lodis_start
        return False

    @staticmethod
    def _reaches(hole: Hole, last: Splinter, following: Hole) -> bool:
        if hole.is_lodis:
            if not following.is_lodis or following.start != hole.start:
                return False
            end = last.lodis_end if last.is_lodis else None
            return end is None or end >= following.lodis_start
        if following.is_lodis:
            return last.end is None or last.end > following.start
        return last.end is None or last.end >= following.start

    @staticmethod
    def _extend(hole: Hole, last: Splinter) -> None:
        if hole.is_lodis:
            if last.is_lodis and _beyond(last.lodis_end, hole.lodis_end):
                hole.lodis_end = last.lodis_end
        elif _beyond(last.end, hole.end):
            hole.end = last.end

    def _core_arguments(self, hole: Hole) -> tuple[str, str, str | None, str | None]:
        core = self._core_order(hole)
        return core.field, core.start, core.end, core.lodis_value

    @staticmethod
    def _core_order(hole: Hole) -> CoreBuildOrder:
        if hole.is_lodis:
            return CoreBuildOrder(
                hole.field, hole.lodis_start, hole.lodis_end, hole.start
            )
        return CoreBuildOrder(hole.field, hole.start, hole.end)

    def _navigator_query(
        self, navigator: Splinter
    ) -> tuple[RangeSpec, LodisScope | None]:
        if navigator.is_lodis:
            return (
                RangeSpec(
                    self._alphabets.uniqueness_attribute,
                    navigator.lodis_start,
                    navigator.lodis_end,
                ),
                LodisScope(navigator.field, navigator.start),
            )
        return RangeSpec(navigator.field, navigator.start, navigator.end), None

    @staticmethod
    def _merge_orders(orders: list[CrawlOrder]) -> list[CrawlOrder]:
        merged: list[CrawlOrder] = []
        for order in orders:
            if merged and order.follows(merged[-1]):
                merged[-1].end = order.end
            else:
                merged.append(order)
        return merged


def _beyond(end: str | None, current: str | None) -> bool:
    """Whether exclusive bound ``end`` lies above ``current``."""
    if current is None:
        return False
    return end is None or end > current
