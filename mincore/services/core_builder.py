"""Minimal core builder - partitions the mirror into optimally sized splinters.

A splinter holds at most ``G - P`` entries so that it can be refreshed with a
single remote query even after ``P`` new entries appeared remotely. Splinter
boundaries never cut through the copies of one value; a value with more than
``G - P`` copies is instead split on the uniqueness attribute into LODIS
splinters.
"""

from loguru import logger

from mincore.core.alphabet import AlphabetSpace
from mincore.core.models import Entry, LodisScope, RangeSpec, Splinter
from mincore.interfaces.mirror_store import LocalMirrorStore


class MinimalCoreBuilder:
    """Computes and persists the minimal-cover partitioning."""

    def __init__(
        self,
        store: LocalMirrorStore,
        alphabets: AlphabetSpace,
        volume_cap: int,
        buffer: int,
    ):
        """Initialize the builder.

        Args:
            store: Local mirror holding entries and splinters
            alphabets: Attribute alphabets
            volume_cap: Remote volume cap (G)
            buffer: Safety buffer (P) kept free in every splinter
        """
        if volume_cap - buffer < 1:
            raise ValueError(
                f"Volume cap {volume_cap} leaves no room next to buffer {buffer}"
            )
        self._store = store
        self._alphabets = alphabets
        self._cap = volume_cap - buffer

    @property
    def splinter_cap(self) -> int:
        """Maximum entries per splinter (G - P)."""
        return self._cap

    def plan(
        self,
        field: str,
        start: str,
        end: str | None,
        lodis_value: str | None = None,
        temporary: bool = False,
    ) -> list[Splinter]:
        """Compute the splinters of a range without writing them.

        With ``lodis_value`` set, ``[start, end)`` is a range on the
        uniqueness attribute among the entries whose ``field`` equals
        ``lodis_value``.

        A temporary plan may stretch its head splinter past ``end`` when the
        last piece would otherwise be smaller than optimal.
        """
        if lodis_value is None:
            return self._plan_plain(field, start, end, temporary)
        return self._plan_lodis(field, lodis_value, start, end, temporary)

    def build_temporary(
        self,
        field: str,
        start: str,
        end: str | None,
        lodis_value: str | None = None,
    ) -> list[Splinter]:
        return self.plan(field, start, end, lodis_value, temporary=True)

    def build(
        self,
        field: str,
        start: str,
        end: str | None,
        lodis_value: str | None = None,
    ) -> list[Splinter]:
        """Rebuild and persist the splinters of a range.

        Old splinters overlapping the range are replaced in one transaction.
        """
        splinters = self.plan(field, start, end, lodis_value)

        if lodis_value is None:
            self._store.replace_splinters(field, start, end, splinters)
        elif self._spans_uniqueness_namespace(start, end):
            self._store.replace_splinters(
                field,
                lodis_value,
                self._alphabets.after(lodis_value, field),
                splinters,
            )
        else:
            self._store.replace_lodis_splinters(
                field, lodis_value, start, end, splinters
            )

        scope = f" within {field}={lodis_value!r}" if lodis_value is not None else ""
        logger.info(
            f"Built {len(splinters)} splinters for {field}:[{start!r}, {end!r}){scope}"
        )
        return splinters

    def _plan_plain(
        self, field: str, start: str, end: str | None, temporary: bool
    ) -> list[Splinter]:
        splinters: list[Splinter] = []
        limit = start

        while True:
            batch = self._batch(RangeSpec(field, limit, end), None, temporary)
            values = [entry.get(field) or "" for entry in batch]

            if len(values) <= self._cap:
                splinters.append(Splinter(field, limit, end, amount=len(values)))
                break

            last = values[-1]
            if last == limit:
                # More than G - P copies of one value
                splinters.extend(self._lodis_chunks(field, limit))
                limit = self._alphabets.after(limit, field)
            else:
                amount = sum(1 for value in values if value != last)
                splinters.append(Splinter(field, limit, last, amount=amount))
                limit = last

            if end is not None and limit >= end:
                break

        return splinters

    def _plan_lodis(
        self,
        field: str,
        value: str,
        start: str,
        end: str | None,
        temporary: bool,
    ) -> list[Splinter]:
        unique = self._alphabets.uniqueness_attribute
        scope = LodisScope(field, value)
        upper = self._alphabets.after(value, field)
        splinters: list[Splinter] = []
        limit = start

        while True:
            batch = self._batch(RangeSpec(unique, limit, end), scope, temporary)
            keys = [entry.key for entry in batch]

            if len(keys) <= self._cap:
                splinters.append(
                    Splinter(field, value, upper, len(keys), limit, end)
                )
                break

            splinters.append(
                Splinter(field, value, upper, self._cap, limit, keys[-1])
            )
            limit = keys[-1]
            if end is not None and limit >= end:
                break

        if len(splinters) == 1 and self._spans_uniqueness_namespace(
            splinters[0].lodis_start, splinters[0].lodis_end
        ):
            # Everything fits a plain splinter over the single value
            return [Splinter(field, value, upper, amount=splinters[0].amount)]
        return splinters

    def _lodis_chunks(self, field: str, value: str) -> list[Splinter]:
        unique = self._alphabets.uniqueness_attribute
        upper = self._alphabets.after(value, field)
        keys = [
            entry.key
            for entry in self._store.scan(
                RangeSpec(unique, self._alphabets.minimum(unique), None),
                None,
                LodisScope(field, value),
            )
        ]
        chunks = []
        for i in range(0, len(keys), self._cap):
            chunks.append(
                Splinter(
                    field,
                    value,
                    upper,
                    amount=min(self._cap, len(keys) - i),
                    lodis_start=keys[i] if i else self._alphabets.minimum(unique),
                    lodis_end=keys[i + self._cap] if i + self._cap < len(keys) else None,
                )
            )
        logger.debug(f"{field}={value!r} needs {len(chunks)} LODIS splinters")
        return chunks

    def _batch(
        self, spec: RangeSpec, lodis: LodisScope | None, temporary: bool
    ) -> list[Entry]:
        batch = self._store.scan(spec, self._cap + 1, lodis)
        if temporary and spec.end is not None and len(batch) <= self._cap:
            limitless = self._store.scan(
                RangeSpec(spec.attribute, spec.start, None), self._cap + 1, lodis
            )
            if len(limitless) > self._cap:
                return limitless
        return batch

    def _spans_uniqueness_namespace(self, start: str | None, end: str | None) -> bool:
        unique = self._alphabets.uniqueness_attribute
        return start == self._alphabets.minimum(unique) and end is None
