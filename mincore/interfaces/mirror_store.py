"""Local mirror store protocol."""

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from mincore.core.models import Entry, LodisScope, RangeSpec, Splinter


class LocalMirrorStore(Protocol):
    """Ordered store of mirrored entries plus the partitioning tables.

    Every mutating method is atomic on its own. ``transaction()`` groups
    several calls into one atomic unit; calls made inside it join the outer
    transaction.
    """

    def transaction(self) -> AbstractContextManager[None]: ...

    # Entries
    def scan(
        self, spec: RangeSpec, limit: int | None = None, lodis: LodisScope | None = None
    ) -> list[Entry]: ...

    def count(self, spec: RangeSpec, lodis: LodisScope | None = None) -> int: ...

    def replace_entries(
        self,
        spec: RangeSpec,
        entries: list[Entry],
        lodis: LodisScope | None = None,
        delete_old: bool = True,
    ) -> None: ...

    def select(self, ranges: list[RangeSpec]) -> list[Entry]: ...

    def all_entries(self) -> list[Entry]: ...

    # Splinters
    def list_splinters(self, field: str | None = None) -> list[Splinter]: ...

    def replace_splinters(
        self, field: str, start: str, end: str | None, new: list[Splinter]
    ) -> None: ...

    def replace_lodis_splinters(
        self,
        field: str,
        value: str,
        lodis_start: str,
        lodis_end: str | None,
        new: list[Splinter],
    ) -> None: ...

    def recount(self, splinter: Splinter) -> Splinter: ...

    def update_splinter_boundary(self, old: Splinter, new: Splinter) -> None: ...

    # Maintenance list
    def list_maintenance(self, field: str | None = None) -> list[Splinter]: ...

    def add_maintenance(self, splinters: list[Splinter]) -> None: ...

    def find_due(
        self, field: str, lower: str | None, upper: str | None
    ) -> list[Splinter]: ...

    def resolve_maintenance(
        self,
        field: str,
        start: str,
        end: str | None,
        lodis_start: str | None = None,
        lodis_end: str | None = None,
    ) -> int: ...

    def mark_stale(self, older_than: datetime) -> int: ...
