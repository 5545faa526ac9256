"""DuckDB splinter repository implementation - handles the partitioning tables.

Both the splinter table and the maintenance list share the splinter row shape,
so every method takes the table it operates on.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any

from loguru import logger

from mincore.core.models import LodisScope, RangeSpec, Splinter
from mincore.providers.database.duckdb.connection_manager import (
    SPLINTER_COLUMNS,
    SPLINTER_TABLES,
)

if TYPE_CHECKING:
    from mincore.providers.database.duckdb.connection_manager import (
        DuckDBConnectionManager,
    )
    from mincore.providers.database.duckdb.entry_repository import (
        DuckDBEntryRepository,
    )

SPLINTERS = "splinters"
MAINTENANCE_LIST = "maintenance_list"

_KEY_CLAUSE = (
    "field = ? AND range_start = ? AND lodis_start IS NOT DISTINCT FROM ?"
)


def _check_table(table: str) -> str:
    if table not in SPLINTER_TABLES:
        raise ValueError(f"Unknown splinter table: {table}")
    return table


class DuckDBSplinterRepository:
    """Repository for splinters and maintenance list rows in DuckDB."""

    def __init__(
        self,
        connection_manager: "DuckDBConnectionManager",
        entry_repository: "DuckDBEntryRepository",
    ):
        """Initialize splinter repository.

        Args:
            connection_manager: DuckDB connection manager instance
            entry_repository: Entry repository used to recount clipped splinters
        """
        self._connection_manager = connection_manager
        self._entries = entry_repository
        self._unique = connection_manager.uniqueness_attribute

    @property
    def connection(self) -> Any | None:
        """Get database connection from connection manager."""
        return self._connection_manager.connection

    def _fetch(self, query: str, params: list[Any]) -> list[Splinter]:
        if self.connection is None:
            raise RuntimeError("No database connection")
        rows = self.connection.execute(query, params).fetchall()
        return [Splinter.from_row(row) for row in rows]

    def list_splinters(
        self, field: str | None = None, table: str = SPLINTERS
    ) -> list[Splinter]:
        """Rows of a table ordered by ``(field, start, lodis_start)``."""
        table = _check_table(table)
        query = f"SELECT {SPLINTER_COLUMNS} FROM {table}"
        params: list[Any] = []
        if field is not None:
            query += " WHERE field = ?"
            params.append(field)
        query += " ORDER BY field, range_start, lodis_start NULLS FIRST"
        return self._fetch(query, params)

    def insert_batch(
        self,
        splinters: list[Splinter],
        table: str = SPLINTERS,
        refreshed_at: datetime | None = None,
    ) -> None:
        """Insert splinters, stamping those without a timestamp."""
        table = _check_table(table)
        if self.connection is None:
            raise RuntimeError("No database connection")
        if not splinters:
            return

        stamp = refreshed_at or datetime.now()
        values_clauses = []
        params: list[Any] = []
        for s in splinters:
            values_clauses.append("(?, ?, ?, ?, ?, ?, ?)")
            params.extend([
                s.field,
                s.start,
                s.end,
                s.lodis_start,
                s.lodis_end,
                s.amount,
                s.refreshed_at or stamp,
            ])
        self.connection.execute(
            f"INSERT INTO {table} ({SPLINTER_COLUMNS}) VALUES {', '.join(values_clauses)}",
            params,
        )

    def delete(self, splinter: Splinter, table: str = SPLINTERS) -> None:
        table = _check_table(table)
        if self.connection is None:
            raise RuntimeError("No database connection")
        self.connection.execute(
            f"DELETE FROM {table} WHERE {_KEY_CLAUSE}",
            [splinter.field, splinter.start, splinter.lodis_start],
        )

    def update(self, old: Splinter, new: Splinter, table: str = SPLINTERS) -> int:
        """Rewrite the row keyed like ``old`` with the values of ``new``."""
        table = _check_table(table)
        if self.connection is None:
            raise RuntimeError("No database connection")
        result = self.connection.execute(
            f"""
            UPDATE {table}
            SET range_start = ?, range_end = ?, lodis_start = ?, lodis_end = ?,
                amount = ?
            WHERE {_KEY_CLAUSE}
            RETURNING 1
            """,
            [
                new.start,
                new.end,
                new.lodis_start,
                new.lodis_end,
                new.amount,
                old.field,
                old.start,
                old.lodis_start,
            ],
        ).fetchall()
        return len(result)

    def overlapping(
        self, field: str, start: str, end: str | None, table: str = SPLINTERS
    ) -> list[Splinter]:
        """Rows on ``field`` intersecting ``[start, end)``."""
        table = _check_table(table)
        query = (
            f"SELECT {SPLINTER_COLUMNS} FROM {table} "
            "WHERE field = ? AND (range_end IS NULL OR range_end > ?)"
        )
        params: list[Any] = [field, start]
        if end is not None:
            query += " AND range_start < ?"
            params.append(end)
        query += " ORDER BY range_start, lodis_start NULLS FIRST"
        return self._fetch(query, params)

    def overlapping_lodis(
        self,
        field: str,
        value: str,
        lodis_start: str,
        lodis_end: str | None,
        table: str = SPLINTERS,
    ) -> list[Splinter]:
        """LODIS rows of ``value`` intersecting ``[lodis_start, lodis_end)``."""
        table = _check_table(table)
        query = (
            f"SELECT {SPLINTER_COLUMNS} FROM {table} "
            "WHERE field = ? AND range_start = ? AND lodis_start IS NOT NULL "
            "AND (lodis_end IS NULL OR lodis_end > ?)"
        )
        params: list[Any] = [field, value, lodis_start]
        if lodis_end is not None:
            query += " AND lodis_start < ?"
            params.append(lodis_end)
        query += " ORDER BY lodis_start"
        return self._fetch(query, params)

    def _recount(self, splinter: Splinter) -> Splinter:
        if splinter.is_lodis:
            amount = self._entries.count(
                RangeSpec(self._unique, splinter.lodis_start or "", splinter.lodis_end),
                LodisScope(splinter.field, splinter.start),
            )
        else:
            amount = self._entries.count(
                RangeSpec(splinter.field, splinter.start, splinter.end)
            )
        return splinter.with_updates(amount=amount)

    def replace_range(
        self,
        field: str,
        start: str,
        end: str | None,
        new: list[Splinter],
        refreshed_at: datetime | None = None,
    ) -> None:
        """Replace the partitioning of ``[start, end)`` on ``field``.

        Plain splinters sticking out of the range are clipped to the part
        outside it and recounted. LODIS splinters of values inside the range
        are removed. Must run inside a transaction.
        """
        leftovers: list[Splinter] = []
        for old in self.overlapping(field, start, end):
            if old.is_lodis:
                inside = start <= old.start and (end is None or old.start < end)
                if inside:
                    self.delete(old)
                continue
            self.delete(old)
            if old.start < start:
                leftovers.append(old.with_updates(end=start))
            if end is not None and (old.end is None or old.end > end):
                leftovers.append(old.with_updates(start=end))

        for piece in leftovers:
            logger.debug(f"Clipping splinter {field}:[{piece.start!r}, {piece.end!r})")
        self.insert_batch([self._recount(p) for p in leftovers])
        self.insert_batch(new, refreshed_at=refreshed_at)

    def replace_lodis_range(
        self,
        field: str,
        value: str,
        lodis_start: str,
        lodis_end: str | None,
        new: list[Splinter],
        refreshed_at: datetime | None = None,
    ) -> None:
        """Replace the LODIS partitioning of ``value`` within a key range.

        Must run inside a transaction.
        """
        leftovers: list[Splinter] = []
        for old in self.overlapping_lodis(field, value, lodis_start, lodis_end):
            self.delete(old)
            if old.lodis_start is not None and old.lodis_start < lodis_start:
                leftovers.append(old.with_updates(lodis_end=lodis_start))
            if lodis_end is not None and (
                old.lodis_end is None or old.lodis_end > lodis_end
            ):
                leftovers.append(old.with_updates(lodis_start=lodis_end))

        self.insert_batch([self._recount(p) for p in leftovers])
        self.insert_batch(new, refreshed_at=refreshed_at)

    def recount(self, splinter: Splinter) -> Splinter:
        """Splinter with its amount recomputed from the mirror."""
        return self._recount(splinter)

    def find_due(
        self, field: str, lower: str | None, upper: str | None
    ) -> list[Splinter]:
        """Maintenance rows on ``field`` intersecting ``[lower, upper)``."""
        query = (
            f"SELECT {SPLINTER_COLUMNS} FROM {MAINTENANCE_LIST} WHERE field = ?"
        )
        params: list[Any] = [field]
        if lower is not None:
            query += " AND (range_end IS NULL OR range_end > ?)"
            params.append(lower)
        if upper is not None:
            query += " AND range_start < ?"
            params.append(upper)
        query += " ORDER BY range_start, lodis_start NULLS FIRST"
        return self._fetch(query, params)

    def delete_maintenance_covered(
        self,
        field: str,
        start: str,
        end: str | None,
        lodis_start: str | None = None,
        lodis_end: str | None = None,
    ) -> int:
        """Delete maintenance rows fully covered by a rebuilt range.

        With ``lodis_start`` set, the range is the LODIS key range of the
        single value ``start``.
        """
        if self.connection is None:
            raise RuntimeError("No database connection")

        if lodis_start is not None:
            query = (
                f"DELETE FROM {MAINTENANCE_LIST} WHERE field = ? AND range_start = ? "
                "AND lodis_start IS NOT NULL AND lodis_start >= ?"
            )
            params: list[Any] = [field, start, lodis_start]
            if lodis_end is not None:
                query += " AND lodis_end IS NOT NULL AND lodis_end <= ?"
                params.append(lodis_end)
        else:
            query = (
                f"DELETE FROM {MAINTENANCE_LIST} WHERE field = ? AND range_start >= ?"
            )
            params = [field, start]
            if end is not None:
                query += (
                    " AND range_start < ? AND range_end IS NOT NULL AND range_end <= ?"
                )
                params.extend([end, end])

        result = self.connection.execute(query + " RETURNING 1", params).fetchall()
        return len(result)

    def mark_stale(self, older_than: datetime) -> int:
        """Copy splinters refreshed at or before ``older_than`` into the
        maintenance list, replacing identical rows. Must run inside a
        transaction."""
        if self.connection is None:
            raise RuntimeError("No database connection")

        self.connection.execute(
            f"""
            DELETE FROM {MAINTENANCE_LIST} AS m
            WHERE EXISTS (
                SELECT 1 FROM {SPLINTERS} AS s
                WHERE s.refreshed_at <= ?
                  AND s.field = m.field
                  AND s.range_start = m.range_start
                  AND s.lodis_start IS NOT DISTINCT FROM m.lodis_start
            )
            """,
            [older_than],
        )
        inserted = self.connection.execute(
            f"""
            INSERT INTO {MAINTENANCE_LIST} ({SPLINTER_COLUMNS})
            SELECT {SPLINTER_COLUMNS} FROM {SPLINTERS}
            WHERE refreshed_at <= ?
            RETURNING 1
            """,
            [older_than],
        ).fetchall()
        return len(inserted)
