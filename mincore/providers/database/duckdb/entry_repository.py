"""DuckDB entry repository implementation - handles mirrored entries."""

from typing import TYPE_CHECKING, Any

from loguru import logger

from mincore.core.models import Entry, LodisScope, RangeSpec
from mincore.providers.database.duckdb.connection_manager import quote_identifier

if TYPE_CHECKING:
    from mincore.providers.database.duckdb.connection_manager import (
        DuckDBConnectionManager,
    )


class DuckDBEntryRepository:
    """Repository for ordered range access to mirrored entries."""

    def __init__(self, connection_manager: "DuckDBConnectionManager"):
        """Initialize entry repository.

        Args:
            connection_manager: DuckDB connection manager instance
        """
        self._connection_manager = connection_manager
        self._unique = connection_manager.uniqueness_attribute
        self._columns = list(connection_manager.attributes)
        self._column_sql = ", ".join(quote_identifier(c) for c in self._columns)

    @property
    def connection(self) -> Any | None:
        """Get database connection from connection manager."""
        return self._connection_manager.connection

    def _range_clause(
        self, spec: RangeSpec, lodis: LodisScope | None
    ) -> tuple[str, list[Any]]:
        column = quote_identifier(spec.attribute)
        conditions = [f"{column} >= ?"]
        params: list[Any] = [spec.start]
        if spec.end is not None:
            conditions.append(f"{column} < ?")
            params.append(spec.end)
        if lodis is not None:
            conditions.append(f"{quote_identifier(lodis.field)} = ?")
            params.append(lodis.value)
        return " AND ".join(conditions), params

    def _to_entry(self, row: tuple[Any, ...]) -> Entry:
        attributes = dict(zip(self._columns, row))
        return Entry(key=attributes[self._unique], attributes=attributes)

    def scan(
        self,
        spec: RangeSpec,
        limit: int | None = None,
        lodis: LodisScope | None = None,
    ) -> list[Entry]:
        """Entries in the range, ascending by ``(attribute, key)``."""
        if self.connection is None:
            raise RuntimeError("No database connection")

        where, params = self._range_clause(spec, lodis)
        order = quote_identifier(spec.attribute)
        if spec.attribute != self._unique:
            order += f", {quote_identifier(self._unique)}"
        query = f"SELECT {self._column_sql} FROM entries WHERE {where} ORDER BY {order}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        try:
            rows = self.connection.execute(query, params).fetchall()
            return [self._to_entry(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to scan entries in {spec}: {e}")
            raise

    def count(self, spec: RangeSpec, lodis: LodisScope | None = None) -> int:
        """Number of entries in the range."""
        if self.connection is None:
            raise RuntimeError("No database connection")

        where, params = self._range_clause(spec, lodis)
        result = self.connection.execute(
            f"SELECT COUNT(*) FROM entries WHERE {where}", params
        ).fetchone()
        return result[0] if result else 0

    def delete_range(self, spec: RangeSpec, lodis: LodisScope | None = None) -> int:
        """Delete every entry in the range and return how many were removed."""
        if self.connection is None:
            raise RuntimeError("No database connection")

        where, params = self._range_clause(spec, lodis)
        removed = self.count(spec, lodis)
        self.connection.execute(f"DELETE FROM entries WHERE {where}", params)
        return removed

    def upsert_batch(self, entries: list[Entry]) -> int:
        """Insert entries, overwriting existing ones with the same key."""
        if self.connection is None:
            raise RuntimeError("No database connection")

        if not entries:
            return 0

        # Last write wins for duplicate keys inside one batch
        unique_entries = list({e.key: e for e in entries}.values())
        keys = [e.key for e in unique_entries]
        key_column = quote_identifier(self._unique)
        placeholders = ", ".join("?" for _ in keys)
        self.connection.execute(
            f"DELETE FROM entries WHERE {key_column} IN ({placeholders})", keys
        )

        values_clauses = []
        params: list[Any] = []
        row_placeholder = "(" + ", ".join("?" for _ in self._columns) + ")"
        for entry in unique_entries:
            values_clauses.append(row_placeholder)
            params.extend(entry.get(column) for column in self._columns)

        self.connection.execute(
            f"INSERT INTO entries ({self._column_sql}) VALUES {', '.join(values_clauses)}",
            params,
        )
        return len(unique_entries)

    def select(
        self, ranges: list[RangeSpec], limit: int | None = None
    ) -> list[Entry]:
        """Entries satisfying every range (one per attribute), ordered by key."""
        if self.connection is None:
            raise RuntimeError("No database connection")

        conditions: list[str] = []
        params: list[Any] = []
        for spec in ranges:
            where, range_params = self._range_clause(spec, None)
            conditions.append(f"({where})")
            params.extend(range_params)
        query = f"SELECT {self._column_sql} FROM entries"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += f" ORDER BY {quote_identifier(self._unique)}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        rows = self.connection.execute(query, params).fetchall()
        return [self._to_entry(row) for row in rows]

    def all_entries(self) -> list[Entry]:
        """Every mirrored entry, ordered by key."""
        return self.select([])
