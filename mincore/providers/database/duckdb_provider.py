"""DuckDB provider implementation for mincore - the local mirror store."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import duckdb
from loguru import logger

from mincore.core.exceptions import StoreError
from mincore.core.models import Entry, LodisScope, RangeSpec, Splinter
from mincore.providers.database.duckdb.connection_manager import DuckDBConnectionManager
from mincore.providers.database.duckdb.entry_repository import DuckDBEntryRepository
from mincore.providers.database.duckdb.splinter_repository import (
    MAINTENANCE_LIST,
    SPLINTERS,
    DuckDBSplinterRepository,
)


class DuckDBProvider:
    """DuckDB implementation of the LocalMirrorStore protocol.

    Methods are synchronous and never yield to the event loop, so a
    transaction opened by one coroutine cannot interleave with another.
    """

    def __init__(
        self,
        db_path: Path | str,
        attributes: list[str],
        uniqueness_attribute: str,
    ):
        """Initialize DuckDB provider.

        Args:
            db_path: Path to DuckDB database file or ":memory:" for in-memory database
            attributes: Mirrored attributes
            uniqueness_attribute: Attribute unique across all entries
        """
        self.provider_type = "duckdb"
        self._in_transaction = False

        self._connection_manager = DuckDBConnectionManager(
            db_path, attributes, uniqueness_attribute
        )
        self._entry_repository = DuckDBEntryRepository(self._connection_manager)
        self._splinter_repository = DuckDBSplinterRepository(
            self._connection_manager, self._entry_repository
        )

    @property
    def connection(self) -> Any | None:
        """Database connection - delegate to connection manager."""
        return self._connection_manager.connection

    @property
    def db_path(self) -> Path | str:
        """Database connection path or identifier - delegate to connection manager."""
        return self._connection_manager.db_path

    @property
    def is_connected(self) -> bool:
        """Check if database connection is active - delegate to connection manager."""
        return self._connection_manager.is_connected

    @property
    def uniqueness_attribute(self) -> str:
        return self._connection_manager.uniqueness_attribute

    def connect(self) -> None:
        """Establish database connection and initialize schema."""
        try:
            self._connection_manager.connect()
            logger.info("DuckDB provider initialization complete")
        except Exception as e:
            logger.error(f"DuckDB connection failed: {e}")
            raise

    def disconnect(self, skip_checkpoint: bool = False) -> None:
        """Close database connection - delegate to connection manager."""
        self._connection_manager.disconnect(skip_checkpoint)

    # Transactions

    def begin_transaction(self) -> None:
        """Begin a database transaction."""
        if self.connection is None:
            raise RuntimeError("No database connection")

        self.connection.execute("BEGIN TRANSACTION")
        self._in_transaction = True

    def commit_transaction(self) -> None:
        """Commit the current transaction."""
        if self.connection is None:
            raise RuntimeError("No database connection")

        try:
            self.connection.execute("COMMIT")
        finally:
            self._in_transaction = False

    def rollback_transaction(self) -> None:
        """Rollback the current transaction."""
        if self.connection is None:
            raise RuntimeError("No database connection")

        try:
            self.connection.execute("ROLLBACK")
        finally:
            self._in_transaction = False

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed statements as one atomic unit.

        Nested use joins the outer transaction. DuckDB errors are rolled back
        and re-raised as StoreError; other errors are rolled back and
        propagated unchanged.
        """
        if self._in_transaction:
            yield
            return

        self.begin_transaction()
        try:
            yield
            self.commit_transaction()
        except Exception as e:
            if self._in_transaction:
                try:
                    self.rollback_transaction()
                    logger.info("Transaction rolled back due to error")
                except duckdb.Error as rollback_error:
                    logger.error(f"Rollback failed: {rollback_error}")
            logger.error(f"Store transaction failed: {e}")
            if isinstance(e, duckdb.Error):
                raise StoreError(f"Store transaction failed: {e}") from e
            raise

    # Entries - delegate to entry repository

    def scan(
        self,
        spec: RangeSpec,
        limit: int | None = None,
        lodis: LodisScope | None = None,
    ) -> list[Entry]:
        return self._entry_repository.scan(spec, limit, lodis)

    def count(self, spec: RangeSpec, lodis: LodisScope | None = None) -> int:
        return self._entry_repository.count(spec, lodis)

    def replace_entries(
        self,
        spec: RangeSpec,
        entries: list[Entry],
        lodis: LodisScope | None = None,
        delete_old: bool = True,
    ) -> None:
        """Atomically replace the mirror contents of a range.

        With ``delete_old`` the range is emptied first, so entries that
        vanished remotely disappear locally. Without it the entries are only
        upserted (used for truncated results, which prove presence but not
        absence).
        """
        with self.transaction():
            removed = self._entry_repository.delete_range(spec, lodis) if delete_old else 0
            written = self._entry_repository.upsert_batch(entries)
        logger.debug(
            f"Mirror write {spec}{' ' + str(lodis) if lodis else ''}: "
            f"-{removed} +{written}"
        )

    def select(self, ranges: list[RangeSpec]) -> list[Entry]:
        return self._entry_repository.select(ranges)

    def all_entries(self) -> list[Entry]:
        return self._entry_repository.all_entries()

    # Splinters - delegate to splinter repository

    def list_splinters(self, field: str | None = None) -> list[Splinter]:
        return self._splinter_repository.list_splinters(field, SPLINTERS)

    def replace_splinters(
        self, field: str, start: str, end: str | None, new: list[Splinter]
    ) -> None:
        with self.transaction():
            self._splinter_repository.replace_range(field, start, end, new)

    def replace_lodis_splinters(
        self,
        field: str,
        value: str,
        lodis_start: str,
        lodis_end: str | None,
        new: list[Splinter],
    ) -> None:
        with self.transaction():
            self._splinter_repository.replace_lodis_range(
                field, value, lodis_start, lodis_end, new
            )

    def recount(self, splinter: Splinter) -> Splinter:
        return self._splinter_repository.recount(splinter)

    def update_splinter_boundary(self, old: Splinter, new: Splinter) -> None:
        """Move a splinter boundary in both the splinter table and the
        maintenance list."""
        with self.transaction():
            self._splinter_repository.update(old, new, SPLINTERS)
            self._splinter_repository.update(old, new, MAINTENANCE_LIST)

    # Maintenance list

    def list_maintenance(self, field: str | None = None) -> list[Splinter]:
        return self._splinter_repository.list_splinters(field, MAINTENANCE_LIST)

    def add_maintenance(self, splinters: list[Splinter]) -> None:
        with self.transaction():
            self._splinter_repository.insert_batch(splinters, MAINTENANCE_LIST)

    def find_due(
        self, field: str, lower: str | None, upper: str | None
    ) -> list[Splinter]:
        return self._splinter_repository.find_due(field, lower, upper)

    def resolve_maintenance(
        self,
        field: str,
        start: str,
        end: str | None,
        lodis_start: str | None = None,
        lodis_end: str | None = None,
    ) -> int:
        with self.transaction():
            return self._splinter_repository.delete_maintenance_covered(
                field, start, end, lodis_start, lodis_end
            )

    def mark_stale(self, older_than: datetime) -> int:
        with self.transaction():
            marked = self._splinter_repository.mark_stale(older_than)
        logger.info(f"Marked {marked} splinters refreshed before {older_than} as due")
        return marked
