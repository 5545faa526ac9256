"""DuckDB connection and schema management for mincore."""

import re
from pathlib import Path
from typing import Any

import duckdb
from loguru import logger

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Splinter-shaped tables: the partitioning itself and the refresh queue
SPLINTER_TABLES = ("splinters", "maintenance_list")
SPLINTER_COLUMNS = (
    "field, range_start, range_end, lodis_start, lodis_end, amount, refreshed_at"
)


def quote_identifier(name: str) -> str:
    """Quote an attribute name for use as a column identifier."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid attribute name: {name!r}")
    return f'"{name}"'


class DuckDBConnectionManager:
    """Manages the DuckDB connection and schema of the local mirror."""

    def __init__(
        self,
        db_path: Path | str,
        attributes: list[str],
        uniqueness_attribute: str,
    ):
        """Initialize DuckDB connection manager.

        Args:
            db_path: Path to DuckDB database file or ":memory:" for in-memory database
            attributes: Mirrored attributes, one column each in the entries table
            uniqueness_attribute: Attribute unique across all entries
        """
        if uniqueness_attribute not in attributes:
            raise ValueError(
                f"Uniqueness attribute '{uniqueness_attribute}' must be mirrored"
            )
        for name in attributes:
            quote_identifier(name)
        self._db_path = db_path
        self.attributes = list(attributes)
        self.uniqueness_attribute = uniqueness_attribute
        self.connection: Any | None = None

    @property
    def db_path(self) -> Path | str:
        """Database connection path or identifier."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if database connection is active."""
        return self.connection is not None

    def connect(self) -> None:
        """Establish database connection and initialize schema."""
        logger.info(f"Connecting to DuckDB database: {self.db_path}")

        # Ensure parent directory exists for file-based databases
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self.connection = duckdb.connect(str(self.db_path))
            logger.debug("DuckDB connection successful")

            self.create_schema()
            self.create_indexes()

            logger.info("DuckDB connection manager initialization complete")

        except Exception as e:
            logger.error(f"DuckDB connection failed: {e}")
            self.connection = None
            raise

    def disconnect(self, skip_checkpoint: bool = False) -> None:
        """Close database connection with optional checkpointing."""
        if self.connection is None:
            return
        try:
            if not skip_checkpoint and str(self.db_path) != ":memory:":
                self.connection.execute("CHECKPOINT")
                logger.debug("Database checkpoint completed before disconnect")
        except duckdb.Error as e:
            logger.error(f"Checkpoint failed during disconnect: {e}")
        finally:
            self.connection.close()
            self.connection = None
            logger.info("DuckDB connection closed")

    def create_schema(self) -> None:
        """Create tables for entries, splinters and the maintenance list."""
        logger.info("Creating DuckDB schema")

        if self.connection is None:
            raise RuntimeError("No database connection")

        try:
            # Uniqueness is enforced by the entry repository (delete then
            # insert) since DuckDB checks unique constraints eagerly inside
            # a transaction.
            columns = ",\n".join(
                f"{quote_identifier(name)} VARCHAR"
                + (" NOT NULL" if name == self.uniqueness_attribute else "")
                for name in self.attributes
            )
            self.connection.execute(
                f"CREATE TABLE IF NOT EXISTS entries (\n{columns}\n)"
            )

            for table in SPLINTER_TABLES:
                self.connection.execute(f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        field VARCHAR NOT NULL,
                        range_start VARCHAR NOT NULL,
                        range_end VARCHAR,
                        lodis_start VARCHAR,
                        lodis_end VARCHAR,
                        amount INTEGER NOT NULL DEFAULT 0,
                        refreshed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

            logger.info("DuckDB schema created successfully")

        except Exception as e:
            logger.error(f"Failed to create DuckDB schema: {e}")
            raise

    def create_indexes(self) -> None:
        """Create database indexes for range scans."""
        logger.info("Creating DuckDB indexes")

        if self.connection is None:
            raise RuntimeError("No database connection")

        try:
            for name in self.attributes:
                self.connection.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_entries_{name} "
                    f"ON entries({quote_identifier(name)})"
                )
            for table in SPLINTER_TABLES:
                self.connection.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_{table}_field_start "
                    f"ON {table}(field, range_start)"
                )
            logger.info("DuckDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create DuckDB indexes: {e}")
            raise
