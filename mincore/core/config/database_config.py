"""Local mirror store configuration for mincore."""

import argparse
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

MEMORY_PATH = ":memory:"


class DatabaseConfig(BaseModel):
    """Configuration for the local mirror store."""

    provider: Literal["duckdb"] = Field(
        default="duckdb", description="Database provider backing the local mirror"
    )

    path: Path | None = Field(
        default=None,
        description="Directory holding the mirror database (None for in-memory)",
    )

    @field_validator("path", mode="before")
    def validate_path(cls, v: Any) -> Path | None:
        """Accept strings and Path objects, treat ':memory:' as unset."""
        if v is None or v == MEMORY_PATH or v == "":
            return None
        return Path(v)

    def get_db_path(self) -> Path | str:
        """Path handed to the connection manager."""
        if self.path is None:
            return MEMORY_PATH
        return self.path / "mirror.duckdb"

    def is_configured(self) -> bool:
        """Check if a persistent database location is configured."""
        return self.path is not None

    @classmethod
    def add_cli_arguments(cls, parser: argparse.ArgumentParser) -> None:
        """Add database-related CLI arguments."""
        parser.add_argument(
            "--db",
            type=Path,
            help="Directory for the mirror database (default: in-memory)",
        )

    @classmethod
    def load_from_env(cls) -> dict[str, Any]:
        """Load database config from environment variables."""
        config = {}
        if path := os.getenv("MINCORE_DATABASE__PATH"):
            config["path"] = path
        if provider := os.getenv("MINCORE_DATABASE__PROVIDER"):
            config["provider"] = provider
        return config

    @classmethod
    def extract_cli_overrides(cls, args: Any) -> dict[str, Any]:
        """Extract database config from CLI arguments."""
        overrides = {}
        if hasattr(args, "db") and args.db is not None:
            overrides["path"] = args.db
        return overrides

    def __repr__(self) -> str:
        return f"DatabaseConfig(provider={self.provider}, path={self.get_db_path()})"
