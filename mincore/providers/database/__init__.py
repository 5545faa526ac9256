"""Local mirror store providers."""

from .duckdb_provider import DuckDBProvider

__all__ = ["DuckDBProvider"]
