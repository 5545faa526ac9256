"""DuckDB repositories for the local mirror."""
