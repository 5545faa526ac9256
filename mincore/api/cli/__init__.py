"""Command line interface for mincore."""
