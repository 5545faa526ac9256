"""Version information for mincore."""

__version__ = "0.1.0"
