"""mincore - minimal-core mirroring of volume-limited directory services."""

from .version import __version__

__all__ = ["__version__"]
