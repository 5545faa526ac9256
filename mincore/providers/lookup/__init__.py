"""Lookup service providers."""

from .directory_provider import DirectoryLookupProvider

__all__ = ["DirectoryLookupProvider"]
