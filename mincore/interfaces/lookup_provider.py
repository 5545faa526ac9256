"""Lookup Provider Interface for the remote volume-limited lookup service."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LookupResponse:
    """Raw response of one remote search call."""

    entries: list[dict[str, Any]]
    # True: the service vouches the result holds every match.
    # False: the service stopped early (size, time or admin limit).
    complete: bool
    elapsed: float = 0.0
    diagnostics: dict[str, Any] = field(default_factory=dict)


class LookupProvider(ABC):
    """Abstract base class for remote lookup services.

    A provider accepts an equality/prefix boolean filter and returns at most
    ``size_limit`` matching entries. It must not retry or reshape the filter;
    truncation handling belongs to the caller.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'ldap', 'directory')."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection / bind.

        Raises:
            RemoteUnreachableError: If the service cannot be reached
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""
        ...

    @abstractmethod
    async def search(
        self,
        filter_text: str,
        attributes: list[str],
        size_limit: int,
    ) -> LookupResponse:
        """
        Run one search.

        Args:
            filter_text: LDAP-syntax filter over equality and prefix predicates
            attributes: Attributes to return per entry
            size_limit: Maximum number of entries to return

        Returns:
            LookupResponse with the entries and the completeness flag

        Raises:
            RemoteUnreachableError: If the connection or bind fails
        """
        ...
