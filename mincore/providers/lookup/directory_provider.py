"""In-memory directory provider.

Serves a list of entries through the same filter language as the remote
service and applies the same volume cap. When more entries match than the cap
allows, a pseudo-random subset is returned, seeded by the filter so repeats
are stable. Used for tests and offline runs.
"""

import json
import random
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from loguru import logger

from mincore.core.exceptions import RemoteUnreachableError
from mincore.core.filters.parser import parse_filter
from mincore.interfaces.lookup_provider import LookupProvider, LookupResponse
from mincore.utils.hashing import query_seed


class DirectoryLookupProvider(LookupProvider):
    """Lookup provider over an in-memory list of entries."""

    def __init__(
        self,
        entries: Iterable[dict[str, Any]] | None = None,
        time_limited: Callable[[str], bool] | None = None,
    ):
        """Initialize the directory.

        Args:
            entries: Initial entries, each a mapping of attribute to value
            time_limited: Predicate over filter strings; matching searches
                behave like an engine hitting its time limit and return a
                partial, incomplete result
        """
        self._entries: list[dict[str, Any]] = [dict(e) for e in entries or []]
        self._time_limited = time_limited
        self.unreachable = False
        self.connected = False
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "directory"

    @classmethod
    def from_fixture(cls, path: Path) -> "DirectoryLookupProvider":
        """Load entries from a JSON file holding a list of objects."""
        with open(path) as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"Directory fixture {path} must contain a JSON list")
        logger.info(f"Loaded {len(data)} directory entries from {path}")
        return cls(data)

    @property
    def entries(self) -> list[dict[str, Any]]:
        return list(self._entries)

    def add(self, entry: dict[str, Any]) -> None:
        self._entries.append(dict(entry))

    def remove(self, attribute: str, value: str) -> int:
        """Remove entries whose ``attribute`` equals ``value``."""
        before = len(self._entries)
        self._entries = [
            e for e in self._entries if str(e.get(attribute, "")).lower() != value.lower()
        ]
        return before - len(self._entries)

    async def connect(self) -> None:
        if self.unreachable:
            raise RemoteUnreachableError("Directory is unreachable")
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def search(
        self,
        filter_text: str,
        attributes: list[str],
        size_limit: int,
    ) -> LookupResponse:
        if self.unreachable:
            raise RemoteUnreachableError("Directory is unreachable")

        started = time.perf_counter()
        self.calls.append(filter_text)
        node = parse_filter(filter_text)
        matches = [e for e in self._entries if node.matches(e)]

        rng = random.Random(query_seed(filter_text))
        rng.shuffle(matches)

        if self._time_limited is not None and self._time_limited(filter_text):
            partial = matches[: max(0, min(len(matches), size_limit) - 1) // 2]
            return LookupResponse(
                entries=[self._project(e, attributes) for e in partial],
                complete=False,
                elapsed=time.perf_counter() - started,
                diagnostics={"limit": "time"},
            )

        complete = len(matches) <= size_limit
        return LookupResponse(
            entries=[self._project(e, attributes) for e in matches[:size_limit]],
            complete=complete,
            elapsed=time.perf_counter() - started,
            diagnostics={} if complete else {"limit": "size"},
        )

    @staticmethod
    def _project(entry: dict[str, Any], attributes: list[str]) -> dict[str, Any]:
        if not attributes:
            return dict(entry)
        return {a: entry.get(a) for a in attributes}
