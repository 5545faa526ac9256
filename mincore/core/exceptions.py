"""Exception hierarchy for mincore."""

from typing import Any


class MincoreError(Exception):
    """Base class for all mincore errors."""


class TruncationError(MincoreError):
    """A range query hit the volume cap and could not be resolved."""

    def __init__(self, spec: Any, returned: int, message: str | None = None):
        self.spec = spec
        self.returned = returned
        super().__init__(
            message or f"Range {spec} truncated after {returned} entries"
        )


class RemoteUnreachableError(MincoreError):
    """The remote lookup service could not be reached or bound."""


class StructuralInvariantError(MincoreError):
    """Source data violates an assumption the crawlers depend on.

    Raised when a crawl gets stuck on the uniqueness attribute, which can only
    happen when the uniqueness attribute is not actually unique.
    """


class StoreError(MincoreError):
    """A local store transaction failed and was rolled back."""


class FilterSyntaxError(MincoreError, ValueError):
    """A filter string could not be parsed."""

    def __init__(self, text: str, position: int, reason: str):
        self.text = text
        self.position = position
        super().__init__(f"{reason} at position {position} in filter {text!r}")
