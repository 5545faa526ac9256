"""Splinter, hole and range descriptors."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any


def later_end(a: str | None, b: str | None) -> str | None:
    """The larger of two exclusive upper bounds, ``None`` being unbounded."""
    if a is None or b is None:
        return None
    return max(a, b)


@dataclass(frozen=True)
class RangeSpec:
    """Half-open range ``[start, end)`` over one attribute.

    ``end is None`` means unbounded above. The start is always inclusive.
    """

    attribute: str
    start: str
    end: str | None = None

    def contains(self, value: str) -> bool:
        return self.start <= value and (self.end is None or value < self.end)

    def is_empty(self) -> bool:
        return self.end is not None and self.end <= self.start

    def __str__(self) -> str:
        end = "" if self.end is None else self.end
        return f"{self.attribute}:[{self.start!r}, {end!r})"


@dataclass(frozen=True)
class LodisScope:
    """Restriction of a uniqueness-attribute crawl to one value of ``field``."""

    field: str
    value: str


@dataclass
class Splinter:
    """One range descriptor of the minimal-cover partitioning.

    A plain splinter covers ``[start, end)`` on ``field``. A LODIS splinter
    covers the single ``field`` value ``start`` (its ``end`` is the immediate
    successor of ``start``) restricted to ``[lodis_start, lodis_end)`` on the
    uniqueness attribute.
    """

    field: str
    start: str
    end: str | None
    amount: int = 0
    lodis_start: str | None = None
    lodis_end: str | None = None
    refreshed_at: datetime | None = None

    @property
    def is_lodis(self) -> bool:
        return self.lodis_start is not None

    @property
    def lodis_value(self) -> str | None:
        return self.start if self.is_lodis else None

    def sort_key(self) -> tuple[str, str, str]:
        return (self.field, self.start, self.lodis_start or "")

    def with_updates(self, **changes: Any) -> "Splinter":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "start": self.start,
            "end": self.end,
            "amount": self.amount,
            "lodis_start": self.lodis_start,
            "lodis_end": self.lodis_end,
            "refreshed_at": self.refreshed_at,
        }

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> "Splinter":
        """Build a splinter from a ``(field, start, end, lodis_start, lodis_end,
        amount, refreshed_at)`` row."""
        field_, start, end, lodis_start, lodis_end, amount, refreshed_at = row
        return cls(
            field=field_,
            start=start,
            end=end,
            amount=amount or 0,
            lodis_start=lodis_start,
            lodis_end=lodis_end,
            refreshed_at=refreshed_at,
        )


@dataclass
class Hole:
    """A merged run of due splinters rebuilt as one unit."""

    field: str
    start: str
    end: str | None
    lodis_start: str | None = None
    lodis_end: str | None = None
    due: list[Splinter] = field(default_factory=list)
    navigators: list[Splinter] = field(default_factory=list)

    @property
    def is_lodis(self) -> bool:
        return self.lodis_start is not None

    @property
    def lodis_value(self) -> str | None:
        return self.start if self.is_lodis else None

    def absorb(self, other: "Hole") -> None:
        """Extend this hole over ``other``, which must not start before it."""
        if self.is_lodis and other.is_lodis:
            self.lodis_end = later_end(self.lodis_end, other.lodis_end)
        self.end = later_end(self.end, other.end)
        self.due.extend(other.due)
        self.navigators = []

    def __str__(self) -> str:
        if self.is_lodis:
            return (
                f"{self.field}={self.start!r} "
                f"lodis:[{self.lodis_start!r}, {self.lodis_end!r})"
            )
        return f"{self.field}:[{self.start!r}, {self.end!r})"
