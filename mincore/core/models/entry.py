"""Entry model: one record of the mirrored namespace."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Entry:
    """A record keyed by the uniqueness attribute.

    ``attributes`` holds every mirrored attribute, the key included. Values are
    stored in their normalized (lower-case) form.
    """

    key: str
    attributes: dict[str, str | None] = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash(self.key)

    def get(self, attribute: str) -> str | None:
        return self.attributes.get(attribute)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.attributes)

    def visible(self, attributes: list[str]) -> dict[str, Any]:
        """Project the entry onto the given attribute set."""
        return {name: self.attributes.get(name) for name in attributes}

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], uniqueness_attribute: str
    ) -> "Entry":
        """Create an entry from a raw attribute mapping.

        Values are lower-cased and stripped of trailing spaces. List values,
        as returned by directory services for multi-valued attributes, keep
        their first element.
        """
        attributes: dict[str, str | None] = {}
        for name, value in data.items():
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            attributes[name] = (
                None if value is None else str(value).lower().rstrip(" ")
            )
        key = attributes.get(uniqueness_attribute)
        if not key:
            raise ValueError(
                f"Entry has no value for uniqueness attribute "
                f"'{uniqueness_attribute}': {dict(data)}"
            )
        return cls(key=key, attributes=attributes)
