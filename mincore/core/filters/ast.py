"""Boolean filter tree over equality and prefix predicates.

Filters are built as trees of :class:`FilterNode` and rendered once into the
LDAP string syntax understood by the remote lookup service. The same trees are
evaluated locally by the in-memory directory provider.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# Characters that must be hex-escaped inside an assertion value (RFC 4515),
# plus the space, which the remote service would otherwise treat as formatting.
_ESCAPED = {"\\": "\\5c", "*": "\\2a", "(": "\\28", ")": "\\29", "\x00": "\\00", " ": "\\20"}


def escape_value(value: str) -> str:
    """Escape an assertion value for the filter string syntax."""
    return "".join(_ESCAPED.get(c, c) for c in value)


def _attribute_value(entry: Mapping[str, Any], attribute: str) -> str | None:
    value = entry.get(attribute)
    if value is None:
        return None
    return str(value).lower()


class FilterNode(ABC):
    """A node of a filter tree."""

    @abstractmethod
    def to_ldap(self) -> str:
        """Render the node in LDAP filter syntax."""
        ...

    @abstractmethod
    def matches(self, entry: Mapping[str, Any]) -> bool:
        """Evaluate the node against one entry (case-insensitive)."""
        ...

    @abstractmethod
    def values(self) -> list[str]:
        """Assertion values used by the node's leaves."""
        ...

    def __str__(self) -> str:
        return self.to_ldap()


@dataclass(frozen=True)
class Present(FilterNode):
    attribute: str

    def to_ldap(self) -> str:
        return f"({self.attribute}=*)"

    def matches(self, entry: Mapping[str, Any]) -> bool:
        return bool(_attribute_value(entry, self.attribute))

    def values(self) -> list[str]:
        return []


@dataclass(frozen=True)
class Equals(FilterNode):
    attribute: str
    value: str

    def to_ldap(self) -> str:
        return f"({self.attribute}={escape_value(self.value)})"

    def matches(self, entry: Mapping[str, Any]) -> bool:
        return _attribute_value(entry, self.attribute) == self.value.lower()

    def values(self) -> list[str]:
        return [self.value]


@dataclass(frozen=True)
class Prefix(FilterNode):
    attribute: str
    value: str

    def to_ldap(self) -> str:
        if not self.value:
            return f"({self.attribute}=*)"
        return f"({self.attribute}={escape_value(self.value)}*)"

    def matches(self, entry: Mapping[str, Any]) -> bool:
        actual = _attribute_value(entry, self.attribute)
        return actual is not None and actual != "" and actual.startswith(
            self.value.lower()
        )

    def values(self) -> list[str]:
        return [self.value]


@dataclass(frozen=True)
class And(FilterNode):
    children: tuple[FilterNode, ...]

    def to_ldap(self) -> str:
        return "(&" + "".join(c.to_ldap() for c in self.children) + ")"

    def matches(self, entry: Mapping[str, Any]) -> bool:
        return all(c.matches(entry) for c in self.children)

    def values(self) -> list[str]:
        return [v for c in self.children for v in c.values()]


@dataclass(frozen=True)
class Or(FilterNode):
    children: tuple[FilterNode, ...]

    def to_ldap(self) -> str:
        return "(|" + "".join(c.to_ldap() for c in self.children) + ")"

    def matches(self, entry: Mapping[str, Any]) -> bool:
        return any(c.matches(entry) for c in self.children)

    def values(self) -> list[str]:
        return [v for c in self.children for v in c.values()]


@dataclass(frozen=True)
class Not(FilterNode):
    child: FilterNode

    def to_ldap(self) -> str:
        return f"(!{self.child.to_ldap()})"

    def matches(self, entry: Mapping[str, Any]) -> bool:
        return not self.child.matches(entry)

    def values(self) -> list[str]:
        return self.child.values()


def _is_leaf(node: FilterNode) -> bool:
    return isinstance(node, (Present, Equals, Prefix))


def simplify(node: FilterNode) -> FilterNode | bool:
    """Reduce a filter tree, folding constant fragments.

    Leaves whose value holds consecutive spaces can never match on the remote
    side and fold to ``False``. Empty OR groups are ``False``, empty AND groups
    are ``True``, negations of constants are inverted and single-child groups
    are unwrapped. The result is either a tree or a constant.
    """
    if _is_leaf(node):
        if any("  " in v for v in node.values()):
            return False
        return node
    if isinstance(node, Not):
        child = simplify(node.child)
        if isinstance(child, bool):
            return not child
        return Not(child)

    assert isinstance(node, (And, Or))
    kind = type(node)
    absorbing = kind is Or
    children: list[FilterNode] = []
    for child in node.children:
        reduced = simplify(child)
        if reduced is absorbing:
            return absorbing
        if isinstance(reduced, bool):
            continue
        if isinstance(reduced, kind):
            children.extend(reduced.children)
        else:
            children.append(reduced)
    if not children:
        return not absorbing
    if len(children) == 1:
        return children[0]
    return kind(tuple(children))


def match_nothing(attribute: str) -> FilterNode:
    """A filter no entry can satisfy."""
    return Not(Present(attribute))
