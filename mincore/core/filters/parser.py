"""Parser for the LDAP-style filter strings produced by the compiler."""

from mincore.core.exceptions import FilterSyntaxError
from mincore.core.filters.ast import And, Equals, FilterNode, Not, Or, Prefix, Present

_HEX_DIGITS = "0123456789abcdefABCDEF"


class _FilterParser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def fail(self, reason: str) -> FilterSyntaxError:
        return FilterSyntaxError(self.text, self.pos, reason)

    def expect(self, char: str) -> None:
        if self.pos >= len(self.text) or self.text[self.pos] != char:
            raise self.fail(f"Expected {char!r}")
        self.pos += 1

    def parse(self) -> FilterNode:
        node = self.parse_filter()
        if self.pos != len(self.text):
            raise self.fail("Unexpected trailing input")
        return node

    def parse_filter(self) -> FilterNode:
        self.expect("(")
        if self.pos >= len(self.text):
            raise self.fail("Unterminated filter")

        head = self.text[self.pos]
        if head in "&|":
            self.pos += 1
            children = []
            while self.pos < len(self.text) and self.text[self.pos] == "(":
                children.append(self.parse_filter())
            self.expect(")")
            return And(tuple(children)) if head == "&" else Or(tuple(children))
        if head == "!":
            self.pos += 1
            child = self.parse_filter()
            self.expect(")")
            return Not(child)

        node = self.parse_item()
        self.expect(")")
        return node

    def parse_item(self) -> FilterNode:
        eq = self.text.find("=", self.pos)
        if eq == -1:
            raise self.fail("Missing '='")
        attribute = self.text[self.pos : eq].strip()
        if not attribute or any(c in attribute for c in "()"):
            raise self.fail("Missing attribute name")
        self.pos = eq + 1

        value: list[str] = []
        wildcard_at_end = False
        while self.pos < len(self.text) and self.text[self.pos] != ")":
            char = self.text[self.pos]
            if char == "*":
                if wildcard_at_end:
                    raise self.fail("Only trailing wildcards are supported")
                wildcard_at_end = True
                self.pos += 1
                continue
            if wildcard_at_end:
                raise self.fail("Only trailing wildcards are supported")
            if char == "\\":
                value.append(self.parse_escape())
                continue
            value.append(char)
            self.pos += 1

        literal = "".join(value)
        if wildcard_at_end:
            return Prefix(attribute, literal) if literal else Present(attribute)
        return Equals(attribute, literal)

    def parse_escape(self) -> str:
        pair = self.text[self.pos + 1 : self.pos + 3]
        if len(pair) == 2 and all(c in _HEX_DIGITS for c in pair):
            self.pos += 3
            return chr(int(pair, 16))
        # Backslash followed by a literal character
        if self.pos + 1 >= len(self.text):
            raise self.fail("Dangling escape")
        self.pos += 2
        return self.text[self.pos - 1]


def parse_filter(text: str) -> FilterNode:
    """Parse a filter string into a filter tree.

    Supports equality, trailing-wildcard prefix and presence items combined
    with ``&``, ``|`` and ``!``. Values may use RFC 4515 hex escapes or a
    backslash before a literal character.

    Raises:
        FilterSyntaxError: If the text is not a valid filter
    """
    return _FilterParser(text.strip()).parse()
