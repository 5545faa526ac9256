"""Range filter compiler.

The remote lookup service only understands equality and prefix predicates
combined with AND/OR/NOT. This module rewrites a half-open lexicographic range
over one attribute into such a filter.

A range ``[lo, hi)`` is decomposed character position by character position.
At each position the set of accepted strings is "everything that starts with
some base and continues with one of a set of letters", optionally plus the
base itself. Such a level can be phrased in two equivalent ways:

* a positive OR-chain listing the accepted letters, or
* a negative AND-chain: ``base*`` minus the rejected letters (and the base).

Which phrasing is used is decided per level, either by clause count or forced
by a :class:`FilterSchema`. The schemas exist because some lookup engines time
out on long chains of one kind; re-phrasing the same range can dodge that.

Bounds carry their inclusiveness in-band: a leading ``*`` marks a bound as
inclusive. Lower bounds default to strict, upper bounds to exclusive.
"""

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from mincore.core.alphabet import AlphabetSpace, AttributeAlphabet
from mincore.core.filters.ast import (
    And,
    Equals,
    FilterNode,
    Not,
    Or,
    Prefix,
    Present,
    match_nothing,
    simplify,
)

INCLUSIVE_MARKER = "*"


class FilterSchema(str, Enum):
    """Construction schema for range filters."""

    DEFAULT = "DEFAULT"
    OR = "OR"
    AND = "AND"
    MIXED1 = "MIXED1"
    MIXED2 = "MIXED2"
    MIXED3 = "MIXED3"
    MIXED4 = "MIXED4"

    def form_at(self, index: int) -> str | None:
        """Forced chain form for a level narrowing character ``index``.

        Returns "or", "and" or None when the form should be chosen by clause
        count.
        """
        if self is FilterSchema.DEFAULT:
            return None
        if self is FilterSchema.OR:
            return "or"
        if self is FilterSchema.AND:
            return "and"
        depth = 1 if self in (FilterSchema.MIXED1, FilterSchema.MIXED2) else 2
        or_first = self in (FilterSchema.MIXED1, FilterSchema.MIXED3)
        if index < depth:
            return "or" if or_first else "and"
        return "and" if or_first else "or"


# Order in which alternative phrasings are tried after the default one.
RETRY_SCHEMAS: tuple[FilterSchema, ...] = (
    FilterSchema.OR,
    FilterSchema.AND,
    FilterSchema.MIXED1,
    FilterSchema.MIXED2,
    FilterSchema.MIXED3,
    FilterSchema.MIXED4,
)


@dataclass(frozen=True)
class _Level:
    """Strings starting with ``base`` followed by one of ``letters``."""

    index: int
    base: str
    letters: str
    include_base: bool


def split_bound(bound: str | None) -> tuple[str | None, bool]:
    """Split a marked bound into ``(value, inclusive)``.

    An empty or missing bound is returned as ``None`` (unbounded).
    """
    if not bound:
        return None, False
    inclusive = bound.startswith(INCLUSIVE_MARKER)
    value = bound[1:] if inclusive else bound
    if not value:
        return None, False
    return value.lower(), inclusive


def inclusive(value: str) -> str:
    """Mark a bound as inclusive."""
    return INCLUSIVE_MARKER + value


class RangeFilterCompiler:
    """Compiles lexicographic ranges into equality/prefix filters."""

    def __init__(self, alphabets: AlphabetSpace):
        self._alphabets = alphabets

    def compile(
        self,
        field: str,
        greater: str | None = None,
        smaller: str | None = None,
        schema: FilterSchema = FilterSchema.DEFAULT,
    ) -> str:
        """Compile the range into a filter string.

        Args:
            field: Attribute the range applies to
            greater: Lower bound, strict unless prefixed with ``*``
            smaller: Upper bound, exclusive unless prefixed with ``*``
            schema: Construction schema

        Returns:
            LDAP filter string
        """
        return self.build(field, greater, smaller, schema).to_ldap()

    def build(
        self,
        field: str,
        greater: str | None = None,
        smaller: str | None = None,
        schema: FilterSchema = FilterSchema.DEFAULT,
    ) -> FilterNode:
        """Compile the range into a filter tree."""
        alphabet = self._alphabets.alphabet(field)
        lo, lo_inclusive = split_bound(greater)
        hi, hi_inclusive = split_bound(smaller)

        # Values never carry trailing spaces, so ">= 'ab '" means "> 'ab'"
        # and "< 'ab '" means "<= 'ab'".
        if lo is not None and lo.endswith(" "):
            lo, lo_inclusive = lo.rstrip(" ") or None, False
        if hi is not None and hi.endswith(" "):
            hi, hi_inclusive = hi.rstrip(" ") or None, True
            if hi is None:
                return match_nothing(field)

        if lo is None and hi is None:
            return Present(field)
        if lo is not None and hi is not None:
            if lo > hi or (lo == hi and not (lo_inclusive and hi_inclusive)):
                logger.debug(f"Empty range on {field}: [{greater!r}, {smaller!r})")
                return match_nothing(field)
            if lo == hi:
                return Equals(field, lo)

        levels: list[_Level] = []
        extra: list[FilterNode] = []
        strict_lower = lo is not None and not lo_inclusive

        if hi is None:
            assert lo is not None
            levels.extend(self._lower_levels(alphabet, lo, lo_inclusive, 0))
        elif lo is None:
            levels.extend(self._upper_levels(alphabet, hi, 0))
        else:
            k = _common_prefix_length(lo, hi)
            if k < len(lo):
                levels.extend(self._lower_levels(alphabet, lo, lo_inclusive, k + 1))
                levels.append(
                    _Level(
                        index=k,
                        base=lo[:k],
                        letters=alphabet.letters_between(
                            lo[k],
                            hi[k],
                            include_low=lo_inclusive and k == len(lo) - 1,
                        ),
                        include_base=False,
                    )
                )
            else:
                # lo is a proper prefix of hi, everything in range starts with lo
                levels.append(
                    _Level(
                        index=k,
                        base=lo,
                        letters=alphabet.letters_between(None, hi[k]),
                        include_base=lo_inclusive,
                    )
                )
                strict_lower = False
            levels.extend(self._upper_levels(alphabet, hi, k + 1))

        if strict_lower:
            assert lo is not None
            extra.append(And((Prefix(field, lo), Not(Equals(field, lo)))))
        if hi is not None and hi_inclusive:
            extra.append(Equals(field, hi))

        clauses = [
            self._render(field, alphabet, level, schema) for level in levels
        ] + extra
        reduced = simplify(Or(tuple(clauses)))
        if reduced is True:
            return Present(field)
        if reduced is False:
            return match_nothing(field)
        return reduced

    def _lower_levels(
        self, alphabet: AttributeAlphabet, lo: str, lo_inclusive: bool, start: int
    ) -> list[_Level]:
        last = len(lo) - 1
        return [
            _Level(
                index=i,
                base=lo[:i],
                letters=alphabet.letters_between(
                    lo[i], None, include_low=lo_inclusive and i == last
                ),
                include_base=False,
            )
            for i in range(last, start - 1, -1)
        ]

    def _upper_levels(
        self, alphabet: AttributeAlphabet, hi: str, start: int
    ) -> list[_Level]:
        return [
            _Level(
                index=i,
                base=hi[:i],
                letters=alphabet.letters_between(None, hi[i]),
                include_base=i >= 1,
            )
            for i in range(len(hi) - 1, start - 1, -1)
        ]

    def _render(
        self,
        field: str,
        alphabet: AttributeAlphabet,
        level: _Level,
        schema: FilterSchema,
    ) -> FilterNode:
        form = schema.form_at(level.index) or self._cheapest_form(alphabet, level)
        if form == "or":
            clauses: list[FilterNode] = [
                Prefix(field, level.base + c) for c in level.letters
            ]
            if level.include_base:
                clauses.append(Equals(field, level.base))
            return Or(tuple(clauses))

        rejected: list[FilterNode] = [
            Prefix(field, level.base + c) for c in alphabet if c not in level.letters
        ]
        if level.base and not level.include_base:
            rejected.append(Equals(field, level.base))
        scope = Prefix(field, level.base) if level.base else Present(field)
        return And((scope, Not(Or(tuple(rejected)))))

    @staticmethod
    def _cheapest_form(alphabet: AttributeAlphabet, level: _Level) -> str:
        positive = len(level.letters) + int(level.include_base)
        negative = (
            2
            + len(alphabet)
            - len(level.letters)
            + int(bool(level.base) and not level.include_base)
        )
        return "and" if negative < positive else "or"


def _common_prefix_length(a: str, b: str) -> int:
    n = 0
    for x, y in zip(a, b):
        if x != y:
            break
        n += 1
    return n
