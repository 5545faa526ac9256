"""Unit tests for the range filter compiler.

The compiler is checked exhaustively over a tiny namespace: every word of up
to three characters over ``{a, b, c}`` must match the compiled filter exactly
when it lies in the requested range.
"""

from itertools import product

import pytest

from mincore.core.alphabet import AlphabetSpace
from mincore.core.filters import (
    Equals,
    FilterSchema,
    Present,
    RangeFilterCompiler,
    inclusive,
    parse_filter,
)
from tests.helpers import PERSON_ALPHABETS, SMALL_ALPHABETS

WORDS = [
    "".join(chars)
    for length in (1, 2, 3)
    for chars in product("abc", repeat=length)
]
BOUNDS = ["", *WORDS]


@pytest.fixture(scope="module")
def compiler():
    return RangeFilterCompiler(AlphabetSpace(SMALL_ALPHABETS, "uid"))


def in_range(word, lo, lo_inclusive, hi, hi_inclusive):
    above = not lo or word > lo or (lo_inclusive and word == lo)
    below = not hi or word < hi or (hi_inclusive and word == hi)
    return above and below


@pytest.mark.parametrize("schema", list(FilterSchema))
@pytest.mark.parametrize("lo_inclusive", [False, True])
def test_compiled_range_matches_exactly(compiler, schema, lo_inclusive):
    for lo, hi in product(BOUNDS, BOUNDS):
        for hi_inclusive in (False, True):
            greater = inclusive(lo) if lo_inclusive else lo
            smaller = inclusive(hi) if hi_inclusive else hi
            text = compiler.compile("sn", greater, smaller, schema)
            node = parse_filter(text)

            matched = {w for w in WORDS if node.matches({"sn": w})}
            expected = {
                w for w in WORDS if in_range(w, lo, lo_inclusive, hi, hi_inclusive)
            }
            assert matched == expected, (
                f"{schema.value} [{greater!r}, {smaller!r}) compiled to {text}"
            )


def test_unbounded_range_is_presence(compiler):
    assert compiler.build("sn") == Present("sn")


def test_single_value_range_is_equality(compiler):
    assert compiler.build("sn", inclusive("ab"), inclusive("ab")) == Equals("sn", "ab")


def test_empty_range_matches_nothing(compiler):
    node = compiler.build("sn", "b", "a")
    assert not any(node.matches({"sn": w}) for w in WORDS)


def test_schemas_change_the_phrasing(compiler):
    texts = {
        compiler.compile("sn", inclusive("ab"), "cb", schema)
        for schema in FilterSchema
    }
    assert len(texts) > 1


def test_forced_or_schema_avoids_negation(compiler):
    text = compiler.compile("sn", inclusive("b"), None, FilterSchema.OR)
    assert "!" not in text
    assert text == "(|(sn=b*)(sn=c*))"


def test_forced_and_schema_uses_negation(compiler):
    text = compiler.compile("sn", inclusive("b"), None, FilterSchema.AND)
    assert text.startswith("(&") and "(!" in text


class TestSpaces:
    @pytest.fixture
    def person_compiler(self):
        return RangeFilterCompiler(AlphabetSpace(PERSON_ALPHABETS, "uid"))

    def test_space_is_escaped(self, person_compiler):
        text = person_compiler.compile("sn", inclusive("de la"), inclusive("de la"))
        assert text == "(sn=de\\20la)"
        assert parse_filter(text).matches({"sn": "De La"})

    def test_trailing_space_bound(self, person_compiler):
        # ">= 'bo '" cannot include "bo" itself, values never end in a space
        node = person_compiler.build("sn", inclusive("bo "), "bp")
        assert not node.matches({"sn": "bo"})
        assert node.matches({"sn": "bo smith"})
        assert node.matches({"sn": "bob"})

    def test_double_space_never_matches(self, person_compiler):
        node = person_compiler.build("sn", inclusive("a  "), inclusive("a  "))
        assert not node.matches({"sn": "a"})
