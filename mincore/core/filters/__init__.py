"""Filter trees, range compilation and parsing."""

from .ast import And, Equals, FilterNode, Not, Or, Prefix, Present, simplify
from .compiler import RETRY_SCHEMAS, FilterSchema, RangeFilterCompiler, inclusive
from .parser import parse_filter

__all__ = [
    "And",
    "Equals",
    "FilterNode",
    "FilterSchema",
    "Not",
    "Or",
    "Prefix",
    "Present",
    "RETRY_SCHEMAS",
    "RangeFilterCompiler",
    "inclusive",
    "parse_filter",
    "simplify",
]
