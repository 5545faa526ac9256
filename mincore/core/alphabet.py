"""Ordered attribute alphabets and lexicographic successor arithmetic.

Every searchable attribute owns an alphabet: the ordered set of characters its
values may contain. The alphabet fixes the total order used for range
arithmetic and the successor operations the crawlers rely on:

* ``next`` turns a prefix into the smallest word that no longer starts with it,
  which is how a begins-with filter becomes an exclusive upper bound.
* ``after`` yields the immediate successor of a word, used to step over a
  single value once it has been handled on its own.

Alphabets must be listed in ascending code point order so that the order the
local store sorts by and the order the remote filter compiler reasons about
are the same.
"""

import bisect
from dataclasses import dataclass, field

# Placeholder appended per dropped position by a chainable ``next``.
CHAIN_MARKER = "#"

# Length of the "larger than any real word" sentinel.
SENTINEL_LENGTH = 50


@dataclass(frozen=True)
class AttributeAlphabet:
    """Ordered, deduplicated character domain for one attribute."""

    name: str
    characters: str
    _index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.characters:
            raise ValueError(f"Alphabet for '{self.name}' cannot be empty")
        if any(a >= b for a, b in zip(self.characters, self.characters[1:])):
            raise ValueError(
                f"Alphabet for '{self.name}' must be strictly ascending "
                f"by code point: {self.characters!r}"
            )
        object.__setattr__(
            self, "_index", {c: i for i, c in enumerate(self.characters)}
        )

    def __len__(self) -> int:
        return len(self.characters)

    def __iter__(self):
        return iter(self.characters)

    def __contains__(self, char: object) -> bool:
        return char in self._index

    @property
    def minimum(self) -> str:
        return self.characters[0]

    @property
    def maximum(self) -> str:
        return self.characters[-1]

    @property
    def sentinel(self) -> str:
        """A word larger than any word that can really occur."""
        return self.maximum * SENTINEL_LENGTH

    def index(self, char: str) -> int:
        """Position of ``char`` in the alphabet.

        Raises:
            ValueError: If the character is not part of the alphabet
        """
        try:
            return self._index[char]
        except KeyError:
            raise ValueError(
                f"Character {char!r} is not in the alphabet of '{self.name}'"
            ) from None

    def successor(self, char: str) -> str | None:
        """Smallest alphabet character strictly greater than ``char``."""
        pos = bisect.bisect_right(self.characters, char)
        if pos >= len(self.characters):
            return None
        return self.characters[pos]

    def letters_between(
        self, low: str | None, high: str | None, include_low: bool = False
    ) -> str:
        """Alphabet characters in ``(low, high)``, optionally including ``low``.

        ``None`` leaves the corresponding side open.
        """
        chars = self.characters
        if low is None:
            start = 0
        elif include_low:
            start = bisect.bisect_left(chars, low)
        else:
            start = bisect.bisect_right(chars, low)
        stop = len(chars) if high is None else bisect.bisect_left(chars, high)
        return chars[start:stop]


class AlphabetSpace:
    """Registry of attribute alphabets plus the successor operations."""

    def __init__(self, alphabets: dict[str, str], uniqueness_attribute: str):
        """Initialize the alphabet space.

        Args:
            alphabets: Mapping of attribute name to its ordered characters
            uniqueness_attribute: Attribute that is unique across all entries
        """
        if uniqueness_attribute not in alphabets:
            raise ValueError(
                f"Uniqueness attribute '{uniqueness_attribute}' has no alphabet"
            )
        self._alphabets = {
            name: AttributeAlphabet(name, chars) for name, chars in alphabets.items()
        }
        self._uniqueness_attribute = uniqueness_attribute

    @property
    def uniqueness_attribute(self) -> str:
        return self._uniqueness_attribute

    @property
    def attributes(self) -> list[str]:
        return list(self._alphabets)

    def alphabet(self, attribute: str) -> AttributeAlphabet:
        try:
            return self._alphabets[attribute]
        except KeyError:
            raise KeyError(f"No alphabet configured for attribute '{attribute}'") from None

    def minimum(self, attribute: str) -> str:
        """Lowest word of the attribute's namespace."""
        return self.alphabet(attribute).minimum

    def next(self, word: str, attribute: str, chainable: bool = False) -> str:
        """Return the lexicographically next prefix after ``word``.

        Trailing maximal characters are dropped and the first bumpable one is
        raised to its successor, so every word starting with ``word`` sorts
        below the result. With ``chainable`` a marker is appended per dropped
        position; feeding that result back in resolves the first marker to the
        alphabet minimum instead of scanning again.
        """
        alphabet = self.alphabet(attribute)
        word = word.lower()

        if CHAIN_MARKER in word:
            result = word.replace(CHAIN_MARKER, alphabet.minimum, 1)
        else:
            result = None
            dropped = 0
            stem = word
            while stem:
                bumped = alphabet.successor(stem[-1])
                if bumped is None:
                    stem = stem[:-1]
                    dropped += 1
                    continue
                result = stem[:-1] + bumped + CHAIN_MARKER * dropped
                break

            if result is None:
                # Nothing bumpable, grow the word but never past the sentinel
                result = min(word + alphabet.minimum, alphabet.sentinel)

        if not chainable:
            result = result.replace(CHAIN_MARKER, "")

        if result.endswith(" "):
            result += alphabet.characters[1] if len(alphabet) > 1 else ""
        return result

    def after(self, word: str, attribute: str) -> str:
        """Return the immediate successor of ``word``.

        No stored value lies strictly between ``word`` and the result, so
        ``[word, after(word))`` selects exactly the entries equal to ``word``.
        """
        alphabet = self.alphabet(attribute)
        word = word.lower()
        if alphabet.minimum == " " and len(alphabet) > 1:
            return word + " " + alphabet.characters[1]
        return word + alphabet.minimum

    def normalize(self, value: str | None) -> str | None:
        """Canonical stored form of an attribute value."""
        if value is None:
            return None
        return value.lower().rstrip(" ")
