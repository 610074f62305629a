"""
Domain model for lookupnet.

The network computes a two-entry associative lookup:

    A=1 B=2 A=___   ->  1
    A=1 B=2 B=___   ->  2
    A=1 B=2 C=___   ->  don't care

Tokens are fed to the network as their raw integer token numbers, not as
one-hot or embedded vectors. The whole gadget library depends on that:
equality is tested by subtracting token numbers, and the looked-up value is
carried through the network as its own magnitude.

Token numbering:
    values  1..V       (short form "1", long form "1 ")
    keys    V+1..V+K   (short form "A", long form "A=")

Output index of a token is ``number - 1``, and the output layer has
``2 * max(K, V)`` slots.

PRECONDITION: every token number is non-negative. The depth-padding identity
gadget is ``relu(x)`` and only forwards non-negative values losslessly; a
vocabulary with negative token numbers would be silently corrupted by extra
layers.
"""

import string
from dataclasses import dataclass
from enum import Enum
from itertools import product
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import ConfigurationError, DomainViolation


class TokenClass(Enum):
    KEY = "key"
    VALUE = "value"


@dataclass(frozen=True)
class Token:
    """A vocabulary element with a stable integer token number."""
    number: int
    token_class: TokenClass
    short: str

    @property
    def index(self) -> int:
        """Position of this token in the output layer."""
        return self.number - 1

    @property
    def text(self) -> str:
        """Long form as it appears in an input string."""
        if self.token_class == TokenClass.KEY:
            return self.short + "="
        return self.short + " "

    def __repr__(self) -> str:
        return f"{self.short}#{self.number}"


class InputLayout:
    """Slot indices of the fixed input record."""
    KEY1 = 0
    VALUE1 = 1
    KEY2 = 2
    VALUE2 = 3
    QUERY = 4

    SIZE = 5

    @classmethod
    def slots(cls) -> Dict[str, int]:
        return {
            'key1': cls.KEY1,
            'value1': cls.VALUE1,
            'key2': cls.KEY2,
            'value2': cls.VALUE2,
            'query': cls.QUERY,
        }


INPUT_SIZE = InputLayout.SIZE


class Vocabulary:
    """
    A vocabulary of K key tokens (letters) and V value tokens (numbers).

    Args:
        num_keys: Number of key tokens, 1..26
        num_values: Number of value tokens, >= 1. Defaults to num_keys,
                    which is the square vocabulary the teaching tool uses.
    """

    def __init__(self, num_keys: int, num_values: Optional[int] = None):
        if num_values is None:
            num_values = num_keys
        if num_keys < 1 or num_values < 1:
            raise ConfigurationError(
                f"Vocabulary needs at least one key and one value, got "
                f"{num_keys} keys and {num_values} values")
        if num_keys > len(string.ascii_uppercase):
            raise ConfigurationError(
                f"At most {len(string.ascii_uppercase)} key tokens are "
                f"supported, got {num_keys}")

        self.num_keys = num_keys
        self.num_values = num_values

        self.value_tokens: List[Token] = [
            Token(i, TokenClass.VALUE, str(i)) for i in range(1, num_values + 1)
        ]
        self.key_tokens: List[Token] = [
            Token(num_values + 1 + i, TokenClass.KEY, string.ascii_uppercase[i])
            for i in range(num_keys)
        ]
        self.tokens: List[Token] = self.value_tokens + self.key_tokens
        self._by_number = {t.number: t for t in self.tokens}
        self._by_text = {t.text: t for t in self.tokens}
        self._by_short = {t.short: t for t in self.tokens}

    @classmethod
    def reference(cls) -> 'Vocabulary':
        """Keys A, B, C and values 1, 2, 3."""
        return cls(3, 3)

    @property
    def max_value(self) -> int:
        """Largest token number a value can carry through the network."""
        return self.num_values

    @property
    def output_size(self) -> int:
        return 2 * max(self.num_keys, self.num_values)

    def token(self, number: int) -> Token:
        if number not in self._by_number:
            raise KeyError(f"No token with number {number}")
        return self._by_number[number]

    def by_short(self, short: str) -> Token:
        return self._by_short[short]

    def is_key(self, number: int) -> bool:
        return number in self._by_number and self._by_number[number].token_class == TokenClass.KEY

    def is_value(self, number: int) -> bool:
        return number in self._by_number and self._by_number[number].token_class == TokenClass.VALUE

    def token_string(self, number: int) -> str:
        return self.token(number).text

    def parse(self, text: str) -> Optional[List[int]]:
        """
        Tokenize an input string such as ``"A=1 B=2 C="``.

        Matches the longest token at each position. Returns the token
        numbers, or None when the text contains anything that is not a
        token or does not hold exactly INPUT_SIZE tokens.
        """
        candidates = sorted(self._by_text, key=len, reverse=True)
        numbers = []
        i = 0
        while i < len(text):
            for candidate in candidates:
                if text.startswith(candidate, i):
                    numbers.append(self._by_text[candidate].number)
                    i += len(candidate)
                    break
            else:
                return None
        return numbers if len(numbers) == INPUT_SIZE else None

    def __eq__(self, other) -> bool:
        if not isinstance(other, Vocabulary):
            return NotImplemented
        return (self.num_keys, self.num_values) == (other.num_keys, other.num_values)

    def __hash__(self) -> int:
        return hash((self.num_keys, self.num_values))

    def __repr__(self) -> str:
        return f"Vocabulary(keys={self.num_keys}, values={self.num_values})"


@dataclass(frozen=True)
class LookupRecord:
    """One network input: two associations plus a query key."""
    key1: int
    value1: int
    key2: int
    value2: int
    query: int

    @classmethod
    def from_list(cls, numbers: List[int]) -> 'LookupRecord':
        if len(numbers) != INPUT_SIZE:
            raise DomainViolation(f"Expected {INPUT_SIZE} tokens, got {len(numbers)}")
        return cls(*numbers)

    @classmethod
    def from_string(cls, text: str, vocabulary: Vocabulary) -> 'LookupRecord':
        """Parse ``"A=1 B=2 A="`` into a record."""
        numbers = vocabulary.parse(text)
        if numbers is None:
            raise DomainViolation(f"Cannot parse lookup record from {text!r}")
        return cls.from_list(numbers)

    @property
    def associations(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        return (self.key1, self.value1), (self.key2, self.value2)

    def expected(self) -> Optional[int]:
        """
        The symbolic lookup function.

        Returns value1 if the query matches key1, value2 if it matches key2,
        and None ("don't care") if it matches neither.
        """
        if self.query == self.key1:
            return self.value1
        if self.query == self.key2:
            return self.value2
        return None

    def validate(self, vocabulary: Vocabulary) -> None:
        """Raise DomainViolation if the record is outside the lookup domain."""
        for name in ('key1', 'key2', 'query'):
            if not vocabulary.is_key(getattr(self, name)):
                raise DomainViolation(f"{name}={getattr(self, name)} is not a key token")
        for name in ('value1', 'value2'):
            if not vocabulary.is_value(getattr(self, name)):
                raise DomainViolation(f"{name}={getattr(self, name)} is not a value token")
        if self.key1 == self.key2:
            raise DomainViolation("key1 and key2 must differ")

    def to_list(self) -> List[int]:
        return [self.key1, self.value1, self.key2, self.value2, self.query]

    def format(self, vocabulary: Vocabulary) -> str:
        return "".join(vocabulary.token_string(n) for n in self.to_list())


def enumerate_records(vocabulary: Vocabulary,
                      distinct_values: bool = False) -> Iterator[LookupRecord]:
    """
    Yield every record of the lookup domain.

    Args:
        vocabulary: Vocabulary to draw tokens from
        distinct_values: Also require value1 != value2, as the teaching
                         tool's data generator does
    """
    keys = [t.number for t in vocabulary.key_tokens]
    values = [t.number for t in vocabulary.value_tokens]
    for key1, value1, key2, value2, query in product(keys, values, keys, values, keys):
        if key1 == key2:
            continue
        if distinct_values and value1 == value2:
            continue
        yield LookupRecord(key1, value1, key2, value2, query)
