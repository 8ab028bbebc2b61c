from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from . import codec
from .errors import UnknownTokenCode


@dataclass
class Token:
    """A vocabulary entry.

    ``weight`` is the number of occurrences not yet absorbed into a larger
    token; ``original_weight`` is the count recorded when the token was created
    (grown by ingestion for character tokens, fixed for merged tokens).
    """

    chars: str
    weight: int
    original_weight: int
    id: Optional[int] = None
    code: str = ""
    is_char: bool = False

    def to_row(self) -> Tuple[str, int, int]:
        return (self.chars, self.weight, self.original_weight)


class Merge(NamedTuple):
    """``a + b -> c``, e.g. ``"app" + "le" -> "apple"``."""

    a: Token
    b: Token
    c: Token

    @property
    def from_code(self) -> str:
        return self.a.code + self.b.code

    @property
    def to_code(self) -> str:
        return self.c.code

    def compact(self) -> Tuple[str, str, int]:
        """Merge log form: enough to replay the merge without a corpus scan."""
        return (self.a.code, self.b.code, self.c.original_weight)


class TokenTable:
    """Append-only, index-stable token arena.

    Ids are dense and never reused; a token whose weight drops to zero keeps
    its slot forever so that codes stored anywhere stay resolvable.
    """

    def __init__(self) -> None:
        self._tokens: List[Token] = []
        self._by_code: Dict[str, Token] = {}
        self._by_char: Dict[str, Token] = {}

    def __len__(self) -> int:
        return len(self._tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(self._tokens)

    def __getitem__(self, token_id: int) -> Token:
        return self._tokens[token_id]

    @property
    def next_id(self) -> int:
        return len(self._tokens)

    @property
    def char_count(self) -> int:
        return len(self._by_char)

    def create(
        self,
        chars: str,
        weight: int,
        original_weight: Optional[int] = None,
        *,
        is_char: bool = False,
    ) -> Token:
        token_id = self.next_id
        token = Token(
            chars=chars,
            weight=weight,
            original_weight=weight if original_weight is None else original_weight,
            id=token_id,
            code=codec.code_for(token_id),
            is_char=is_char,
        )
        self._tokens.append(token)
        self._by_code[token.code] = token
        if is_char:
            self._by_char[chars] = token
        return token

    def prospective(self, chars: str, weight: int) -> Token:
        """A token that would be created next, without registering it."""
        token_id = self.next_id
        return Token(
            chars=chars,
            weight=weight,
            original_weight=weight,
            id=token_id,
            code=codec.code_for(token_id),
        )

    def adopt(self, token: Token) -> Token:
        """Register a prospective token (built by :meth:`prospective`)."""
        self._tokens.append(token)
        self._by_code[token.code] = token
        return token

    def merge(self, a: Token, b: Token, c: Token) -> bool:
        """Register ``c`` and take its occurrences out of ``a`` and ``b``.

        Every occurrence of ``c`` consumed one ``a`` and one ``b``; for a
        self-pair both are the same record, which loses ``2 * c.weight`` in a
        single update. Returns True when ``a`` or ``b`` dropped to zero weight.
        """

        self.adopt(c)
        if a is b:
            a.weight -= 2 * c.weight
        else:
            a.weight -= c.weight
            b.weight -= c.weight
        return a.weight <= 0 or b.weight <= 0

    def by_code(self, code: str) -> Token:
        token = self._by_code.get(code)
        if token is None:
            raise UnknownTokenCode(f"unknown token code: {code!r}")
        return token

    def get_code(self, code: str) -> Optional[Token]:
        return self._by_code.get(code)

    def by_char(self, char: str) -> Optional[Token]:
        return self._by_char.get(char)

    def has_char(self, char: str) -> bool:
        return char in self._by_char

    def active_count(self) -> int:
        return sum(1 for t in self._tokens if t.weight > 0)
