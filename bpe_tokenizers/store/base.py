from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

from ..tokens import Token


@dataclass
class StoredVocabulary:
    """Vocabulary rows as persisted by a durable store."""

    tokens: List[Tuple[int, str, int, int, bool]] = field(default_factory=list)  # id, chars, weight, original_weight, is_char
    merges: List[Tuple[int, int, int]] = field(default_factory=list)  # a_id, b_id, c_id
    sentinel: Optional[str] = None


class CorpusStore(ABC):
    """Ordered collection of corpus entries, each a string of token codes.

    Entries are addressed by their caller-supplied integer id. Durable
    backends also persist the vocabulary so that a reopened store carries the
    exact state of its last committed transaction.
    """

    durable: bool = False

    # -------------------------
    # Corpus entries
    # -------------------------
    @abstractmethod
    def add_entry(self, entry_id: int, codes: str) -> None:
        """Insert a new entry; raises ``DuplicateEntry`` for a known id."""

    @abstractmethod
    def has_entry(self, entry_id: int) -> bool: ...

    @abstractmethod
    def last_entry_id(self) -> Optional[int]: ...

    @abstractmethod
    def __len__(self) -> int: ...

    @abstractmethod
    def entries(self) -> Iterator[Tuple[int, str]]:
        """Yield ``(entry_id, codes)`` in insertion order."""

    @abstractmethod
    def get_codes(self, entry_id: int) -> str: ...

    @abstractmethod
    def set_codes(self, entry_id: int, codes: str) -> None: ...

    @abstractmethod
    def find_entries(self, fragment: str) -> List[int]:
        """Ids of the entries whose codes contain ``fragment``."""

    @abstractmethod
    def clear_corpus(self) -> None: ...

    # -------------------------
    # Vocabulary persistence
    # -------------------------
    def load_vocabulary(self) -> StoredVocabulary:
        return StoredVocabulary()

    def save_tokens(self, tokens: Iterable[Token]) -> None:
        pass

    def save_merge(self, a_id: int, b_id: int, c_id: int) -> None:
        pass

    def save_sentinel(self, sentinel: Optional[str]) -> None:
        pass

    def has_vocabulary(self) -> bool:
        return False

    def reset(self) -> None:
        """Delete every token, merge and corpus entry."""
        self.clear_corpus()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        yield

    def close(self) -> None:
        pass
