from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Tuple

from ..errors import DuplicateEntry
from .base import CorpusStore


class MemoryCorpusStore(CorpusStore):
    """Corpus held in a plain dict; the vocabulary lives only in the tokenizer."""

    def __init__(self) -> None:
        self._entries: Dict[int, str] = {}
        self._last_id: Optional[int] = None

    def add_entry(self, entry_id: int, codes: str) -> None:
        if entry_id in self._entries:
            raise DuplicateEntry(f"corpus entry {entry_id} already added")
        self._entries[entry_id] = codes
        if self._last_id is None or entry_id > self._last_id:
            self._last_id = entry_id

    def has_entry(self, entry_id: int) -> bool:
        return entry_id in self._entries

    def last_entry_id(self) -> Optional[int]:
        return self._last_id

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> Iterator[Tuple[int, str]]:
        return iter(list(self._entries.items()))

    def get_codes(self, entry_id: int) -> str:
        return self._entries[entry_id]

    def set_codes(self, entry_id: int, codes: str) -> None:
        if entry_id not in self._entries:
            raise KeyError(f"unknown corpus entry: {entry_id}")
        self._entries[entry_id] = codes

    def find_entries(self, fragment: str) -> List[int]:
        return [entry_id for entry_id, codes in self._entries.items() if fragment in codes]

    def clear_corpus(self) -> None:
        self._entries.clear()
        self._last_id = None
