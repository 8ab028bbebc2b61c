from __future__ import annotations

from pathlib import Path
from typing import Optional

from .base import CorpusStore, StoredVocabulary
from .memory import MemoryCorpusStore
from .sqlite import SQLiteCorpusStore


def open_store(path: str | Path | None = None) -> CorpusStore:
    """In-memory store when ``path`` is None, otherwise a SQLite database."""
    if path is None:
        return MemoryCorpusStore()
    return SQLiteCorpusStore(path)


__all__ = ["CorpusStore", "StoredVocabulary", "MemoryCorpusStore", "SQLiteCorpusStore", "open_store"]
