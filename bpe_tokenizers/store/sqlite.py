from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

from ..errors import DuplicateEntry
from ..tokens import Token
from .base import CorpusStore, StoredVocabulary

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS token (
    id INTEGER PRIMARY KEY,
    chars TEXT NOT NULL,
    weight INTEGER NOT NULL,
    original_weight INTEGER NOT NULL,
    is_char INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS merge (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    a_id INTEGER NOT NULL REFERENCES token(id),
    b_id INTEGER NOT NULL REFERENCES token(id),
    c_id INTEGER NOT NULL UNIQUE REFERENCES token(id)
);
CREATE TABLE IF NOT EXISTS corpus (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id INTEGER NOT NULL UNIQUE,
    codes TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class SQLiteCorpusStore(CorpusStore):
    """Durable store: tokens, merges and corpus in one SQLite database.

    Every tokenizer operation runs inside :meth:`transaction`, so a crash
    leaves the database at the last fully applied merge.
    """

    durable = True

    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        # autocommit mode; transactions are opened explicitly
        self._conn = sqlite3.connect(self.path, isolation_level=None)
        self._conn.executescript(SCHEMA)
        self._depth = 0
        logger.info("opened corpus store %s", self.path)

    # -------------------------
    # Transactions
    # -------------------------
    @contextmanager
    def transaction(self) -> Iterator[None]:
        if self._depth == 0:
            self._conn.execute("BEGIN IMMEDIATE")
        self._depth += 1
        try:
            yield
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._conn.execute("ROLLBACK")
                logger.warning("rolled back transaction on %s", self.path)
            raise
        self._depth -= 1
        if self._depth == 0:
            self._conn.execute("COMMIT")

    def close(self) -> None:
        self._conn.close()

    # -------------------------
    # Corpus entries
    # -------------------------
    def add_entry(self, entry_id: int, codes: str) -> None:
        try:
            self._conn.execute("INSERT INTO corpus (id, codes) VALUES (?, ?)", (entry_id, codes))
        except sqlite3.IntegrityError as e:
            raise DuplicateEntry(f"corpus entry {entry_id} already added") from e

    def has_entry(self, entry_id: int) -> bool:
        row = self._conn.execute("SELECT 1 FROM corpus WHERE id = ?", (entry_id,)).fetchone()
        return row is not None

    def last_entry_id(self) -> Optional[int]:
        return self._conn.execute("SELECT max(id) FROM corpus").fetchone()[0]

    def __len__(self) -> int:
        return self._conn.execute("SELECT count(*) FROM corpus").fetchone()[0]

    def entries(self) -> Iterator[Tuple[int, str]]:
        rows = self._conn.execute("SELECT id, codes FROM corpus ORDER BY seq").fetchall()
        return iter(rows)

    def get_codes(self, entry_id: int) -> str:
        row = self._conn.execute("SELECT codes FROM corpus WHERE id = ?", (entry_id,)).fetchone()
        if row is None:
            raise KeyError(f"unknown corpus entry: {entry_id}")
        return row[0]

    def set_codes(self, entry_id: int, codes: str) -> None:
        cur = self._conn.execute("UPDATE corpus SET codes = ? WHERE id = ?", (codes, entry_id))
        if cur.rowcount == 0:
            raise KeyError(f"unknown corpus entry: {entry_id}")

    def find_entries(self, fragment: str) -> List[int]:
        rows = self._conn.execute(
            "SELECT id FROM corpus WHERE instr(codes, ?) > 0 ORDER BY seq", (fragment,)
        ).fetchall()
        return [r[0] for r in rows]

    def clear_corpus(self) -> None:
        self._conn.execute("DELETE FROM corpus")

    # -------------------------
    # Vocabulary persistence
    # -------------------------
    def load_vocabulary(self) -> StoredVocabulary:
        tokens = [
            (r[0], r[1], r[2], r[3], bool(r[4]))
            for r in self._conn.execute(
                "SELECT id, chars, weight, original_weight, is_char FROM token ORDER BY id"
            )
        ]
        merges = [tuple(r) for r in self._conn.execute("SELECT a_id, b_id, c_id FROM merge ORDER BY seq")]
        row = self._conn.execute("SELECT value FROM meta WHERE key = 'sentinel'").fetchone()
        sentinel = json.loads(row[0]) if row is not None else None
        return StoredVocabulary(tokens=tokens, merges=merges, sentinel=sentinel)

    def save_tokens(self, tokens: Iterable[Token]) -> None:
        self._conn.executemany(
            "INSERT INTO token (id, chars, weight, original_weight, is_char) VALUES (?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET weight = excluded.weight, original_weight = excluded.original_weight",
            [(t.id, t.chars, t.weight, t.original_weight, int(t.is_char)) for t in tokens],
        )

    def save_merge(self, a_id: int, b_id: int, c_id: int) -> None:
        self._conn.execute("INSERT INTO merge (a_id, b_id, c_id) VALUES (?, ?, ?)", (a_id, b_id, c_id))

    def save_sentinel(self, sentinel: Optional[str]) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO meta (key, value) VALUES ('sentinel', ?)", (json.dumps(sentinel),)
        )

    def has_vocabulary(self) -> bool:
        return self._conn.execute("SELECT 1 FROM meta WHERE key = 'sentinel'").fetchone() is not None

    def reset(self) -> None:
        with self.transaction():
            self._conn.execute("DELETE FROM corpus")
            self._conn.execute("DELETE FROM merge")
            self._conn.execute("DELETE FROM token")
            self._conn.execute("DELETE FROM meta")
        logger.info("reset corpus store %s", self.path)
