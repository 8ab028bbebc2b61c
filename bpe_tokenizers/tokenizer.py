from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from . import codec
from .candidates import make_index
from .config import TokenizerConfig
from .errors import (
    DuplicateEntry,
    InvalidSnapshotFormat,
    MissingTokenIdentity,
    UnencodableText,
    UnknownSymbol,
)
from .io.data import iter_entries
from .merge_log import MergeLog, parse_record
from .snapshot import build_snapshot, parse_snapshot, replay
from .store import CorpusStore, open_store
from .tokens import Merge, Token, TokenTable
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)


class BPETokenizer:
    """Byte-pair-encoding trainer and codec.

    Training ingests raw text with :meth:`add_to_corpus`, then repeatedly
    merges the most frequent adjacent token pair (:meth:`merge_until`). The
    ordered merges are the encoding rules: :meth:`encode_to_code` rewrites a
    string of character codes merge by merge, exactly as the corpus was
    rewritten during training.

    Resuming
    --------
    * ``to_json`` / ``from_json`` carry the whole vocabulary; re-attach the raw
      corpus with :meth:`restore_to_corpus` to keep merging.
    * A :class:`~bpe_tokenizers.merge_log.MergeLog` records every merge as it
      is applied; replaying it over the same corpus reproduces the run.
    * A SQLite store persists tokens, merges and corpus in one transaction per
      operation; reopening it picks up where the last commit left off.
    """

    def __init__(
        self,
        config: Optional[TokenizerConfig] = None,
        *,
        store: Optional[CorpusStore] = None,
        merge_log: Union[MergeLog, str, Path, None] = None,
        **overrides: Any,
    ) -> None:
        cfg = config or TokenizerConfig()
        if overrides:
            cfg = TokenizerConfig.from_dict({**cfg.to_dict(), **overrides})
        self.cfg = cfg
        self.store = store if store is not None else open_store(cfg.store_path)
        if merge_log is None and cfg.merge_log_path is not None:
            merge_log = cfg.merge_log_path
        if merge_log is not None and not isinstance(merge_log, MergeLog):
            merge_log = MergeLog(merge_log)
        self.merge_log: Optional[MergeLog] = merge_log

        self.sentinel: Optional[str] = cfg.sentinel
        self._table = TokenTable()
        self._merges: List[Merge] = []
        self._vector = VectorIndex(self._table)
        self._index = make_index(cfg.strategy)
        self._depth = 0

        if self.store.has_vocabulary():
            self._load_from_store()
            if self.sentinel != cfg.sentinel:
                logger.warning(
                    "store was built with sentinel %r, ignoring configured %r", self.sentinel, cfg.sentinel
                )
        else:
            with self._atomic():
                if self.sentinel is not None:
                    self._table.create(self.sentinel, 0, is_char=True)
                self.store.save_sentinel(self.sentinel)
                self.store.save_tokens(self._table)

    # -------------------------
    # Vocabulary views
    # -------------------------
    @property
    def token_table(self) -> TokenTable:
        return self._table

    @property
    def merges(self) -> List[Merge]:
        return list(self._merges)

    @property
    def merge_codes(self) -> List[Tuple[str, str]]:
        return [(m.from_code, m.to_code) for m in self._merges]

    @property
    def vector_size(self) -> int:
        return len(self._vector)

    def vector_vocab(self) -> Dict[str, int]:
        """token code -> vector index, for every active token."""
        return {self._table[token_id].code: index for token_id, index in self._vector.mapping().items()}

    # -------------------------
    # Corpus
    # -------------------------
    def add_to_corpus(self, text: str, entry_id: Optional[int] = None) -> int:
        """Ingest ``text`` as a new corpus entry and count its characters.

        Returns the entry id (``last_entry_id() + 1`` when not given).
        """

        _check_text(text)
        entry_id = self._claim_entry_id(entry_id)
        with self._atomic():
            touched: Dict[int, Token] = {}
            codes: List[str] = []
            for char in self._wrap(text):
                token = self._table.by_char(char)
                if token is None:
                    token = self._table.create(char, 1, is_char=True)
                    self._vector.extend(token)
                else:
                    if token.weight == 0:
                        self._vector.invalidate()
                    token.weight += 1
                    token.original_weight += 1
                touched[token.id] = token
                codes.append(token.code)
            content = "".join(codes)
            self.store.add_entry(entry_id, content)
            self._index.add_entry(entry_id, content)
            self.store.save_tokens(touched.values())
        return entry_id

    def restore_to_corpus(self, text: str, entry_id: Optional[int] = None) -> int:
        """Re-attach ``text`` encoded with the current merges; weights are untouched.

        Used after :meth:`from_json` to keep merging on the same corpus.
        """

        _check_text(text)
        entry_id = self._claim_entry_id(entry_id)
        content = self.encode_to_code(self._wrap(text))
        with self._atomic():
            self.store.add_entry(entry_id, content)
            self._index.add_entry(entry_id, content)
        return entry_id

    def add_corpus(self, texts: Iterable[str]) -> List[int]:
        with self._atomic():
            return [self.add_to_corpus(t) for t in texts]

    def restore_corpus(self, texts: Iterable[str]) -> List[int]:
        with self._atomic():
            return [self.restore_to_corpus(t) for t in texts]

    def add_corpus_file(
        self,
        path: str | Path,
        fmt: str = "txt",
        text_key: str = "text",
        max_samples: Optional[int] = None,
        *,
        restore: bool = False,
    ) -> int:
        """Ingest a corpus file one entry per transaction; returns entries added.

        Entry ids are record positions (see :func:`~bpe_tokenizers.io.iter_entries`).
        Records up to ``last_entry_id()`` are taken as already present, so
        calling this again on a reopened SQLite store continues an interrupted
        ingestion. ``restore=True`` re-attaches the records with
        :meth:`restore_to_corpus` instead, e.g. after :meth:`from_json`.
        """

        last = self.store.last_entry_id() or 0
        add = self.restore_to_corpus if restore else self.add_to_corpus
        added = skipped = 0
        for entry_id, text in iter_entries(path, fmt, text_key, max_samples):
            if entry_id <= last:
                skipped += 1
                continue
            add(text, entry_id)
            added += 1
        logger.info("added %d entries from %s, %d already present", added, path, skipped)
        return added

    def has_entry(self, entry_id: int) -> bool:
        return self.store.has_entry(entry_id)

    def last_entry_id(self) -> Optional[int]:
        return self.store.last_entry_id()

    @property
    def corpus_size(self) -> int:
        return len(self.store)

    def clear_corpus(self) -> None:
        """Drop every corpus entry; the vocabulary and merges are kept."""
        with self._atomic():
            self.store.clear_corpus()
            self._index.reset()

    # -------------------------
    # Merging
    # -------------------------
    def find_next_merge(self, min_weight: Optional[int] = None, max_length: Optional[int] = None) -> Optional[Merge]:
        """Best merge for the current corpus, or None when nothing qualifies.

        The composite token is not registered yet; it carries the next free id
        and the pair count as its weight. Pass it to :meth:`apply_merge`.
        """

        if min_weight is None:
            min_weight = self.cfg.min_weight
        if max_length is None:
            max_length = self.cfg.max_length
        candidate = self._index.find_best(self.store, self._table, min_weight=min_weight, max_length=max_length)
        if candidate is None:
            return None
        a = self._table[candidate.a_id]
        b = self._table[candidate.b_id]
        c = self._table.prospective(a.chars + b.chars, candidate.count)
        return Merge(a, b, c)

    def apply_merge(self, merge: Merge) -> None:
        self._apply(merge, log=True)

    def merge_until(
        self,
        min_weight: Optional[int] = None,
        max_length: Optional[int] = None,
        max_iterations: Optional[int] = None,
    ) -> int:
        """Merge until no candidate qualifies or ``max_iterations`` is reached.

        Returns the number of merges applied.
        """

        if max_iterations is None:
            max_iterations = self.cfg.max_iterations
        n = 0
        while max_iterations is None or n < max_iterations:
            merge = self.find_next_merge(min_weight=min_weight, max_length=max_length)
            if merge is None:
                break
            self.apply_merge(merge)
            n += 1
        logger.info(
            "applied %d merges; %d tokens, %d active, %d merges total",
            n,
            len(self._table),
            self._table.active_count(),
            len(self._merges),
        )
        return n

    def restore_merge(self, record: Sequence) -> Merge:
        """Re-apply a merge log record ``[a_code, b_code, c_weight]``.

        Works with or without a corpus: the recorded weight is enough to keep
        token weights exact. The record is not appended to the merge log.
        """

        a_code, b_code, c_weight = parse_record(record)
        a = self._table.by_code(a_code)
        b = self._table.by_code(b_code)
        c = self._table.prospective(a.chars + b.chars, c_weight)
        merge = Merge(a, b, c)
        self._apply(merge, log=False)
        return merge

    def _apply(self, merge: Merge, *, log: bool) -> None:
        c = merge.c
        if c.id is None or c.id != self._table.next_id or c.code != codec.code_for(c.id):
            raise MissingTokenIdentity(
                f"composite token {c.chars!r} must carry the next free id {self._table.next_id}, got {c.id}"
            )
        a = self._table.by_code(merge.a.code)
        b = self._table.by_code(merge.b.code)
        merge = Merge(a, b, c)

        with self._atomic():
            emptied = self._table.merge(a, b, c)
            if emptied:
                self._vector.invalidate()
            else:
                self._vector.extend(c)
            touched = self._index.apply(self.store, merge.from_code, merge.to_code)
            self._merges.append(merge)
            self.store.save_tokens([a, c] if a is b else [a, b, c])
            self.store.save_merge(a.id, b.id, c.id)

        if log and self.merge_log is not None:
            self.merge_log.append(merge.compact())
        logger.debug(
            "merge #%d: %r + %r -> %r (id=%d, weight=%d, %d entries rewritten)",
            len(self._merges),
            a.chars,
            b.chars,
            c.chars,
            c.id,
            c.weight,
            touched,
        )

    # -------------------------
    # Encoding / decoding
    # -------------------------
    def compact_vector_index(self) -> None:
        self._vector.compact()

    def encode_to_code(self, text: str) -> str:
        codes: List[str] = []
        for char in text:
            token = self._table.by_char(char)
            if token is None:
                raise UnknownSymbol(f"unknown symbol: {char!r}")
            codes.append(token.code)
        content = "".join(codes)
        for m in self._merges:
            content = content.replace(m.from_code, m.to_code)
        return content

    def encode_to_tokens(self, text: str) -> List[Token]:
        return [self._table.by_code(code) for code in self.encode_to_code(text)]

    def encode_to_vector(self, text: str) -> List[int]:
        return [self._vector.to_vector(codec.id_for(code)) for code in self.encode_to_code(text)]

    def decode_tokens(self, tokens: Iterable[Token]) -> str:
        return "".join(t.chars for t in tokens)

    def decode_vector(self, vector: Iterable[int]) -> str:
        return "".join(self._table[self._vector.from_vector(i)].chars for i in vector)

    def decode_code(self, content: str) -> str:
        return "".join(self._table.by_code(code).chars for code in content)

    # -------------------------
    # Snapshots
    # -------------------------
    def to_json(self) -> Dict[str, Any]:
        return build_snapshot(self._table, self._merges, self.sentinel)

    def from_json(self, doc: Union[Dict[str, Any], str, bytes]) -> None:
        """Replace the vocabulary with a snapshot (version 2, or legacy 1).

        The document is fully validated before anything changes. The corpus is
        cleared; re-attach it with :meth:`restore_to_corpus`.
        """

        if isinstance(doc, (str, bytes)):
            try:
                doc = json.loads(doc)
            except json.JSONDecodeError as e:
                raise InvalidSnapshotFormat(f"snapshot is not valid JSON: {e}") from e
        plan = parse_snapshot(doc)
        table, merges = replay(plan)
        with self._atomic():
            self.store.reset()
            self.store.save_sentinel(plan.sentinel)
            self.store.save_tokens(table)
            for m in merges:
                self.store.save_merge(m.a.id, m.b.id, m.c.id)
            self._install(table, merges, plan.sentinel)
        logger.info("imported snapshot: %d tokens, %d merges", len(table), len(merges))

    def save(self, path: str | Path) -> None:
        path = Path(path)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_json(), f, ensure_ascii=False)

    @classmethod
    def load(cls, path: str | Path, config: Optional[TokenizerConfig] = None, **kwargs: Any) -> "BPETokenizer":
        with open(path, "r", encoding="utf-8") as f:
            try:
                doc = json.load(f)
            except json.JSONDecodeError as e:
                raise InvalidSnapshotFormat(f"{path}: {e}") from e
        tok = cls(config, **kwargs)
        tok.from_json(doc)
        return tok

    def close(self) -> None:
        self.store.close()

    # -------------------------
    # Internals
    # -------------------------
    def _wrap(self, text: str) -> str:
        if self.sentinel is None:
            return text
        return self.sentinel + text + self.sentinel

    def _claim_entry_id(self, entry_id: Optional[int]) -> int:
        if entry_id is None:
            last = self.store.last_entry_id()
            return 1 if last is None else last + 1
        if self.store.has_entry(entry_id):
            raise DuplicateEntry(f"corpus entry {entry_id} already added")
        return entry_id

    def _install(self, table: TokenTable, merges: List[Merge], sentinel: Optional[str]) -> None:
        self._table = table
        self._merges = list(merges)
        self.sentinel = sentinel
        self._vector.bind(table)
        self._index.rebuild(self.store)

    def _load_from_store(self) -> None:
        vocab = self.store.load_vocabulary()
        table = TokenTable()
        for token_id, chars, weight, original_weight, is_char in vocab.tokens:
            token = table.create(chars, weight, original_weight, is_char=is_char)
            if token.id != token_id:
                raise InvalidSnapshotFormat(f"stored token ids are not dense: expected {token.id}, got {token_id}")
        merges = [Merge(table[a], table[b], table[c]) for a, b, c in vocab.merges]
        self._install(table, merges, vocab.sentinel)
        logger.info("loaded %d tokens, %d merges and %d corpus entries from store", len(table), len(merges), len(self.store))

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        self._depth += 1
        try:
            with self.store.transaction():
                yield
        except BaseException:
            # the store rolled back; drop in-memory changes made since
            if self._depth == 1 and self.store.durable:
                logger.warning("operation failed, reloading vocabulary from store")
                self._load_from_store()
            raise
        finally:
            self._depth -= 1


def _check_text(text: str) -> None:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise UnencodableText(
            f"lone surrogate {text[e.start]!r} at position {e.start} has no UTF-8 form"
        ) from None
