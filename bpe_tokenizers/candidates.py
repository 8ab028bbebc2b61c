"""Merge-candidate selection.

Two interchangeable strategies share one contract:

* :class:`RescanIndex` recounts every adjacent pair of the whole corpus on
  each selection. Simple, always correct, O(corpus) per merge.
* :class:`IncrementalIndex` keeps pair counts alive between merges and only
  revisits the corpus entries a merged pair was last seen in.

Both count pairs with :func:`count_pairs` and pick with the same total order,
so they always agree on the merge sequence.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Set, Tuple

from . import codec
from .store.base import CorpusStore
from .tokens import TokenTable

logger = logging.getLogger(__name__)


@dataclass
class MergeCandidate:
    """Adjacent pair ``a b`` and its live occurrence count."""

    pair: str
    count: int = 0
    # entries where the pair was last seen; may hold stale ids, never misses one
    entries: Set[int] = field(default_factory=set)

    @property
    def a_code(self) -> str:
        return self.pair[0]

    @property
    def b_code(self) -> str:
        return self.pair[1]

    @property
    def a_id(self) -> int:
        return codec.id_for(self.pair[0])

    @property
    def b_id(self) -> int:
        return codec.id_for(self.pair[1])


def count_pairs(codes: str) -> Counter:
    """Count adjacent pairs left to right without overlap.

    A run ``X X X`` yields a single ``(X, X)``: the pair consumes its two
    positions and the third ``X`` can only start the next pair. This is the
    same set of occurrences ``str.replace`` rewrites.
    """

    counts: Counter = Counter()
    last_self = -1
    for i in range(1, len(codes)):
        a = codes[i - 1]
        b = codes[i]
        if a == b:
            if last_self == i - 1:
                last_self = -1
                continue
            last_self = i
        counts[a + b] += 1
    return counts


def select_best(
    counts: Iterable[Tuple[str, int]],
    table: TokenTable,
    *,
    min_weight: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Optional[Tuple[str, int]]:
    """Pick the pair to merge next.

    Highest count wins; ties go to the lowest ``a.id + b.id``, then to the
    lowest ``a.id``. Pairs whose merged text would be longer than
    ``max_length`` are ignored, and the winner is dropped when its count is
    below ``min_weight``.
    """

    best: Optional[Tuple[int, int, int]] = None
    best_pair: Optional[str] = None
    for pair, count in counts:
        if count <= 0:
            continue
        a_id = codec.id_for(pair[0])
        b_id = codec.id_for(pair[1])
        if max_length is not None and len(table[a_id].chars) + len(table[b_id].chars) > max_length:
            continue
        key = (count, -(a_id + b_id), -a_id)
        if best is None or key > best:
            best = key
            best_pair = pair
    if best is None:
        return None
    if min_weight is not None and best[0] < min_weight:
        return None
    return best_pair, best[0]


class CandidateIndex(ABC):
    """Strategy contract used by the merge engine."""

    name: str = ""

    @abstractmethod
    def add_entry(self, entry_id: int, codes: str) -> None:
        """Account for a newly ingested corpus entry."""

    @abstractmethod
    def find_best(
        self,
        store: CorpusStore,
        table: TokenTable,
        *,
        min_weight: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> Optional[MergeCandidate]: ...

    @abstractmethod
    def apply(self, store: CorpusStore, from_code: str, to_code: str) -> int:
        """Rewrite every entry containing ``from_code``; returns entries touched."""

    def reset(self) -> None:
        pass

    def rebuild(self, store: CorpusStore) -> None:
        self.reset()
        n = 0
        for entry_id, codes in store.entries():
            self.add_entry(entry_id, codes)
            n += 1
        logger.debug("rebuilt %s candidate index over %d entries", self.name, n)


class RescanIndex(CandidateIndex):
    name = "rescan"

    def add_entry(self, entry_id: int, codes: str) -> None:
        pass

    def find_best(
        self,
        store: CorpusStore,
        table: TokenTable,
        *,
        min_weight: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> Optional[MergeCandidate]:
        counts: Counter = Counter()
        for _, codes in store.entries():
            counts.update(count_pairs(codes))
        found = select_best(counts.items(), table, min_weight=min_weight, max_length=max_length)
        if found is None:
            return None
        pair, count = found
        return MergeCandidate(pair=pair, count=count)

    def apply(self, store: CorpusStore, from_code: str, to_code: str) -> int:
        touched = 0
        for entry_id in store.find_entries(from_code):
            store.set_codes(entry_id, store.get_codes(entry_id).replace(from_code, to_code))
            touched += 1
        return touched


class IncrementalIndex(CandidateIndex):
    name = "incremental"

    def __init__(self) -> None:
        self._candidates: Dict[str, MergeCandidate] = {}

    def __len__(self) -> int:
        return len(self._candidates)

    def get(self, pair: str) -> Optional[MergeCandidate]:
        return self._candidates.get(pair)

    def reset(self) -> None:
        self._candidates.clear()

    def add_entry(self, entry_id: int, codes: str) -> None:
        self._add_counts(entry_id, count_pairs(codes))

    def find_best(
        self,
        store: CorpusStore,
        table: TokenTable,
        *,
        min_weight: Optional[int] = None,
        max_length: Optional[int] = None,
    ) -> Optional[MergeCandidate]:
        found = select_best(
            ((pair, cand.count) for pair, cand in self._candidates.items()),
            table,
            min_weight=min_weight,
            max_length=max_length,
        )
        if found is None:
            return None
        return self._candidates[found[0]]

    def apply(self, store: CorpusStore, from_code: str, to_code: str) -> int:
        candidate = self._candidates.get(from_code)
        if candidate is None:
            return 0
        touched = 0
        for entry_id in sorted(candidate.entries):
            if not store.has_entry(entry_id):
                continue
            codes = store.get_codes(entry_id)
            if from_code not in codes:
                continue
            rewritten = codes.replace(from_code, to_code)
            # recount the whole entry: a local patch around each occurrence
            # would miscount self-pair runs next to the merge
            self._remove_counts(count_pairs(codes))
            self._add_counts(entry_id, count_pairs(rewritten))
            store.set_codes(entry_id, rewritten)
            touched += 1
        self._candidates.pop(from_code, None)
        return touched

    def _add_counts(self, entry_id: int, counts: Counter) -> None:
        for pair, n in counts.items():
            candidate = self._candidates.get(pair)
            if candidate is None:
                candidate = self._candidates[pair] = MergeCandidate(pair=pair)
            candidate.count += n
            candidate.entries.add(entry_id)

    def _remove_counts(self, counts: Counter) -> None:
        for pair, n in counts.items():
            candidate = self._candidates.get(pair)
            if candidate is None:
                continue
            candidate.count -= n
            if candidate.count <= 0:
                del self._candidates[pair]


STRATEGIES = {
    RescanIndex.name: RescanIndex,
    IncrementalIndex.name: IncrementalIndex,
}


def make_index(strategy: str) -> CandidateIndex:
    try:
        return STRATEGIES[strategy]()
    except KeyError:
        raise ValueError(f"Unknown strategy={strategy}. Use {'|'.join(STRATEGIES)}.") from None
