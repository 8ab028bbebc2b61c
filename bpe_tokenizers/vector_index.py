from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .errors import EmptyVocabulary, UnknownVectorIndex
from .tokens import Token, TokenTable

logger = logging.getLogger(__name__)


class VectorIndex:
    """Dense renumbering of the active (``weight > 0``) tokens.

    The cached maps stay valid as long as no token crosses the zero-weight
    boundary. A freshly created active token always has the highest id, so it
    is appended instead of forcing a recompaction.
    """

    def __init__(self, table: TokenTable) -> None:
        self._table = table
        self._to_vector: Optional[Dict[int, int]] = None
        self._from_vector: Optional[List[int]] = None

    @property
    def is_valid(self) -> bool:
        return self._to_vector is not None

    def bind(self, table: TokenTable) -> None:
        self._table = table
        self.invalidate()

    def invalidate(self) -> None:
        self._to_vector = None
        self._from_vector = None

    def compact(self) -> None:
        if len(self._table) == 0:
            raise EmptyVocabulary("token table is empty, add content to the corpus first")
        to_vector: Dict[int, int] = {}
        from_vector: List[int] = []
        for token in self._table:
            if token.weight > 0:
                to_vector[token.id] = len(from_vector)
                from_vector.append(token.id)
        self._to_vector = to_vector
        self._from_vector = from_vector
        logger.debug("compacted vector index: %d of %d tokens active", len(from_vector), len(self._table))

    def extend(self, token: Token) -> None:
        if self._to_vector is None or token.weight <= 0:
            return
        self._to_vector[token.id] = len(self._from_vector)
        self._from_vector.append(token.id)

    def __len__(self) -> int:
        self._ensure()
        return len(self._from_vector)

    def to_vector(self, token_id: int) -> int:
        self._ensure()
        index = self._to_vector.get(token_id)
        if index is None:
            raise UnknownVectorIndex(f"token id {token_id} has zero weight and no vector index")
        return index

    def from_vector(self, vector_index: int) -> int:
        self._ensure()
        if not 0 <= vector_index < len(self._from_vector):
            raise UnknownVectorIndex(f"unknown vector index: {vector_index}")
        return self._from_vector[vector_index]

    def mapping(self) -> Dict[int, int]:
        """token id -> vector index (copy)."""
        self._ensure()
        return dict(self._to_vector)

    def _ensure(self) -> None:
        if self._to_vector is None:
            self.compact()
