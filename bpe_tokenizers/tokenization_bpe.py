"""Transformers-compatible wrapper around a trained BPE snapshot.

```python
from bpe_tokenizers.tokenization_bpe import BPETokenizerHF

tok = BPETokenizerHF("/path/to/bpe_snapshot.json")
ids = tok("hello world")["input_ids"]
```

Token strings are the single-character token codes and ids are vector
indices, so ``input_ids`` match :meth:`BPETokenizer.encode_to_vector`.
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Tuple

from transformers import PreTrainedTokenizer

from .errors import UnknownVectorIndex
from .tokenizer import BPETokenizer

SNAPSHOT_FILE = "bpe_snapshot.json"


class BPETokenizerHF(PreTrainedTokenizer):
    """Encode-only view of a :class:`BPETokenizer` vocabulary."""

    vocab_files_names = {"snapshot_file": SNAPSHOT_FILE}
    model_input_names = ["input_ids", "attention_mask"]

    def __init__(self, snapshot_file: str, model_max_length: int = 512, **kwargs: Any) -> None:
        self._bpe = BPETokenizer.load(snapshot_file)
        self.vocab = self._bpe.vector_vocab()
        self.ids_to_tokens = {i: t for t, i in self.vocab.items()}
        kwargs.setdefault("clean_up_tokenization_spaces", False)
        super().__init__(model_max_length=model_max_length, **kwargs)

    @property
    def bpe(self) -> BPETokenizer:
        return self._bpe

    @property
    def vocab_size(self) -> int:  # type: ignore[override]
        return len(self.vocab)

    def get_vocab(self) -> Dict[str, int]:  # type: ignore[override]
        return dict(self.vocab)

    def _tokenize(self, text: str) -> List[str]:  # type: ignore[override]
        return list(self._bpe.encode_to_code(text))

    def _convert_token_to_id(self, token: str) -> int:  # type: ignore[override]
        index = self.vocab.get(token)
        if index is None:
            raise UnknownVectorIndex(f"token {token!r} has no vector index")
        return index

    def _convert_id_to_token(self, index: int) -> str:  # type: ignore[override]
        return self.ids_to_tokens[index]

    def convert_tokens_to_string(self, tokens: List[str]) -> str:  # type: ignore[override]
        return self._bpe.decode_code("".join(tokens))

    def save_vocabulary(self, save_directory: str, filename_prefix: Optional[str] = None) -> Tuple[str, ...]:  # type: ignore[override]
        os.makedirs(save_directory, exist_ok=True)
        snapshot_path = os.path.join(save_directory, (filename_prefix or "") + SNAPSHOT_FILE)
        self._bpe.save(snapshot_path)
        return (snapshot_path,)
