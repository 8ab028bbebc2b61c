"""Byte-pair-encoding vocabulary training and encoding.

```python
from bpe_tokenizers import BPETokenizer

tok = BPETokenizer()
for line in open("corpus.txt", encoding="utf-8"):
    tok.add_to_corpus(line.rstrip("\n"))
tok.merge_until(min_weight=2)
vector = tok.encode_to_vector("hello")
assert tok.decode_vector(vector) == "hello"
```
"""

from .config import EOF, TokenizerConfig
from .errors import (
    BPETokenizerError,
    DuplicateEntry,
    EmptyVocabulary,
    InvalidSnapshotFormat,
    MissingTokenIdentity,
    UnencodableText,
    UnknownSymbol,
    UnknownTokenCode,
    UnknownVectorIndex,
    VocabularyFull,
)
from .merge_log import MergeLog
from .store import MemoryCorpusStore, SQLiteCorpusStore, open_store
from .tokenizer import BPETokenizer
from .tokens import Merge, Token, TokenTable

__all__ = [
    "BPETokenizer",
    "TokenizerConfig",
    "EOF",
    "Token",
    "Merge",
    "TokenTable",
    "MergeLog",
    "MemoryCorpusStore",
    "SQLiteCorpusStore",
    "open_store",
    "BPETokenizerError",
    "DuplicateEntry",
    "EmptyVocabulary",
    "InvalidSnapshotFormat",
    "MissingTokenIdentity",
    "UnencodableText",
    "UnknownSymbol",
    "UnknownTokenCode",
    "UnknownVectorIndex",
    "VocabularyFull",
]

__version__ = "0.1.0"
