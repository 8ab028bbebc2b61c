from __future__ import annotations


class BPETokenizerError(Exception):
    """Base class for every error raised by this package."""


class DuplicateEntry(BPETokenizerError, KeyError):
    """A corpus entry id was ingested twice."""


class UnknownSymbol(BPETokenizerError, KeyError):
    """Encoding met a character that never appeared in the training corpus."""


class UnknownVectorIndex(BPETokenizerError, IndexError):
    """A vector index is out of range, or a token has no vector index."""


class UnknownTokenCode(BPETokenizerError, KeyError):
    """A code does not belong to any token of the current vocabulary."""


class EmptyVocabulary(BPETokenizerError, RuntimeError):
    """Vector compaction was requested before any token exists."""


class InvalidSnapshotFormat(BPETokenizerError, ValueError):
    """A snapshot or merge log record is malformed or has an unknown version."""


class MissingTokenIdentity(BPETokenizerError, RuntimeError):
    """A merge was applied with a composite token that has no valid id.

    Never raised for merges produced by ``find_next_merge`` or
    ``restore_merge``; seeing it means the engine state is inconsistent.
    """


class UnencodableText(BPETokenizerError, ValueError):
    """Corpus text holds a lone UTF-16 surrogate, which has no UTF-8 form.

    Such text (e.g. decoded with ``surrogateescape``) is rejected before
    ingestion on every backend, since the SQLite store and the merge log
    persist codes and characters as UTF-8.
    """


class VocabularyFull(BPETokenizerError, OverflowError):
    """The code space cannot represent another token."""


__all__ = [
    "BPETokenizerError",
    "DuplicateEntry",
    "UnknownSymbol",
    "UnknownVectorIndex",
    "UnknownTokenCode",
    "EmptyVocabulary",
    "InvalidSnapshotFormat",
    "MissingTokenIdentity",
    "UnencodableText",
    "VocabularyFull",
]
