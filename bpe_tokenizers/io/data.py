"""Corpus files as numbered entries.

Every non-empty record of a file gets a stable entry id: its 1-based position
among the records the reader yields. Re-reading the same file therefore
produces the same ids, which is what lets :meth:`BPETokenizer.add_corpus_file`
skip the entries a durable store already holds and continue an interrupted
ingestion.
"""

from __future__ import annotations

import json
from itertools import islice
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional, Tuple

FORMATS = ("txt", "jsonl", "parquet")


def _txt_records(path: Path, text_key: str) -> Iterator[str]:
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            yield line.rstrip("\n")


def _jsonl_records(path: Path, text_key: str) -> Iterator[Optional[str]]:
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}:{lineno}: invalid JSON record") from e
            if isinstance(obj, dict):
                value = obj.get(text_key)
                yield None if value is None else str(value)
            elif isinstance(obj, str):
                yield obj
            else:
                yield json.dumps(obj, ensure_ascii=False)


def _parquet_records(path: Path, text_key: str) -> Iterator[Optional[str]]:
    try:
        import pyarrow.parquet as pq
    except ImportError as e:
        raise RuntimeError("parquet corpora require `pyarrow`. pip install 'bpe-tokenizers[parquet]'") from e
    parquet_file = pq.ParquetFile(str(path))
    for batch in parquet_file.iter_batches(columns=[text_key]):
        for value in batch.column(0).to_pylist():
            yield None if value is None else str(value)


_READERS: Dict[str, Callable[[Path, str], Iterator[Optional[str]]]] = {
    "txt": _txt_records,
    "jsonl": _jsonl_records,
    "parquet": _parquet_records,
}


def iter_entries(
    corpus_path: str | Path,
    fmt: str = "txt",
    text_key: str = "text",
    max_samples: Optional[int] = None,
) -> Iterator[Tuple[int, str]]:
    """Yield ``(entry_id, text)`` for each non-empty record of a corpus file.

    ``txt`` has one record per line. ``jsonl`` takes ``obj[text_key]`` from
    objects, bare strings as they are, and re-serialises anything else.
    ``parquet`` reads the ``text_key`` column batch by batch. Empty records
    and nulls get no id.
    """

    fmt = fmt.lower()
    reader = _READERS.get(fmt)
    if reader is None:
        raise ValueError(f"Unknown format: {fmt}. Use {'|'.join(FORMATS)}.")
    texts = (t for t in reader(Path(corpus_path), text_key) if t)
    yield from islice(enumerate(texts, start=1), max_samples)


def iter_text(
    corpus_path: str | Path,
    fmt: str = "txt",
    text_key: str = "text",
    max_samples: Optional[int] = None,
) -> Iterator[str]:
    for _, text in iter_entries(corpus_path, fmt, text_key, max_samples):
        yield text
