"""Append-only merge log.

One JSON array ``[a_code, b_code, c_weight]`` per line. Each record is flushed
and fsynced as soon as its merge is applied, so after a crash the log holds
every merge up to the last one, possibly followed by a torn line that
:meth:`MergeLog.records` discards.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Sequence, Tuple

from .errors import InvalidSnapshotFormat

if TYPE_CHECKING:
    from .tokenizer import BPETokenizer

logger = logging.getLogger(__name__)

MergeRecord = Tuple[str, str, int]


def parse_record(obj: object) -> MergeRecord:
    if not isinstance(obj, (list, tuple)) or len(obj) != 3:
        raise InvalidSnapshotFormat(f"merge record must be [a_code, b_code, c_weight], got {obj!r}")
    a_code, b_code, c_weight = obj
    if not isinstance(a_code, str) or not isinstance(b_code, str):
        raise InvalidSnapshotFormat(f"merge record codes must be strings, got {obj!r}")
    if not isinstance(c_weight, int) or isinstance(c_weight, bool) or c_weight < 0:
        raise InvalidSnapshotFormat(f"merge record weight must be a non-negative integer, got {obj!r}")
    return a_code, b_code, c_weight


class MergeLog:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def append(self, record: Sequence) -> None:
        line = json.dumps(list(record), ensure_ascii=False)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
            f.flush()
            os.fsync(f.fileno())

    def records(self) -> Iterator[MergeRecord]:
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8", newline="\n") as f:
            text = f.read()
        lines = text.split("\n")
        # the last piece is "" after a complete log, or a torn record
        if lines[-1]:
            logger.warning("dropping incomplete trailing record in %s", self.path)
        for lineno, line in enumerate(lines[:-1], start=1):
            if not line.strip():
                continue
            try:
                obj = json.loads(line)
            except json.JSONDecodeError as e:
                raise InvalidSnapshotFormat(f"{self.path}:{lineno}: {e}") from e
            yield parse_record(obj)

    def __len__(self) -> int:
        return sum(1 for _ in self.records())

    def discard_partial(self) -> None:
        """Cut a torn trailing record so that new records start on a fresh line."""
        if not self.path.exists():
            return
        with open(self.path, "rb+") as f:
            data = f.read()
            end = data.rfind(b"\n") + 1
            if end < len(data):
                f.truncate(end)
                logger.warning("truncated incomplete trailing record in %s", self.path)

    def replay(self, tokenizer: "BPETokenizer") -> int:
        """Restore every logged merge into ``tokenizer``; returns how many.

        A torn trailing record is removed first, so the same log can keep
        receiving the merges of the resumed run.
        """
        self.discard_partial()
        n = 0
        for record in self.records():
            tokenizer.restore_merge(record)
            n += 1
        logger.info("replayed %d merges from %s", n, self.path)
        return n
