"""Versioned snapshot format.

Version 2 (written by ``to_json``)::

    {
      "version": 2,
      "sentinel": "\\u0004" | null,
      "char_count": int,
      "token_table": [[chars, weight, original_weight], ...],   # id order
      "merge_codes": [[a_code, b_code, c_code], ...]             # merge order
    }

Version 1 (legacy, import only): ``token_table`` lists character tokens as
``[chars, original_weight]`` and ``merge_codes`` lists ``[a_code, b_code,
c_weight]``; merged tokens take the ids following the characters. Its codes
are the bare token index (``chr(id)``, so the first token is ``"\\u0000"``),
unlike the ``chr(id + 1)`` codes used everywhere else.

Parsing validates the whole document before anything is built, and the
vocabulary is rebuilt by replaying merges through :meth:`TokenTable.merge`,
the same bookkeeping a live run uses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from . import codec
from .config import EOF
from .errors import InvalidSnapshotFormat, UnknownTokenCode
from .tokens import Merge, TokenTable

SNAPSHOT_VERSION = 2
LEGACY_SNAPSHOT_VERSION = 1


@dataclass
class SnapshotPlan:
    """A validated snapshot, ready to be replayed."""

    sentinel: Optional[str]
    rows: List[Tuple[str, int, int]] = field(default_factory=list)
    merges: List[Tuple[int, int, int]] = field(default_factory=list)  # a_id, b_id, c_id
    # v2 records final weights; v1 only lets the replay derive them
    check_weights: bool = True


def build_snapshot(table: TokenTable, merges: Sequence[Merge], sentinel: Optional[str]) -> Dict[str, Any]:
    return {
        "version": SNAPSHOT_VERSION,
        "sentinel": sentinel,
        "char_count": table.char_count,
        "token_table": [list(t.to_row()) for t in table],
        "merge_codes": [[m.a.code, m.b.code, m.c.code] for m in merges],
    }


def parse_snapshot(doc: Any) -> SnapshotPlan:
    if not isinstance(doc, Mapping):
        raise InvalidSnapshotFormat("snapshot must be a JSON object")
    version = doc.get("version")
    if not isinstance(doc.get("token_table"), list) or not isinstance(doc.get("merge_codes"), list):
        raise InvalidSnapshotFormat("snapshot needs 'token_table' and 'merge_codes' arrays")
    if version == SNAPSHOT_VERSION and not isinstance(version, bool):
        return _parse_v2(doc)
    if version == LEGACY_SNAPSHOT_VERSION and not isinstance(version, bool):
        return _parse_v1(doc)
    raise InvalidSnapshotFormat(f"unsupported snapshot version: {version!r}")


def replay(plan: SnapshotPlan) -> Tuple[TokenTable, List[Merge]]:
    """Rebuild the token table and merge list described by ``plan``."""

    table = TokenTable()
    merges: List[Merge] = []
    by_c = {c_id: (a_id, b_id) for a_id, b_id, c_id in plan.merges}
    for token_id, (chars, _, original_weight) in enumerate(plan.rows):
        if token_id in by_c:
            a_id, b_id = by_c[token_id]
            a, b = table[a_id], table[b_id]
            c = table.prospective(a.chars + b.chars, original_weight)
            table.merge(a, b, c)
            merges.append(Merge(a, b, c))
        else:
            table.create(chars, original_weight, is_char=True)
    for token, (chars, weight, _) in zip(table, plan.rows):
        if token.weight < 0:
            raise InvalidSnapshotFormat(f"token {token.id} ({chars!r}) is consumed more often than it occurs")
        if plan.check_weights and token.weight != weight:
            raise InvalidSnapshotFormat(
                f"token {token.id} ({chars!r}) has weight {weight} but its merges leave {token.weight}"
            )
    return table, merges


# -------------------------
# Internals
# -------------------------
def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _code_id(code: Any, n_tokens: int, where: str) -> int:
    if not isinstance(code, str):
        raise InvalidSnapshotFormat(f"{where}: token code must be a string, got {code!r}")
    try:
        token_id = codec.id_for(code)
    except UnknownTokenCode as e:
        raise InvalidSnapshotFormat(f"{where}: {e}") from None
    if token_id >= n_tokens:
        raise InvalidSnapshotFormat(f"{where}: code {code!r} refers to token {token_id} beyond the table")
    return token_id


def _legacy_code_id(code: Any, n_tokens: int, where: str) -> int:
    if not isinstance(code, str) or len(code) != 1:
        raise InvalidSnapshotFormat(f"{where}: token code must be a single character, got {code!r}")
    token_id = ord(code)
    if token_id >= n_tokens:
        raise InvalidSnapshotFormat(f"{where}: code {code!r} refers to token {token_id} beyond the table")
    return token_id


def _check_sentinel(sentinel: Any, rows: List[Tuple[str, int, int]]) -> Optional[str]:
    if sentinel is None:
        return None
    if not isinstance(sentinel, str) or len(sentinel) != 1:
        raise InvalidSnapshotFormat(f"sentinel must be a single character or null, got {sentinel!r}")
    if not rows or rows[0][0] != sentinel:
        raise InvalidSnapshotFormat("the sentinel must be the first token of the table")
    return sentinel


def _check_merges(merges: List[Tuple[int, int, int]], rows: List[Tuple[str, int, int]]) -> None:
    last_c = -1
    for i, (a_id, b_id, c_id) in enumerate(merges):
        if c_id <= last_c:
            raise InvalidSnapshotFormat(f"merge_codes[{i}]: merges must be listed in creation order")
        if a_id >= c_id or b_id >= c_id:
            raise InvalidSnapshotFormat(f"merge_codes[{i}]: a merge can only join older tokens")
        if rows[c_id][0] != rows[a_id][0] + rows[b_id][0]:
            raise InvalidSnapshotFormat(f"merge_codes[{i}]: token chars do not match the merged pair")
        last_c = c_id


def _parse_v2(doc: Mapping[str, Any]) -> SnapshotPlan:
    rows: List[Tuple[str, int, int]] = []
    for i, row in enumerate(doc["token_table"]):
        if not isinstance(row, (list, tuple)) or len(row) != 3:
            raise InvalidSnapshotFormat(f"token_table[{i}]: expected [chars, weight, original_weight]")
        chars, weight, original_weight = row
        if not isinstance(chars, str) or not chars:
            raise InvalidSnapshotFormat(f"token_table[{i}]: chars must be a non-empty string")
        if not _is_int(weight) or not _is_int(original_weight) or not 0 <= weight <= original_weight:
            raise InvalidSnapshotFormat(f"token_table[{i}]: expected 0 <= weight <= original_weight")
        rows.append((chars, weight, original_weight))

    merges: List[Tuple[int, int, int]] = []
    for i, row in enumerate(doc["merge_codes"]):
        if not isinstance(row, (list, tuple)) or len(row) != 3:
            raise InvalidSnapshotFormat(f"merge_codes[{i}]: expected [a_code, b_code, c_code]")
        where = f"merge_codes[{i}]"
        merges.append(tuple(_code_id(code, len(rows), where) for code in row))
    _check_merges(merges, rows)

    merged = {c_id for _, _, c_id in merges}
    seen_chars = set()
    for token_id, (chars, _, _) in enumerate(rows):
        if token_id in merged:
            continue
        if len(chars) != 1 or chars in seen_chars:
            raise InvalidSnapshotFormat(f"token_table[{token_id}]: character tokens must be distinct single characters")
        seen_chars.add(chars)
    char_count = doc.get("char_count")
    if not _is_int(char_count) or char_count != len(seen_chars):
        raise InvalidSnapshotFormat(f"char_count={char_count!r} does not match {len(seen_chars)} character tokens")

    sentinel = _check_sentinel(doc.get("sentinel"), rows)
    return SnapshotPlan(sentinel=sentinel, rows=rows, merges=merges, check_weights=True)


def _parse_v1(doc: Mapping[str, Any]) -> SnapshotPlan:
    rows: List[Tuple[str, int, int]] = []
    for i, row in enumerate(doc["token_table"]):
        if not isinstance(row, (list, tuple)) or len(row) != 2:
            raise InvalidSnapshotFormat(f"token_table[{i}]: expected [char, weight]")
        chars, weight = row
        if not isinstance(chars, str) or len(chars) != 1 or not _is_int(weight) or weight < 0:
            raise InvalidSnapshotFormat(f"token_table[{i}]: expected a single character and a weight")
        rows.append((chars, weight, weight))
    if len({r[0] for r in rows}) != len(rows):
        raise InvalidSnapshotFormat("token_table: character tokens must be distinct")

    merges: List[Tuple[int, int, int]] = []
    for i, row in enumerate(doc["merge_codes"]):
        if not isinstance(row, (list, tuple)) or len(row) != 3:
            raise InvalidSnapshotFormat(f"merge_codes[{i}]: expected [a_code, b_code, c_weight]")
        a_code, b_code, c_weight = row
        where = f"merge_codes[{i}]"
        a_id = _legacy_code_id(a_code, len(rows), where)
        b_id = _legacy_code_id(b_code, len(rows), where)
        if not _is_int(c_weight) or c_weight < 0:
            raise InvalidSnapshotFormat(f"{where}: c_weight must be a non-negative integer")
        c_id = len(rows)
        rows.append((rows[a_id][0] + rows[b_id][0], c_weight, c_weight))
        merges.append((a_id, b_id, c_id))

    sentinel = EOF if rows and rows[0][0] == EOF else None
    return SnapshotPlan(sentinel=sentinel, rows=rows, merges=merges, check_weights=False)
