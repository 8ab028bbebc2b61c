"""Symbol codec: a bijection between token ids and single code points.

Every token is written inside corpus strings as one character, so a merge of
``a`` followed by ``b`` is a plain substring replace of ``code(a) + code(b)``
with ``code(c)``.

Code point 0 is never handed out, and the UTF-16 surrogate block is skipped so
that every code survives a UTF-8 round trip (SQLite text columns, log files).
"""

from __future__ import annotations

from .errors import UnknownTokenCode, VocabularyFull

_SURROGATE_START = 0xD800
_SURROGATE_END = 0xDFFF
_SURROGATE_SPAN = _SURROGATE_END - _SURROGATE_START + 1
_MAX_CODE_POINT = 0x10FFFF

# ids 0.. map to code points 1.., minus the surrogate gap
MAX_TOKENS = _MAX_CODE_POINT - _SURROGATE_SPAN


def code_for(token_id: int) -> str:
    if token_id < 0:
        raise ValueError(f"token id must be non-negative, got {token_id}")
    if token_id >= MAX_TOKENS:
        raise VocabularyFull(f"token id {token_id} exceeds the code space ({MAX_TOKENS} tokens)")
    cp = token_id + 1
    if cp >= _SURROGATE_START:
        cp += _SURROGATE_SPAN
    return chr(cp)


def id_for(code: str) -> int:
    if len(code) != 1:
        raise UnknownTokenCode(f"a token code is a single character, got {code!r}")
    cp = ord(code)
    if cp == 0 or _SURROGATE_START <= cp <= _SURROGATE_END:
        raise UnknownTokenCode(f"code point U+{cp:04X} is never assigned to a token")
    if cp > _SURROGATE_END:
        cp -= _SURROGATE_SPAN
    return cp - 1
