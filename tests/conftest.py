from __future__ import annotations

import pytest

from bpe_tokenizers import BPETokenizer, SQLiteCorpusStore

STRATEGIES = ["incremental", "rescan"]
BACKENDS = ["memory", "sqlite"]


@pytest.fixture(params=[(s, b) for s in STRATEGIES for b in BACKENDS], ids=lambda p: f"{p[0]}-{p[1]}")
def make_tokenizer(request, tmp_path):
    """Factory for tokenizers on every strategy x backend combination."""

    strategy, backend = request.param
    opened = []

    def _make(name=None, **kwargs):
        if name is None:
            name = f"bpe{len(opened)}"
        store = SQLiteCorpusStore(tmp_path / f"{name}.sqlite3") if backend == "sqlite" else None
        tok = BPETokenizer(store=store, strategy=strategy, **kwargs)
        opened.append(tok)
        return tok

    yield _make
    for tok in opened:
        tok.close()


@pytest.fixture
def corpus():
    return [
        "GET /index.html HTTP/1.1",
        "GET /images/logo.png HTTP/1.1",
        "POST /api/login HTTP/1.1",
        "Host: example.com",
        "Host: api.example.com",
        "image: nginx:1.21-alpine",
        "image: nginx:1.25-alpine",
    ]
