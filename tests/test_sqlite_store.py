import pytest

from bpe_tokenizers import BPETokenizer, DuplicateEntry, SQLiteCorpusStore, open_store
from bpe_tokenizers.store import MemoryCorpusStore


@pytest.fixture(params=["incremental", "rescan"])
def strategy(request):
    return request.param


def test_open_store():
    assert isinstance(open_store(None), MemoryCorpusStore)
    assert isinstance(open_store(":memory:"), SQLiteCorpusStore)


def test_store_contract(tmp_path):
    store = SQLiteCorpusStore(tmp_path / "corpus.sqlite3")
    store.add_entry(2, "\x02\x03")
    store.add_entry(1, "\x03\x03")
    with pytest.raises(DuplicateEntry):
        store.add_entry(2, "\x02")
    assert len(store) == 2
    assert store.last_entry_id() == 2
    assert list(store.entries()) == [(2, "\x02\x03"), (1, "\x03\x03")]
    assert store.find_entries("\x03\x03") == [1]
    # no LIKE wildcards
    assert store.find_entries("%") == []
    store.set_codes(1, "\x04")
    assert store.get_codes(1) == "\x04"
    with pytest.raises(KeyError):
        store.set_codes(9, "\x04")
    store.clear_corpus()
    assert len(store) == 0
    assert store.last_entry_id() is None
    store.close()


def test_reopen_resumes_training(tmp_path, corpus, strategy):
    continuous = BPETokenizer(strategy=strategy)
    continuous.add_corpus(corpus)
    continuous.merge_until()

    path = tmp_path / "bpe.sqlite3"
    first = BPETokenizer(strategy=strategy, store_path=str(path))
    first.add_corpus(corpus)
    first.merge_until(max_iterations=5)
    snapshot = first.to_json()
    first.close()

    reopened = BPETokenizer(strategy=strategy, store_path=str(path))
    assert reopened.to_json() == snapshot
    assert reopened.corpus_size == len(corpus)
    assert reopened.last_entry_id() == len(corpus)
    reopened.merge_until()
    assert reopened.to_json() == continuous.to_json()
    reopened.close()


def test_reopen_keeps_stored_sentinel(tmp_path):
    path = tmp_path / "bpe.sqlite3"
    tok = BPETokenizer(store_path=str(path), sentinel=None)
    tok.add_to_corpus("abab")
    tok.close()
    reopened = BPETokenizer(store_path=str(path))
    assert reopened.sentinel is None
    assert reopened.token_table.by_char("\x04") is None
    reopened.close()


def test_failed_merge_rolls_back(tmp_path, monkeypatch, corpus, strategy):
    continuous = BPETokenizer(strategy=strategy)
    continuous.add_corpus(corpus)
    continuous.merge_until()

    store = SQLiteCorpusStore(tmp_path / "bpe.sqlite3")
    tok = BPETokenizer(strategy=strategy, store=store)
    tok.add_corpus(corpus)
    tok.merge_until(max_iterations=3)
    before = tok.to_json()
    entries = list(store.entries())

    def boom(*args):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "save_merge", boom)
    with pytest.raises(RuntimeError, match="disk full"):
        tok.merge_until()
    assert tok.to_json() == before
    assert list(store.entries()) == entries

    monkeypatch.undo()
    tok.merge_until()
    assert tok.to_json() == continuous.to_json()
    tok.close()


def test_failed_ingestion_rolls_back(tmp_path, monkeypatch):
    store = SQLiteCorpusStore(tmp_path / "bpe.sqlite3")
    tok = BPETokenizer(store=store)
    tok.add_to_corpus("abc")
    before = tok.to_json()

    def boom(*args):
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "save_tokens", boom)
    with pytest.raises(RuntimeError):
        tok.add_to_corpus("abcd")
    monkeypatch.undo()
    assert tok.to_json() == before
    assert tok.token_table.by_char("d") is None
    assert tok.corpus_size == 1
    tok.close()


def test_import_replaces_stored_state(tmp_path, corpus):
    source = BPETokenizer()
    source.add_corpus(corpus)
    source.merge_until()

    path = tmp_path / "bpe.sqlite3"
    tok = BPETokenizer(store_path=str(path))
    tok.add_to_corpus("zzzz")
    tok.from_json(source.to_json())
    tok.close()

    reopened = BPETokenizer(store_path=str(path))
    assert reopened.to_json() == source.to_json()
    assert reopened.corpus_size == 0
    reopened.close()


def test_reset(tmp_path):
    store = SQLiteCorpusStore(tmp_path / "bpe.sqlite3")
    tok = BPETokenizer(store=store)
    tok.add_to_corpus("abc")
    store.reset()
    assert not store.has_vocabulary()
    assert len(store) == 0
    store.close()
