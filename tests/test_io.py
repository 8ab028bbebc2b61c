import json

import pytest

from bpe_tokenizers import BPETokenizer
from bpe_tokenizers.io import iter_entries, iter_text


def test_txt_skips_blank_lines(tmp_path):
    path = tmp_path / "corpus.txt"
    path.write_text("first\n\nsecond\nthird\n", encoding="utf-8")
    assert list(iter_text(path)) == ["first", "second", "third"]
    assert list(iter_text(path, max_samples=2)) == ["first", "second"]


def test_entry_ids_are_stable(tmp_path):
    path = tmp_path / "corpus.txt"
    path.write_text("first\n\nsecond\nthird\n", encoding="utf-8")
    assert list(iter_entries(path)) == [(1, "first"), (2, "second"), (3, "third")]
    assert list(iter_entries(path, max_samples=2)) == [(1, "first"), (2, "second")]


def test_jsonl(tmp_path):
    path = tmp_path / "corpus.jsonl"
    rows = [{"text": "GET /"}, {"body": "x"}, "bare", {"text": 42}, [1, "a"]]
    path.write_text("\n".join(json.dumps(r) for r in rows) + "\n\n", encoding="utf-8")
    assert list(iter_entries(path, fmt="jsonl")) == [(1, "GET /"), (2, "bare"), (3, "42"), (4, '[1, "a"]')]
    assert list(iter_text(path, fmt="jsonl", text_key="body")) == ["x", "bare", '[1, "a"]']


def test_jsonl_invalid_record(tmp_path):
    path = tmp_path / "corpus.jsonl"
    path.write_text('{"text": "a"}\n{oops\n', encoding="utf-8")
    with pytest.raises(ValueError, match=":2:"):
        list(iter_entries(path, fmt="jsonl"))


def test_parquet(tmp_path):
    pa = pytest.importorskip("pyarrow")
    pq = pytest.importorskip("pyarrow.parquet")
    path = tmp_path / "corpus.parquet"
    pq.write_table(pa.table({"text": ["a", None, "", "b"]}), str(path))
    assert list(iter_entries(path, fmt="PARQUET")) == [(1, "a"), (2, "b")]


def test_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        list(iter_text(tmp_path / "x", fmt="csv"))


def test_train_from_file(tmp_path):
    path = tmp_path / "corpus.txt"
    path.write_text("aaabdaaabac\n", encoding="utf-8")
    tok = BPETokenizer()
    assert tok.add_corpus_file(path) == 1
    tok.merge_until()
    assert tok.encode_to_vector("aaabdaaabac") == [4, 2, 4, 1, 3]


def test_add_corpus_file_resumes(tmp_path, corpus):
    path = tmp_path / "corpus.txt"
    path.write_text("\n".join(corpus) + "\n", encoding="utf-8")
    db = str(tmp_path / "bpe.sqlite3")

    interrupted = BPETokenizer(store_path=db)
    assert interrupted.add_corpus_file(path, max_samples=3) == 3
    interrupted.close()

    resumed = BPETokenizer(store_path=db)
    assert resumed.add_corpus_file(path) == len(corpus) - 3
    assert resumed.add_corpus_file(path) == 0
    assert resumed.corpus_size == len(corpus)
    assert resumed.last_entry_id() == len(corpus)

    single = BPETokenizer()
    single.add_corpus(corpus)
    assert resumed.to_json() == single.to_json()
    resumed.merge_until()
    single.merge_until()
    assert resumed.to_json() == single.to_json()
    resumed.close()


def test_add_corpus_file_restores(tmp_path, corpus):
    path = tmp_path / "corpus.jsonl"
    path.write_text("\n".join(json.dumps({"text": t}) for t in corpus) + "\n", encoding="utf-8")

    continuous = BPETokenizer()
    continuous.add_corpus_file(path, fmt="jsonl")
    for _ in range(5):
        continuous.apply_merge(continuous.find_next_merge())
    restored = BPETokenizer()
    restored.from_json(continuous.to_json())
    assert restored.add_corpus_file(path, fmt="jsonl", restore=True) == len(corpus)
    assert restored.to_json() == continuous.to_json()

    continuous.merge_until()
    restored.merge_until()
    assert restored.to_json() == continuous.to_json()
