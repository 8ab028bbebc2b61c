import pytest

pytest.importorskip("transformers")

from bpe_tokenizers import BPETokenizer  # noqa: E402
from bpe_tokenizers.tokenization_bpe import SNAPSHOT_FILE, BPETokenizerHF  # noqa: E402


@pytest.fixture
def snapshot_file(tmp_path):
    tok = BPETokenizer()
    tok.add_to_corpus("aaabdaaabac")
    tok.merge_until()
    path = tmp_path / SNAPSHOT_FILE
    tok.save(path)
    return str(path)


def test_ids_are_vector_indices(snapshot_file):
    hf = BPETokenizerHF(snapshot_file)
    assert hf.vocab_size == 5
    assert hf.convert_tokens_to_ids(hf.tokenize("aaabdaaabac")) == [4, 2, 4, 1, 3]


def test_decode(snapshot_file):
    hf = BPETokenizerHF(snapshot_file)
    tokens = hf.convert_ids_to_tokens([4, 2, 4, 1, 3])
    assert hf.convert_tokens_to_string(tokens) == "aaabdaaabac"


def test_save_vocabulary(snapshot_file, tmp_path):
    hf = BPETokenizerHF(snapshot_file)
    (path,) = hf.save_vocabulary(str(tmp_path / "out"))
    assert BPETokenizer.load(path).to_json() == hf.bpe.to_json()
