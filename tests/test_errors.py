import pytest

from bpe_tokenizers import (
    BPETokenizer,
    BPETokenizerError,
    DuplicateEntry,
    EmptyVocabulary,
    MissingTokenIdentity,
    UnencodableText,
    UnknownSymbol,
    UnknownTokenCode,
    UnknownVectorIndex,
)
from bpe_tokenizers.tokens import Merge, Token


@pytest.fixture
def trained(make_tokenizer):
    tok = make_tokenizer()
    tok.add_to_corpus("aaabdaaabac")
    tok.merge_until()
    return tok


def test_duplicate_entry_leaves_weights(make_tokenizer):
    tok = make_tokenizer()
    tok.add_to_corpus("ab", entry_id=1)
    before = tok.to_json()
    with pytest.raises(DuplicateEntry):
        tok.add_to_corpus("abz", entry_id=1)
    with pytest.raises(DuplicateEntry):
        tok.restore_to_corpus("ab", entry_id=1)
    assert tok.to_json() == before
    assert tok.corpus_size == 1


def test_lone_surrogate_is_rejected(make_tokenizer):
    tok = make_tokenizer()
    tok.add_to_corpus("ab", entry_id=1)
    before = tok.to_json()
    with pytest.raises(UnencodableText):
        tok.add_to_corpus("ab\udcffab")
    with pytest.raises(UnencodableText):
        tok.restore_to_corpus("\ud800", entry_id=2)
    assert tok.to_json() == before
    assert tok.corpus_size == 1
    assert tok.last_entry_id() == 1
    assert tok.add_to_corpus("ab\U0001f600ab") == 2


def test_unknown_symbol(trained):
    with pytest.raises(UnknownSymbol):
        trained.encode_to_tokens("aaz")


def test_zero_weight_token_has_no_vector_index(trained):
    # "b" was fully absorbed into "ab"
    assert trained.token_table.by_char("b").weight == 0
    with pytest.raises(UnknownVectorIndex):
        trained.encode_to_vector("b")


def test_unknown_vector_index(trained):
    with pytest.raises(UnknownVectorIndex):
        trained.decode_vector([0, 99])
    with pytest.raises(UnknownVectorIndex):
        trained.decode_vector([-1])


def test_unknown_token_code(trained):
    with pytest.raises(UnknownTokenCode):
        trained.decode_code("\U00010000")
    with pytest.raises(UnknownTokenCode):
        trained.restore_merge(["\U00010000", "\x02", 1])


def test_empty_vocabulary(make_tokenizer):
    tok = make_tokenizer(sentinel=None)
    with pytest.raises(EmptyVocabulary):
        tok.compact_vector_index()


def test_stale_merge_is_rejected(make_tokenizer):
    tok = make_tokenizer()
    tok.add_to_corpus("aaabdaaabac")
    merge = tok.find_next_merge()
    tok.apply_merge(merge)
    before = tok.to_json()
    with pytest.raises(MissingTokenIdentity, UnencodableText):
        tok.apply_merge(merge)
    assert tok.to_json() == before


def test_merge_without_identity(make_tokenizer):
    tok = make_tokenizer()
    tok.add_to_corpus("aaabdaaabac")
    a = tok.token_table.by_char("a")
    with pytest.raises(MissingTokenIdentity, UnencodableText):
        tok.apply_merge(Merge(a, a, Token(chars="aa", weight=2, original_weight=2)))
    assert tok.merges == []


def test_merge_of_unknown_token(make_tokenizer):
    tok = make_tokenizer()
    tok.add_to_corpus("aaabdaaabac")
    a = tok.token_table.by_char("a")
    stranger = Token(chars="q", weight=1, original_weight=1, id=40, code="\U00010000")
    c = tok.token_table.prospective("aq", 1)
    with pytest.raises(UnknownTokenCode):
        tok.apply_merge(Merge(a, stranger, c))
    assert len(tok.token_table) == 5


def test_error_hierarchy():
    assert issubclass(DuplicateEntry, KeyError)
    assert issubclass(UnknownVectorIndex, IndexError)
    assert issubclass(UnencodableText, ValueError)
    for exc in (DuplicateEntry, UnknownSymbol, UnknownVectorIndex, EmptyVocabulary, MissingTokenIdentity, UnencodableText):
        assert issubclass(exc, BPETokenizerError)


def test_invalid_strategy():
    with pytest.raises(ValueError):
        BPETokenizer(strategy="greedy")
