import pytest

from bpe_tokenizers import EOF, TokenizerConfig


def test_defaults():
    cfg = TokenizerConfig()
    assert cfg.strategy == "incremental"
    assert cfg.sentinel == EOF
    assert cfg.min_weight == 2
    assert cfg.max_length is None


def test_load_yaml_with_overrides(tmp_path):
    path = tmp_path / "bpe.yaml"
    path.write_text("strategy: rescan\nmin_weight: 3\n", encoding="utf-8")
    cfg = TokenizerConfig.load(path, overrides=["max_length=8", "sentinel=null"])
    assert cfg.strategy == "rescan"
    assert cfg.min_weight == 3
    assert cfg.max_length == 8
    assert cfg.sentinel is None


def test_round_trip_dict():
    cfg = TokenizerConfig(strategy="rescan", max_iterations=10)
    assert TokenizerConfig.from_dict(cfg.to_dict()) == cfg


def test_unknown_keys_rejected():
    with pytest.raises(ValueError, match="vocab_size"):
        TokenizerConfig.from_dict({"vocab_size": 10})


@pytest.mark.parametrize(
    "kwargs",
    [
        {"strategy": "greedy"},
        {"sentinel": "ab"},
        {"min_weight": 0},
        {"max_length": 1},
        {"max_iterations": -1},
    ],
)
def test_invalid_values(kwargs):
    with pytest.raises(ValueError):
        TokenizerConfig(**kwargs)
