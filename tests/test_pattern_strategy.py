"""Tests for split patterns, special token strategies and factory helpers."""

import pytest

import bytepair as bp
from bytepair.errors import ModelLoadError, PatternError, SpecialTokenError, StrategyError
from bytepair.parallel import ParallelMode, encode_batch, split_shards


@pytest.fixture
def tokenizer():
    tok = bp.get_tokenizer("regex")
    tok.train(
        "hello world, hello tokens! <|endoftext|> world",
        vocab_size=270,
        special_tokens=["<|endoftext|>", "<|pad|>"],
        show_progress=False,
    )
    return tok


# Patterns
# ---------------------------------------------------------------------------


def test_list_patterns():
    assert bp.list_patterns() == ["gpt2", "gpt4", "gpt4o", "llama3", "qwen2"]


def test_get_pattern_is_case_insensitive():
    assert bp.get_pattern("GPT4") == bp.TokenPattern.GPT4.value
    assert bp.TokenPattern.name_of(bp.get_pattern("llama3")) == "llama3"
    assert bp.TokenPattern.name_of(r"\w+") is None


def test_unknown_pattern_raises():
    with pytest.raises(PatternError):
        bp.get_pattern("gpt5")


def test_invalid_custom_pattern_raises():
    with pytest.raises(PatternError):
        bp.get_tokenizer(custom_pattern="(unclosed")


@pytest.mark.parametrize("name", ["gpt2", "gpt4", "gpt4o", "llama3", "qwen2"])
def test_builtin_patterns_cover_all_text(name):
    """Chunks of every built-in pattern concatenate back to the input."""
    tok = bp.RegexTokenizer(name)
    text = "Hello world!!! 12345 don't\n\n  tabs\there 日本語 🎉"
    assert "".join(tok._pre_split(text)) == text


def test_gpt4_chunks():
    tok = bp.RegexTokenizer()
    assert tok._pre_split("Hello world!!! 123") == ["Hello", " world", "!!!", " ", "123"]
    assert tok._pre_split("don't") == ["don", "'t"]


def test_pattern_name_and_raw_regex_are_equivalent():
    by_name = bp.RegexTokenizer("llama3")
    by_regex = bp.RegexTokenizer(bp.get_pattern("llama3"))
    assert by_name.pat == by_regex.pat


def test_custom_pattern_is_saved(tmp_path):
    tok = bp.get_tokenizer(custom_pattern=r"\p{L}+|\p{N}+|\s+|[^\s\p{L}\p{N}]+")
    tok.train("aa bb aa bb", vocab_size=258, show_progress=False)
    tok.save(str(tmp_path / "custom"))
    loaded = bp.from_pretrained(str(tmp_path / "custom.model"))
    assert loaded.pat == tok.pat
    assert loaded._pre_split("aa, bb") == ["aa", ",", " ", "bb"]


def test_custom_pattern_with_line_separator_is_saved(tmp_path):
    tok = bp.get_tokenizer(custom_pattern="[^\u2028]+|\u2028")
    tok.train("ab\u2028ab\u2028ab", vocab_size=258, show_progress=False)
    tok.save(str(tmp_path / "sep"))
    loaded = bp.from_pretrained(str(tmp_path / "sep.model"))
    assert loaded.pat == tok.pat
    assert loaded._pre_split("ab\u2028cd") == ["ab", "\u2028", "cd"]


def test_unknown_tokenizer_kind_raises():
    with pytest.raises(ModelLoadError):
        bp.get_tokenizer("wordpiece")


# Strategies
# ---------------------------------------------------------------------------


def test_list_strategies():
    assert bp.list_strategies() == ["all", "none", "none-raise", "custom"]


def test_unknown_strategy_raises():
    with pytest.raises(StrategyError):
        bp.get_strategy("some")


def test_custom_strategy_requires_subset():
    with pytest.raises(StrategyError):
        bp.get_strategy("custom")


def test_default_strategy_matches_all_specials(tokenizer):
    eot = tokenizer.special_toks["<|endoftext|>"]
    pad = tokenizer.special_toks["<|pad|>"]
    tokens = tokenizer.encode("a<|pad|>b<|endoftext|>")
    assert tokens == [ord("a"), pad, ord("b"), eot]
    assert tokenizer.encode("a<|pad|>", bp.get_strategy("all")) == [ord("a"), pad]


def test_none_strategy_encodes_specials_as_text(tokenizer):
    text = "hi<|endoftext|>"
    tokens = tokenizer.encode(text, bp.get_strategy("none"))
    assert tokenizer.special_toks["<|endoftext|>"] not in tokens
    assert tokenizer.decode(tokens) == text


def test_none_raise_strategy_rejects_specials(tokenizer):
    with pytest.raises(SpecialTokenError) as exc_info:
        tokenizer.encode("hi<|pad|>", bp.get_strategy("none-raise"))
    assert exc_info.value.found_tokens == {"<|pad|>"}
    assert tokenizer.encode("hi", bp.get_strategy("none-raise")) == tokenizer.encode("hi")


def test_custom_strategy_allows_subset(tokenizer):
    strategy = bp.get_strategy("custom", allowed_subset={"<|pad|>"})
    tokens = tokenizer.encode("<|pad|><|endoftext|>", strategy)
    assert tokens[0] == tokenizer.special_toks["<|pad|>"]
    assert tokenizer.special_toks["<|endoftext|>"] not in tokens
    assert tokenizer.decode(tokens) == "<|pad|><|endoftext|>"


# Parallel helpers
# ---------------------------------------------------------------------------


def test_parallel_mode_lookup():
    assert ParallelMode.get("Batch") is ParallelMode.BATCH
    assert ParallelMode.get(ParallelMode.OFF) is ParallelMode.OFF
    with pytest.raises(StrategyError):
        ParallelMode.get("threads")


def test_split_shards_preserves_order():
    shards = split_shards(list(range(10)), 3)
    assert [x for shard in shards for x in shard] == list(range(10))
    assert len(shards) == 3
    assert split_shards([], 4) == []


def test_encode_batch_helper(tokenizer):
    texts = ["hello world", "<|pad|> tokens"]
    assert encode_batch(tokenizer, texts, parallel_mode="off") == [
        tokenizer.encode(text) for text in texts
    ]
