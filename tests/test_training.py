"""Tests for the BPE training loop and the pair primitives it is built on."""

import logging

import pytest

import bytepair as bp
from bytepair._bpe import apply_merges, bpe_freqs, bpe_merge, select_pair
from bytepair.errors import EmptyCorpusError, InvalidVocabSizeError, VocabularyError
from bytepair.trainer import train_bpe


# Pair primitives
# ---------------------------------------------------------------------------


def test_bpe_freqs_counts_every_adjacent_pair():
    stats = bpe_freqs([1, 2, 1, 2, 3, 1, 2])
    assert stats[(1, 2)] == 3
    assert stats[(2, 1)] == 1
    assert stats[(2, 3)] == 1
    assert stats[(3, 1)] == 1
    assert len(stats) == 4


def test_bpe_freqs_counts_overlapping_pairs_with_weight():
    stats = bpe_freqs([97, 97, 97], weight=3)
    assert stats == {(97, 97): 6}


def test_bpe_merge_replaces_pairs():
    assert bpe_merge([1, 2, 1, 2, 3, 1, 2], (1, 2), 256) == [256, 256, 3, 256]


def test_bpe_merge_is_left_to_right_without_overlap():
    assert bpe_merge([97, 97, 97], (97, 97), 256) == [256, 97]
    assert bpe_merge([97, 97, 97, 97], (97, 97), 256) == [256, 256]


def test_select_pair_breaks_ties_with_smallest_pair():
    counts = {(256, 97): 2, (97, 98): 2, (1, 1): 1}
    assert select_pair(counts) == ((97, 98), 2)
    assert select_pair({}) is None


def test_apply_merges_uses_lowest_rank_first():
    # (98, 99) has the lower rank, so "abc" never forms (97, 98)
    ranks = {(98, 99): 0, (97, 98): 1}
    assert apply_merges(list(b"abc"), ranks) == [97, 256]
    assert apply_merges(list(b"abd"), ranks) == [257, 100]


# Training loop
# ---------------------------------------------------------------------------


def test_canonical_merges():
    """aaabdaaabac learns (a,a), (a,b) and (Z,Y) in that order."""
    result = train_bpe([list(b"aaabdaaabac")], 3, show_progress=False)

    assert result.merges.pairs == ((97, 97), (97, 98), (256, 257))
    assert [m.new_tok for m in result.merges] == [256, 257, 258]
    assert [m.rank for m in result.merges] == [0, 1, 2]
    assert result.target_reached
    assert result.vocab[258] == b"aaab"


def test_early_termination_is_reported(caplog):
    """A corpus with no repeated pair stops after zero merges and says so."""
    tok = bp.BasicTokenizer()
    with caplog.at_level(logging.WARNING, logger="bytepair.trainer"):
        result = tok.train("abcdef", vocab_size=300, show_progress=False)

    assert result.n_merges_completed == 0
    assert result.n_merges_requested == 44
    assert not result.target_reached
    assert len(tok.merges) == 0
    assert "stopping early" in caplog.text


def test_pairs_seen_once_are_not_merged():
    result = train_bpe([list(b"abcabd")], 10, show_progress=False)
    # only (a, b) repeats; afterwards every pair is unique
    assert result.merges.pairs == ((97, 98),)
    assert result.n_merges_completed == 1


def test_pairs_are_not_counted_across_sequences():
    result = train_bpe([[97], [98], [97], [98]], 5, show_progress=False)
    assert result.n_merges_completed == 0


def test_identical_sequences_add_up():
    result = train_bpe([[97, 98], [97, 98]], 5, show_progress=False)
    assert result.merges.pairs == ((97, 98),)


def test_documents_are_independent_sequences():
    tok = bp.BasicTokenizer()
    tok.train(["xa", "bx"], vocab_size=260, show_progress=False)
    assert len(tok.merges) == 0

    tok.train(["ab", "ab"], vocab_size=260, show_progress=False)
    assert tok.merges.pairs == ((97, 98),)


def test_training_is_deterministic():
    corpus = "the quick brown fox jumps over the lazy dog; the dog sleeps. " * 5
    first = bp.RegexTokenizer()
    second = bp.RegexTokenizer()
    first.train(corpus, vocab_size=320, show_progress=False)
    second.train(corpus, vocab_size=320, show_progress=False)
    assert first.merges == second.merges
    assert first.merges.pairs == second.merges.pairs


def test_parallel_training_matches_serial():
    """Sharded counting and rewriting learns exactly the serial merges."""
    docs = [f"document {i} talks about tokenizers and merges {i % 3}" for i in range(40)]
    sequences = [list(doc.encode("utf-8")) for doc in docs]
    serial = train_bpe(sequences, 60, show_progress=False, num_workers=1)
    parallel = train_bpe(sequences, 60, show_progress=False, num_workers=4)
    assert parallel.merges == serial.merges


def test_train_accepts_bytes_corpus():
    tok = bp.BasicTokenizer()
    tok.train(b"\xff\xfe\xff\xfe", vocab_size=257, show_progress=False)
    assert tok.merges.pairs == ((0xFF, 0xFE),)


def test_vocab_size_of_256_learns_nothing():
    tok = bp.BasicTokenizer()
    result = tok.train("aaaa", vocab_size=256, show_progress=False)
    assert result.target_reached
    assert len(tok.merges) == 0


# Errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("corpus", ["", [], ["", ""], b""])
def test_empty_corpus_raises(corpus):
    tok = bp.BasicTokenizer()
    with pytest.raises(EmptyCorpusError):
        tok.train(corpus, vocab_size=300, show_progress=False)


def test_train_bpe_empty_sequences_raise():
    with pytest.raises(EmptyCorpusError):
        train_bpe([[], []], 3, show_progress=False)


def test_vocab_size_below_256_raises():
    tok = bp.RegexTokenizer()
    with pytest.raises(InvalidVocabSizeError) as exc_info:
        tok.train("hello", vocab_size=255)
    assert exc_info.value.vocab_size == 255
    assert isinstance(exc_info.value, VocabularyError)


def test_vocab_size_too_small_for_specials_raises():
    tok = bp.BasicTokenizer()
    with pytest.raises(InvalidVocabSizeError):
        tok.train("hello", vocab_size=257, special_tokens=["<a>", "<b>"])


# Progress configuration
# ---------------------------------------------------------------------------


def test_progress_toggle(monkeypatch):
    from bytepair import _progress

    monkeypatch.delenv(_progress.DISABLE_ENV_VAR, raising=False)
    bp.disable_progress()
    assert not _progress._is_enabled()
    bp.enable_progress()
    assert _progress._is_enabled()

    monkeypatch.setenv(_progress.DISABLE_ENV_VAR, "1")
    assert not _progress._is_enabled()
